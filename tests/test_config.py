import importlib
import sys
import types

import pytest


def _mock_dotenv(monkeypatch):
    basic_dotenv = types.ModuleType("dotenv")
    setattr(basic_dotenv, "load_dotenv", lambda *args, **kwargs: None)
    monkeypatch.setitem(sys.modules, "dotenv", basic_dotenv)


def _import_fresh_config(monkeypatch):
    # monkeypatch puts the original module back after the test
    monkeypatch.delitem(sys.modules, "secintel.config", raising=False)
    return importlib.import_module("secintel.config")


def test_get_config_reflects_environment(monkeypatch):
    _mock_dotenv(monkeypatch)

    monkeypatch.setenv("DATABASE_URL", "sqlite:///tmp.db")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("REQUEST_TIMEOUT", "45")
    monkeypatch.setenv("REQUEST_DELAY", "2.5")
    monkeypatch.setenv("EXTRACTION_ORDER", "Heuristic-First")

    config = _import_fresh_config(monkeypatch)

    assert config.DATABASE_URL == "sqlite:///tmp.db"
    assert config.LOG_LEVEL == "DEBUG"
    assert config.REQUEST_TIMEOUT == 45
    assert config.REQUEST_DELAY == 2.5
    assert config.EXTRACTION_ORDER == "heuristic_first"

    values = config.get_config()
    assert values["database_url"] == "sqlite:///tmp.db"
    assert values["log_level"] == "DEBUG"
    assert values["crawl"]["request_timeout"] == 45
    assert values["crawl"]["extraction_order"] == "heuristic_first"

    assert values["llm"] == {
        "provider_sequence": None,
        "request_timeout": 60,
        "max_retries": 2,
        "default_max_output_tokens": 4000,
        "default_temperature": 0.1,
        "html_prefix_chars": 60_000,
        "api_keys": {"openai": False, "anthropic": False},
    }


def test_config_loads_dotenv_when_available(monkeypatch, tmp_path):
    spy = {}

    dotenv_module = types.ModuleType("dotenv")

    def fake_load_dotenv(*, dotenv_path):
        spy["called"] = True
        spy["path"] = dotenv_path
        monkeypatch.setenv("DATABASE_URL", "sqlite:///from_env_file.db")

    setattr(dotenv_module, "load_dotenv", fake_load_dotenv)
    monkeypatch.setitem(sys.modules, "dotenv", dotenv_module)

    monkeypatch.chdir(tmp_path)
    env_file = tmp_path / ".env"
    env_file.write_text("DATABASE_URL=sqlite:///from_env_file.db")

    config = _import_fresh_config(monkeypatch)

    assert spy["called"] is True
    assert spy["path"].endswith(".env")
    assert config.DATABASE_URL == "sqlite:///from_env_file.db"


def test_default_database_url(monkeypatch):
    _mock_dotenv(monkeypatch)
    monkeypatch.delenv("DATABASE_URL", raising=False)

    config = _import_fresh_config(monkeypatch)

    assert config.DATABASE_URL == "sqlite:///data/secintel.db"


def test_malformed_numbers_fall_back_to_defaults(monkeypatch):
    _mock_dotenv(monkeypatch)
    monkeypatch.setenv("MAX_PAGES_PER_RUN", "lots")
    monkeypatch.setenv("LISTING_DELAY", "")
    monkeypatch.setenv("USE_CLOUDSCRAPER", "off")

    config = _import_fresh_config(monkeypatch)

    assert config.MAX_PAGES_PER_RUN == 40
    assert config.LISTING_DELAY == 1.0
    assert config.USE_CLOUDSCRAPER is False


@pytest.mark.parametrize(
    "raw,expected",
    [
        (None, "ai_first"),
        ("AI_FIRST", "ai_first"),
        (" heuristic-first ", "heuristic_first"),
        ("random", "ai_first"),
    ],
)
def test_normalize_order(raw, expected):
    from secintel.config import _normalize_order

    assert _normalize_order(raw) == expected


def test_load_crawl_settings_env_and_overrides(monkeypatch):
    from secintel.config import load_crawl_settings

    monkeypatch.setenv("MAX_ARTICLES_PER_RUN", "5")
    monkeypatch.setenv("REQUEST_DELAY", "0.25")
    monkeypatch.setenv("EXTRACTION_ORDER", "heuristic_first")

    settings = load_crawl_settings(extraction_order="AI-first", max_crawl_depth=None)

    assert settings.max_articles_per_run == 5
    assert settings.request_delay == 0.25
    assert settings.extraction_order == "ai_first"
    assert settings.ai_first is True
    assert settings.max_crawl_depth == 1
