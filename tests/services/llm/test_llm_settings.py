import pytest

from secintel.services.llm import settings as llm_settings


def test_parse_provider_order_variants():
    defaults = llm_settings.DEFAULT_PROVIDER_ORDER
    assert llm_settings._parse_provider_order(None) == defaults
    assert llm_settings._parse_provider_order(" , , ") == defaults

    custom = llm_settings._parse_provider_order("claude-3.5-sonnet, openai-gpt4o-mini")
    assert custom == ["claude-3.5-sonnet", "openai-gpt4o-mini"]


def test_load_llm_settings_aggregates_environment(monkeypatch):
    monkeypatch.setenv("LLM_PROVIDER_SEQUENCE", "openai-gpt4.1-mini, claude-3.5-sonnet")
    monkeypatch.setenv("OPENAI_API_KEY", "openai-key")
    monkeypatch.setenv("OPENAI_ORGANIZATION", "openai-org")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "anthropic-key")
    monkeypatch.setenv("LLM_REQUEST_TIMEOUT", "45")
    monkeypatch.setenv("LLM_MAX_RETRIES", "4")
    monkeypatch.setenv("LLM_DEFAULT_MAX_OUTPUT_TOKENS", "2048")
    monkeypatch.setenv("LLM_DEFAULT_TEMPERATURE", "0.5")

    settings = llm_settings.load_llm_settings()
    assert settings.provider_order == ["openai-gpt4.1-mini", "claude-3.5-sonnet"]
    assert settings.openai_api_key == "openai-key"
    assert settings.openai_organization == "openai-org"
    assert settings.anthropic_api_key == "anthropic-key"
    assert settings.request_timeout == 45
    assert settings.max_retries == 4
    assert settings.default_max_output_tokens == 2048
    assert settings.default_temperature == pytest.approx(0.5)

    names = settings.provider_names()
    names.append("extra-provider")
    assert settings.provider_order == ["openai-gpt4.1-mini", "claude-3.5-sonnet"]

    assert settings.has_api_key("openai-gpt4.1-mini") is True
    assert settings.has_api_key("claude-3.5-sonnet") is True
    assert settings.has_api_key("unknown") is False


def test_invalid_numbers_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("LLM_REQUEST_TIMEOUT", "soon")
    monkeypatch.setenv("LLM_DEFAULT_TEMPERATURE", "warm")

    settings = llm_settings.load_llm_settings()

    assert settings.request_timeout == 60
    assert settings.default_temperature == pytest.approx(0.1)


def test_credentials_are_optional(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setenv("ANTHROPIC_API_KEY", "")

    settings = llm_settings.load_llm_settings()

    assert settings.anthropic_api_key is None
    assert settings.any_credentials() is False
    assert settings.provider_order == llm_settings.DEFAULT_PROVIDER_ORDER
