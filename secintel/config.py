"""Centralized configuration for the secintel crawler.

This module reads environment variables (optionally from a .env file) and
exposes simple constants, a ``CrawlSettings`` bundle for the extraction
pipeline and a small helper to access configuration values.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# If a .env file is present, load it without overriding the real environment.
_env_path = Path(".") / ".env"
if _env_path.exists():
    load_dotenv(dotenv_path=str(_env_path))

_TRUTHY = {"1", "true", "t", "yes", "y", "on"}

EXTRACTION_ORDERS = ("ai_first", "heuristic_first")


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _normalize_order(value: Optional[str], *, default: str = "ai_first") -> str:
    """Normalize an extraction-order token such as ``"AI-First"``."""

    if value is None:
        return default

    cleaned = value.strip().lower().replace("-", "_")
    if cleaned in EXTRACTION_ORDERS:
        return cleaned
    return default


# Runtime / deployment context
APP_ENV: str = os.getenv("APP_ENV", os.getenv("ENVIRONMENT", "local"))

# Persistence
DATABASE_URL: str = os.getenv("DATABASE_URL") or "sqlite:///data/secintel.db"

# Core configuration values
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON: bool = _env_bool("LOG_JSON", False)

# Fetching and politeness
REQUEST_TIMEOUT: int = _env_int("REQUEST_TIMEOUT", 20)
REQUEST_DELAY: float = _env_float("REQUEST_DELAY", 1.2)
LISTING_DELAY: float = _env_float("LISTING_DELAY", 1.0)
USE_CLOUDSCRAPER: bool = _env_bool("USE_CLOUDSCRAPER", True)

# Crawl bounds
DISCOVERY_URL_QUOTA: int = _env_int("DISCOVERY_URL_QUOTA", 30)
MAX_PAGES_PER_RUN: int = _env_int("MAX_PAGES_PER_RUN", 40)
MAX_ARTICLES_PER_RUN: int = _env_int("MAX_ARTICLES_PER_RUN", 30)
MAX_CRAWL_DEPTH: int = _env_int("MAX_CRAWL_DEPTH", 1)
RECENCY_MONTHS: int = _env_int("RECENCY_MONTHS", 2)

# Extraction cascade
EXTRACTION_ORDER: str = _normalize_order(os.getenv("EXTRACTION_ORDER"))
AI_HTML_PREFIX_CHARS: int = _env_int("AI_HTML_PREFIX_CHARS", 60_000)

# LLM / Generative AI integration
OPENAI_API_KEY: Optional[str] = os.getenv("OPENAI_API_KEY")
OPENAI_ORGANIZATION: Optional[str] = os.getenv("OPENAI_ORGANIZATION")
ANTHROPIC_API_KEY: Optional[str] = os.getenv("ANTHROPIC_API_KEY")
LLM_PROVIDER_SEQUENCE: Optional[str] = os.getenv("LLM_PROVIDER_SEQUENCE")
LLM_REQUEST_TIMEOUT: int = _env_int("LLM_REQUEST_TIMEOUT", 60)
LLM_MAX_RETRIES: int = _env_int("LLM_MAX_RETRIES", 2)
LLM_DEFAULT_MAX_OUTPUT_TOKENS: int = _env_int("LLM_DEFAULT_MAX_OUTPUT_TOKENS", 4000)
LLM_DEFAULT_TEMPERATURE: float = _env_float("LLM_DEFAULT_TEMPERATURE", 0.1)


@dataclass(slots=True)
class CrawlSettings:
    """Bounds and politeness knobs for a single target crawl."""

    request_timeout: int = 20
    request_delay: float = 1.2
    listing_delay: float = 1.0
    discovery_url_quota: int = 30
    max_pages_per_run: int = 40
    max_articles_per_run: int = 30
    max_crawl_depth: int = 1
    recency_months: int = 2
    extraction_order: str = "ai_first"
    ai_html_prefix_chars: int = 60_000
    use_cloudscraper: bool = True

    @property
    def ai_first(self) -> bool:
        return self.extraction_order == "ai_first"


def load_crawl_settings(**overrides: Any) -> CrawlSettings:
    """Build ``CrawlSettings`` from the environment, applying overrides."""

    values: Dict[str, Any] = {
        "request_timeout": _env_int("REQUEST_TIMEOUT", 20),
        "request_delay": _env_float("REQUEST_DELAY", 1.2),
        "listing_delay": _env_float("LISTING_DELAY", 1.0),
        "discovery_url_quota": _env_int("DISCOVERY_URL_QUOTA", 30),
        "max_pages_per_run": _env_int("MAX_PAGES_PER_RUN", 40),
        "max_articles_per_run": _env_int("MAX_ARTICLES_PER_RUN", 30),
        "max_crawl_depth": _env_int("MAX_CRAWL_DEPTH", 1),
        "recency_months": _env_int("RECENCY_MONTHS", 2),
        "extraction_order": _normalize_order(os.getenv("EXTRACTION_ORDER")),
        "ai_html_prefix_chars": _env_int("AI_HTML_PREFIX_CHARS", 60_000),
        "use_cloudscraper": _env_bool("USE_CLOUDSCRAPER", True),
    }
    for key, value in overrides.items():
        if value is None:
            continue
        if key == "extraction_order":
            value = _normalize_order(value)
        values[key] = value
    return CrawlSettings(**values)


def get_config() -> Dict[str, Any]:
    """Return a dict of the most important configuration values.

    Useful for logging at startup or asserting on in tests.
    """
    return {
        "runtime": {"environment": APP_ENV},
        "database_url": DATABASE_URL,
        "log_level": LOG_LEVEL,
        "crawl": {
            "request_timeout": REQUEST_TIMEOUT,
            "request_delay": REQUEST_DELAY,
            "listing_delay": LISTING_DELAY,
            "discovery_url_quota": DISCOVERY_URL_QUOTA,
            "max_pages_per_run": MAX_PAGES_PER_RUN,
            "max_articles_per_run": MAX_ARTICLES_PER_RUN,
            "max_crawl_depth": MAX_CRAWL_DEPTH,
            "recency_months": RECENCY_MONTHS,
            "extraction_order": EXTRACTION_ORDER,
        },
        "llm": {
            "provider_sequence": LLM_PROVIDER_SEQUENCE,
            "request_timeout": LLM_REQUEST_TIMEOUT,
            "max_retries": LLM_MAX_RETRIES,
            "default_max_output_tokens": LLM_DEFAULT_MAX_OUTPUT_TOKENS,
            "default_temperature": LLM_DEFAULT_TEMPERATURE,
            "html_prefix_chars": AI_HTML_PREFIX_CHARS,
            "api_keys": {
                "openai": bool(OPENAI_API_KEY),
                "anthropic": bool(ANTHROPIC_API_KEY),
            },
        },
    }
