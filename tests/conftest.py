"""Pytest-wide fixtures and hooks for secintel tests."""

from __future__ import annotations

import os
from datetime import datetime, timezone

import pytest

# Force tests to use an in-memory SQLite database.
# Set BEFORE any imports of secintel.config so the module constant agrees.
# Tests that need another database can set PYTEST_KEEP_DB_ENV=true
if os.environ.get("PYTEST_KEEP_DB_ENV") != "true":
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"

# Never reach a real LLM provider from the test suite
for key in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "LLM_PROVIDER_SEQUENCE"):
    os.environ.pop(key, None)

from secintel.config import CrawlSettings  # noqa: E402
from secintel.crawler.site_registry import Target  # noqa: E402
from secintel.models.database import DatabaseManager, SQLAlchemyArticleRepository  # noqa: E402


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings() -> CrawlSettings:
    """Crawl settings with politeness delays disabled."""
    return CrawlSettings(request_delay=0, listing_delay=0, use_cloudscraper=False)


@pytest.fixture
def target() -> Target:
    return Target(id="acme", name="Acme Security", base_url="https://acme.example")


@pytest.fixture
def db():
    manager = DatabaseManager("sqlite:///:memory:")
    yield manager
    manager.close()


@pytest.fixture
def repository(db) -> SQLAlchemyArticleRepository:
    return SQLAlchemyArticleRepository(db)
