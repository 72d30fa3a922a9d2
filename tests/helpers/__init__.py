"""Shared testing helpers for the secintel test suite."""

from .fakes import (
    FakeFetcher,
    FakeProvider,
    article_page,
    make_article,
    make_orchestrator,
    padded,
)

__all__ = [
    "FakeFetcher",
    "FakeProvider",
    "article_page",
    "make_article",
    "make_orchestrator",
    "padded",
]
