"""Idempotent storage of validated articles with near-duplicate suppression."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from secintel.models.database import ArticleRepository, DuplicateSkip, PersistenceError
from secintel.pipeline.articles import ExtractedArticle

logger = logging.getLogger(__name__)

NEAR_DUPLICATE_WINDOW = timedelta(hours=24)


@dataclass
class PersistReport:
    stored: int = 0
    skipped_existing: int = 0
    collapsed_in_batch: int = 0
    failed: int = 0
    stored_urls: List[str] = field(default_factory=list)

    @property
    def skipped(self) -> int:
        return self.skipped_existing + self.collapsed_in_batch


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def collapse_batch(articles: Iterable[ExtractedArticle]) -> List[ExtractedArticle]:
    """Drop batch members that repeat an earlier URL, or an earlier title
    (case-insensitive) extracted within 24 hours of it. First one wins."""
    kept: List[ExtractedArticle] = []
    seen_urls: set[str] = set()
    seen_titles: Dict[str, List[datetime]] = {}

    for article in articles:
        if article.url in seen_urls:
            logger.debug("Collapsed duplicate URL in batch: %s", article.url)
            continue

        title_key = article.title.lower()
        extracted_at = _aware(article.extracted_at)
        if any(
            abs(extracted_at - other) <= NEAR_DUPLICATE_WINDOW
            for other in seen_titles.get(title_key, ())
        ):
            logger.debug("Collapsed near-duplicate title in batch: %s", article.title)
            continue

        seen_urls.add(article.url)
        seen_titles.setdefault(title_key, []).append(extracted_at)
        kept.append(article)
    return kept


class DeduplicatingPersister:
    """Write only new articles for a target and report what happened.

    Existing records suppress a candidate on an exact URL match or a
    case-insensitive title match. A failed write is logged and the rest of
    the batch continues.
    """

    def __init__(self, repository: ArticleRepository):
        self.repository = repository

    def persist(
        self,
        target_id: str,
        articles: Iterable[ExtractedArticle],
        fetched_at: Optional[datetime] = None,
        *,
        extra_metadata: Optional[Dict[str, object]] = None,
    ) -> PersistReport:
        report = PersistReport()
        batch = list(articles)
        unique = collapse_batch(batch)
        report.collapsed_in_batch = len(batch) - len(unique)
        if not unique:
            return report

        try:
            existing = self.repository.list_existing_keys(target_id)
        except PersistenceError as exc:
            # The unique key still rejects repeated URLs on insert.
            logger.error("Could not load existing records for %s: %s", target_id, exc)
            existing = set()

        existing_urls = {url for url, _ in existing}
        existing_titles = {(title or "").lower() for _, title in existing}

        for article in unique:
            if article.url in existing_urls or article.title.lower() in existing_titles:
                report.skipped_existing += 1
                logger.debug("Skipping duplicate: %r", article.title[:80])
                continue

            metadata = article.provenance(fetched_at)
            if extra_metadata:
                metadata.update(extra_metadata)

            try:
                outcome = self.repository.upsert_article(target_id, article, metadata)
            except PersistenceError as exc:
                report.failed += 1
                logger.error("Failed to save %r: %s", article.title[:80], exc)
                continue

            if isinstance(outcome, DuplicateSkip):
                report.skipped_existing += 1
                continue

            report.stored += 1
            report.stored_urls.append(article.url)

        logger.info(
            "Persisted %d new articles for %s (%d skipped, %d failed)",
            report.stored,
            target_id,
            report.skipped,
            report.failed,
        )
        return report
