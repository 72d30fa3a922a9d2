"""Trigger entry point: resolve a target, run the cascade, persist new items."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from secintel.config import CrawlSettings, load_crawl_settings
from secintel.crawler.fetcher import Fetcher
from secintel.crawler.site_registry import Target, TargetNotFoundError, TargetRegistry
from secintel.models.database import DatabaseManager, SQLAlchemyArticleRepository
from secintel.pipeline.ai_extractor import AI_METHOD
from secintel.pipeline.cascade import CascadeResult, ExtractionCascade
from secintel.pipeline.extractors import DIRECT_URL_METHOD
from secintel.pipeline.persistence import DeduplicatingPersister, PersistReport
from secintel.pipeline.specialized import SPECIALIZED_METHOD
from secintel.services.llm import LLMOrchestrator
from secintel.utils.logging_config import bind_run_context, clear_run_context

logger = logging.getLogger(__name__)

__all__ = [
    "ExtractionPipeline",
    "ExtractionRunResult",
    "TargetNotFoundError",
    "run_extraction",
]


@dataclass
class ExtractionRunResult:
    success: bool
    items_stored: int
    message: str
    extraction_method: str = ""
    stats: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Return the envelope consumed by callers of the trigger interface."""
        return {
            "success": self.success,
            "itemsStored": self.items_stored,
            "message": self.message,
            "extractionMethod": self.extraction_method,
        }


def _summary_message(target: Target, cascade: CascadeResult, report: PersistReport) -> str:
    extracted = len(cascade.articles)

    if target.direct_url:
        if extracted:
            message = "Successfully extracted blog post from direct URL"
        else:
            return "Failed to extract content from the provided URL"
    elif not extracted:
        if cascade.stat("candidates") == 0 and cascade.method != SPECIALIZED_METHOD:
            return f"No blog posts found for {target.name}"
        return (
            f"Unable to extract daily security content from {target.name}. The website "
            "may be using anti-scraping measures or has updated its structure."
        )
    elif cascade.method == SPECIALIZED_METHOD:
        message = (
            f"Successfully extracted {extracted} security items from {target.name} "
            "using specialized extraction"
        )
    elif cascade.method == AI_METHOD:
        message = f"Successfully extracted {extracted} daily security news items from {target.name}"
    else:
        message = f"Successfully extracted {extracted} unique blog posts from {target.name}"

    if report.failed:
        if report.stored == 0:
            return f"Failed to save {report.failed} of {extracted} extracted posts"
        return f"{message} ({report.failed} could not be saved)"
    if report.stored == 0:
        return f"No new content found - {extracted} posts were already in database"
    return message


class ExtractionPipeline:
    """Wire the registry, cascade and persister into one invocation."""

    def __init__(
        self,
        registry: TargetRegistry,
        cascade: ExtractionCascade,
        persister: DeduplicatingPersister,
        settings: Optional[CrawlSettings] = None,
    ):
        self.registry = registry
        self.cascade = cascade
        self.persister = persister
        self.settings = settings or cascade.settings

    @classmethod
    def from_config(
        cls,
        database_url: Optional[str] = None,
        settings: Optional[CrawlSettings] = None,
    ) -> "ExtractionPipeline":
        settings = settings or load_crawl_settings()
        repository = SQLAlchemyArticleRepository(DatabaseManager(database_url))
        fetcher = Fetcher(
            timeout=settings.request_timeout,
            use_cloudscraper=settings.use_cloudscraper,
        )
        cascade = ExtractionCascade(
            fetcher,
            settings,
            orchestrator=LLMOrchestrator.from_settings(),
        )
        return cls(
            TargetRegistry(store=repository),
            cascade,
            DeduplicatingPersister(repository),
            settings,
        )

    def run_extraction(
        self,
        target_id: str,
        direct_url: Optional[str] = None,
        custom_prompt: Optional[str] = None,
        *,
        extraction_order: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ExtractionRunResult:
        """Extract and store new articles for ``target_id``.

        Only an unknown target produces ``success=False``; every other
        failure degrades to zero stored items with an explanatory message.
        """
        run_id = uuid.uuid4().hex[:12]
        bind_run_context(target_id=target_id, run_id=run_id)
        try:
            try:
                target = self.registry.resolve(target_id)
            except TargetNotFoundError as exc:
                logger.error("Extraction aborted: %s", exc)
                return ExtractionRunResult(False, 0, str(exc))

            target = target.with_direct_url(direct_url)
            if direct_url:
                logger.info("Extracting single blog post from direct URL: %s", direct_url)
            else:
                logger.info("Extracting content for %s from %s", target.id, target.base_url)

            fetched_at = now or datetime.now(timezone.utc)
            cascade = self.cascade.run(
                target,
                custom_prompt=custom_prompt,
                now=fetched_at,
                extraction_order=extraction_order,
            )
            method = cascade.method or (DIRECT_URL_METHOD if direct_url else "")

            report = self.persister.persist(
                target.id,
                cascade.articles,
                fetched_at,
                extra_metadata={"run_id": run_id},
            )
            message = _summary_message(target, cascade, report)
            logger.info("%s (method=%s)", message, method)

            return ExtractionRunResult(
                success=True,
                items_stored=report.stored,
                message=message,
                extraction_method=method,
                stats={
                    "extracted": len(cascade.articles),
                    "stored": report.stored,
                    "skipped": report.skipped,
                    "failed": report.failed,
                    "rejected": cascade.rejected,
                    "candidates": cascade.stat("candidates"),
                    "pages_fetched": cascade.stat("pages_fetched"),
                    "stages": [attempt.method for attempt in cascade.attempts],
                },
            )
        finally:
            clear_run_context()


def run_extraction(
    target_id: str,
    direct_url: Optional[str] = None,
    custom_prompt: Optional[str] = None,
    *,
    extraction_order: Optional[str] = None,
    pipeline: Optional[ExtractionPipeline] = None,
) -> Dict[str, Any]:
    """Convenience wrapper returning the plain-dict envelope."""
    pipeline = pipeline or ExtractionPipeline.from_config()
    result = pipeline.run_extraction(
        target_id,
        direct_url,
        custom_prompt,
        extraction_order=extraction_order,
    )
    return result.to_dict()
