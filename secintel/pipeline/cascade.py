"""Ordered chain of extraction stages; the first non-empty result wins."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Mapping, Optional

from secintel.config import CrawlSettings
from secintel.crawler.discovery import UrlDiscovery
from secintel.crawler.fetcher import Fetcher
from secintel.crawler.site_registry import SPECIALIZED_SOURCES, SpecializedSource, Target, find_specialized_source
from secintel.pipeline.ai_extractor import AIExtractor
from secintel.pipeline.articles import ExtractedArticle
from secintel.pipeline.extractors import (
    ArticleExtractor,
    DiscoveryPostExtractor,
    ExtractionAttempt,
    ExtractionContext,
    GenericPatternExtractor,
    SinglePageExtractor,
)
from secintel.pipeline.html_parser import StructuralParser
from secintel.pipeline.specialized import SpecializedSourceExtractor
from secintel.services.llm import LLMOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class CascadeResult:
    articles: List[ExtractedArticle] = field(default_factory=list)
    method: str = ""
    attempts: List[ExtractionAttempt] = field(default_factory=list)

    @property
    def rejected(self) -> int:
        return sum(attempt.rejected for attempt in self.attempts)

    def stat(self, key: str) -> int:
        return sum(attempt.stats.get(key, 0) for attempt in self.attempts)


class ExtractionCascade:
    """Build and run the stage list for a target or direct URL.

    Order:
      * a specialized source extractor first when the target host is in the
        registry and no direct URL was given;
      * ``ai_first``: the AI extractor (only when credentials exist), then
        the heuristic stages;
      * ``heuristic_first``: the heuristic stages, then the AI extractor.

    Heuristic stages are discovery + individual posts followed by the
    listing-page pattern extractor, or the single-page extractor for a
    direct URL.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        settings: Optional[CrawlSettings] = None,
        *,
        orchestrator: Optional[LLMOrchestrator] = None,
        discovery: Optional[UrlDiscovery] = None,
        parser: Optional[StructuralParser] = None,
        specialized_sources: Mapping[str, SpecializedSource] = SPECIALIZED_SOURCES,
    ):
        self.fetcher = fetcher
        self.settings = settings or CrawlSettings()
        self.orchestrator = orchestrator
        self.discovery = discovery or UrlDiscovery(fetcher, self.settings)
        self.parser = parser or StructuralParser()
        self.specialized_sources = specialized_sources

    def ai_enabled(self) -> bool:
        return self.orchestrator is not None and self.orchestrator.is_configured()

    def build_stages(
        self,
        context: ExtractionContext,
        *,
        extraction_order: Optional[str] = None,
    ) -> List[ArticleExtractor]:
        target = context.target
        stages: List[ArticleExtractor] = []

        if not target.direct_url:
            source = find_specialized_source(target.hostname, self.specialized_sources)
            if source is not None:
                stages.append(SpecializedSourceExtractor(context, source, self.fetcher))

        if target.direct_url:
            heuristic: List[ArticleExtractor] = [SinglePageExtractor(context, self.parser)]
        else:
            heuristic = [
                DiscoveryPostExtractor(context, self.fetcher, self.discovery, self.parser),
                GenericPatternExtractor(context),
            ]

        ai: List[ArticleExtractor] = []
        if self.ai_enabled():
            ai.append(AIExtractor(context, self.orchestrator))
        else:
            logger.info("No LLM credentials configured, using heuristic extraction only")

        order = extraction_order or context.settings.extraction_order
        if order == "heuristic_first":
            stages.extend(heuristic + ai)
        else:
            stages.extend(ai + heuristic)
        return stages

    def run(
        self,
        target: Target,
        *,
        custom_prompt: Optional[str] = None,
        now: Optional[datetime] = None,
        extraction_order: Optional[str] = None,
    ) -> CascadeResult:
        context = ExtractionContext(
            target=target,
            now=now or datetime.now(timezone.utc),
            settings=self.settings,
            custom_prompt=custom_prompt,
        )
        stages = self.build_stages(context, extraction_order=extraction_order)
        result = CascadeResult()

        page_url = context.page_url
        page_html: Optional[str] = None
        page_fetched = False

        for stage in stages:
            if stage.needs_page and not page_fetched:
                profile = "article" if target.direct_url else "browser"
                page_html = self.fetcher.get_text(page_url, profile=profile)
                page_fetched = True

            attempt = stage.extract(page_html, page_url)
            result.attempts.append(attempt)
            result.method = attempt.method
            logger.info(
                "Stage %s produced %d articles for %s%s",
                attempt.method,
                len(attempt.articles),
                target.id,
                f" ({attempt.reason})" if attempt.reason else "",
            )
            if attempt.ok:
                result.articles = attempt.articles
                return result

        return result
