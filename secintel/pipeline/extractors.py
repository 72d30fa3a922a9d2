"""Heuristic extraction stages sharing one ``extract(html, url)`` interface.

Each stage is bound to an ``ExtractionContext`` for a single run and returns
an ``ExtractionAttempt`` holding only validated articles. A stage never
raises for expected failures (unreachable pages, sparse markup, rejected
candidates); those become an empty attempt with a reason.
"""

from __future__ import annotations

import logging
import re
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Deque, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup
from bs4.element import Tag

from secintel.config import CrawlSettings
from secintel.crawler.discovery import UrlDiscovery, extract_candidate_links
from secintel.crawler.fetcher import Fetcher
from secintel.crawler.site_registry import GENERIC_PROFILE, SelectorProfile, Target
from secintel.pipeline.articles import ExtractedArticle
from secintel.pipeline.html_parser import StructuralParser
from secintel.pipeline.text_cleaning import collapse_whitespace, html_to_text, truncate_text
from secintel.pipeline.validation import (
    HEURISTIC_THRESHOLDS,
    PATTERN_THRESHOLDS,
    is_recent,
    validate,
)
from secintel.utils.url_utils import hostname, normalize_url, resolve_url

logger = logging.getLogger(__name__)

DIRECT_URL_METHOD = "direct_url_extraction_v1"
DISCOVERY_POSTS_METHOD = "individual_blog_post_extraction_v7"
PATTERN_METHOD = "daily_patterns_v6"


@dataclass(frozen=True)
class ExtractionContext:
    """Per-run inputs shared by every stage of the cascade."""

    target: Target
    now: datetime
    settings: CrawlSettings = field(default_factory=CrawlSettings)
    custom_prompt: Optional[str] = None

    @property
    def page_url(self) -> str:
        return self.target.direct_url or self.target.base_url


@dataclass
class ExtractionAttempt:
    method: str
    articles: List[ExtractedArticle] = field(default_factory=list)
    reason: str = ""
    rejected: int = 0
    stats: Dict[str, int] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return bool(self.articles)


class ArticleExtractor(ABC):
    """One strategy in the extraction cascade."""

    method: str = "unknown"
    # Stages that read the target page HTML passed to ``extract``.
    needs_page: bool = True

    def __init__(self, context: ExtractionContext):
        self.context = context

    @abstractmethod
    def extract(self, html: Optional[str], url: str) -> ExtractionAttempt:
        """Return validated articles found for ``url``."""

    def _article(
        self,
        *,
        title: str,
        content: str,
        url: str,
        published_at: datetime,
        content_type: str,
        strategy: str,
        source_url: Optional[str] = None,
        recent: Optional[bool] = None,
    ) -> ExtractedArticle:
        if recent is None:
            recent = is_recent(published_at, self.context.now, self.context.settings.recency_months)
        return ExtractedArticle(
            title=title,
            content=content,
            url=url,
            published_at=published_at,
            content_type=content_type,
            extraction_method=self.method,
            strategy=strategy,
            extracted_at=self.context.now,
            is_recent=recent,
            source_url=source_url or url,
        )


class SinglePageExtractor(ArticleExtractor):
    """Structural extraction of the one page named by a direct URL."""

    method = DIRECT_URL_METHOD

    def __init__(self, context: ExtractionContext, parser: Optional[StructuralParser] = None):
        super().__init__(context)
        self.parser = parser or StructuralParser()

    def extract(self, html: Optional[str], url: str) -> ExtractionAttempt:
        if not html:
            return ExtractionAttempt(self.method, reason="page_unavailable")

        page = self.parser.parse(html, url, now=self.context.now)
        if not page.content:
            return ExtractionAttempt(self.method, reason="parse_empty")

        verdict = validate(
            page.title,
            page.content,
            url,
            has_structural_signal=page.has_structural_signal,
            thresholds=HEURISTIC_THRESHOLDS,
        )
        if not verdict.accepted:
            logger.debug("Rejected %s: %s", url, verdict.reason)
            return ExtractionAttempt(self.method, reason=verdict.reason, rejected=1)

        article = self._article(
            title=page.title,
            content=page.content,
            url=normalize_url(url),
            published_at=page.published_at,
            content_type=verdict.content_type,
            strategy="direct_url",
            source_url=url,
        )
        return ExtractionAttempt(self.method, [article])


class DiscoveryPostExtractor(ArticleExtractor):
    """Discover candidate URLs, then extract each one as an individual post.

    Candidates feed a bounded work queue: discovered URLs start at depth 0,
    a fetched page that yields no article is scanned for further candidate
    links at ``depth + 1`` while ``depth < max_crawl_depth``. A visited set
    plus the page and article caps guarantee termination.
    """

    method = DISCOVERY_POSTS_METHOD
    needs_page = False

    def __init__(
        self,
        context: ExtractionContext,
        fetcher: Fetcher,
        discovery: UrlDiscovery,
        parser: Optional[StructuralParser] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(context)
        self.fetcher = fetcher
        self.discovery = discovery
        self.parser = parser or StructuralParser()
        self._sleep = sleep

    def extract(self, html: Optional[str], url: str) -> ExtractionAttempt:
        target = self.context.target
        settings = self.context.settings

        candidates = self.discovery.discover(target)
        attempt = ExtractionAttempt(self.method, stats={"candidates": len(candidates)})
        if not candidates:
            attempt.reason = "no_candidates"
            return attempt

        queue: Deque[Tuple[str, int]] = deque((c.url, 0) for c in candidates)
        visited: set[str] = set()
        seen_urls: set[str] = set()
        pages_fetched = 0

        while queue:
            if pages_fetched >= settings.max_pages_per_run:
                logger.info("Page cap of %d reached for %s", settings.max_pages_per_run, target.id)
                break
            if len(attempt.articles) >= settings.max_articles_per_run:
                logger.info(
                    "Reached maximum limit of %d posts for %s, stopping extraction",
                    settings.max_articles_per_run,
                    target.id,
                )
                break

            post_url, depth = queue.popleft()
            if post_url in visited:
                continue
            visited.add(post_url)

            if pages_fetched > 0 and settings.request_delay > 0:
                self._sleep(settings.request_delay)
            pages_fetched += 1

            page_html = self.fetcher.get_text(post_url, profile="article")
            if not page_html:
                continue

            article = self._extract_post(page_html, post_url)
            if article is None:
                attempt.rejected += 1
                if depth < settings.max_crawl_depth:
                    for link in extract_candidate_links(page_html, post_url, target.base_url):
                        if link not in visited:
                            queue.append((link, depth + 1))
                continue

            if article.url in seen_urls:
                logger.debug("Duplicate URL skipped: %s", article.url)
                continue
            seen_urls.add(article.url)
            attempt.articles.append(article)

        attempt.stats["pages_fetched"] = pages_fetched
        if not attempt.articles:
            attempt.reason = "no_valid_posts"
        logger.info(
            "Extraction complete for %s: %d posts from %d pages (%d rejected)",
            target.id,
            len(attempt.articles),
            pages_fetched,
            attempt.rejected,
        )
        return attempt

    def _extract_post(self, html: str, url: str) -> Optional[ExtractedArticle]:
        page = self.parser.parse(html, url, now=self.context.now)
        verdict = validate(
            page.title,
            page.content,
            url,
            has_structural_signal=page.has_structural_signal,
            thresholds=HEURISTIC_THRESHOLDS,
        )
        if not verdict.accepted:
            logger.debug("Content validation failed for %s: %s", url, verdict.reason)
            return None
        return self._article(
            title=page.title,
            content=page.content,
            url=normalize_url(url),
            published_at=page.published_at,
            content_type=verdict.content_type,
            strategy="individual_posts",
        )


PATTERN_KEYWORDS = (
    "vulnerability",
    "breach",
    "security",
    "cyber",
    "hack",
    "threat",
    "malware",
    "ransomware",
    "phishing",
    "exploit",
    "zero-day",
    "cve",
    "attack",
    "incident",
)
HEADLINE_KEYWORDS = ("security", "cyber", "vulnerability", "breach", "threat")
RECENCY_WORDS = ("today", "latest", "new")

_CONTAINER_HINT_RE = re.compile(r"post|story|news|item|article|recent", re.IGNORECASE)
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]")

MAX_PATTERN_MATCHES = 20
MAX_PATTERN_ARTICLES = 15
MIN_PATTERN_TITLE = 15
PATTERN_TITLE_MAX_CHARS = 300
PATTERN_CONTENT_MAX_CHARS = 1500


class GenericPatternExtractor(ArticleExtractor):
    """Pull article teasers out of a listing page using structural patterns.

    Matches come from the target's selector profile, generic post/story
    containers, headlines mentioning the current year or security terms and
    current-year links with security anchor text.
    """

    method = PATTERN_METHOD

    def __init__(self, context: ExtractionContext):
        super().__init__(context)
        self.profile: SelectorProfile = context.target.selector_profile or GENERIC_PROFILE

    def extract(self, html: Optional[str], url: str) -> ExtractionAttempt:
        if not html:
            return ExtractionAttempt(self.method, reason="page_unavailable")

        soup = BeautifulSoup(html, "html.parser")
        matches = self._collect_matches(soup)
        attempt = ExtractionAttempt(self.method, stats={"matches": len(matches)})

        processed_titles: set[str] = set()
        for element in matches[:MAX_PATTERN_MATCHES]:
            if len(attempt.articles) >= MAX_PATTERN_ARTICLES:
                break

            text = collapse_whitespace(element.get_text(" "))
            if len(text) < 20:
                continue

            title = self._title_for(element, text)
            if not title or len(title) < MIN_PATTERN_TITLE:
                continue
            if title.lower() in processed_titles:
                continue

            haystack = f"{title} {text}".lower()
            if not any(keyword in haystack for keyword in PATTERN_KEYWORDS):
                continue
            processed_titles.add(title.lower())

            content = self._content_for(element, title, url)
            link = self._link_for(element, url) or url

            title = truncate_text(title, PATTERN_TITLE_MAX_CHARS)
            content = truncate_text(content, PATTERN_CONTENT_MAX_CHARS)
            verdict = validate(title, content, link, thresholds=PATTERN_THRESHOLDS)
            if not verdict.accepted:
                attempt.rejected += 1
                continue

            recent = str(self.context.now.year) in text or any(
                word in text.lower() for word in RECENCY_WORDS
            )
            attempt.articles.append(
                self._article(
                    title=title,
                    content=content,
                    url=link,
                    published_at=self.context.now,
                    content_type=verdict.content_type,
                    strategy=f"daily_security_{self.context.target.id}",
                    source_url=url,
                    recent=recent,
                )
            )

        if not attempt.articles:
            attempt.reason = "no_pattern_matches"
        return attempt

    def _collect_matches(self, soup: BeautifulSoup) -> List[Tag]:
        year = str(self.context.now.year)
        ordered: List[Tag] = []
        seen: set[int] = set()

        def _add(element: Tag) -> None:
            if id(element) not in seen:
                seen.add(id(element))
                ordered.append(element)

        for element in self._select(soup, self.profile.articles):
            _add(element)

        for element in soup.find_all(["article", "div", "section"]):
            hints = " ".join(element.get("class") or []) + " " + (element.get("id") or "")
            if _CONTAINER_HINT_RE.search(hints):
                _add(element)

        for heading in soup.find_all(re.compile(r"^h[1-6]$")):
            text = heading.get_text(" ", strip=True)
            lowered = text.lower()
            if year in text or any(word in lowered for word in HEADLINE_KEYWORDS):
                _add(heading)

        for anchor in soup.find_all("a", href=True):
            text = anchor.get_text(" ", strip=True).lower()
            if year in anchor["href"] and any(word in text for word in HEADLINE_KEYWORDS):
                _add(anchor)

        return ordered

    @staticmethod
    def _select(root: Tag, selector: str) -> List[Tag]:
        try:
            return list(root.select(selector))
        except (ValueError, NotImplementedError) as exc:
            logger.debug("Invalid selector %r: %s", selector, exc)
            return []

    def _title_for(self, element: Tag, text: str) -> str:
        if element.name == "a" or re.match(r"^h[1-6]$", element.name or ""):
            return collapse_whitespace(element.get_text(" "))

        for candidate in self._select(element, self.profile.title):
            title = collapse_whitespace(candidate.get_text(" "))
            if len(title) > 10:
                return title

        first_sentence = _SENTENCE_SPLIT_RE.split(text)[0].strip()
        if len(first_sentence) > 10:
            return first_sentence
        return text[:100].strip()

    def _content_for(self, element: Tag, title: str, page_url: str) -> str:
        summary = ""
        for candidate in self._select(element, self.profile.content):
            text = collapse_whitespace(candidate.get_text(" "))
            if len(text) > 20 and text != title:
                summary = text
                break

        if not summary:
            paragraph = element.find("p")
            if paragraph is not None:
                text = html_to_text(str(paragraph))
                if len(text) > 20:
                    summary = text

        boilerplate = (
            f"Recent cybersecurity news from {hostname(page_url)}: {title}. "
            "This article covers current security developments, threats, and "
            "industry insights relevant to cybersecurity professionals."
        )
        if summary:
            return f"{summary} {boilerplate}"
        return boilerplate

    def _link_for(self, element: Tag, page_url: str) -> Optional[str]:
        anchors: List[Tag] = []
        if element.name == "a":
            anchors.append(element)
        anchors.extend(self._select(element, self.profile.link))
        anchors.extend(element.find_all("a", href=True))
        parent = element.find_parent("a")
        if parent is not None:
            anchors.append(parent)

        for anchor in anchors:
            resolved = resolve_url(anchor.get("href", ""), page_url)
            if resolved:
                return normalize_url(resolved)
        return None
