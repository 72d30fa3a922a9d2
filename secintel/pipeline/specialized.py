"""Extractors for high-value sources with non-blog markup (CVE, NVD, vendors)."""

from __future__ import annotations

import logging
import re
from typing import Optional

from bs4 import BeautifulSoup

from secintel.crawler.fetcher import Fetcher
from secintel.crawler.site_registry import SpecializedSource
from secintel.pipeline.extractors import ArticleExtractor, ExtractionAttempt, ExtractionContext
from secintel.pipeline.text_cleaning import collapse_whitespace
from secintel.pipeline.validation import SPECIALIZED_THRESHOLDS, validate
from secintel.utils.url_utils import extract_base_url, normalize_url, resolve_url

logger = logging.getLogger(__name__)

SPECIALIZED_METHOD = "specialized_security_extraction_v1"


class SpecializedSourceExtractor(ArticleExtractor):
    """Scan a source's fixed listing endpoint with its anchor rule.

    Each matching anchor becomes one entry; the summary is the source's
    template filled with the anchor text.
    """

    method = SPECIALIZED_METHOD
    needs_page = False

    def __init__(self, context: ExtractionContext, source: SpecializedSource, fetcher: Fetcher):
        super().__init__(context)
        self.source = source
        self.fetcher = fetcher
        self._anchor_re = re.compile(source.anchor_pattern)

    def listing_url(self) -> str:
        origin = extract_base_url(self.context.target.base_url) or self.context.target.base_url
        return f"{origin.rstrip('/')}{self.source.listing_path}"

    def extract(self, html: Optional[str], url: str) -> ExtractionAttempt:
        listing_url = self.listing_url()
        strategy = f"specialized_{self.source.key}"
        attempt = ExtractionAttempt(self.method)

        logger.info("Extracting %s entries from %s", self.source.key, listing_url)
        body = self.fetcher.get_text(listing_url, profile="browser")
        if not body:
            attempt.reason = "listing_unavailable"
            return attempt

        soup = BeautifulSoup(body, "html.parser")
        seen: set[str] = set()
        for anchor in soup.find_all("a", href=True):
            if len(attempt.articles) >= self.source.max_items:
                break

            href = anchor["href"]
            if not self._anchor_re.search(href):
                continue

            label = collapse_whitespace(anchor.get_text(" "))
            if not label or len(label) < self.source.min_title_length:
                continue
            if self.source.title_must_contain and self.source.title_must_contain not in label:
                continue

            entry_url = resolve_url(href, listing_url)
            if not entry_url:
                continue
            entry_url = normalize_url(entry_url)
            if entry_url in seen:
                continue
            seen.add(entry_url)

            title = f"{self.source.title_prefix}{label}"
            content = self.source.summary_template.format(title=label)
            verdict = validate(title, content, entry_url, thresholds=SPECIALIZED_THRESHOLDS)
            if not verdict.accepted:
                attempt.rejected += 1
                continue

            attempt.articles.append(
                self._article(
                    title=title,
                    content=content,
                    url=entry_url,
                    published_at=self.context.now,
                    content_type=self.source.content_type,
                    strategy=strategy,
                    source_url=listing_url,
                    recent=True,
                )
            )

        logger.info("Extracted %d %s entries", len(attempt.articles), self.source.key)
        if not attempt.articles:
            attempt.reason = "no_entries"
        return attempt
