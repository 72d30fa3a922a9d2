"""Candidate article URL discovery for a crawl target.

Discovery walks a fixed catalog of listing paths on the target's origin,
scans each page with two tiers of link rules, and falls back to
well-known feed and sitemap locations when the listings turn up nothing.
Every candidate is resolved to an absolute URL on the target's host.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence
from urllib.parse import urlparse

import feedparser  # type: ignore[import]
from bs4 import BeautifulSoup

from secintel.config import CrawlSettings
from secintel.crawler.fetcher import Fetcher
from secintel.crawler.site_registry import Target
from secintel.utils.url_utils import extract_base_url, is_same_host, normalize_url, resolve_url

logger = logging.getLogger(__name__)

LISTING_PATHS: Sequence[str] = (
    "/blog",
    "/news",
    "/articles",
    "/insights",
    "/resources/blog",
    "/resource-center/blog",
    "/press",
    "/updates",
    "/security-blog",
    "/threat-research",
    "/research",
    "/advisories",
    "/security/center",
    "/notes",
    "/publications",
    "/vulnerabilities",
    "/bulletins",
    "/alerts",
)

# Probed after the catalog, in addition to the target's own URL.
EXTRA_LISTING_PATHS: Sequence[str] = ("/security", "/publications")

FEED_PATHS: Sequence[str] = (
    "/feed/",
    "/rss/",
    "/blog/feed/",
    "/blog/rss/",
    "/feed.xml",
    "/rss.xml",
    "/sitemap.xml",
    "/sitemap_index.xml",
)

# Tier (a): a section marker plus a year-like or slug-like token.
HIGH_PRECISION_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"/blog/.*20[2-9]\d",
        r"/blog/[a-z0-9-]{8,}/?$",
        r"/advisory/.+",
        r"/advisories/.+",
        r"/security/.*20[2-9]\d.+",
        r"/cve/.+",
        r"/vuln/.+",
        r"/nvd/.+",
        r"/notes?/.+",
        r"/bulletins?/.+",
        r"/research/.*[a-z0-9-]{8,}.+",
        r"/publications?/.+",
        r"/articles?/.*20[2-9]\d.+",
        r"/posts?/.*20[2-9]\d.+",
    )
]

# Tier (b): any anchor whose path carries one of these segments.
GENERIC_SEGMENTS: Sequence[str] = (
    "/blog/",
    "/advisory/",
    "/advisories/",
    "/security/",
    "/notes/",
    "/cve/",
    "/vuln/",
    "/research/",
    "/publications/",
    "/bulletins/",
    "/articles/",
)

REJECTED_EXTENSIONS = (".pdf", ".doc", ".docx", ".jpg", ".jpeg", ".png", ".gif", ".svg", ".webp", ".zip", ".xml")
REJECTED_SEGMENTS = ("/page/", "/category/", "/tag/", "/tags/")
REJECTED_TERMINAL_SEGMENTS = ("/blog", "/news", "/security")
_SEARCH_OR_FEED_RE = re.compile(r"/(search|feed|rss)(/|$|\?|\.)", re.IGNORECASE)

MAX_URLS_PER_LISTING = 50
MAX_URLS_PER_FEED = 20


@dataclass(frozen=True)
class CandidateURL:
    url: str
    source_target_id: str
    discovery_method: str  # "listing" | "feed" | "sitemap"


def _is_rejected(url: str, listing_url: str, base_url: str) -> bool:
    parsed = urlparse(url)
    path = parsed.path.lower()
    normalized = normalize_url(url)

    if normalized in (normalize_url(listing_url), normalize_url(base_url)):
        return True
    if not path or path == "/":
        return True
    if path.endswith(REJECTED_EXTENSIONS):
        return True
    if any(segment in path for segment in REJECTED_SEGMENTS):
        return True
    if path.rstrip("/").endswith(REJECTED_TERMINAL_SEGMENTS):
        return True
    if _SEARCH_OR_FEED_RE.search(path) or "search=" in parsed.query.lower():
        return True
    return False


def extract_candidate_links(html: str, listing_url: str, target_url: str) -> List[str]:
    """Return same-host candidate article links found in a listing page.

    High-precision matches come first, then the generic segment scan; the
    result preserves first-seen order and holds at most
    ``MAX_URLS_PER_LISTING`` URLs.
    """
    if not html:
        return []

    soup = BeautifulSoup(html, "html.parser")
    base_url = extract_base_url(listing_url) or listing_url

    resolved: List[str] = []
    for anchor in soup.find_all("a", href=True):
        absolute = resolve_url(anchor.get("href", ""), listing_url)
        if not absolute:
            continue
        if not is_same_host(absolute, target_url):
            continue
        url = normalize_url(absolute)
        if _is_rejected(url, listing_url, base_url):
            continue
        resolved.append(url)

    found: List[str] = []
    seen: set[str] = set()

    def _take(urls: Iterable[str]) -> None:
        for url in urls:
            if url not in seen:
                seen.add(url)
                found.append(url)

    _take(
        url
        for url in resolved
        if any(pattern.search(urlparse(url).path) for pattern in HIGH_PRECISION_PATTERNS)
    )
    _take(
        url
        for url in resolved
        if any(segment in urlparse(url).path.lower() for segment in GENERIC_SEGMENTS)
    )
    return found[:MAX_URLS_PER_LISTING]


def extract_feed_links(body: str) -> List[str]:
    """Return entry links from an RSS/Atom feed or ``<loc>`` URLs from a sitemap."""
    if not body:
        return []

    links: List[str] = []
    feed = feedparser.parse(body)
    for entry in getattr(feed, "entries", []) or []:
        link = entry.get("link") or entry.get("id")
        if link:
            links.append(link.strip())

    if not links:
        soup = BeautifulSoup(body, "html.parser")
        links = [loc.get_text(strip=True) for loc in soup.find_all("loc")]

    return [link for link in links if link.startswith("http")]


class UrlDiscovery:
    """Discover candidate article URLs for a target, politely and within a quota."""

    def __init__(
        self,
        fetcher: Fetcher,
        settings: Optional[CrawlSettings] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.fetcher = fetcher
        self.settings = settings or CrawlSettings()
        self._sleep = sleep

    def listing_urls(self, target: Target) -> List[str]:
        origin = extract_base_url(target.base_url) or target.base_url.rstrip("/")
        urls = [f"{origin}{path}" for path in LISTING_PATHS]
        urls.append(target.base_url)
        urls.extend(f"{origin}{path}" for path in EXTRA_LISTING_PATHS)

        unique: List[str] = []
        for url in urls:
            if url not in unique:
                unique.append(url)
        return unique

    def discover(self, target: Target) -> List[CandidateURL]:
        quota = self.settings.discovery_url_quota
        found: List[str] = []
        seen: set[str] = set()

        listings = self.listing_urls(target)
        for index, listing_url in enumerate(listings):
            html = self.fetcher.get_text(listing_url, profile="listing")
            if html:
                links = extract_candidate_links(html, listing_url, target.base_url)
                new = [url for url in links if url not in seen]
                seen.update(new)
                found.extend(new)
                logger.debug(
                    "Found %d potential content URLs from %s", len(links), listing_url
                )

            if len(found) >= quota:
                logger.info(
                    "Discovery quota reached for %s after %d listings (%d URLs)",
                    target.id,
                    index + 1,
                    len(found),
                )
                break
            if index < len(listings) - 1 and self.settings.listing_delay > 0:
                self._sleep(self.settings.listing_delay)

        candidates = [CandidateURL(url, target.id, "listing") for url in found[:quota]]

        if not candidates:
            logger.info(
                "No content URLs found from listing pages for %s, trying feeds and sitemaps",
                target.id,
            )
            candidates = self._discover_from_feeds(target)

        logger.info("Discovered %d candidate URLs for %s", len(candidates), target.id)
        return candidates

    def _discover_from_feeds(self, target: Target) -> List[CandidateURL]:
        origin = extract_base_url(target.base_url) or target.base_url.rstrip("/")

        for path in FEED_PATHS:
            feed_url = f"{origin}{path}"
            body = self.fetcher.get_text(feed_url, profile="feed")
            if not body:
                continue

            method = "sitemap" if "sitemap" in path else "feed"
            urls: List[str] = []
            for link in extract_feed_links(body):
                if not is_same_host(link, target.base_url):
                    continue
                url = normalize_url(link)
                if url in urls or _is_rejected(url, feed_url, origin):
                    continue
                urls.append(url)
                if len(urls) >= MAX_URLS_PER_FEED:
                    break

            if urls:
                logger.info("Found %d URLs from %s: %s", len(urls), method, feed_url)
                return [CandidateURL(url, target.id, method) for url in urls]

        return []
