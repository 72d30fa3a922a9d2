"""Layered structural extraction of title, body text and publish date.

Every extractor walks a fixed fallback chain and ends in a terminal default,
so parsing never raises on malformed or sparse markup.
"""

from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Union

from bs4 import BeautifulSoup
from bs4.element import Tag
from dateutil import parser as dateparser

from secintel.pipeline.text_cleaning import collapse_whitespace, html_to_text

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled"
MIN_CONTAINER_CHARS = 200
MIN_PARAGRAPHS = 4
PARSED_CONTENT_MAX_CHARS = 10_000
MIN_VALID_YEAR = 2020

TITLE_SEPARATORS = (" | ", " - ", " – ")

_URL_DATE_RE = re.compile(r"/(20\d{2})[/\-_]?(\d{2})[/\-_]?(\d{2})/")

# (tag, attribute, substring) in priority order; attribute None means any.
CONTENT_CONTAINERS = (
    ("article", None, None),
    ("div", "class", "content"),
    ("div", "class", "post"),
    ("div", "class", "entry"),
    ("main", None, None),
    ("div", "class", "blog"),
    ("div", "id", "content"),
    ("div", "id", "main"),
)

NOISE_CLASS_RE = re.compile(r"social|share|comment", re.IGNORECASE)
STRUCTURAL_CLASS_RE = re.compile(r"content|post", re.IGNORECASE)

DATE_META = (
    ("property", "article:published_time"),
    ("name", "publish-date"),
    ("name", "date"),
)

Markup = Union[str, BeautifulSoup]


@dataclass(frozen=True)
class ParsedPage:
    url: str
    title: str
    content: str
    published_at: datetime
    has_structural_signal: bool


def _soup(markup: Markup) -> BeautifulSoup:
    if isinstance(markup, BeautifulSoup):
        return markup
    return BeautifulSoup(markup or "", "html.parser")


def _meta_content(soup: BeautifulSoup, attr: str, value: str) -> Optional[str]:
    tag = soup.find("meta", attrs={attr: re.compile(f"^{re.escape(value)}$", re.IGNORECASE)})
    if tag is None:
        return None
    content = tag.get("content")
    return content.strip() if content else None


def _container_matcher(tag_name: str, attr: Optional[str], needle: Optional[str]) -> Callable[[Tag], bool]:
    def _match(tag: Tag) -> bool:
        if tag.name != tag_name:
            return False
        if attr is None:
            return True
        raw = tag.get(attr)
        if not raw:
            return False
        values = raw if isinstance(raw, list) else [raw]
        return any(needle in value.lower() for value in values)

    return _match


def _strip_noise(container: Tag) -> Tag:
    cleaned = copy.copy(container)
    for element in cleaned.find_all(["nav", "aside", "footer", "script", "style"]):
        element.decompose()
    for element in cleaned.find_all("div", class_=NOISE_CLASS_RE):
        element.decompose()
    return cleaned


def _parse_date(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    try:
        parsed = dateparser.parse(raw.strip())
    except (ValueError, OverflowError, TypeError):
        return None
    if parsed is None or parsed.year < MIN_VALID_YEAR:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class StructuralParser:
    """Best-effort title/content/date extraction over a real HTML parse tree."""

    def extract_title(self, markup: Markup) -> str:
        soup = _soup(markup)

        for attr, value in (("property", "og:title"), ("name", "twitter:title")):
            meta = _meta_content(soup, attr, value)
            if meta:
                title = collapse_whitespace(html_to_text(meta))
                if title:
                    return title

        if soup.title and soup.title.string is not None:
            title = collapse_whitespace(soup.title.get_text())
            for separator in TITLE_SEPARATORS:
                title = title.split(separator)[0]
            title = title.strip()
            if title:
                return title

        h1 = soup.find("h1")
        if h1 is not None:
            title = collapse_whitespace(h1.get_text(" "))
            if title:
                return title

        return DEFAULT_TITLE

    def extract_content(self, markup: Markup) -> str:
        soup = _soup(markup)

        for tag_name, attr, needle in CONTENT_CONTAINERS:
            container = soup.find(_container_matcher(tag_name, attr, needle))
            if container is None:
                continue
            text = html_to_text(str(_strip_noise(container)))
            if len(text) >= MIN_CONTAINER_CHARS:
                return text[:PARSED_CONTENT_MAX_CHARS]

        paragraphs = [p for p in soup.find_all("p") if p.get_text(strip=True)]
        if len(paragraphs) >= MIN_PARAGRAPHS:
            text = collapse_whitespace(" ".join(html_to_text(str(p)) for p in paragraphs))
            if len(text) >= MIN_CONTAINER_CHARS:
                return text[:PARSED_CONTENT_MAX_CHARS]

        best = ""
        for div in soup.find_all("div"):
            text = html_to_text(str(div))
            if len(text) > MIN_CONTAINER_CHARS and len(text) > len(best):
                best = text
        return best[:PARSED_CONTENT_MAX_CHARS]

    def extract_date(
        self,
        markup: Markup,
        url: str = "",
        now: Optional[datetime] = None,
    ) -> datetime:
        soup = _soup(markup)

        for raw in self._date_candidates(soup):
            parsed = _parse_date(raw)
            if parsed is not None:
                return parsed

        match = _URL_DATE_RE.search(url or "")
        if match:
            try:
                return datetime(
                    int(match.group(1)),
                    int(match.group(2)),
                    int(match.group(3)),
                    tzinfo=timezone.utc,
                )
            except ValueError:
                logger.debug("Ignoring impossible URL date in %s", url)

        return now or datetime.now(timezone.utc)

    def _date_candidates(self, soup: BeautifulSoup) -> Iterable[Optional[str]]:
        for attr, value in DATE_META:
            yield _meta_content(soup, attr, value)

        time_tag = soup.find("time", attrs={"datetime": True})
        if time_tag is not None:
            yield time_tag.get("datetime")

        for tag_name in ("span", "div"):
            element = soup.find(tag_name, class_=re.compile("date", re.IGNORECASE))
            if element is not None:
                yield element.get_text(" ", strip=True)

    def has_structural_signal(self, markup: Markup) -> bool:
        """True when the page has an ``<article>`` or a content/post-classed container."""
        soup = _soup(markup)
        if soup.find("article") is not None:
            return True
        return soup.find(class_=STRUCTURAL_CLASS_RE) is not None

    def parse(self, html: str, url: str, now: Optional[datetime] = None) -> ParsedPage:
        soup = _soup(html)
        return ParsedPage(
            url=url,
            title=self.extract_title(soup),
            content=self.extract_content(soup),
            published_at=self.extract_date(soup, url, now),
            has_structural_signal=self.has_structural_signal(soup),
        )
