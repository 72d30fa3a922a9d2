"""Utility routines for cleaning extracted article text."""

from __future__ import annotations

import html
import re
import unicodedata

from bs4 import BeautifulSoup

_WHITESPACE_RE = re.compile(r"\s+")

TITLE_MAX_CHARS = 500
CONTENT_MAX_CHARS = 20_000


def collapse_whitespace(value: str | None) -> str:
    """Collapse runs of whitespace to single spaces and trim the result."""
    if not value:
        return ""
    return _WHITESPACE_RE.sub(" ", value).strip()


def html_to_text(markup: str | None) -> str:
    """Strip tags from ``markup``, decode entities and collapse whitespace.

    Script and style bodies are dropped; malformed markup is tolerated.
    """
    if not markup:
        return ""
    if "<" not in markup:
        return collapse_whitespace(html.unescape(markup))

    soup = BeautifulSoup(markup, "html.parser")
    for element in soup(["script", "style", "noscript", "template"]):
        element.decompose()
    text = soup.get_text(separator=" ")
    # get_text already decodes entities; a second pass handles
    # double-escaped CMS output such as "&amp;amp;".
    return collapse_whitespace(html.unescape(text))


def truncate_text(value: str | None, limit: int) -> str:
    """Return ``value`` cut to at most ``limit`` characters.

    The cut never leaves a dangling surrogate half and never separates a
    base character from its trailing combining marks; in that case the
    whole cluster is dropped so the result stays within ``limit``.
    """
    if not value:
        return ""
    if limit <= 0:
        return ""
    if len(value) <= limit:
        return value

    cut = limit
    # Walk back to the base character of a cluster straddling the cut.
    while cut > 0 and unicodedata.combining(value[cut]):
        cut -= 1
    if cut > 0 and "\ud800" <= value[cut - 1] <= "\udbff":
        cut -= 1
    return value[:cut].rstrip()
