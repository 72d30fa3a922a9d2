"""URL normalization utilities for consistent deduplication."""

import logging
from typing import Optional
from urllib.parse import urljoin, urlparse, urlunparse

logger = logging.getLogger(__name__)


def normalize_url(url: str) -> str:
    """
    Normalize a URL for consistent deduplication by removing fragments
    and trailing slashes.

    Query strings are kept because advisory portals commonly address
    entries through them (``?id=cisco-sa-...``).

    Examples:
        normalize_url("https://example.com/story#section")
            -> "https://example.com/story"
        normalize_url("https://example.com/blog/post/")
            -> "https://example.com/blog/post"
    """
    if not url or not url.strip():
        return url

    try:
        parsed = urlparse(url.strip())

        normalized = urlunparse(
            (
                parsed.scheme.lower(),
                parsed.netloc.lower(),
                parsed.path,
                parsed.params,
                parsed.query,
                "",  # Remove fragment
            )
        )

        # Trailing slashes are stripped from the path (root included)
        if not parsed.query and normalized.endswith("/"):
            normalized = normalized.rstrip("/")

        return normalized

    except Exception as e:
        logger.warning("Failed to normalize URL '%s': %s", url, e)
        return url


def resolve_url(href: str, base_url: str) -> Optional[str]:
    """Resolve ``href`` against ``base_url`` and return an absolute http(s) URL.

    Returns None for fragment-only, mailto/tel/javascript and otherwise
    unusable links.
    """
    if not href:
        return None

    href = href.strip()
    if not href or href.startswith("#"):
        return None

    prefix = href.split(":", 1)[0].lower()
    if prefix in {"mailto", "tel", "javascript", "data"}:
        return None

    try:
        absolute = urljoin(base_url, href)
    except ValueError:
        return None

    parsed = urlparse(absolute)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    return absolute


def hostname(url: str) -> str:
    """Return the lower-cased hostname of ``url`` (empty string if none)."""
    if not url:
        return ""
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def is_same_host(url: str, other: str) -> bool:
    """True when both URLs share the same hostname (a ``www.`` prefix is ignored)."""
    first = hostname(url).removeprefix("www.")
    return bool(first) and first == hostname(other).removeprefix("www.")


def extract_base_url(url: str) -> Optional[str]:
    """
    Extract the base URL (scheme + netloc) from a URL.

    Examples:
        extract_base_url("https://example.com/story?id=123")
            -> "https://example.com"
    """
    if not url:
        return None

    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}"
