"""Acceptance rules and content-type classification for extracted candidates.

Everything here is a pure function of its inputs so stages can share it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from dateutil.relativedelta import relativedelta

MIN_CONTENT_CHARS = 200

SECURITY_KEYWORDS: Sequence[str] = (
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
    "cve",
    "attack",
    "incident",
    "advisory",
)

SECURITY_PATH_SEGMENTS: Sequence[str] = (
    "/advisory/",
    "/advisories/",
    "/cve/",
    "/vuln/",
    "/notes/",
    "/blog/",
)

# First matching segment wins.
URL_CONTENT_TYPES: Sequence[tuple[str, str]] = (
    ("/blog/", "blog_post"),
    ("/advisory/", "security_advisory"),
    ("/advisories/", "security_advisory"),
    ("/cve/", "cve"),
    ("/vuln/", "vulnerability"),
    ("/notes/", "security_note"),
    ("/research/", "research"),
    ("/publications/", "publication"),
    ("/bulletins/", "bulletin"),
)

DEFAULT_CONTENT_TYPE = "security_news"


@dataclass(frozen=True)
class StageThresholds:
    """Inclusive title bounds for one cascade stage; content floor is shared."""

    min_title: int = 5
    max_title: int = 500
    min_content: int = MIN_CONTENT_CHARS

    def __post_init__(self) -> None:
        if self.min_content < MIN_CONTENT_CHARS:
            object.__setattr__(self, "min_content", MIN_CONTENT_CHARS)


HEURISTIC_THRESHOLDS = StageThresholds(min_title=5, max_title=500)
PATTERN_THRESHOLDS = StageThresholds(min_title=15, max_title=500)
AI_THRESHOLDS = StageThresholds(min_title=11, max_title=500)
SPECIALIZED_THRESHOLDS = StageThresholds(min_title=1, max_title=500)


@dataclass(frozen=True)
class ValidationResult:
    accepted: bool
    reason: str
    content_type: str


def has_security_keyword(*texts: Optional[str]) -> bool:
    for text in texts:
        if not text:
            continue
        lowered = text.lower()
        if any(keyword in lowered for keyword in SECURITY_KEYWORDS):
            return True
    return False


def path_indicates_security(url: Optional[str]) -> bool:
    lowered = (url or "").lower()
    return any(segment in lowered for segment in SECURITY_PATH_SEGMENTS)


def content_type_from_url(url: Optional[str]) -> Optional[str]:
    lowered = (url or "").lower()
    for segment, content_type in URL_CONTENT_TYPES:
        if segment in lowered:
            return content_type
    return None


def classify(title: str, content: str, url: Optional[str] = None) -> str:
    """Map a candidate to a content-type label with an ordered keyword table.

    Title and content are matched case-insensitively; when no keyword row
    matches, the URL path segment supplies a source default before falling
    back to ``security_news``.
    """
    title_lower = (title or "").lower()
    content_lower = (content or "").lower()

    if "cve-" in title_lower or "cve-" in content_lower:
        return "vulnerability"
    if "vulnerability" in title_lower or "vulnerability" in content_lower:
        return "vulnerability"
    if "advisory" in title_lower or "security advisory" in content_lower:
        return "security_advisory"
    if (
        "breach" in title_lower
        or "data breach" in content_lower
        or "hack" in title_lower
        or "hacked" in content_lower
    ):
        return "security_incident"
    if "malware" in title_lower or "malware" in content_lower:
        return "malware_analysis"
    if "ransomware" in title_lower or "ransomware" in content_lower:
        return "malware_analysis"
    if "threat" in title_lower or "threat intelligence" in content_lower:
        return "threat_intelligence"

    return content_type_from_url(url) or DEFAULT_CONTENT_TYPE


def validate(
    title: str,
    content: str,
    url: str,
    *,
    has_structural_signal: bool = False,
    thresholds: StageThresholds = HEURISTIC_THRESHOLDS,
) -> ValidationResult:
    """Accept or reject a candidate and label it.

    Rejections are expected outcomes; callers count them rather than log
    them as errors.
    """
    title = title or ""
    content = content or ""
    content_type = classify(title, content, url)

    if len(content) < thresholds.min_content:
        return ValidationResult(False, "content_too_short", content_type)
    if not thresholds.min_title <= len(title) <= thresholds.max_title:
        return ValidationResult(False, "title_length", content_type)

    if has_security_keyword(title, content):
        return ValidationResult(True, "security_keyword", content_type)
    if has_structural_signal:
        return ValidationResult(True, "structural_signal", content_type)
    if path_indicates_security(url):
        return ValidationResult(True, "security_path", content_type)
    return ValidationResult(False, "not_security_content", content_type)


def is_recent(published_at: datetime, now: datetime, months: int = 2) -> bool:
    """True when ``published_at`` falls within ``months`` of ``now``."""
    if published_at.tzinfo is None and now.tzinfo is not None:
        published_at = published_at.replace(tzinfo=now.tzinfo)
    elif now.tzinfo is None and published_at.tzinfo is not None:
        now = now.replace(tzinfo=published_at.tzinfo)
    return published_at > now - relativedelta(months=months)
