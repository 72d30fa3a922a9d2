"""Immutable extraction result produced by a cascade stage."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from secintel.pipeline.text_cleaning import CONTENT_MAX_CHARS, TITLE_MAX_CHARS, truncate_text


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ExtractedArticle:
    """One article candidate. Title and content are truncated on creation."""

    title: str
    content: str
    url: str
    published_at: datetime
    content_type: str
    extraction_method: str
    strategy: str
    extracted_at: datetime = field(default_factory=utcnow)
    is_recent: bool = True
    source_url: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "title", truncate_text(self.title or "", TITLE_MAX_CHARS))
        object.__setattr__(self, "content", truncate_text(self.content or "", CONTENT_MAX_CHARS))

    def provenance(self, fetched_at: Optional[datetime] = None) -> Dict[str, Any]:
        """Audit metadata stored alongside the record; never used for dedup."""
        return {
            "extraction_method": self.extraction_method,
            "strategy": self.strategy,
            "content_length": len(self.content),
            "title_length": len(self.title),
            "fetched_at": (fetched_at or self.extracted_at).isoformat(),
            "url_source": self.source_url or self.url,
            "published_at": self.published_at.isoformat(),
            "is_recent": self.is_recent,
        }
