"""SQLAlchemy database models for the secintel crawler."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, String, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow() -> datetime:
    # Stored naive, always UTC.
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Target(Base):
    """A crawl target registered at runtime (built-in platforms live in code)."""

    __tablename__ = "targets"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    base_url = Column(String, nullable=False)
    # Optional selector profile: {"articles", "title", "content", "link"}
    selectors = Column(JSON)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)


class StoredArticle(Base):
    """Persisted form of an extracted article."""

    __tablename__ = "fetched_content"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    target_id = Column(String, nullable=False, index=True)
    url = Column(String, nullable=False)
    title = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    content_type = Column(String, nullable=False, default="security_news", index=True)
    published_at = Column(DateTime, index=True)
    extracted_at = Column(DateTime, nullable=False, default=_utcnow)
    # `metadata` is reserved on declarative classes; the column keeps the name.
    meta = Column("metadata", JSON)
    created_at = Column(DateTime, nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("target_id", "url", name="uq_fetched_content_target_url"),
    )

    def __repr__(self) -> str:
        return f"<StoredArticle {self.target_id} {self.url!r}>"
