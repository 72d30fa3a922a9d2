"""Database engine management and the article repository."""

from __future__ import annotations

import logging
import os
import sqlite3
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Set, Tuple, Union

from dateutil.relativedelta import relativedelta
from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from secintel.crawler.site_registry import SelectorProfile
from secintel.crawler.site_registry import Target as CrawlTarget
from secintel.pipeline.articles import ExtractedArticle

from . import Base, StoredArticle
from . import Target as TargetRecord

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """A write failed for a reason other than a duplicate key."""


@dataclass(frozen=True)
class DuplicateSkip:
    """Outcome of an upsert that hit an existing ``(target_id, url)`` row."""

    target_id: str
    url: str
    reason: str = "url_exists"


UpsertOutcome = Union[StoredArticle, DuplicateSkip]


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _configure_sqlite_engine(engine, timeout: float | None, *, wal: bool) -> None:
    """Apply busy timeout (and WAL for file databases) on every connection."""

    busy_timeout_ms = int((timeout or 30) * 1000)

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        if wal:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute(f"PRAGMA busy_timeout={busy_timeout_ms}")
        cursor.close()


def _commit_with_retry(
    session: Session,
    retries: int = 4,
    backoff: float = 0.1,
    *,
    pending: Sequence[Any] = (),
) -> None:
    """Commit the session, retrying on sqlite 'database is locked' errors.

    A rollback expunges pending objects, so ``pending`` is re-added before
    each retry. The last error is re-raised once the retries run out.
    """

    for attempt in range(retries):
        try:
            session.commit()
            return
        except SQLAlchemyError as e:
            session.rollback()
            if not isinstance(getattr(e, "orig", None), sqlite3.OperationalError):
                # Non-retryable error, re-raise
                raise
            logger.warning(
                "Commit attempt %d/%d failed with OperationalError: %s",
                attempt + 1,
                retries,
                e,
            )
            if attempt + 1 >= retries:
                raise
            time.sleep(backoff)
            backoff *= 2
            session.add_all(pending)


class DatabaseManager:
    """Owns the engine and hands out sessions.

    Resolution order for the URL: explicit argument, ``DATABASE_URL`` from
    the environment, then the configured default. SQLite and PostgreSQL are
    both supported; in-memory SQLite shares one connection so every session
    sees the same data.
    """

    def __init__(self, database_url: str | None = None, *, echo: bool = False):
        if not database_url:
            database_url = os.getenv("DATABASE_URL")
        if not database_url:
            from secintel.config import DATABASE_URL as _cfg_db_url

            database_url = _cfg_db_url

        self.database_url = database_url
        url = make_url(database_url)

        if url.get_backend_name() == "sqlite":
            in_memory = url.database in (None, "", ":memory:")
            engine_kwargs: Dict[str, Any] = {
                "connect_args": {"check_same_thread": False},
                "echo": echo,
            }
            if in_memory:
                engine_kwargs["poolclass"] = StaticPool
            else:
                Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)
            self.engine = create_engine(database_url, **engine_kwargs)
            _configure_sqlite_engine(self.engine, timeout=30, wal=not in_memory)
        else:
            self.engine = create_engine(database_url, echo=echo, pool_pre_ping=True)

        Base.metadata.create_all(self.engine)
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    @contextmanager
    def get_session(self) -> Iterator[Session]:
        """Context manager for getting a database session.

        Usage:
            with db_manager.get_session() as session:
                # Use session here
                pass
        """
        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    def close(self) -> None:
        """Dispose of the engine's connection pool."""
        self.engine.dispose()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class ArticleRepository(ABC):
    """Upsert-capable storage for extracted articles."""

    @abstractmethod
    def upsert_article(
        self,
        target_id: str,
        article: ExtractedArticle,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> UpsertOutcome:
        """Store ``article`` or report a duplicate; raise ``PersistenceError`` otherwise."""

    @abstractmethod
    def list_existing_keys(self, target_id: str) -> Set[Tuple[str, str]]:
        """Return ``(url, title)`` pairs already stored for ``target_id``."""

    @abstractmethod
    def list_recent(
        self,
        target_id: str,
        months: int = 2,
        now: Optional[datetime] = None,
    ) -> List[StoredArticle]:
        """Return records published within ``months`` of ``now``, newest first."""


class SQLAlchemyArticleRepository(ArticleRepository):
    """Article and target storage backed by a ``DatabaseManager``."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def upsert_article(
        self,
        target_id: str,
        article: ExtractedArticle,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> UpsertOutcome:
        with self.db.get_session() as session:
            try:
                existing = (
                    session.query(StoredArticle.id)
                    .filter_by(target_id=target_id, url=article.url)
                    .first()
                )
                if existing is not None:
                    logger.debug("Article already stored for %s: %s", target_id, article.url)
                    return DuplicateSkip(target_id, article.url)

                record = StoredArticle(
                    target_id=target_id,
                    url=article.url,
                    title=article.title,
                    content=article.content,
                    content_type=article.content_type,
                    published_at=_naive_utc(article.published_at),
                    extracted_at=_naive_utc(article.extracted_at),
                    meta=metadata if metadata is not None else article.provenance(),
                )
                session.add(record)
                _commit_with_retry(session, pending=[record])
            except IntegrityError:
                # Another writer inserted the same (target_id, url) first.
                logger.debug("Concurrent insert detected for %s: %s", target_id, article.url)
                return DuplicateSkip(target_id, article.url, reason="concurrent_insert")
            except SQLAlchemyError as exc:
                raise PersistenceError(f"Failed to store {article.url}: {exc}") from exc

            logger.info("Created new article for %s: %s", target_id, article.url)
            return record

    def list_existing_keys(self, target_id: str) -> Set[Tuple[str, str]]:
        try:
            with self.db.get_session() as session:
                rows = (
                    session.query(StoredArticle.url, StoredArticle.title)
                    .filter_by(target_id=target_id)
                    .all()
                )
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load existing keys for {target_id}: {exc}") from exc
        return {(url, title) for url, title in rows}

    def list_recent(
        self,
        target_id: str,
        months: int = 2,
        now: Optional[datetime] = None,
    ) -> List[StoredArticle]:
        cutoff = _naive_utc(now or datetime.now(timezone.utc)) - relativedelta(months=months)
        with self.db.get_session() as session:
            return (
                session.query(StoredArticle)
                .filter(StoredArticle.target_id == target_id)
                .filter(StoredArticle.published_at >= cutoff)
                .order_by(StoredArticle.published_at.desc())
                .all()
            )

    def upsert_target(self, target: CrawlTarget) -> TargetRecord:
        selectors = None
        if target.selector_profile is not None:
            profile = target.selector_profile
            selectors = {
                "articles": profile.articles,
                "title": profile.title,
                "content": profile.content,
                "link": profile.link,
            }

        with self.db.get_session() as session:
            record = session.get(TargetRecord, target.id)
            if record is None:
                record = TargetRecord(id=target.id)
                session.add(record)
                logger.info("Created new target: %s", target.id)
            record.name = target.name
            record.base_url = target.base_url
            record.selectors = selectors
            _commit_with_retry(session)
            return record

    def get_target(self, target_id: str) -> Optional[CrawlTarget]:
        with self.db.get_session() as session:
            record = session.get(TargetRecord, target_id)
            if record is None:
                return None
            return _to_crawl_target(record)

    def list_targets(self) -> List[CrawlTarget]:
        with self.db.get_session() as session:
            records = session.query(TargetRecord).order_by(TargetRecord.id).all()
            return [_to_crawl_target(record) for record in records]


def _to_crawl_target(record: TargetRecord) -> CrawlTarget:
    profile = None
    selectors = record.selectors or {}
    if all(selectors.get(key) for key in ("articles", "title", "content", "link")):
        profile = SelectorProfile(
            articles=selectors["articles"],
            title=selectors["title"],
            content=selectors["content"],
            link=selectors["link"],
        )
    return CrawlTarget(
        id=record.id,
        name=record.name,
        base_url=record.base_url,
        selector_profile=profile,
    )
