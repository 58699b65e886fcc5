#!/usr/bin/env python3
"""
Shared cache store.

Articles, translations, enhanced content, synthesized audio and the managed
feed list live in one SQLAlchemy database shared by every session. All keys
are content-derived, so upserts from concurrent sessions are idempotent.

The store never raises to its callers: an unconfigured or failing backend
turns every lookup into a miss and every write into a no-op, and the
pipelines carry on cold.
"""

import base64
import functools
import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, TypeVar

from sqlalchemy import create_engine, delete, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from newspulse.shared.types.results import Article, EnhancedContent
from .models import (
    ArticleRow, AudioCacheRow, Base, EnhancedContentRow, FeedSourceRow, TranslationRow
)

logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _to_aware_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def text_hash(text: str) -> str:
    """Content hash of the exact chunk text used as the audio cache key."""
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


def is_fresh(articles: List[Article], threshold_hours: float = 6,
             now: Optional[datetime] = None) -> bool:
    """A cached set is fresh when its newest publish time is within the threshold (inclusive)."""
    if not articles:
        return False
    now = now or datetime.now(timezone.utc)
    newest = max(_to_aware_utc(article.published_at) for article in articles)
    return now - newest <= timedelta(hours=threshold_hours)


def cache_operation(default: Any = None) -> Callable[[F], F]:
    """Absorb backend errors: log them and return ``default`` instead."""
    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            if not self.enabled:
                return default() if callable(default) else default
            try:
                return func(self, *args, **kwargs)
            except SQLAlchemyError as e:
                logger.warning(f"Cache {func.__name__} failed: {e}")
                return default() if callable(default) else default
        return wrapper  # type: ignore[return-value]
    return decorator


class CacheStore:
    """SQLAlchemy-backed implementation of the shared cache."""

    def __init__(self, database_url: str, echo: bool = False):
        if database_url.startswith("sqlite"):
            self.engine = create_engine(
                database_url,
                echo=echo,
                connect_args={"check_same_thread": False}
            )
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        else:
            self.engine = create_engine(
                database_url,
                pool_size=5,
                max_overflow=10,
                pool_pre_ping=True,
                pool_recycle=300,
                echo=echo
            )
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        self.enabled = True
        self.create_tables()

    def create_tables(self) -> None:
        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            logger.warning(f"Cache backend unavailable, running cold: {e}")
            self.enabled = False

    # --- Articles ---

    @cache_operation(default=list)
    def read_articles(self, category: str) -> List[Article]:
        """Cached articles for a category, newest first."""
        with self.SessionLocal() as session:
            rows = session.scalars(
                select(ArticleRow)
                .where(ArticleRow.category_id == category)
                .order_by(ArticleRow.created_at.desc())
            ).all()
            return [self._to_article(row) for row in rows]

    @cache_operation(default=0)
    def write_articles(self, category: str, articles: List[Article]) -> int:
        """Upsert by id. Rows not in ``articles`` are left alone."""
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        with self.SessionLocal.begin() as session:
            for index, article in enumerate(articles):
                # Later items get slightly older stamps so feed order survives the read
                session.merge(ArticleRow(
                    id=article.id,
                    category_id=category,
                    title=article.title,
                    description=article.description,
                    content=article.content,
                    link=article.link,
                    source=article.source,
                    image_url=article.image_url,
                    pub_date=_to_naive_utc(article.published_at),
                    created_at=now - timedelta(microseconds=index)
                ))
        logger.debug(f"Upserted {len(articles)} {category} articles")
        return len(articles)

    @cache_operation(default=0)
    def purge_older_than(self, age_hours: float) -> int:
        """Delete article rows created before now - age_hours; derived rows cascade."""
        cutoff = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(hours=age_hours)
        with self.SessionLocal.begin() as session:
            result = session.execute(delete(ArticleRow).where(ArticleRow.created_at < cutoff))
            deleted = result.rowcount or 0
        if deleted:
            logger.info(f"Purged {deleted} articles older than {age_hours}h")
        return deleted

    @cache_operation(default=0)
    def clear_category(self, category: str) -> int:
        """Delete every cached article of a category; audio rows are keyed by text and stay."""
        with self.SessionLocal.begin() as session:
            result = session.execute(delete(ArticleRow).where(ArticleRow.category_id == category))
            deleted = result.rowcount or 0
        logger.info(f"Cleared {deleted} cached {category} articles")
        return deleted

    # --- Translations ---

    @cache_operation(default=None)
    def get_translation(self, article_id: str, language_code: str) -> Optional[str]:
        with self.SessionLocal() as session:
            row = session.get(TranslationRow, (article_id, language_code))
            return row.translated_text if row else None

    @cache_operation(default=False)
    def save_translation(self, article_id: str, language_code: str, text: str) -> bool:
        with self.SessionLocal.begin() as session:
            if session.get(TranslationRow, (article_id, language_code)) is not None:
                return False
            session.add(TranslationRow(article_id=article_id, language_code=language_code,
                                       translated_text=text))
        return True

    # --- Enhanced content ---

    @cache_operation(default=None)
    def get_enhanced_content(self, article_id: str) -> Optional[EnhancedContent]:
        with self.SessionLocal() as session:
            row = session.get(EnhancedContentRow, article_id)
            if row is None:
                return None
            return EnhancedContent(
                full_article=row.full_article,
                short_summary=row.short_summary,
                roman_urdu_summary=row.roman_urdu_summary
            )

    @cache_operation(default=False)
    def save_enhanced_content(self, article_id: str, content: EnhancedContent) -> bool:
        with self.SessionLocal.begin() as session:
            if session.get(EnhancedContentRow, article_id) is not None:
                return False
            session.add(EnhancedContentRow(
                article_id=article_id,
                full_article=content.full_article,
                short_summary=content.short_summary,
                roman_urdu_summary=content.roman_urdu_summary
            ))
        return True

    # --- Audio ---

    @cache_operation(default=None)
    def get_audio(self, text: str, voice: str) -> Optional[bytes]:
        with self.SessionLocal() as session:
            row = session.get(AudioCacheRow, (text_hash(text), voice))
            return base64.b64decode(row.audio_data) if row else None

    @cache_operation(default=False)
    def save_audio(self, text: str, voice: str, data: bytes) -> bool:
        key = (text_hash(text), voice)
        with self.SessionLocal.begin() as session:
            if session.get(AudioCacheRow, key) is not None:
                return False
            session.add(AudioCacheRow(text_hash=key[0], voice_name=voice,
                                      audio_data=base64.b64encode(data).decode('ascii')))
        return True

    # --- Feed sources ---

    @cache_operation(default=list)
    def active_feed_urls(self, category: str) -> List[str]:
        with self.SessionLocal() as session:
            return list(session.scalars(
                select(FeedSourceRow.url)
                .where(FeedSourceRow.category_id == category, FeedSourceRow.is_active.is_(True))
                .order_by(FeedSourceRow.priority, FeedSourceRow.id)
            ).all())

    @cache_operation(default=False)
    def add_feed_source(self, category: str, url: str, active: bool = True, priority: int = 0) -> bool:
        with self.SessionLocal.begin() as session:
            session.add(FeedSourceRow(category_id=category, url=url, is_active=active, priority=priority))
        return True

    @staticmethod
    def _to_article(row: ArticleRow) -> Article:
        return Article(
            id=row.id,
            title=row.title,
            description=row.description or '',
            content=row.content or '',
            link=row.link or '#',
            source=row.source or '',
            published_at=_to_aware_utc(row.pub_date),
            category=row.category_id,
            image_url=row.image_url
        )


class NullCacheStore(CacheStore):
    """Stand-in when no backend is configured: every lookup misses, every write is dropped."""

    def __init__(self):
        self.engine: Optional[Engine] = None
        self.SessionLocal = None
        self.enabled = False


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_cache_store(database_url: Optional[str]) -> CacheStore:
    """Cache store for the configured backend, or a no-op store without one."""
    if not database_url:
        logger.info("DATABASE_URL not set - shared cache disabled")
        return NullCacheStore()
    try:
        return CacheStore(database_url)
    except (SQLAlchemyError, ValueError, ImportError) as e:
        logger.warning(f"Could not open cache backend ({e}); running without cache")
        return NullCacheStore()
