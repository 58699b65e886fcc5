"""Tables of the shared cache: articles and the content derived from them."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class ArticleRow(Base):
    """One cached article per (category, id); ids are derived from category and link."""
    __tablename__ = "articles"

    id = Column(String(64), primary_key=True)
    category_id = Column(String(64), nullable=False, index=True)
    title = Column(Text, nullable=False)
    description = Column(Text)
    content = Column(Text)
    link = Column(Text)
    source = Column(String(200))
    image_url = Column(Text)
    pub_date = Column(DateTime, nullable=False)
    # Naive UTC; drives ordering within a category and the purge sweep
    created_at = Column(DateTime, nullable=False, index=True)


class TranslationRow(Base):
    """Translated text per (article, language code); written once."""
    __tablename__ = "translations"

    article_id = Column(String(64), ForeignKey("articles.id", ondelete="CASCADE"), primary_key=True)
    language_code = Column(String(32), primary_key=True)
    translated_text = Column(Text, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class EnhancedContentRow(Base):
    """AI-expanded article and summaries; one row per article, written once."""
    __tablename__ = "enhanced_content"

    article_id = Column(String(64), ForeignKey("articles.id", ondelete="CASCADE"), primary_key=True)
    full_article = Column(Text, nullable=False)
    short_summary = Column(Text, nullable=False)
    roman_urdu_summary = Column(Text, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class AudioCacheRow(Base):
    """Synthesized speech keyed by chunk-text hash and voice.

    Not tied to any article: identical sentences share one row, so article
    deletes never cascade here.
    """
    __tablename__ = "audio_cache"

    text_hash = Column(String(64), primary_key=True)
    voice_name = Column(String(64), primary_key=True)
    audio_data = Column(Text, nullable=False)  # base64 PCM
    created_at = Column(DateTime, server_default=func.now())


class FeedSourceRow(Base):
    """Managed feed list; takes precedence over the static YAML table."""
    __tablename__ = "feed_sources"

    id = Column(Integer, primary_key=True, autoincrement=True)
    category_id = Column(String(64), nullable=False, index=True)
    url = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    priority = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now())
