import pytest
from datetime import datetime, timedelta, timezone

from sqlalchemy import update

from newspulse.backend.storage import NullCacheStore, create_cache_store, text_hash
from newspulse.backend.storage.models import ArticleRow
from newspulse.shared.types.results import EnhancedContent


class TestArticleCache:
    def test_write_then_read_preserves_feed_order(self, store, make_article):
        articles = [make_article(f"Story {i}", "india", index=i) for i in range(4)]

        store.write_articles("india", articles)

        assert [a.title for a in store.read_articles("india")] == ["Story 0", "Story 1", "Story 2", "Story 3"]

    def test_upsert_is_idempotent(self, store, make_article):
        article = make_article("Original", "india")
        store.write_articles("india", [article])

        article.title = "Updated"
        store.write_articles("india", [article])

        cached = store.read_articles("india")
        assert len(cached) == 1
        assert cached[0].title == "Updated"

    def test_categories_are_isolated(self, store, make_article):
        store.write_articles("india", [make_article("A", "india")])
        store.write_articles("sports", [make_article("B", "sports")])

        assert [a.title for a in store.read_articles("sports")] == ["B"]

    def test_round_trip_keeps_publish_time(self, store, make_article):
        article = make_article("Timed", "india", hours_ago=3)
        store.write_articles("india", [article])

        cached = store.read_articles("india")[0]

        assert cached.published_at.tzinfo is not None
        assert abs((cached.published_at - article.published_at).total_seconds()) < 1


class TestPurge:
    def _age_rows(self, store, hours):
        old = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(hours=hours)
        with store.SessionLocal.begin() as session:
            session.execute(update(ArticleRow).values(created_at=old))

    def test_purge_removes_old_rows_and_derived_content(self, store, make_article):
        article = make_article("Old", "india")
        store.write_articles("india", [article])
        store.save_translation(article.id, "hi", "पुराना")
        store.save_enhanced_content(article.id, EnhancedContent("full", "short", "roman"))
        store.save_audio("Old.", "Kore", b"\x01\x02")
        self._age_rows(store, 25)

        deleted = store.purge_older_than(24)

        assert deleted == 1
        assert store.read_articles("india") == []
        assert store.get_translation(article.id, "hi") is None
        assert store.get_enhanced_content(article.id) is None
        assert store.get_audio("Old.", "Kore") == b"\x01\x02"

    def test_purge_keeps_recent_rows(self, store, make_article):
        store.write_articles("india", [make_article("Recent", "india")])

        assert store.purge_older_than(24) == 0
        assert len(store.read_articles("india")) == 1


class TestClearCategory:
    def test_clear_removes_one_category_and_its_translations(self, store, make_article):
        india = make_article("Budget session opens", "india")
        sports = make_article("Series levelled", "sports")
        store.write_articles("india", [india])
        store.write_articles("sports", [sports])
        store.save_translation(india.id, "hi", "बजट सत्र शुरू")
        store.save_translation(sports.id, "hi", "सीरीज़ बराबर")
        store.save_audio("Budget session opens.", "Kore", b"\x03\x04")

        assert store.clear_category("india") == 1

        assert store.read_articles("india") == []
        assert store.get_translation(india.id, "hi") is None
        assert [a.title for a in store.read_articles("sports")] == ["Series levelled"]
        assert store.get_translation(sports.id, "hi") == "सीरीज़ बराबर"
        assert store.get_audio("Budget session opens.", "Kore") == b"\x03\x04"

    def test_clear_unknown_category(self, store):
        assert store.clear_category("nowhere") == 0


class TestDerivedCaches:
    def test_translation_is_write_once(self, store, make_article):
        article = make_article("Story", "india")
        store.write_articles("india", [article])

        assert store.save_translation(article.id, "hi", "first") is True
        assert store.save_translation(article.id, "hi", "second") is False
        assert store.get_translation(article.id, "hi") == "first"

    def test_enhanced_content_round_trip(self, store, make_article):
        article = make_article("Story", "india")
        store.write_articles("india", [article])

        store.save_enhanced_content(article.id, EnhancedContent("full", "short", "roman"))

        assert store.get_enhanced_content(article.id) == EnhancedContent("full", "short", "roman")

    def test_audio_keyed_by_text_and_voice(self, store):
        store.save_audio("Hello there.", "Kore", b"\x00\x01")

        assert store.get_audio("Hello there.", "Kore") == b"\x00\x01"
        assert store.get_audio("Hello there.", "Puck") is None
        assert store.get_audio("Hello there!", "Kore") is None

    def test_text_hash_is_content_hash(self):
        assert text_hash("abc") == text_hash("abc")
        assert len(text_hash("abc")) == 64


class TestDisabledStore:
    def test_null_store_misses_and_drops(self, make_article):
        store = NullCacheStore()

        assert store.write_articles("india", [make_article("A", "india")]) == 0
        assert store.read_articles("india") == []
        assert store.get_audio("x", "Kore") is None
        assert store.save_audio("x", "Kore", b"1") is False
        assert store.purge_older_than(24) == 0

    def test_factory_without_url(self):
        assert isinstance(create_cache_store(None), NullCacheStore)
