#!/usr/bin/env python3
"""
News Pipeline Orchestrator for News Pulse
Orchestrates: Cache → Source Resolution → Relay Fetch / JSON API → Upsert → Fallback
"""

import argparse
import asyncio
import json
import logging
import sys
import time
import traceback
from typing import Dict, Iterable, List, Optional

import aiohttp

from newspulse.backend.collectors import (
    ArticleParser,
    CollectionConfig,
    ConfigManager,
    FeedSourceResolver,
    JsonFeedCollector,
    NewsCollector,
    ProxyFetcher
)
from newspulse.backend.monitoring.usage_tracker import usage_tracker
from newspulse.backend.processors import ContentEnhancer, merge_breaking_feed
from newspulse.backend.storage import CacheStore, create_cache_store, is_fresh
from newspulse.backend.tts import (
    AudioSourceResolver,
    GeminiSpeechSynthesizer,
    PlaybackScheduler,
    Pyttsx3Narrator,
    WaveFileSink
)
from newspulse.shared.config.config_loader import (
    ConfigLoader,
    category_requires_subscription,
    get_categories,
    get_database_url,
    get_gemini_api_key,
    get_language_voice
)
from newspulse.shared.types.results import Article
from newspulse.shared.utils.logging_config import console, log_error, log_result, log_step, log_warning, setup_logging

logger = logging.getLogger(__name__)


class NewsOrchestrator:
    """Serves category news from the shared cache, refreshing from feeds when stale.

    Owns the HTTP session unless a collector is injected. Use as an async
    context manager, or call ``start``/``close``.
    """

    def __init__(self, store: Optional[CacheStore] = None,
                 config: Optional[CollectionConfig] = None,
                 collector: Optional[NewsCollector] = None,
                 source_resolver: Optional[FeedSourceResolver] = None):
        self.config = config or ConfigManager.load()
        self.store = store if store is not None else create_cache_store(get_database_url())
        self.source_resolver = source_resolver or FeedSourceResolver(self.store)
        self.collector = collector
        self._session: Optional[aiohttp.ClientSession] = None
        self._in_flight: Dict[str, asyncio.Task] = {}

    async def start(self) -> None:
        if self.collector is not None:
            return
        self._session = aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=20, limit_per_host=4),
            headers={'User-Agent': self.config.user_agent}
        )
        parser = ArticleParser(self.config)
        self.collector = NewsCollector(
            fetcher=ProxyFetcher(self._session, self.config),
            parser=parser,
            json_collector=JsonFeedCollector(self._session, parser, self.config),
            config=self.config
        )

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> 'NewsOrchestrator':
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def fetch_category_news(self, category: str) -> List[Article]:
        """
        Articles for a category. Never raises and never returns an empty list.

        Concurrent calls for the same category share one refresh.
        """
        task = self._in_flight.get(category)
        if task is None:
            task = asyncio.ensure_future(self._fetch_category(category))
            self._in_flight[category] = task
            task.add_done_callback(lambda _task: self._in_flight.pop(category, None))
        articles = await asyncio.shield(task)
        return list(articles)

    async def _fetch_category(self, category: str) -> List[Article]:
        limit = self.config.limit_for(category)

        cached = await asyncio.to_thread(self.store.read_articles, category)
        if is_fresh(cached, self.config.stale_threshold_hours):
            logger.debug(f"Serving {category} from cache ({len(cached)} articles)")
            return cached[:limit]

        articles = await self._refresh(category)
        if articles:
            capped = articles[:limit]
            log_result(logger, f"{category} refresh", len(articles), len(capped))
            await asyncio.to_thread(self.store.write_articles, category, capped)
            return capped

        if cached:
            log_warning(logger, f"Refresh failed for {category}; serving {len(cached)} stale cached articles")
            return cached[:limit]

        log_warning(logger, f"No live or cached news for {category}; serving placeholders")
        return ConfigManager.load_fallbacks(category)[:limit]

    async def _refresh(self, category: str) -> List[Article]:
        if self.collector is None:
            await self.start()

        urls = await self.source_resolver.urls_for(category)
        if not urls:
            logger.warning(f"No feed sources configured for {category}")
            return []

        try:
            articles, _strategy = await self.collector.collect(category, urls)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_error(logger, f"Collection failed for {category}: {e}")
            logger.debug(traceback.format_exc())
            return []
        return articles

    async def fetch_breaking_news(self) -> List[Article]:
        """Merged ticker over the breaking categories: unique titles, newest first."""
        try:
            feeds = await asyncio.gather(*(
                self.fetch_category_news(category) for category in self.config.breaking_categories
            ))
            return merge_breaking_feed(feeds, self.config.breaking_limit)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_warning(logger, f"Breaking feed merge failed ({e}); using the breaking category")
            return await self.fetch_category_news('breaking')

    async def fetch_home_feed(self, primary: Optional[str] = None,
                              others: Optional[Iterable[str]] = None,
                              subscribed: bool = True) -> Dict[str, List[Article]]:
        """
        Primary category first, then the remaining categories concurrently.

        Individual failures are left out of the result. Premium categories are
        skipped when ``subscribed`` is False.
        """
        primary = primary or ConfigLoader.get('news.home.primary', 'azad-studio')
        if others is None:
            others = [entry['id'] for entry in get_categories()
                      if entry.get('id') not in (primary, 'breaking')]

        def allowed(category: str) -> bool:
            return subscribed or not category_requires_subscription(category)

        feed: Dict[str, List[Article]] = {}
        if allowed(primary):
            feed[primary] = await self.fetch_category_news(primary)

        remaining = [category for category in others if category != primary and allowed(category)]
        results = await asyncio.gather(
            *(self.fetch_category_news(category) for category in remaining),
            return_exceptions=True
        )
        for category, result in zip(remaining, results):
            if isinstance(result, BaseException):
                logger.warning(f"Home feed skipped {category}: {result}")
                continue
            feed[category] = result
        return feed

    async def purge_stale_articles(self) -> int:
        """Drop cached articles older than the configured age; derived rows cascade."""
        return await asyncio.to_thread(self.store.purge_older_than, self.config.purge_after_hours)

    async def clear_category(self, category: str) -> int:
        """Drop a category's cached articles so the next request refreshes it."""
        return await asyncio.to_thread(self.store.clear_category, category)


def _print_articles(title: str, articles: List[Article], as_json: bool = False) -> None:
    if as_json:
        print(json.dumps({"category": title, "articles": [a.to_dict() for a in articles]},
                         indent=2, ensure_ascii=False))
        return
    console.print(f"\n[bold]{title}[/bold] ({len(articles)})")
    for index, article in enumerate(articles):
        published = article.published_at.strftime('%Y-%m-%d %H:%M')
        console.print(f"  {index:>2}. {article.title}")
        console.print(f"      [dim]{article.source} | {published} | {article.link}[/dim]")


def _build_scheduler(store: CacheStore, api_key: Optional[str]) -> PlaybackScheduler:
    retry = ConfigLoader.get('ai.retry', {}) or {}
    resolver = AudioSourceResolver(
        store,
        synthesizer=GeminiSpeechSynthesizer(api_key=api_key) if api_key else None,
        retry_attempts=retry.get('attempts', 3),
        retry_base_delay=retry.get('base_delay_seconds', 1.0)
    )
    sink = WaveFileSink(ConfigLoader.get('tts.output_file', 'newspulse-playback.wav'))
    return PlaybackScheduler(resolver, sink, narrator=Pyttsx3Narrator(),
                             sample_rate=ConfigLoader.get('tts.sample_rate', 24000))


async def _narrate(scheduler: PlaybackScheduler, text: str, language: str) -> bool:
    voice_tag = get_language_voice(language)
    try:
        completed = await scheduler.speak(text, voice_tag,
                                          on_end=lambda: log_step(logger, "Narration finished"))
    finally:
        await scheduler.resolver.wait_for_pending_writes()
        if isinstance(scheduler.sink, WaveFileSink):
            scheduler.sink.close()
    return completed


async def _run_article(orchestrator: NewsOrchestrator, store: CacheStore, api_key: Optional[str],
                       category: str, index: int, language: str, narrate: bool) -> int:
    articles = await orchestrator.fetch_category_news(category)
    if not 0 <= index < len(articles):
        log_error(logger, f"No article {index} in {category} ({len(articles)} available)")
        return 1
    article = articles[index]

    enhancer = ContentEnhancer(store, api_key=api_key)
    enhanced = await enhancer.enhanced_content(article.content or article.description, article.id)

    title = article.title
    summary = enhanced.short_summary
    if language == 'ur-ro':
        title = await enhancer.roman_urdu_title(article.title, article.id) or article.title
        summary = enhanced.roman_urdu_summary
    elif language != 'en':
        title = await enhancer.translate_text(article.title, language, article.id)
        summary = await enhancer.translate_summary(enhanced.short_summary, language, article.id)

    console.print(f"\n[bold]{title}[/bold]\n[dim]{article.source} | {article.link}[/dim]\n")
    console.print(enhanced.full_article)
    console.print(f"\n[italic]{summary}[/italic]")

    if narrate:
        await _narrate(_build_scheduler(store, api_key), f"{title}. {summary}", language)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="newspulse", description="News Pulse feed and narration pipeline")
    parser.add_argument("--log-level", default="INFO", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--json", action="store_true", help="Print article lists as JSON")
    commands = parser.add_subparsers(dest="command", required=True)

    news = commands.add_parser("news", help="Show one category")
    news.add_argument("category")

    commands.add_parser("breaking", help="Show the merged breaking ticker")

    home = commands.add_parser("home", help="Show the home feed")
    home.add_argument("--unsubscribed", action="store_true", help="Skip premium categories")

    speak = commands.add_parser("speak", help="Narrate text")
    speak.add_argument("text")
    speak.add_argument("--lang", default="en")

    article = commands.add_parser("article", help="Enhance, translate and narrate one article")
    article.add_argument("category")
    article.add_argument("--index", type=int, default=0)
    article.add_argument("--lang", default="en")
    article.add_argument("--no-audio", action="store_true")

    commands.add_parser("purge", help="Delete cached articles past the purge age")

    clear = commands.add_parser("clear", help="Delete every cached article of one category")
    clear.add_argument("category")

    add_source = commands.add_parser("add-source", help="Add a feed to the managed source list")
    add_source.add_argument("category")
    add_source.add_argument("url")
    add_source.add_argument("--priority", type=int, default=0)
    add_source.add_argument("--inactive", action="store_true")
    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    """Main function to run the news pipeline from the command line."""
    args = _build_parser().parse_args(argv)
    setup_logging(level=args.log_level, quiet_mode=True)

    api_key = get_gemini_api_key()
    store = create_cache_store(get_database_url())

    try:
        async with NewsOrchestrator(store=store) as orchestrator:
            start_time = time.time()
            purged = await orchestrator.purge_stale_articles()
            if args.command == "purge":
                log_step(logger, "Cache purge", f"{purged} articles removed")
                return 0
            if args.command == "clear":
                cleared = await orchestrator.clear_category(args.category)
                log_step(logger, "Cache clear", f"{cleared} {args.category} articles removed")
                return 0
            if args.command == "add-source":
                if not store.add_feed_source(args.category, args.url, active=not args.inactive,
                                             priority=args.priority):
                    log_error(logger, "Managed feed list needs DATABASE_URL")
                    return 1
                log_step(logger, "Feed source added", f"{args.category}: {args.url}")
                return 0

            if args.command == "news":
                _print_articles(args.category, await orchestrator.fetch_category_news(args.category), args.json)
            elif args.command == "breaking":
                _print_articles("breaking", await orchestrator.fetch_breaking_news(), args.json)
            elif args.command == "home":
                feed = await orchestrator.fetch_home_feed(subscribed=not args.unsubscribed)
                for category, articles in feed.items():
                    _print_articles(category, articles, args.json)
            elif args.command == "speak":
                await _narrate(_build_scheduler(store, api_key), args.text, args.lang)
            elif args.command == "article":
                return await _run_article(orchestrator, store, api_key, args.category,
                                          args.index, args.lang, narrate=not args.no_audio)

            logger.debug(f"{args.command} finished in {time.time() - start_time:.1f}s")
            return 0
    except KeyboardInterrupt:
        log_error(logger, "Interrupted by user")
        return 1
    except Exception as e:
        log_error(logger, f"{args.command} failed: {e}")
        logger.debug(traceback.format_exc())
        return 1
    finally:
        usage_tracker.log_summary()


def run():
    """Entry point for running the orchestrator."""
    try:
        exit_code = asyncio.run(main())
        sys.exit(exit_code)
    except KeyboardInterrupt:
        sys.exit(1)


if __name__ == "__main__":
    run()
