import asyncio
import time
from typing import Awaitable, Callable, Dict, List, Optional, Union

from newshub.config import CONFIG, Config
from newshub.feed.model import CacheEntry, CacheStatus, SourceCounts
from newshub.news.model import Article, Category
from newshub.news.source.rss.fetcher import fetch_all_feeds, sort_by_published_desc
from newshub.news.source.registry import FeedSourceRegistry
from newshub.logging_config import create_logger
from newshub.utils.concurrency import run_with_deadline, settle_all


ArticleFetcher = Callable[[], Awaitable[List[Article]]]


class EmptyRefreshError(Exception):
    pass


def merge_articles(*groups: List[Article]) -> List[Article]:
    """Concatenate groups, drop repeated ids (first occurrence wins), sort newest first."""
    seen: Dict[str, Article] = {}
    for group in groups:
        for article in group:
            if article.id not in seen:
                seen[article.id] = article
    return sort_by_published_desc(list(seen.values()))


class AggregationCache:
    """
    Process-wide cache of the merged feed and bitable articles.

    get() serves the cached entry while it is younger than ttl. Otherwise a single refresh
    task is started and every concurrent caller awaits that same task. A refresh that fails
    keeps serving the previous non-empty entry; with nothing cached yet, an empty entry is
    cached so the ttl still throttles retries.
    """

    def __init__(
        self,
        feed_fetcher: ArticleFetcher,
        tabular_fetcher: ArticleFetcher,
        ttl: Optional[float] = None,
        feed_timeout: Optional[float] = None,
        tabular_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.feed_fetcher = feed_fetcher
        self.tabular_fetcher = tabular_fetcher
        self.ttl = CONFIG.CACHE_TTL if ttl is None else ttl
        self.feed_timeout = CONFIG.FEED_FETCH_TIMEOUT if feed_timeout is None else feed_timeout
        self.tabular_timeout = CONFIG.TABULAR_FETCH_TIMEOUT if tabular_timeout is None else tabular_timeout
        self.clock = clock
        self.logger = create_logger("AggregationCache")

        self._entry: Optional[CacheEntry] = None
        self._fetched_at: Optional[float] = None
        self._invalidated = False
        self._refresh_task: Optional["asyncio.Task[CacheEntry]"] = None

    @classmethod
    def from_config(cls, config: Config = CONFIG, tabular_fetcher: Optional[ArticleFetcher] = None) -> "AggregationCache":
        """Build a cache over the registered feed sources and the configured bitable."""
        from newshub.news.source.bitable.client import BitableClient

        async def fetch_feeds() -> List[Article]:
            return await fetch_all_feeds(FeedSourceRegistry.get_enabled_sources())

        if tabular_fetcher is None:
            tabular_fetcher = BitableClient.from_config(config).fetch_articles

        return cls(
            feed_fetcher=fetch_feeds,
            tabular_fetcher=tabular_fetcher,
            ttl=config.CACHE_TTL,
            feed_timeout=config.FEED_FETCH_TIMEOUT,
            tabular_timeout=config.TABULAR_FETCH_TIMEOUT,
        )

    @property
    def current(self) -> Optional[CacheEntry]:
        """The cached entry without triggering a refresh."""
        return self._entry

    @property
    def is_fetching(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    def _age(self) -> float:
        if self._fetched_at is None:
            return 0.0
        return max(0.0, self.clock() - self._fetched_at)

    def _is_fresh(self) -> bool:
        return (
            self._entry is not None
            and not self._invalidated
            and self._fetched_at is not None
            and self._age() < self.ttl
        )

    async def get(self) -> CacheEntry:
        """Return the cached entry, refreshing it first when missing or expired."""
        if self._entry is not None and self._is_fresh():
            self.logger.debug(f"Serving cached articles, age {self._age():.0f}s")
            return self._entry

        if self._refresh_task is None or self._refresh_task.done():
            self.logger.info("Cache missing or expired, refreshing")
            self._refresh_task = asyncio.ensure_future(self._fetch_and_cache())
            self._refresh_task.add_done_callback(self._on_refresh_done)
        else:
            self.logger.debug("Waiting for in-flight refresh")

        # Shielded so one cancelled caller does not cancel the refresh for the others
        return await asyncio.shield(self._refresh_task)

    async def get_by_category(self, slug: Union[str, Category]) -> CacheEntry:
        """Category view of the cached entry. Unknown slugs yield an empty entry."""
        entry = await self.get()

        category = Category.from_slug(slug)
        if category is None:
            self.logger.warning(f"Unknown category '{slug}'")
            return CacheEntry(articles=(), sources=SourceCounts(), timestamp=entry.timestamp)

        articles = tuple(article for article in entry.articles if article.category == category)
        return CacheEntry(articles=articles, sources=SourceCounts.from_articles(articles), timestamp=entry.timestamp)

    async def refresh(self) -> CacheEntry:
        """Expire the current entry and fetch again. The old entry stays as fallback."""
        self._invalidated = True
        return await self.get()

    def status(self) -> CacheStatus:
        return CacheStatus(has_cache=self._entry is not None, age=self._age(), is_fetching=self.is_fetching)

    def _on_refresh_done(self, task: "asyncio.Task[CacheEntry]") -> None:
        if not task.cancelled():
            task.exception()
        if self._refresh_task is task:
            self._refresh_task = None

    async def _fetch_and_cache(self) -> CacheEntry:
        started = self.clock()
        previous = self._entry

        try:
            feed_articles, tabular_articles = await self._fetch_sources()
            articles = merge_articles(feed_articles, tabular_articles)

            if not articles and previous is not None and previous.articles:
                raise EmptyRefreshError("All sources returned no articles")

            entry = CacheEntry(
                articles=tuple(articles),
                sources=SourceCounts.from_articles(articles),
                timestamp=time.time(),
            )
        except Exception as e:
            self.logger.error(f"Failed to refresh articles: {e}")

            if previous is not None:
                self.logger.info("Serving stale cached articles")
                return previous

            self.logger.info("No cached articles available, caching empty result")
            entry = CacheEntry.empty()

        self._entry = entry
        self._fetched_at = self.clock()
        self._invalidated = False

        self.logger.info(
            f"Refreshed in {self.clock() - started:.2f}s: rss {entry.sources.rss}, "
            f"tabular {entry.sources.tabular}, total {entry.total}"
        )
        return entry

    async def _fetch_sources(self):
        outcomes = await settle_all([
            run_with_deadline(self.feed_fetcher(), self.feed_timeout, []),
            run_with_deadline(self.tabular_fetcher(), self.tabular_timeout, []),
        ])
        for outcome in outcomes:
            if not outcome.ok:
                raise outcome.error  # type: ignore[misc]

        feed_articles, tabular_articles = (outcome.value or [] for outcome in outcomes)
        self.logger.debug(f"Fetched {len(feed_articles)} feed articles and {len(tabular_articles)} bitable articles")
        return feed_articles, tabular_articles
