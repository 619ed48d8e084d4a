import asyncio
from typing import List, Optional, Sequence, Union

import aiohttp

from newshub.config import CONFIG
from newshub.news.model import Article, Category, FeedSource
from newshub.news.parser import parse_feed
from newshub.news.source.registry import FeedSourceRegistry
from newshub.logging_config import create_logger
from newshub.utils.concurrency import settle_all


logger = create_logger("RSSFetcher")


class FeedHTTPError(Exception):
    def __init__(self, status: int, reason: Optional[str] = None):
        super().__init__(f"HTTP {status}: {reason or ''}".strip())
        self.status = status


async def _download_feed(session: aiohttp.ClientSession, source: FeedSource, timeout: float) -> str:
    async with session.get(
        source.url,
        headers={"User-Agent": CONFIG.USER_AGENT},
        timeout=aiohttp.ClientTimeout(total=timeout),
    ) as response:
        if response.status < 200 or response.status >= 300:
            raise FeedHTTPError(response.status, response.reason)
        return await response.text()


async def fetch_feed_source(
    session: aiohttp.ClientSession,
    source: FeedSource,
    timeout: Optional[float] = None,
) -> List[Article]:
    """Fetch and parse one feed source. Never raises for fetch or parse failures; returns [] instead."""
    timeout = CONFIG.SOURCE_REQUEST_TIMEOUT if timeout is None else timeout
    logger.debug(f"Fetching {source.name} ({source.url})")

    try:
        rss_content = await asyncio.wait_for(_download_feed(session, source, timeout), timeout=timeout)
        articles = parse_feed(rss_content, source)
    except asyncio.TimeoutError:
        logger.error(f"Timed out after {timeout}s fetching {source.name} ({source.url})")
        return []
    except FeedHTTPError as e:
        logger.error(f"{e} when fetching {source.name} ({source.url})")
        return []
    except aiohttp.ClientError as e:
        logger.error(f"Network error fetching {source.name} ({source.url}): {e}")
        return []
    except Exception as e:
        logger.error(f"Error collecting from {source.name} ({source.url}): {e}")
        return []

    logger.info(f"Successfully fetched {len(articles)} articles from {source.name}")
    return articles


def sort_by_published_desc(articles: List[Article]) -> List[Article]:
    """Newest first. Stable, so equal timestamps keep their encounter order."""
    return sorted(articles, key=lambda article: article.published_at, reverse=True)


async def _fetch_in_batches(
    session: aiohttp.ClientSession,
    sources: Sequence[FeedSource],
    batch_size: int,
    batch_delay: float,
) -> List[Article]:
    batches = [sources[i:i + batch_size] for i in range(0, len(sources), batch_size)]

    all_articles: List[Article] = []
    for count, batch in enumerate(batches, 1):
        logger.debug(f"Fetching batch ({count}/{len(batches)}) of {len(batch)} sources")

        outcomes = await settle_all([fetch_feed_source(session, source) for source in batch])
        for source, outcome in zip(batch, outcomes):
            if outcome.ok and outcome.value is not None:
                all_articles.extend(outcome.value)
            else:
                logger.error(f"Source {source.name} failed: {outcome.error}")

        if count < len(batches) and batch_delay > 0:
            await asyncio.sleep(batch_delay)

    return all_articles


async def fetch_all_feeds(
    sources: Sequence[FeedSource],
    batch_size: Optional[int] = None,
    batch_delay: Optional[float] = None,
    session: Optional[aiohttp.ClientSession] = None,
) -> List[Article]:
    """
    Fetch every source with bounded concurrency and merge the results.

    Sources run in batches of batch_size with a short pause between batches. A failing
    source contributes nothing and never affects the others. The merged list is sorted
    newest first.
    """
    batch_size = CONFIG.FEED_BATCH_SIZE if batch_size is None else batch_size
    batch_delay = CONFIG.FEED_BATCH_DELAY if batch_delay is None else batch_delay
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")

    logger.info(f"Fetching {len(sources)} feed sources")
    if not sources:
        return []

    if session is None:
        async with aiohttp.ClientSession() as own_session:
            all_articles = await _fetch_in_batches(own_session, sources, batch_size, batch_delay)
    else:
        all_articles = await _fetch_in_batches(session, sources, batch_size, batch_delay)

    all_articles = sort_by_published_desc(all_articles)
    logger.info(f"Fetched total {len(all_articles)} articles from {len(sources)} feed sources")
    return all_articles


async def fetch_feeds_by_category(
    category: Union[str, Category],
    session: Optional[aiohttp.ClientSession] = None,
) -> List[Article]:
    """Fetch only the enabled sources of one category."""
    return await fetch_all_feeds(FeedSourceRegistry.get_sources_by_category(category), session=session)
