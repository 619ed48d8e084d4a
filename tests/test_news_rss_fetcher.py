import asyncio

import aiohttp
import pytest

from newshub.config import CONFIG
from newshub.news.source.rss.fetcher import fetch_all_feeds, fetch_feed_source, sort_by_published_desc

from conftest import FakeResponse, FakeSession, make_article, make_rss, make_source, rfc822


def feed_with(titles_and_times):
    return make_rss([
        {"title": title, "link": f"https://example.com/{title}", "pubDate": rfc822(ts)}
        for title, ts in titles_and_times
    ])


class TestFetchFeedSource:

    @pytest.mark.asyncio
    async def test_fetches_and_parses(self):
        source = make_source("a")
        session = FakeSession({source.url: FakeResponse(text=feed_with([("one", 100), ("two", 200)]))})

        articles = await fetch_feed_source(session, source)

        assert [a.title for a in articles] == ["one", "two"]
        [call] = session.calls
        assert call["headers"]["User-Agent"] == CONFIG.USER_AGENT

    @pytest.mark.asyncio
    async def test_http_error_returns_empty(self):
        source = make_source("a")
        session = FakeSession({source.url: FakeResponse(status=503, reason="Service Unavailable")})

        assert await fetch_feed_source(session, source) == []

    @pytest.mark.asyncio
    async def test_network_error_returns_empty(self):
        source = make_source("a")
        session = FakeSession({source.url: aiohttp.ClientConnectionError("connection refused")})

        assert await fetch_feed_source(session, source) == []

    @pytest.mark.asyncio
    async def test_timeout_returns_empty(self):
        source = make_source("slow")

        async def slow(method, url, kwargs):
            await asyncio.sleep(5)
            return FakeResponse(text=feed_with([("late", 100)]))

        session = FakeSession({source.url: slow})

        assert await fetch_feed_source(session, source, timeout=0.05) == []


class TestFetchAllFeeds:

    @pytest.mark.asyncio
    async def test_merges_successful_sources_newest_first(self):
        ok_a, ok_b, broken, failing = (make_source(s) for s in ("a", "b", "broken", "failing"))
        session = FakeSession({
            ok_a.url: FakeResponse(text=feed_with([("a-old", 100), ("a-new", 400)])),
            ok_b.url: FakeResponse(text=feed_with([("b-mid", 250)])),
            broken.url: FakeResponse(status=500, reason="Internal Server Error"),
            failing.url: aiohttp.ClientConnectionError("reset"),
        })

        articles = await fetch_all_feeds([ok_a, broken, ok_b, failing], batch_size=2, batch_delay=0, session=session)

        assert [a.title for a in articles] == ["a-new", "b-mid", "a-old"]

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded_by_batch_size(self):
        sources = [make_source(f"s{i}") for i in range(7)]
        in_flight = 0
        peak = 0

        async def handler(method, url, kwargs):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return FakeResponse(text=feed_with([(url, 100)]))

        session = FakeSession({source.url: handler for source in sources})

        articles = await fetch_all_feeds(sources, batch_size=3, batch_delay=0, session=session)

        assert peak == 3
        assert len(articles) == 7
        assert len(session.calls) == 7

    @pytest.mark.asyncio
    async def test_no_sources(self):
        assert await fetch_all_feeds([], session=FakeSession()) == []

    @pytest.mark.asyncio
    async def test_rejects_non_positive_batch_size(self):
        with pytest.raises(ValueError):
            await fetch_all_feeds([make_source("a")], batch_size=0, session=FakeSession())


def test_sort_keeps_encounter_order_for_ties():
    articles = [make_article("x", 100), make_article("y", 200), make_article("z", 100)]

    assert [a.id for a in sort_by_published_desc(articles)] == ["y", "x", "z"]
