import json

import pytest
from aiohttp import test_utils

from newshub.feed.cache import AggregationCache
from newshub.feed.notifier import ChangeNotifier, build_message
from newshub.news.model import Category
from newshub.news.source.bitable.auth import TokenManager
from newshub_exec.server import create_app

from conftest import make_article


ARTICLES = [
    make_article("espn-1", 300, Category.SPORTS),
    make_article("tabular-rec1", 200, Category.TECHNOLOGY),
    make_article("nature-1", 100, Category.SCIENCE),
]


def build_app():
    async def feeds():
        return [a for a in ARTICLES if not a.id.startswith("tabular-")]

    async def tabular():
        return [a for a in ARTICLES if a.id.startswith("tabular-")]

    cache = AggregationCache(feeds, tabular, ttl=300)
    notifier = ChangeNotifier(cache, poll_interval=3600)
    app = create_app(cache, notifier, token_manager=TokenManager(), heartbeat_interval=0.05)
    return app, cache, notifier


async def read_data_line(response, limit=50):
    for _ in range(limit):
        line = await response.content.readline()
        if line.startswith(b"data: "):
            return json.loads(line[len(b"data: "):])
    raise AssertionError("no data frame received")


class TestApiRoutes:

    @pytest.mark.asyncio
    async def test_articles(self):
        app, _, _ = build_app()

        async with test_utils.TestClient(test_utils.TestServer(app)) as client:
            response = await client.get("/api/articles")
            assert response.status == 200
            body = await response.json()

        assert [a["id"] for a in body["articles"]] == ["espn-1", "tabular-rec1", "nature-1"]
        assert body["sources"] == {"rss": 2, "tabular": 1}
        assert body["articles"][0]["category"] == "sports"

    @pytest.mark.asyncio
    async def test_articles_by_category(self):
        app, _, _ = build_app()

        async with test_utils.TestClient(test_utils.TestServer(app)) as client:
            tech = await (await client.get("/api/articles/technology")).json()
            unknown_response = await client.get("/api/articles/astrology")
            unknown = await unknown_response.json()

        assert [a["id"] for a in tech["articles"]] == ["tabular-rec1"]
        assert tech["sources"] == {"rss": 0, "tabular": 1}
        assert unknown_response.status == 200
        assert unknown["articles"] == []

    @pytest.mark.asyncio
    async def test_refresh_and_status(self):
        app, _, _ = build_app()

        async with test_utils.TestClient(test_utils.TestServer(app)) as client:
            before = await (await client.get("/api/status")).json()
            refreshed = await client.post("/api/refresh")
            after = await (await client.get("/api/status")).json()

        assert before["cache"]["has_cache"] is False
        assert refreshed.status == 200
        assert after["cache"]["has_cache"] is True
        assert after["cache"]["is_fetching"] is False
        assert after["token"]["state"] == "uninitialized"

    @pytest.mark.asyncio
    async def test_event_stream_sends_init_then_updates(self):
        app, cache, notifier = build_app()

        async with test_utils.TestClient(test_utils.TestServer(app)) as client:
            response = await client.get("/api/sse")
            assert response.status == 200
            assert response.headers["Content-Type"].startswith("text/event-stream")

            init = await read_data_line(response)
            assert init["type"] == "init"
            assert init["stats"] == {"total": 3, "sources": {"rss": 2, "tabular": 1}}
            assert notifier.subscriber_count == 1

            notifier.broadcast(build_message("update", await cache.get()))
            update = await read_data_line(response)
            assert update["type"] == "update"

            response.close()

    @pytest.mark.asyncio
    async def test_event_stream_sends_heartbeats(self):
        app, _, _ = build_app()

        async with test_utils.TestClient(test_utils.TestServer(app)) as client:
            response = await client.get("/api/sse")
            await read_data_line(response)

            lines = [await response.content.readline() for _ in range(2)]

            assert lines == [b"\n", b":heartbeat\n"]
            response.close()
