import asyncio
import inspect
from email.utils import formatdate
from typing import Any, Dict, List, Optional

import pytest

from newshub.news.model import Article, ArticleSource, Category, FeedSource


class FakeResponse:
    """Stands in for aiohttp.ClientResponse inside `async with session.get(...)`."""

    def __init__(self, status: int = 200, text: str = "", json_data: Any = None, reason: str = "OK"):
        self.status = status
        self.reason = reason
        self._text = text
        self._json = json_data

    async def text(self) -> str:
        return self._text

    async def json(self) -> Any:
        return self._json


class _RequestContext:
    def __init__(self, session: "FakeSession", method: str, url: str, kwargs: Dict[str, Any]):
        self.session = session
        self.method = method
        self.url = url
        self.kwargs = kwargs

    async def __aenter__(self) -> FakeResponse:
        return await self.session.dispatch(self.method, self.url, self.kwargs)

    async def __aexit__(self, *exc_info) -> bool:
        return False


class FakeSession:
    """
    Minimal aiohttp.ClientSession replacement.

    routes maps a URL to a FakeResponse, an exception to raise, an async handler
    `(method, url, kwargs) -> FakeResponse`, or a list of those consumed in order.
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None):
        self.routes: Dict[str, Any] = routes or {}
        self.calls: List[Dict[str, Any]] = []

    def get(self, url: str, **kwargs) -> _RequestContext:
        return _RequestContext(self, "GET", url, kwargs)

    def post(self, url: str, **kwargs) -> _RequestContext:
        return _RequestContext(self, "POST", url, kwargs)

    def calls_to(self, url: str) -> List[Dict[str, Any]]:
        return [call for call in self.calls if call["url"] == url]

    async def dispatch(self, method: str, url: str, kwargs: Dict[str, Any]) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})

        handler = self.routes[url]
        if isinstance(handler, list):
            handler = handler.pop(0)
        if isinstance(handler, BaseException):
            raise handler
        if inspect.iscoroutinefunction(handler):
            return await handler(method, url, kwargs)
        return handler


def make_rss(items: List[Dict[str, str]], title: str = "Test Feed") -> str:
    """Build an RSS 2.0 document; each item dict may hold title, link, description, pubDate."""
    parts = []
    for item in items:
        fields = "".join(f"<{key}>{value}</{key}>" for key, value in item.items())
        parts.append(f"<item>{fields}</item>")
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss version="2.0"><channel>'
        f"<title>{title}</title><link>https://example.com/</link><description>Test</description>"
        f"{''.join(parts)}"
        "</channel></rss>"
    )


def rfc822(timestamp: int) -> str:
    return formatdate(timestamp, usegmt=True)


def make_article(article_id: str, published_at: int, category: Category = Category.GENERAL,
                 title: Optional[str] = None) -> Article:
    return Article(
        id=article_id,
        title=title or f"Title {article_id}",
        description="Description",
        link=f"https://example.com/{article_id}",
        published_at=published_at,
        category=category,
        source=ArticleSource(name="Example", url="https://example.com/feed"),
    )


def make_source(source_id: str = "example", url: Optional[str] = None,
                category: Category = Category.TECHNOLOGY) -> FeedSource:
    return FeedSource(
        id=source_id,
        name=f"Source {source_id}",
        url=url or f"https://{source_id}.example.com/rss",
        category=category,
    )


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


async def never_finishes() -> List[Article]:
    await asyncio.sleep(3600)
    return []
