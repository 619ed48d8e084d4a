import re
from typing import Any, List, Optional

import feedparser
from bs4 import BeautifulSoup

from newshub.config import CONFIG
from newshub.news.model import Article, ArticleSource, FeedSource
from newshub.logging_config import create_logger
from newshub.utils.hashing import generate_article_id
from newshub.utils.time import convert_date_str_to_timestamp


DEFAULT_TITLE = "Untitled"
DEFAULT_DESCRIPTION = "No description"
DESCRIPTION_MAX_LENGTH = 200

logger = create_logger("FeedParser")


def clean_text(value: Optional[Any]) -> str:
    """Strip markup, decode entities and collapse whitespace."""
    if value is None:
        return ""

    text = str(value)
    if "<" in text or "&" in text:
        text = BeautifulSoup(text, "html.parser").get_text(" ")

    return re.sub(r"\s+", " ", text).strip()


def truncate(value: str, length: int = DESCRIPTION_MAX_LENGTH) -> str:
    return value[:length].rstrip()


def _entry_published_at(entry: Any) -> int:
    date_str = entry.get("published") or entry.get("updated")
    return convert_date_str_to_timestamp(str(date_str) if date_str else None)


def parse_entry(entry: Any, source: FeedSource) -> Article:
    """Build an article from one feed entry, filling defaults for missing fields."""
    title = clean_text(entry.get("title")) or DEFAULT_TITLE
    link = str(entry.get("link") or "").strip() or source.url

    description = truncate(clean_text(entry.get("summary") or entry.get("description")))

    return Article(
        id=generate_article_id(source.id, link, title),
        title=title,
        description=description or DEFAULT_DESCRIPTION,
        link=link,
        published_at=_entry_published_at(entry),
        category=source.category,
        source=ArticleSource(name=source.name, url=source.url),
    )


def parse_feed(text: str, source: FeedSource, max_items: Optional[int] = None) -> List[Article]:
    """
    Parse raw RSS/Atom text into articles for one source.

    Only the first max_items entries (in document order) are considered. An entry that
    fails to parse is skipped without affecting the others.
    """
    max_items = CONFIG.FEED_MAX_ITEMS if max_items is None else max_items

    feed = feedparser.parse(text)
    if feed.bozo and not feed.entries:
        logger.warning(f"Feed for {source.name} is malformed: {feed.get('bozo_exception')}")
        return []

    articles = []
    for entry in feed.entries[:max_items]:
        try:
            articles.append(parse_entry(entry, source))
        except Exception as e:
            logger.error(f"Failed to parse entry from {source.name}: {e}")

    return articles
