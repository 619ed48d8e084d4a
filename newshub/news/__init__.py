# Import core models
from .model import Article, ArticleSource, Category, FeedSource, Provenance

from .source.registry import FeedSourceRegistry, feed_source

# Import the default feed sources to trigger registration
from .source import feeds

from .parser import parse_feed

__all__ = [
    "Article",
    "ArticleSource",
    "Category",
    "FeedSource",
    "Provenance",
    "FeedSourceRegistry",
    "feed_source",
    "parse_feed",
]
