import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Tuple

from newshub.news.model import Article, Provenance


@dataclass(frozen=True)
class SourceCounts:
    """Number of articles contributed by each upstream."""
    rss: int = 0
    tabular: int = 0

    @classmethod
    def from_articles(cls, articles: Iterable[Article]) -> "SourceCounts":
        rss = tabular = 0
        for article in articles:
            if article.provenance == Provenance.TABULAR:
                tabular += 1
            else:
                rss += 1
        return cls(rss=rss, tabular=tabular)

    def to_dict(self) -> Dict[str, int]:
        return {"rss": self.rss, "tabular": self.tabular}


@dataclass(frozen=True)
class CacheEntry:
    """Merged article set. Replaced wholesale on refresh, never mutated."""
    articles: Tuple[Article, ...] = ()
    sources: SourceCounts = field(default_factory=SourceCounts)
    timestamp: float = 0.0  # Unix time the entry was built

    @classmethod
    def empty(cls) -> "CacheEntry":
        return cls(articles=(), sources=SourceCounts(), timestamp=time.time())

    @property
    def total(self) -> int:
        return len(self.articles)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "articles": [article.to_dict() for article in self.articles],
            "sources": self.sources.to_dict(),
            "timestamp": int(self.timestamp * 1000),
        }


@dataclass(frozen=True)
class CacheStatus:
    has_cache: bool
    age: float  # Seconds since the entry was stamped, 0 without an entry
    is_fetching: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"has_cache": self.has_cache, "age": round(self.age, 3), "is_fetching": self.is_fetching}
