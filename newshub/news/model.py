from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from newshub.utils.time import timestamp_to_iso


TABULAR_ID_PREFIX = "tabular-"


class Category(Enum):
    """Closed set of article categories."""
    TECHNOLOGY = "technology"
    WORLD = "world"
    BUSINESS = "business"
    SCIENCE = "science"
    SPORTS = "sports"
    GENERAL = "general"

    @classmethod
    def from_slug(cls, slug: Union[str, "Category", None]) -> Optional["Category"]:
        if isinstance(slug, Category):
            return slug
        if not slug:
            return None
        try:
            return cls(slug.strip().lower())
        except ValueError:
            return None


class Provenance(Enum):
    """Which upstream produced an article."""
    RSS = "rss"
    TABULAR = "tabular"


@dataclass(frozen=True)
class CategoryInfo:
    slug: Category
    name: str
    description: str


CATEGORIES: List[CategoryInfo] = [
    CategoryInfo(Category.TECHNOLOGY, "Technology", "Technology news and innovation"),
    CategoryInfo(Category.WORLD, "World", "International news and current affairs"),
    CategoryInfo(Category.BUSINESS, "Business", "Business, finance and markets"),
    CategoryInfo(Category.SCIENCE, "Science", "Scientific research and discoveries"),
    CategoryInfo(Category.SPORTS, "Sports", "Sports news and events"),
    CategoryInfo(Category.GENERAL, "General", "General news"),
]


def get_category_by_slug(slug: str) -> Optional[CategoryInfo]:
    category = Category.from_slug(slug)
    return next((info for info in CATEGORIES if info.slug == category), None)


@dataclass(frozen=True)
class ArticleSource:
    name: str
    url: str


@dataclass(frozen=True)
class Article:
    """A single news article from a feed or the tabular source."""
    id: str  # Stable; tabular articles are prefixed with TABULAR_ID_PREFIX
    title: str
    description: str
    link: str  # Absolute URL or "#" when absent
    published_at: int  # Unix timestamp
    source: ArticleSource
    category: Category = Category.GENERAL

    @property
    def provenance(self) -> Provenance:
        return Provenance.TABULAR if self.id.startswith(TABULAR_ID_PREFIX) else Provenance.RSS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "link": self.link,
            "published_at": timestamp_to_iso(self.published_at),
            "timestamp": self.published_at,
            "category": self.category.value,
            "source": {"name": self.source.name, "url": self.source.url},
        }


@dataclass(frozen=True)
class FeedSource:
    """Configured RSS/Atom endpoint."""
    id: str
    name: str
    url: str
    category: Category = Category.GENERAL
    language: str = "en"
    enabled: bool = True

    @classmethod
    def create(cls, id: str, name: str, url: str, category: Union[str, Category] = Category.GENERAL,
               language: str = "en", enabled: bool = True) -> "FeedSource":
        """Build a descriptor, validating the category against the closed set."""
        resolved = Category.from_slug(category)
        if resolved is None:
            available = [c.value for c in Category]
            raise ValueError(f"Invalid category '{category}' for feed '{id}'. Available categories: {available}")
        if not url:
            raise ValueError(f"Feed '{id}' has no url")
        return cls(id=id, name=name, url=url, category=resolved, language=language, enabled=enabled)
