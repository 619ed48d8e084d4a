from typing import Dict, List, Optional, Union

from newshub.news.model import Category, FeedSource
from newshub.logging_config import create_logger


class FeedSourceRegistry:
    """Registry for the configured feed source descriptors."""

    _sources: Dict[str, FeedSource] = {}
    logger = create_logger("FeedSourceRegistry")

    @classmethod
    def register(cls, source: FeedSource) -> FeedSource:
        if source.id in cls._sources:
            raise ValueError(f"Feed source '{source.id}' is already registered")

        cls._sources[source.id] = source
        cls.logger.debug(f"Registered feed source {source.id} ({source.category.value}): {source.url}")
        return source

    @classmethod
    def get_all_sources(cls) -> List[FeedSource]:
        """Get all registered sources in registration order."""
        return list(cls._sources.values())

    @classmethod
    def get_enabled_sources(cls) -> List[FeedSource]:
        return [source for source in cls._sources.values() if source.enabled]

    @classmethod
    def get_sources_by_category(cls, category: Union[str, Category]) -> List[FeedSource]:
        resolved = Category.from_slug(category)
        if resolved is None:
            cls.logger.warning(f"Unknown category '{category}', no sources selected")
            return []
        return [source for source in cls.get_enabled_sources() if source.category == resolved]

    @classmethod
    def get_source(cls, source_id: str) -> Optional[FeedSource]:
        return cls._sources.get(source_id)

    @classmethod
    def clear(cls) -> None:
        cls._sources.clear()


def feed_source(id: str, name: str, url: str, category: Union[str, Category] = Category.GENERAL,
                language: str = "en", enabled: bool = True) -> FeedSource:
    """
    Build and register a feed source descriptor.

    Usage:
        feed_source(
            id="bbc-news",
            name="BBC News",
            url="http://feeds.bbci.co.uk/news/rss.xml",
            category="world",
        )
    """
    return FeedSourceRegistry.register(
        FeedSource.create(id=id, name=name, url=url, category=category, language=language, enabled=enabled)
    )
