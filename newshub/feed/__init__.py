from .cache import AggregationCache
from .model import CacheEntry, CacheStatus, SourceCounts
from .notifier import ChangeNotifier, StatsMessage

__all__ = [
    "AggregationCache",
    "CacheEntry",
    "CacheStatus",
    "SourceCounts",
    "ChangeNotifier",
    "StatsMessage",
]
