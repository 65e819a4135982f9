"""Cache module for normalized response caching."""

from .search_cache import SearchCache, fingerprint
from .models import CacheEntry
from .statistics import CacheStatistics

__all__ = ["SearchCache", "CacheEntry", "CacheStatistics", "fingerprint"]
