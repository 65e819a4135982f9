"""Enums module for the Presearch MCP server.

Contains all enumeration classes used by tool arguments and upstream requests.
"""

from enum import StrEnum


class TimeRange(StrEnum):
    """Recency filter accepted by the search endpoint."""
    Any = "any"
    Day = "day"
    Week = "week"
    Month = "month"
    Year = "year"


class SafeSearch(StrEnum):
    """Safe search switch (0 = off, 1 = on)."""
    Off = "0"
    On = "1"


class ContentType(StrEnum):
    """Content type filter for filtered search."""
    Web = "web"
    News = "news"
    Images = "images"
    Videos = "videos"
    Academic = "academic"


class ToolName(StrEnum):
    """Names of the tools exposed over MCP."""
    Search = "presearch_search"
    MultiSearch = "presearch_multi_search"
    Suggestions = "presearch_suggestions"
    Analytics = "presearch_search_analytics"
    DomainSearch = "presearch_domain_search"
    FilteredSearch = "presearch_filtered_search"
    CacheStats = "presearch_cache_stats"
    CacheClear = "presearch_cache_clear"
