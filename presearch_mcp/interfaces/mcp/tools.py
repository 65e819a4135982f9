"""Tool definitions advertised through ``tools/list``."""

from typing import Any, Dict, List

from mcp.types import Tool

from ...constants import (
    DOMAIN_MAX_LENGTH,
    LOCATION_MAX_LENGTH,
    MAX_PAGE,
    MULTI_SEARCH_MAX_QUERIES,
    MULTI_SEARCH_MIN_QUERIES,
    QUERY_MAX_LENGTH,
    SUGGESTIONS_DEFAULT_LIMIT,
    SUGGESTIONS_MAX_LIMIT,
)
from ...enums import ContentType, TimeRange, ToolName

_QUERY: Dict[str, Any] = {
    "type": "string",
    "description": "Search query",
    "minLength": 1,
    "maxLength": QUERY_MAX_LENGTH,
}
_LANG: Dict[str, Any] = {
    "type": "string",
    "description": "Language code (e.g., en, es, fr)",
    "pattern": "^[A-Za-z]{2}$",
}
_PAGE: Dict[str, Any] = {
    "type": "integer",
    "description": "Page number",
    "minimum": 1,
    "maximum": MAX_PAGE,
    "default": 1,
}
_TIME: Dict[str, Any] = {
    "type": "string",
    "description": "Time filter",
    "enum": [t.value for t in TimeRange],
}
_SAFE: Dict[str, Any] = {
    "type": "string",
    "description": "Safe search (0=off, 1=on)",
    "enum": ["0", "1"],
}
_LOCATION: Dict[str, Any] = {
    "type": "string",
    "description": "Location for localized results",
    "maxLength": LOCATION_MAX_LENGTH,
}


TOOLS: List[Tool] = [
    Tool(
        name=ToolName.Search.value,
        description=(
            "Search the web with Presearch. Supports pagination, language, "
            "time range, safe search, location and IP geo-targeting."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "query": _QUERY,
                "page": _PAGE,
                "lang": _LANG,
                "time": _TIME,
                "safe": _SAFE,
                "location": _LOCATION,
                "ip": {
                    "type": "string",
                    "description": "IP address for geo-targeting",
                },
            },
            "required": ["query"],
        },
    ),
    Tool(
        name=ToolName.MultiSearch.value,
        description=(
            "Run several searches concurrently and return per-query results "
            "with an aggregate summary."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "queries": {
                    "type": "array",
                    "items": _QUERY,
                    "minItems": MULTI_SEARCH_MIN_QUERIES,
                    "maxItems": MULTI_SEARCH_MAX_QUERIES,
                    "description": "Search queries to run",
                },
                "lang": _LANG,
                "time": _TIME,
                "safe": _SAFE,
                "location": _LOCATION,
            },
            "required": ["queries"],
        },
    ),
    Tool(
        name=ToolName.Suggestions.value,
        description="Get search suggestions for a partial query.",
        inputSchema={
            "type": "object",
            "properties": {
                "query": _QUERY,
                "limit": {
                    "type": "integer",
                    "description": "Maximum number of suggestions",
                    "minimum": 1,
                    "maximum": SUGGESTIONS_MAX_LIMIT,
                    "default": SUGGESTIONS_DEFAULT_LIMIT,
                },
                "lang": _LANG,
            },
            "required": ["query"],
        },
    ),
    Tool(
        name=ToolName.Analytics.value,
        description="Get search volume, competition, trends and related queries.",
        inputSchema={
            "type": "object",
            "properties": {
                "query": _QUERY,
                "analyze_trends": {
                    "type": "boolean",
                    "description": "Include trend data",
                    "default": False,
                },
                "include_related": {
                    "type": "boolean",
                    "description": "Include related queries",
                    "default": True,
                },
            },
            "required": ["query"],
        },
    ),
    Tool(
        name=ToolName.DomainSearch.value,
        description="Search within a single domain (e.g., wikipedia.org).",
        inputSchema={
            "type": "object",
            "properties": {
                "query": _QUERY,
                "domain": {
                    "type": "string",
                    "description": "Domain to search within",
                    "minLength": 1,
                    "maxLength": DOMAIN_MAX_LENGTH,
                },
                "page": _PAGE,
                "lang": _LANG,
            },
            "required": ["query", "domain"],
        },
    ),
    Tool(
        name=ToolName.FilteredSearch.value,
        description="Search a specific content type: web, news, images, videos or academic.",
        inputSchema={
            "type": "object",
            "properties": {
                "query": _QUERY,
                "content_type": {
                    "type": "string",
                    "description": "Content type filter",
                    "enum": [c.value for c in ContentType],
                },
                "page": _PAGE,
                "lang": _LANG,
            },
            "required": ["query", "content_type"],
        },
    ),
    Tool(
        name=ToolName.CacheStats.value,
        description="Report cache statistics, rate limit status and server health.",
        inputSchema={"type": "object", "properties": {}},
    ),
    Tool(
        name=ToolName.CacheClear.value,
        description="Clear cached responses, optionally only keys matching a regular expression.",
        inputSchema={
            "type": "object",
            "properties": {
                "pattern": {
                    "type": "string",
                    "description": "Regular expression matched against cache keys",
                },
            },
        },
    ),
]
