"""Constants module for the Presearch MCP server.

Contains default values for upstream access, caching, rate limiting, retry
policy and response normalization.
"""

from typing import Dict, FrozenSet

from .enums import ContentType

SERVER_NAME = "presearch-mcp-server"
SERVER_VERSION = "2.0.0"
USER_AGENT = f"presearch-mcp/{SERVER_VERSION}"

# Upstream API
DEFAULT_BASE_URL = "https://na-us-1.presearch.com/v1"
DEFAULT_TIMEOUT_SECONDS = 15.0
HEALTH_CHECK_TIMEOUT_SECONDS = 5.0
SEARCH_ENDPOINT = "/search"
SUGGESTIONS_ENDPOINT = "/suggestions"
ANALYTICS_ENDPOINT = "/analytics"
HEALTH_ENDPOINT = "/health"

CONTENT_TYPE_ENDPOINTS: Dict[ContentType, str] = {
    ContentType.Web: "/search",
    ContentType.News: "/news",
    ContentType.Images: "/images",
    ContentType.Videos: "/videos",
    ContentType.Academic: "/academic",
}

# API key handling
API_KEY_MIN_LENGTH = 10
API_KEY_PATTERN = r"^[A-Za-z0-9_-]+$"
PLACEHOLDER_API_KEYS: FrozenSet[str] = frozenset({"your-api-key-here", "mock-api-key"})

# Retry policy
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BASE_DELAY_SECONDS = 1.0
DEFAULT_RETRY_MAX_DELAY_SECONDS = 10.0
DEFAULT_RETRY_BACKOFF_FACTOR = 2.0

# Rate limiting
DEFAULT_RATE_LIMIT = 100
DEFAULT_RATE_LIMIT_WINDOW_SECONDS = 60.0

# Cache
DEFAULT_CACHE_TTL_SECONDS = 3600
DEFAULT_CACHE_MAX_SIZE = 1000
DEFAULT_CACHE_SWEEP_INTERVAL_SECONDS = 300.0

# Parameter bounds
QUERY_MAX_LENGTH = 500
LOCATION_MAX_LENGTH = 100
DOMAIN_MAX_LENGTH = 253
MAX_PAGE = 100
MULTI_SEARCH_MIN_QUERIES = 2
MULTI_SEARCH_MAX_QUERIES = 5
SUGGESTIONS_DEFAULT_LIMIT = 10
SUGGESTIONS_MAX_LIMIT = 20

# Normalization
TEXT_FIELD_MAX_LENGTH = 500
SOURCE_UPSTREAM = "presearch-api"
SOURCE_MOCK = "mock-data"
SOURCE_FALLBACK = "error-fallback"

# Logging
LOG_QUERY_PREVIEW_LENGTH = 100
LOG_FIELD_MAX_LENGTH = 5000
