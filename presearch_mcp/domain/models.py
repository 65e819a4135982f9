import ipaddress
import re
from typing import Any, List, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

from ..constants import (
    DOMAIN_MAX_LENGTH,
    LOCATION_MAX_LENGTH,
    MAX_PAGE,
    MULTI_SEARCH_MAX_QUERIES,
    MULTI_SEARCH_MIN_QUERIES,
    QUERY_MAX_LENGTH,
    SUGGESTIONS_DEFAULT_LIMIT,
    SUGGESTIONS_MAX_LIMIT,
)
from ..enums import ContentType, SafeSearch, TimeRange

_LANG_PATTERN = re.compile(r"^[A-Za-z]{2}$")
_DOMAIN_PATTERN = re.compile(
    r"^(?=.{1,253}$)(?!-)[A-Za-z0-9-]{1,63}(?<!-)(\.(?!-)[A-Za-z0-9-]{1,63}(?<!-))*$"
)


# ---------------------------------------------------------------------------
# Tool arguments
# ---------------------------------------------------------------------------


class ToolParams(BaseModel):
    """Base class for tool argument models.

    Unknown arguments are rejected and string values are stripped.
    """

    model_config = ConfigDict(
        extra="forbid", str_strip_whitespace=True, populate_by_name=True
    )


def _check_query(value: str) -> str:
    if not value.strip():
        raise ValueError("Query cannot be empty")
    return value


def _check_lang(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    if not _LANG_PATTERN.match(value):
        raise ValueError("Language must be a 2-letter code (e.g. en, es, fr)")
    return value.lower()


def _coerce_safe(value: Any) -> Any:
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, int):
        return str(value)
    return value


class QueryParams(ToolParams):
    query: str = Field(
        min_length=1,
        max_length=QUERY_MAX_LENGTH,
        validation_alias=AliasChoices("query", "q"),
        description="Search query",
    )
    lang: Optional[str] = Field(
        default=None, description="Language code (e.g., en, es, fr)"
    )

    @field_validator("query")
    @classmethod
    def query_not_blank(cls, v: str) -> str:
        return _check_query(v)

    @field_validator("lang")
    @classmethod
    def lang_is_two_letters(cls, v: Optional[str]) -> Optional[str]:
        return _check_lang(v)


class SearchRequest(QueryParams):
    """Arguments of ``presearch_search``."""

    page: int = Field(default=1, ge=1, le=MAX_PAGE, description="Page number")
    time: Optional[TimeRange] = Field(default=None, description="Time filter")
    safe: Optional[SafeSearch] = Field(
        default=None, description="Safe search (0=off, 1=on)"
    )
    location: Optional[str] = Field(
        default=None, max_length=LOCATION_MAX_LENGTH, description="Location filter"
    )
    ip: Optional[str] = Field(
        default=None, description="IP address for geo-targeting"
    )

    @field_validator("safe", mode="before")
    @classmethod
    def safe_accepts_integers(cls, v: Any) -> Any:
        return _coerce_safe(v)

    @field_validator("ip")
    @classmethod
    def ip_is_valid(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        try:
            return str(ipaddress.ip_address(v))
        except ValueError:
            raise ValueError("Must be a valid IPv4 or IPv6 address")


class MultiSearchRequest(ToolParams):
    """Arguments of ``presearch_multi_search``."""

    queries: List[str] = Field(
        min_length=MULTI_SEARCH_MIN_QUERIES,
        max_length=MULTI_SEARCH_MAX_QUERIES,
        description="Search queries to run concurrently",
    )
    lang: Optional[str] = None
    time: Optional[TimeRange] = None
    safe: Optional[SafeSearch] = None
    location: Optional[str] = Field(default=None, max_length=LOCATION_MAX_LENGTH)

    @field_validator("queries")
    @classmethod
    def queries_not_blank(cls, v: List[str]) -> List[str]:
        for query in v:
            _check_query(query)
            if len(query) > QUERY_MAX_LENGTH:
                raise ValueError(
                    f"Each query must be at most {QUERY_MAX_LENGTH} characters"
                )
        return v

    @field_validator("lang")
    @classmethod
    def lang_is_two_letters(cls, v: Optional[str]) -> Optional[str]:
        return _check_lang(v)

    @field_validator("safe", mode="before")
    @classmethod
    def safe_accepts_integers(cls, v: Any) -> Any:
        return _coerce_safe(v)

    def search_request(self, query: str) -> SearchRequest:
        """Build the per-query search request sharing this request's filters."""
        return SearchRequest(
            query=query,
            lang=self.lang,
            time=self.time,
            safe=self.safe,
            location=self.location,
        )


class SuggestionsRequest(QueryParams):
    """Arguments of ``presearch_suggestions``."""

    limit: int = Field(
        default=SUGGESTIONS_DEFAULT_LIMIT, ge=1, le=SUGGESTIONS_MAX_LIMIT
    )


class AnalyticsRequest(ToolParams):
    """Arguments of ``presearch_search_analytics``."""

    query: str = Field(
        min_length=1,
        max_length=QUERY_MAX_LENGTH,
        validation_alias=AliasChoices("query", "q"),
    )
    analyze_trends: bool = False
    include_related: bool = True

    @field_validator("query")
    @classmethod
    def query_not_blank(cls, v: str) -> str:
        return _check_query(v)


class DomainSearchRequest(QueryParams):
    """Arguments of ``presearch_domain_search``."""

    domain: str = Field(
        min_length=1,
        max_length=DOMAIN_MAX_LENGTH,
        description="Domain to search within (e.g., wikipedia.org)",
    )
    page: int = Field(default=1, ge=1, le=MAX_PAGE)

    @field_validator("domain")
    @classmethod
    def domain_is_hostname(cls, v: str) -> str:
        v = v.lower()
        if not _DOMAIN_PATTERN.match(v):
            raise ValueError("Must be a valid domain name")
        return v

    @property
    def site_query(self) -> str:
        return f"{self.query} site:{self.domain}"


class FilteredSearchRequest(QueryParams):
    """Arguments of ``presearch_filtered_search``."""

    content_type: ContentType = Field(
        validation_alias=AliasChoices("content_type", "contentType"),
        description="Content type filter",
    )
    page: int = Field(default=1, ge=1, le=MAX_PAGE)


class CacheClearRequest(ToolParams):
    """Arguments of ``presearch_cache_clear``."""

    pattern: Optional[str] = Field(
        default=None,
        min_length=1,
        description="Regular expression matched against cache keys",
    )

    @field_validator("pattern")
    @classmethod
    def pattern_compiles(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid regular expression: {e}")
        return v


class EmptyParams(ToolParams):
    """Tools that take no arguments."""


# ---------------------------------------------------------------------------
# Normalized responses
# ---------------------------------------------------------------------------


class ResponseModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ResponseMetadata(ResponseModel):
    """Per-call information kept apart from the cached payload."""

    cached: bool = False
    processing_time_ms: Optional[float] = None
    request_id: Optional[str] = None


class SearchResult(ResponseModel):
    title: str
    url: str
    description: str = ""
    domain: Optional[str] = None
    timestamp: Optional[str] = None


class TrendPoint(ResponseModel):
    period: str
    volume: int


class DomainCount(ResponseModel):
    domain: str
    count: int


class AnalyticsData(ResponseModel):
    search_volume: Optional[int] = None
    competition: Optional[float] = None
    trends: Optional[List[TrendPoint]] = None
    related_queries: Optional[List[str]] = None
    top_domains: Optional[List[DomainCount]] = None


class SearchResponse(ResponseModel):
    """Normalized search result page."""

    query: str
    results: List[SearchResult] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    timestamp: str
    source: str
    suggestions: Optional[List[str]] = None
    analytics: Optional[AnalyticsData] = None
    metadata: Optional[ResponseMetadata] = None


class SuggestionsResponse(ResponseModel):
    query: str
    suggestions: List[str] = Field(default_factory=list)
    count: int = 0
    timestamp: str
    source: str
    metadata: Optional[ResponseMetadata] = None


class AnalyticsResponse(ResponseModel):
    query: str
    analytics: AnalyticsData = Field(default_factory=AnalyticsData)
    timestamp: str
    source: str
    metadata: Optional[ResponseMetadata] = None


class QueryFailure(ResponseModel):
    code: str
    message: str


class MultiSearchItem(ResponseModel):
    query: str
    success: bool
    data: Optional[SearchResponse] = None
    error: Optional[QueryFailure] = None


class MultiSearchSummary(ResponseModel):
    total_results: int
    average_results: float
    success_rate: float


class MultiSearchResponse(ResponseModel):
    queries: int
    successful: int
    results: List[MultiSearchItem]
    summary: MultiSearchSummary
    timestamp: str


# ---------------------------------------------------------------------------
# Component status
# ---------------------------------------------------------------------------


class CacheStats(ResponseModel):
    enabled: bool
    size: int
    max_size: int
    ttl_seconds: float
    hits: int
    misses: int
    hit_rate: float
    evictions: int = 0
    expirations: int = 0
    oldest_entry_time: Optional[float] = None
    newest_entry_time: Optional[float] = None


class RateLimitStatus(ResponseModel):
    enabled: bool
    remaining: int
    limit: int
    window_seconds: float
    reset_time: float
    window_start: float


class TextContent(ResponseModel):
    type: str = "text"
    text: str


class ToolResult(ResponseModel):
    """Envelope handed back to the protocol transport."""

    content: List[TextContent]
    is_error: bool = False
