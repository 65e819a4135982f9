"""
Reshapes raw upstream payloads into the closed response schemas.

Normalization never raises: a payload that cannot be interpreted becomes
an empty response tagged ``error-fallback``.
"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlparse

from ..constants import SOURCE_FALLBACK, SOURCE_UPSTREAM, TEXT_FIELD_MAX_LENGTH
from ..domain.models import (
    AnalyticsData,
    AnalyticsResponse,
    DomainCount,
    MultiSearchItem,
    MultiSearchResponse,
    MultiSearchSummary,
    SearchResponse,
    SearchResult,
    SuggestionsResponse,
    TrendPoint,
)
from ..logging import debug, warning, LogRecord, LogEvent

_RESULT_KEYS = ("results", "standardResults", "items")
_TOTAL_KEYS = ("total", "totalResults")
_PAGE_KEYS = ("page", "currentPage")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def sanitize_text(text: Any, max_length: int = TEXT_FIELD_MAX_LENGTH) -> str:
    """Collapse whitespace runs, trim and cap the length."""
    if not isinstance(text, str):
        return ""
    return " ".join(text.split())[:max_length]


def extract_domain(url: Any) -> Optional[str]:
    if not isinstance(url, str) or not url:
        return None
    try:
        return urlparse(url).hostname
    except ValueError:
        return None


def _first(raw: Dict[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _non_negative_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return int(value) if value >= 0 else None


def _finite_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


def _string_list(values: Any) -> Optional[List[str]]:
    if not isinstance(values, list):
        return None
    cleaned = [sanitize_text(v) for v in values if isinstance(v, str)]
    return [v for v in cleaned if v]


def _source(raw: Dict[str, Any]) -> str:
    source = raw.get("source")
    return source if isinstance(source, str) and source else SOURCE_UPSTREAM


def _timestamp(raw: Dict[str, Any]) -> str:
    timestamp = raw.get("timestamp")
    return timestamp if isinstance(timestamp, str) and timestamp else utc_now_iso()


def normalize_result(item: Any, index: int) -> Optional[SearchResult]:
    """Normalize one result entry; ``None`` when it has no usable URL."""
    if not isinstance(item, dict):
        return None
    url = item.get("url") or item.get("link")
    if not isinstance(url, str) or not url.strip():
        return None
    url = url.strip()
    title = sanitize_text(item.get("title")) or f"Result {index + 1}"
    description = sanitize_text(item.get("description") or item.get("snippet"))
    timestamp = item.get("timestamp")
    return SearchResult(
        title=title,
        url=url,
        description=description,
        domain=extract_domain(url),
        timestamp=timestamp if isinstance(timestamp, str) else None,
    )


def normalize_analytics_data(
    raw: Any, analyze_trends: bool = True, include_related: bool = True
) -> AnalyticsData:
    """Normalize an analytics block, accepting camelCase or snake_case keys."""
    if not isinstance(raw, dict):
        return AnalyticsData()

    competition = _finite_float(raw.get("competition"))

    trends: Optional[List[TrendPoint]] = None
    raw_trends = raw.get("trends")
    if analyze_trends and isinstance(raw_trends, list):
        trends = []
        for point in raw_trends:
            if not isinstance(point, dict):
                continue
            volume = _non_negative_int(point.get("volume"))
            period = point.get("period")
            if isinstance(period, str) and volume is not None:
                trends.append(TrendPoint(period=period, volume=volume))

    top_domains: Optional[List[DomainCount]] = None
    raw_domains = _first(raw, ("top_domains", "topDomains"))
    if isinstance(raw_domains, list):
        top_domains = []
        for entry in raw_domains:
            if not isinstance(entry, dict):
                continue
            count = _non_negative_int(entry.get("count"))
            domain = entry.get("domain")
            if isinstance(domain, str) and count is not None:
                top_domains.append(DomainCount(domain=domain, count=count))

    related = _string_list(_first(raw, ("related_queries", "relatedQueries")))

    return AnalyticsData(
        search_volume=_non_negative_int(
            _first(raw, ("search_volume", "searchVolume"))
        ),
        competition=competition,
        trends=trends,
        related_queries=related if include_related else None,
        top_domains=top_domains,
    )


def fallback_search_response(query: str, page: int = 1) -> SearchResponse:
    return SearchResponse(
        query=query,
        results=[],
        total=0,
        page=page,
        timestamp=utc_now_iso(),
        source=SOURCE_FALLBACK,
    )


def normalize_search(raw: Any, query: str, page: int = 1) -> SearchResponse:
    """Normalize a search payload into a :class:`SearchResponse`."""
    try:
        if not isinstance(raw, dict):
            raise TypeError(f"expected an object, got {type(raw).__name__}")

        raw_results = _first(raw, _RESULT_KEYS)
        if raw_results is None:
            raw_results = []
        if not isinstance(raw_results, list):
            raise TypeError("results is not a list")

        results: List[SearchResult] = []
        for index, item in enumerate(raw_results):
            result = normalize_result(item, index)
            if result is not None:
                results.append(result)

        total = _non_negative_int(_first(raw, _TOTAL_KEYS))
        raw_page = _first(raw, _PAGE_KEYS)
        response = SearchResponse(
            query=query,
            results=results,
            total=total if total is not None else len(results),
            page=raw_page if isinstance(raw_page, int) and raw_page >= 1 else page,
            timestamp=_timestamp(raw),
            source=_source(raw),
        )

        suggestions = _string_list(raw.get("suggestions"))
        if suggestions:
            response.suggestions = suggestions
        if isinstance(raw.get("analytics"), dict):
            response.analytics = normalize_analytics_data(raw["analytics"])

        debug(
            LogRecord(
                event=LogEvent.UPSTREAM_RESPONSE.value,
                message="Search response normalized",
                data={"results_count": len(results), "total": response.total},
            )
        )
        return response
    except (TypeError, ValueError, AttributeError, OverflowError) as e:
        warning(
            LogRecord(
                event=LogEvent.NORMALIZATION_FAILURE.value,
                message=f"Failed to normalize search response: {e}",
                data={"query": query[:100]},
            )
        )
        return fallback_search_response(query, page)


def normalize_suggestions(raw: Any, query: str, limit: int) -> SuggestionsResponse:
    try:
        if isinstance(raw, list):
            raw = {"suggestions": raw}
        if not isinstance(raw, dict):
            raise TypeError(f"expected an object, got {type(raw).__name__}")

        suggestions = (_string_list(raw.get("suggestions")) or [])[:limit]
        return SuggestionsResponse(
            query=query,
            suggestions=suggestions,
            count=len(suggestions),
            timestamp=_timestamp(raw),
            source=_source(raw),
        )
    except (TypeError, ValueError, AttributeError, OverflowError) as e:
        warning(
            LogRecord(
                event=LogEvent.NORMALIZATION_FAILURE.value,
                message=f"Failed to normalize suggestions: {e}",
                data={"query": query[:100]},
            )
        )
        return SuggestionsResponse(
            query=query, timestamp=utc_now_iso(), source=SOURCE_FALLBACK
        )


def normalize_analytics(
    raw: Any,
    query: str,
    analyze_trends: bool = False,
    include_related: bool = True,
) -> AnalyticsResponse:
    try:
        if not isinstance(raw, dict):
            raise TypeError(f"expected an object, got {type(raw).__name__}")

        block = raw.get("analytics", raw)
        return AnalyticsResponse(
            query=query,
            analytics=normalize_analytics_data(block, analyze_trends, include_related),
            timestamp=_timestamp(raw),
            source=_source(raw),
        )
    except (TypeError, ValueError, AttributeError, OverflowError) as e:
        warning(
            LogRecord(
                event=LogEvent.NORMALIZATION_FAILURE.value,
                message=f"Failed to normalize analytics: {e}",
                data={"query": query[:100]},
            )
        )
        return AnalyticsResponse(
            query=query, timestamp=utc_now_iso(), source=SOURCE_FALLBACK
        )


def build_multi_search_response(items: List[MultiSearchItem]) -> MultiSearchResponse:
    """Aggregate per-query outcomes; ratios are 0 when there are no queries."""
    count = len(items)
    successful = sum(1 for item in items if item.success)
    total_results = sum(len(item.data.results) for item in items if item.data)
    return MultiSearchResponse(
        queries=count,
        successful=successful,
        results=items,
        summary=MultiSearchSummary(
            total_results=total_results,
            average_results=total_results / count if count else 0.0,
            success_rate=successful / count if count else 0.0,
        ),
        timestamp=utc_now_iso(),
    )
