"""
Routes tool calls to the request pipeline and wraps every outcome in an
envelope. No exception raised while handling a call leaves :meth:`dispatch`.
"""

import json
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

import anyio
import httpx
import psutil
from pydantic import BaseModel

from ...application.request_validator import validate_tool_arguments
from ...application.response_normalizer import (
    build_multi_search_response,
    normalize_analytics,
    normalize_search,
    normalize_suggestions,
)
from ...config import Settings
from ...constants import LOG_QUERY_PREVIEW_LENGTH
from ...domain.exceptions import PresearchError, classify_exception
from ...domain.models import (
    AnalyticsRequest,
    CacheClearRequest,
    DomainSearchRequest,
    FilteredSearchRequest,
    MultiSearchItem,
    MultiSearchRequest,
    QueryFailure,
    SearchRequest,
    SearchResponse,
    SuggestionsRequest,
    TextContent,
    ToolParams,
    ToolResult,
)
from ...enums import ToolName
from ...infrastructure.providers.provider_components_factory import (
    ProviderComponents,
    ProviderComponentsFactory,
)
from ...logging import info, warning, error, LogRecord, LogEvent

Handler = Callable[[Any, str], Awaitable[Any]]


def _to_json(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", exclude_none=True)
    return data


def success_result(data: Any) -> ToolResult:
    text = json.dumps({"success": True, "data": _to_json(data)}, ensure_ascii=False)
    return ToolResult(content=[TextContent(text=text)])


def error_result(exc: PresearchError) -> ToolResult:
    text = json.dumps(exc.to_dict(), ensure_ascii=False)
    return ToolResult(content=[TextContent(text=text)], is_error=True)


class ToolDispatcher:
    """Dispatches tool calls by name."""

    def __init__(self, components: ProviderComponents, settings: Settings):
        self._components = components
        self._settings = settings
        self._client = components.client
        self._cache = components.cache
        self._rate_limiter = components.rate_limiter
        self._pipeline = components.pipeline
        self._started_at = time.monotonic()
        self._handlers: Dict[ToolName, Handler] = {
            ToolName.Search: self._handle_search,
            ToolName.MultiSearch: self._handle_multi_search,
            ToolName.Suggestions: self._handle_suggestions,
            ToolName.Analytics: self._handle_analytics,
            ToolName.DomainSearch: self._handle_domain_search,
            ToolName.FilteredSearch: self._handle_filtered_search,
            ToolName.CacheStats: self._handle_cache_stats,
            ToolName.CacheClear: self._handle_cache_clear,
        }

    @classmethod
    def from_settings(
        cls, settings: Settings, http_client: Optional[httpx.AsyncClient] = None
    ) -> "ToolDispatcher":
        return cls(ProviderComponentsFactory.create_all(settings, http_client), settings)

    @property
    def components(self) -> ProviderComponents:
        return self._components

    async def aclose(self) -> None:
        await self._client.aclose()

    async def dispatch(
        self, name: str, arguments: Optional[Mapping[str, Any]] = None
    ) -> ToolResult:
        """Validate, execute and wrap one tool call."""
        request_id = uuid.uuid4().hex
        started = time.perf_counter()
        info(
            LogRecord(
                event=LogEvent.TOOL_CALL.value,
                message=f"Tool called: {name}",
                request_id=request_id,
                data={"tool": name, "arguments": _preview_arguments(arguments)},
            )
        )

        try:
            params = validate_tool_arguments(name, arguments, request_id)
            handler = self._handlers[ToolName(name)]
            data = await handler(params, request_id)
        except PresearchError as e:
            e.request_id = e.request_id or request_id
            warning(
                LogRecord(
                    event=LogEvent.TOOL_FAILURE.value,
                    message=e.message,
                    request_id=request_id,
                    data={"tool": name, "code": e.code.value},
                )
            )
            return error_result(e)
        except Exception as e:
            wrapped = classify_exception(e)
            wrapped.request_id = request_id
            error(
                LogRecord(
                    event=LogEvent.TOOL_FAILURE.value,
                    message=f"Unexpected error in tool {name}",
                    request_id=request_id,
                    data={"tool": name},
                ),
                exc=e,
            )
            return error_result(wrapped)

        info(
            LogRecord(
                event=LogEvent.TOOL_COMPLETED.value,
                message=f"Tool completed: {name}",
                request_id=request_id,
                data={
                    "tool": name,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 3),
                },
            )
        )
        return success_result(data)

    async def _run_search(
        self, params: SearchRequest, request_id: str
    ) -> SearchResponse:
        return await self._pipeline.execute(
            fingerprint=self._cache.fingerprint(_fingerprint_fields(params), "search"),
            operation=lambda: self._client.search(params, request_id),
            normalize=lambda raw: normalize_search(raw, params.query, params.page),
            mock=lambda: self._pipeline.mock_provider.payload_for(
                "search", params.query, params.page, request_id
            ),
            request_id=request_id,
            query=params.query,
        )

    async def _handle_search(self, params: SearchRequest, request_id: str) -> Any:
        return await self._run_search(params, request_id)

    async def _handle_multi_search(
        self, params: MultiSearchRequest, request_id: str
    ) -> Any:
        items: List[Optional[MultiSearchItem]] = [None] * len(params.queries)

        async def run_one(index: int, query: str) -> None:
            sub_id = f"{request_id}-{index}"
            try:
                data = await self._run_search(params.search_request(query), sub_id)
                items[index] = MultiSearchItem(query=query, success=True, data=data)
            except Exception as e:
                failure = classify_exception(e)
                warning(
                    LogRecord(
                        event=LogEvent.TOOL_FAILURE.value,
                        message="Multi-search query failed",
                        request_id=sub_id,
                        data={"index": index, "code": failure.code.value},
                    )
                )
                items[index] = MultiSearchItem(
                    query=query,
                    success=False,
                    error=QueryFailure(code=failure.code.value, message=failure.message),
                )

        async with anyio.create_task_group() as tg:
            for index, query in enumerate(params.queries):
                tg.start_soon(run_one, index, query)

        return build_multi_search_response([item for item in items if item is not None])

    async def _handle_suggestions(
        self, params: SuggestionsRequest, request_id: str
    ) -> Any:
        return await self._pipeline.execute(
            fingerprint=self._cache.fingerprint(
                _fingerprint_fields(params), "suggestions"
            ),
            operation=lambda: self._client.suggestions(params, request_id),
            normalize=lambda raw: normalize_suggestions(raw, params.query, params.limit),
            mock=lambda: self._pipeline.mock_provider.payload_for(
                "suggestions", params.query, request_id=request_id
            ),
            request_id=request_id,
            query=params.query,
        )

    async def _handle_analytics(self, params: AnalyticsRequest, request_id: str) -> Any:
        return await self._pipeline.execute(
            fingerprint=self._cache.fingerprint(_fingerprint_fields(params), "analytics"),
            operation=lambda: self._client.analytics(params, request_id),
            normalize=lambda raw: normalize_analytics(
                raw, params.query, params.analyze_trends, params.include_related
            ),
            mock=lambda: self._pipeline.mock_provider.payload_for(
                "analytics", params.query, request_id=request_id
            ),
            request_id=request_id,
            query=params.query,
        )

    async def _handle_domain_search(
        self, params: DomainSearchRequest, request_id: str
    ) -> Any:
        return await self._pipeline.execute(
            fingerprint=self._cache.fingerprint(
                _fingerprint_fields(params), "domain_search"
            ),
            operation=lambda: self._client.domain_search(params, request_id),
            normalize=lambda raw: normalize_search(raw, params.site_query, params.page),
            mock=lambda: self._pipeline.mock_provider.payload_for(
                "search", params.site_query, params.page, request_id
            ),
            request_id=request_id,
            query=params.site_query,
        )

    async def _handle_filtered_search(
        self, params: FilteredSearchRequest, request_id: str
    ) -> Any:
        return await self._pipeline.execute(
            fingerprint=self._cache.fingerprint(
                _fingerprint_fields(params), "filtered_search"
            ),
            operation=lambda: self._client.filtered_search(params, request_id),
            normalize=lambda raw: normalize_search(raw, params.query, params.page),
            mock=lambda: self._pipeline.mock_provider.payload_for(
                "search", params.query, params.page, request_id
            ),
            request_id=request_id,
            query=params.query,
        )

    async def _handle_cache_stats(self, params: ToolParams, request_id: str) -> Any:
        memory = psutil.Process().memory_info()
        return {
            "cache": self._cache.stats().model_dump(mode="json"),
            "rate_limit": self._rate_limiter.status().model_dump(mode="json"),
            "server": {
                "name": self._settings.app_name,
                "version": self._settings.app_version,
                "uptime_seconds": round(time.monotonic() - self._started_at, 3),
                "memory": {
                    "rss_bytes": memory.rss,
                    "rss_mb": round(memory.rss / (1024 * 1024), 2),
                },
                "mock_mode": self._pipeline.mock_mode,
                "upstream_connected": self._client.is_connected,
            },
        }

    async def _handle_cache_clear(
        self, params: CacheClearRequest, request_id: str
    ) -> Any:
        if params.pattern:
            cleared = self._cache.delete_by_pattern(params.pattern)
        else:
            cleared = self._cache.clear()
        return {"cleared": cleared, "pattern": params.pattern}


def _fingerprint_fields(params: ToolParams) -> Dict[str, Any]:
    return params.model_dump(mode="json", exclude_none=True)


def _preview_arguments(arguments: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    preview: Dict[str, Any] = {}
    for key, value in (arguments or {}).items():
        if isinstance(value, str) and len(value) > LOG_QUERY_PREVIEW_LENGTH:
            value = value[:LOG_QUERY_PREVIEW_LENGTH] + "..."
        preview[key] = value
    return preview
