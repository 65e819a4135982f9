"""
Upstream client for the Presearch HTTP search API.

Every call returns an :data:`Outcome`; transport errors and non-2xx
statuses are classified into the error taxonomy instead of being raised.
"""

import json
import uuid
from typing import Any, Dict, Mapping, Optional

import httpx

from .http_client_factory import HttpClientFactory
from .resilience import Failure, Outcome, Success
from ...config import Settings
from ...constants import (
    ANALYTICS_ENDPOINT,
    CONTENT_TYPE_ENDPOINTS,
    HEALTH_CHECK_TIMEOUT_SECONDS,
    HEALTH_ENDPOINT,
    LOG_QUERY_PREVIEW_LENGTH,
    SEARCH_ENDPOINT,
    SUGGESTIONS_ENDPOINT,
)
from ...domain.exceptions import (
    APIError,
    AuthenticationError,
    BadRequestError,
    ForbiddenError,
    NetworkError,
    NotFoundError,
    PresearchError,
    RateLimitError,
    ServerError,
    UpstreamTimeoutError,
)
from ...domain.models import (
    AnalyticsRequest,
    DomainSearchRequest,
    FilteredSearchRequest,
    SearchRequest,
    SuggestionsRequest,
)
from ...logging import debug, info, warning, LogRecord, LogEvent


def clean_params(params: Mapping[str, Any]) -> Dict[str, Any]:
    """Drop absent values and render enums as their wire value."""
    cleaned: Dict[str, Any] = {}
    for key, value in params.items():
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        elif hasattr(value, "value"):
            value = value.value
        cleaned[key] = value
    return cleaned


def _preview(params: Mapping[str, Any]) -> Dict[str, Any]:
    preview = dict(params)
    q = preview.get("q")
    if isinstance(q, str) and len(q) > LOG_QUERY_PREVIEW_LENGTH:
        preview["q"] = q[:LOG_QUERY_PREVIEW_LENGTH] + "..."
    return preview


def _parse_retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _upstream_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return response.text or None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if isinstance(message, str):
            return message
    return None


def classify_response(
    response: httpx.Response, request_id: Optional[str] = None
) -> PresearchError:
    """Map a non-2xx upstream response onto the error taxonomy."""
    status = response.status_code
    if status == 401:
        return AuthenticationError(
            "Unauthorized: invalid API key. Check PRESEARCH_API_KEY.", request_id
        )
    if status == 403:
        return ForbiddenError("Forbidden: access denied", request_id)
    if status == 404:
        return NotFoundError("Not found: endpoint does not exist", request_id)
    if status == 422:
        upstream = _upstream_message(response)
        return BadRequestError(
            f"Bad request: {upstream}" if upstream else "Bad request",
            upstream_message=upstream,
            request_id=request_id,
        )
    if status == 429:
        return RateLimitError(
            "Upstream rate limit exceeded",
            retry_after=_parse_retry_after(response),
            request_id=request_id,
        )
    if status >= 500:
        return ServerError(
            f"Upstream server error ({status})",
            status_code=status,
            request_id=request_id,
        )
    return APIError(
        f"Unexpected upstream status {status}",
        status_code=status,
        request_id=request_id,
    )


def classify_transport_error(
    exc: httpx.HTTPError, timeout: float, request_id: Optional[str] = None
) -> PresearchError:
    """Map an httpx transport exception onto the error taxonomy."""
    if isinstance(exc, httpx.TimeoutException):
        return UpstreamTimeoutError(
            f"Request timed out after {timeout}s",
            timeout_seconds=timeout,
            request_id=request_id,
        )
    if isinstance(exc, httpx.ConnectError):
        return NetworkError(
            f"Connection failed: {exc}",
            request_id=request_id,
            details={"type": type(exc).__name__},
        )
    return NetworkError(
        f"Network error: {exc}",
        request_id=request_id,
        details={"type": type(exc).__name__},
    )


class PresearchClient:
    """Issues GET requests against the Presearch API."""

    def __init__(
        self,
        settings: Settings,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings
        self._timeout = settings.timeout
        self._client = client or HttpClientFactory.create_client(settings)
        self._owns_client = client is None
        self.is_connected = False

    async def search(
        self, params: SearchRequest, request_id: Optional[str] = None
    ) -> Outcome[Any]:
        return await self._get(
            SEARCH_ENDPOINT,
            {
                "q": params.query,
                "page": params.page,
                "lang": params.lang,
                "time": params.time,
                "safe": params.safe,
                "location": params.location,
                "ip": params.ip,
            },
            "search",
            request_id,
        )

    async def domain_search(
        self, params: DomainSearchRequest, request_id: Optional[str] = None
    ) -> Outcome[Any]:
        return await self._get(
            SEARCH_ENDPOINT,
            {"q": params.site_query, "page": params.page, "lang": params.lang},
            "domain_search",
            request_id,
        )

    async def filtered_search(
        self, params: FilteredSearchRequest, request_id: Optional[str] = None
    ) -> Outcome[Any]:
        endpoint = CONTENT_TYPE_ENDPOINTS.get(params.content_type, SEARCH_ENDPOINT)
        return await self._get(
            endpoint,
            {"q": params.query, "page": params.page, "lang": params.lang},
            "filtered_search",
            request_id,
        )

    async def suggestions(
        self, params: SuggestionsRequest, request_id: Optional[str] = None
    ) -> Outcome[Any]:
        return await self._get(
            SUGGESTIONS_ENDPOINT,
            {"q": params.query, "limit": params.limit, "lang": params.lang},
            "suggestions",
            request_id,
        )

    async def analytics(
        self, params: AnalyticsRequest, request_id: Optional[str] = None
    ) -> Outcome[Any]:
        return await self._get(
            ANALYTICS_ENDPOINT,
            {
                "q": params.query,
                "analyze_trends": params.analyze_trends,
                "include_related": params.include_related,
            },
            "analytics",
            request_id,
        )

    async def check_health(self) -> bool:
        """Probe the health endpoint with a short timeout."""
        try:
            response = await self._client.get(
                HEALTH_ENDPOINT, timeout=HEALTH_CHECK_TIMEOUT_SECONDS
            )
        except httpx.HTTPError as e:
            warning(
                LogRecord(
                    event=LogEvent.HEALTH_CHECK.value,
                    message=f"API connectivity test failed: {e}",
                )
            )
            self.is_connected = False
            return False

        self.is_connected = response.status_code == 200
        if self.is_connected:
            info(
                LogRecord(
                    event=LogEvent.HEALTH_CHECK.value,
                    message="API connectivity test successful",
                )
            )
        else:
            warning(
                LogRecord(
                    event=LogEvent.HEALTH_CHECK.value,
                    message="API connectivity test failed",
                    data={"status_code": response.status_code},
                )
            )
        return self.is_connected

    async def aclose(self) -> None:
        if self._owns_client:
            await HttpClientFactory.close_client(self._client)

    async def _get(
        self,
        endpoint: str,
        params: Mapping[str, Any],
        operation: str,
        request_id: Optional[str] = None,
    ) -> Outcome[Any]:
        request_id = request_id or uuid.uuid4().hex
        query = clean_params(params)
        debug(
            LogRecord(
                event=LogEvent.UPSTREAM_REQUEST.value,
                message=f"GET {endpoint}",
                request_id=request_id,
                data={"operation": operation, "params": _preview(query)},
            )
        )

        try:
            response = await self._client.get(
                endpoint,
                params=query,
                headers={"X-Request-ID": request_id},
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            error = classify_transport_error(e, self._timeout, request_id)
            warning(
                LogRecord(
                    event=LogEvent.UPSTREAM_ERROR.value,
                    message=error.message,
                    request_id=request_id,
                    data={"operation": operation, "code": error.code.value},
                )
            )
            return Failure(error)

        if not response.is_success:
            error = classify_response(response, request_id)
            warning(
                LogRecord(
                    event=LogEvent.UPSTREAM_ERROR.value,
                    message=error.message,
                    request_id=request_id,
                    data={
                        "operation": operation,
                        "status_code": response.status_code,
                        "code": error.code.value,
                    },
                )
            )
            return Failure(error)

        try:
            body = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            warning(
                LogRecord(
                    event=LogEvent.UPSTREAM_RESPONSE.value,
                    message="Upstream body is not JSON",
                    request_id=request_id,
                    data={"operation": operation},
                )
            )
            return Success(None)

        debug(
            LogRecord(
                event=LogEvent.UPSTREAM_RESPONSE.value,
                message=f"{response.status_code} from {endpoint}",
                request_id=request_id,
                data={"operation": operation, "size": len(response.content)},
            )
        )
        if isinstance(body, dict) and "data" in body:
            return Success(body["data"])
        return Success(body)
