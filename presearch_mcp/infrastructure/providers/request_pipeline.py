"""
Request pipeline for one logical upstream request.
Handles cache lookups, rate limiting, retried execution and normalization.
"""

import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

from pydantic import BaseModel

from .mock_provider import MockProvider
from .rate_limiter import SlidingWindowRateLimiter
from .resilience import Failure, Outcome, RetryHandler
from ...application.cache import SearchCache
from ...constants import SOURCE_FALLBACK
from ...domain.exceptions import RateLimitError
from ...domain.models import ResponseMetadata
from ...logging import debug, info, warning, LogRecord, LogEvent

ResponseT = TypeVar("ResponseT", bound=BaseModel)


class RequestPipeline:
    """
    Pipeline composing the shared components around an upstream call.

    Responsibilities:
    - Cache read, with hits returned before any rate limit accounting
    - Mock mode short-circuit
    - Rate limiting enforcement
    - Retried execution and optional mock fallback
    - Normalization, cache write and per-call metadata
    """

    def __init__(
        self,
        cache: SearchCache,
        rate_limiter: SlidingWindowRateLimiter,
        retry_handler: RetryHandler,
        mock_provider: Optional[MockProvider] = None,
        mock_mode: bool = False,
        mock_fallback: bool = False,
    ):
        """
        Initialize the request pipeline.

        Args:
            cache: Response cache keyed by request fingerprint
            rate_limiter: Admission control for upstream calls
            retry_handler: Retry policy applied to upstream calls
            mock_provider: Source of synthetic payloads
            mock_mode: Serve every miss from the mock provider
            mock_fallback: Serve the mock payload when upstream retries fail
        """
        self._cache = cache
        self._rate_limiter = rate_limiter
        self._retry_handler = retry_handler
        self._mock_provider = mock_provider or MockProvider()
        self.mock_mode = mock_mode
        self.mock_fallback = mock_fallback

    @property
    def mock_provider(self) -> MockProvider:
        return self._mock_provider

    async def execute(
        self,
        fingerprint: str,
        operation: Callable[[], Awaitable[Outcome[Any]]],
        normalize: Callable[[Any], ResponseT],
        mock: Callable[[], Any],
        request_id: Optional[str] = None,
        query: Optional[str] = None,
    ) -> ResponseT:
        """
        Run one logical request through the pipeline.

        Args:
            fingerprint: Cache key of the request
            operation: Upstream call returning an outcome
            normalize: Turns the raw payload into the response model
            mock: Produces the synthetic payload for this request
            request_id: Correlator for logs
            query: Query text of this caller, set on cached responses

        Returns:
            Normalized response carrying per-call metadata

        Raises:
            RateLimitError: If the local limiter rejects the request
            PresearchError: The final upstream failure when no fallback applies
        """
        started = time.perf_counter()

        cached = self._cache.get(fingerprint)
        if cached is not None:
            debug(
                LogRecord(
                    event=LogEvent.CACHE_EVENT.value,
                    message="Serving cached response",
                    request_id=request_id,
                    data={"cache_key": fingerprint},
                )
            )
            if query is not None and hasattr(cached, "query"):
                cached.query = query
            return self._with_metadata(cached, True, started, request_id)

        from_fallback = False
        if self.mock_mode:
            raw = mock()
        else:
            self._apply_rate_limiting(request_id)
            outcome = await self._retry_handler.execute(operation, request_id)
            if isinstance(outcome, Failure):
                if not self.mock_fallback:
                    raise outcome.error
                warning(
                    LogRecord(
                        event=LogEvent.MOCK_RESPONSE.value,
                        message="Upstream failed, serving mock fallback",
                        request_id=request_id,
                        data={"code": outcome.error.code.value},
                    )
                )
                raw = mock()
                from_fallback = True
            else:
                raw = outcome.value

        response = normalize(raw)
        # Synthetic stand-ins and unusable payloads are never cached
        if not from_fallback and getattr(response, "source", None) != SOURCE_FALLBACK:
            self._cache.set(fingerprint, response)
        return self._with_metadata(response, False, started, request_id)

    def _apply_rate_limiting(self, request_id: Optional[str]) -> None:
        """
        Apply client-side rate limiting.

        Raises:
            RateLimitError: If the window is full
        """
        if self._rate_limiter.admit():
            return

        retry_after = self._rate_limiter.seconds_until_available()
        info(
            LogRecord(
                event=LogEvent.RATE_LIMIT_EVENT.value,
                message="Request blocked by client rate limiter",
                request_id=request_id,
                data={"retry_after": retry_after},
            )
        )
        raise RateLimitError(
            "Rate limit exceeded. Please wait before trying again.",
            retry_after=round(retry_after, 3),
            request_id=request_id,
        )

    @staticmethod
    def _with_metadata(
        response: ResponseT,
        cached: bool,
        started: float,
        request_id: Optional[str],
    ) -> ResponseT:
        result = response.model_copy(deep=True)
        result.metadata = ResponseMetadata(
            cached=cached,
            processing_time_ms=round((time.perf_counter() - started) * 1000, 3),
            request_id=request_id,
        )
        return result
