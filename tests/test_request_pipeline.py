"""Tests for RequestPipeline."""

from unittest.mock import AsyncMock, patch

import pytest

from presearch_mcp.application.cache import SearchCache
from presearch_mcp.application.response_normalizer import normalize_search
from presearch_mcp.domain.exceptions import (
    AuthenticationError,
    RateLimitError,
    ServerError,
)
from presearch_mcp.infrastructure.providers.mock_provider import MockProvider
from presearch_mcp.infrastructure.providers.rate_limiter import (
    RateLimitConfig,
    SlidingWindowRateLimiter,
)
from presearch_mcp.infrastructure.providers.request_pipeline import RequestPipeline
from presearch_mcp.infrastructure.providers.resilience import (
    Failure,
    RetryHandler,
    Success,
)

PAYLOAD = {"results": [{"title": "Hit", "url": "https://example.com/hit"}], "total": 1}


@pytest.fixture
def cache(clock):
    return SearchCache(max_size=10, ttl_seconds=60, clock=clock)


@pytest.fixture
def limiter(clock):
    return SlidingWindowRateLimiter(
        RateLimitConfig(max_requests=2, window_seconds=60), clock=clock
    )


def make_pipeline(cache, limiter, **kwargs):
    return RequestPipeline(
        cache=cache,
        rate_limiter=limiter,
        retry_handler=RetryHandler(max_retries=2, base_delay=0.0, max_delay=0.0),
        mock_provider=MockProvider(),
        **kwargs,
    )


async def run(pipeline, operation, key="search:python", query="python"):
    return await pipeline.execute(
        fingerprint=key,
        operation=operation,
        normalize=lambda raw: normalize_search(raw, query, 1),
        mock=lambda: pipeline.mock_provider.search(query),
        request_id="req-1",
    )


class TestRequestPipeline:
    @pytest.mark.anyio
    async def test_miss_fetches_normalizes_and_caches(self, cache, limiter):
        pipeline = make_pipeline(cache, limiter)
        operation = AsyncMock(return_value=Success(PAYLOAD))

        response = await run(pipeline, operation)

        operation.assert_awaited_once()
        assert response.results[0].title == "Hit"
        assert response.metadata.cached is False
        assert response.metadata.request_id == "req-1"
        assert response.metadata.processing_time_ms >= 0
        # Metadata is per call and never stored
        assert cache.get("search:python").metadata is None

    @pytest.mark.anyio
    async def test_hit_skips_upstream_and_limiter(self, cache, limiter):
        pipeline = make_pipeline(cache, limiter)
        operation = AsyncMock(return_value=Success(PAYLOAD))

        await run(pipeline, operation)
        for _ in range(5):
            response = await run(pipeline, operation)
            assert response.metadata.cached is True

        assert operation.await_count == 1
        assert limiter.status().remaining == 1

    @pytest.mark.anyio
    async def test_limiter_rejection(self, cache, limiter):
        pipeline = make_pipeline(cache, limiter)
        operation = AsyncMock(return_value=Success(PAYLOAD))

        await run(pipeline, operation, key="a")
        await run(pipeline, operation, key="b")
        with pytest.raises(RateLimitError) as exc_info:
            await run(pipeline, operation, key="c")

        assert operation.await_count == 2
        assert exc_info.value.retry_after == 60
        assert "c" not in cache

    @pytest.mark.anyio
    async def test_final_failure_is_raised(self, cache, limiter):
        pipeline = make_pipeline(cache, limiter)
        operation = AsyncMock(return_value=Failure(ServerError("down", status_code=503)))

        with patch(
            "presearch_mcp.infrastructure.providers.resilience.anyio.sleep",
            new_callable=AsyncMock,
        ):
            with pytest.raises(ServerError):
                await run(pipeline, operation)

        assert operation.await_count == 3
        assert len(cache) == 0

    @pytest.mark.anyio
    async def test_non_retryable_failure_is_raised_once(self, cache, limiter):
        pipeline = make_pipeline(cache, limiter)
        operation = AsyncMock(return_value=Failure(AuthenticationError("bad key")))

        with pytest.raises(AuthenticationError):
            await run(pipeline, operation)
        operation.assert_awaited_once()

    @pytest.mark.anyio
    async def test_mock_fallback_after_failure(self, cache, limiter):
        pipeline = make_pipeline(cache, limiter, mock_fallback=True)
        operation = AsyncMock(return_value=Failure(AuthenticationError("bad key")))

        response = await run(pipeline, operation)

        assert response.source == "mock-data"
        assert len(response.results) == 2

    @pytest.mark.anyio
    async def test_mock_mode_never_calls_upstream(self, cache, limiter):
        pipeline = make_pipeline(cache, limiter, mock_mode=True)
        operation = AsyncMock()

        for key in ("a", "b", "c", "d"):
            response = await run(pipeline, operation, key=key)
            assert response.source == "mock-data"

        operation.assert_not_called()
        assert limiter.status().remaining == 2

    @pytest.mark.anyio
    async def test_disabled_cache_always_fetches(self, clock, limiter):
        cache = SearchCache(max_size=10, ttl_seconds=60, enabled=False, clock=clock)
        pipeline = make_pipeline(cache, limiter)
        operation = AsyncMock(return_value=Success(PAYLOAD))

        await run(pipeline, operation)
        response = await run(pipeline, operation)

        assert operation.await_count == 2
        assert response.metadata.cached is False

    @pytest.mark.anyio
    async def test_malformed_payload_is_absorbed(self, cache, limiter):
        pipeline = make_pipeline(cache, limiter)
        operation = AsyncMock(return_value=Success(None))

        response = await run(pipeline, operation)
        assert response.source == "error-fallback"
        assert response.results == []
        # Fallback responses are not cached
        assert len(cache) == 0

    @pytest.mark.anyio
    async def test_fallback_response_is_not_cached(self, cache, limiter):
        pipeline = make_pipeline(cache, limiter, mock_fallback=True)
        real = {"results": [{"title": "Real", "url": "https://example.org/real"}]}
        operation = AsyncMock(
            side_effect=[Failure(AuthenticationError("bad key")), Success(real)]
        )

        first = await run(pipeline, operation)
        second = await run(pipeline, operation)

        assert first.source == "mock-data"
        assert operation.await_count == 2
        assert second.metadata.cached is False
        assert second.results[0].title == "Real"
        assert cache.get("search:python").source == "presearch-api"

    @pytest.mark.anyio
    async def test_cache_hit_carries_callers_query(self, cache, limiter):
        pipeline = make_pipeline(cache, limiter)
        operation = AsyncMock(return_value=Success(PAYLOAD))

        await pipeline.execute(
            fingerprint="search:python",
            operation=operation,
            normalize=lambda raw: normalize_search(raw, "Python", 1),
            mock=lambda: None,
            query="Python",
        )
        response = await pipeline.execute(
            fingerprint="search:python",
            operation=operation,
            normalize=lambda raw: normalize_search(raw, "python", 1),
            mock=lambda: None,
            query="python",
        )

        assert response.metadata.cached is True
        assert response.query == "python"
        assert cache.get("search:python").query == "Python"
