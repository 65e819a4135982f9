"""
Factory for creating and wiring the request pipeline components.
Every component is built explicitly from settings so tests can assemble
isolated instances.
"""

from dataclasses import dataclass
from typing import Optional

import httpx

from .mock_provider import MockProvider
from .presearch_client import PresearchClient
from .rate_limiter import RateLimitConfig, SlidingWindowRateLimiter
from .request_pipeline import RequestPipeline
from .resilience import RetryHandler
from ...application.cache import SearchCache
from ...config import Settings


@dataclass
class ProviderComponents:
    """Bundle of the components shared by every tool call."""

    client: PresearchClient
    cache: SearchCache
    rate_limiter: SlidingWindowRateLimiter
    retry_handler: RetryHandler
    pipeline: RequestPipeline


class ProviderComponentsFactory:
    """Factory for building provider components from settings."""

    @staticmethod
    def create_cache(settings: Settings) -> SearchCache:
        return SearchCache(
            max_size=settings.cache_max_size,
            ttl_seconds=settings.cache_ttl,
            sweep_interval_seconds=settings.cache_sweep_interval,
            enabled=settings.enable_cache,
        )

    @staticmethod
    def create_rate_limiter(settings: Settings) -> SlidingWindowRateLimiter:
        return SlidingWindowRateLimiter(
            RateLimitConfig(
                max_requests=settings.rate_limit,
                window_seconds=settings.rate_limit_window,
                enabled=settings.enable_rate_limit,
            )
        )

    @staticmethod
    def create_retry_handler(settings: Settings) -> RetryHandler:
        return RetryHandler(
            max_retries=settings.max_retries,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
            backoff_factor=settings.retry_backoff_factor,
        )

    @staticmethod
    def create_all(
        settings: Settings, http_client: Optional[httpx.AsyncClient] = None
    ) -> ProviderComponents:
        """
        Create all components.

        Args:
            settings: Application settings
            http_client: Optional preconfigured client, used by tests

        Returns:
            ProviderComponents bundle
        """
        cache = ProviderComponentsFactory.create_cache(settings)
        rate_limiter = ProviderComponentsFactory.create_rate_limiter(settings)
        retry_handler = ProviderComponentsFactory.create_retry_handler(settings)
        pipeline = RequestPipeline(
            cache=cache,
            rate_limiter=rate_limiter,
            retry_handler=retry_handler,
            mock_provider=MockProvider(),
            mock_mode=settings.mock_mode,
            mock_fallback=settings.mock_fallback,
        )
        return ProviderComponents(
            client=PresearchClient(settings, http_client),
            cache=cache,
            rate_limiter=rate_limiter,
            retry_handler=retry_handler,
            pipeline=pipeline,
        )
