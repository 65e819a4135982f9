"""Client-side sliding window rate limiter for upstream Presearch calls."""

import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque

from ...constants import DEFAULT_RATE_LIMIT, DEFAULT_RATE_LIMIT_WINDOW_SECONDS
from ...domain.models import RateLimitStatus
from ...logging import debug, info, LogRecord, LogEvent


@dataclass
class RateLimitConfig:
    """Configuration for rate limiting."""

    max_requests: int = DEFAULT_RATE_LIMIT
    window_seconds: float = DEFAULT_RATE_LIMIT_WINDOW_SECONDS
    enabled: bool = True

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise ValueError(
                f"max_requests must be positive, got {self.max_requests}"
            )
        if self.window_seconds <= 0:
            raise ValueError(
                f"window_seconds must be positive, got {self.window_seconds}"
            )


@dataclass
class RateLimitMetrics:
    """Counters for admission decisions."""

    total_requests: int = 0
    rejected_requests: int = 0


class SlidingWindowRateLimiter:
    """
    Bounds upstream calls within a rolling time window.

    Timestamps of admitted requests are kept oldest first. Every admission
    decision first drops the timestamps that left the window, then admits
    only while fewer than ``max_requests`` remain. A rejected request is
    not recorded. The limiter never waits; callers surface the rejection.
    """

    def __init__(
        self,
        config: RateLimitConfig,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self.metrics = RateLimitMetrics()
        self._clock = clock
        self._request_times: Deque[float] = deque()

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def _purge(self, now: float) -> None:
        cutoff = now - self.config.window_seconds
        while self._request_times and self._request_times[0] <= cutoff:
            self._request_times.popleft()

    def admit(self) -> bool:
        """Record and accept a request if the window has room."""
        if not self.config.enabled:
            return True

        now = self._clock()
        self._purge(now)

        if len(self._request_times) >= self.config.max_requests:
            self.metrics.rejected_requests += 1
            debug(
                LogRecord(
                    event=LogEvent.RATE_LIMIT_EVENT.value,
                    message="Rate limit reached",
                    data={
                        "current": len(self._request_times),
                        "limit": self.config.max_requests,
                        "window_seconds": self.config.window_seconds,
                    },
                )
            )
            return False

        self._request_times.append(now)
        self.metrics.total_requests += 1
        return True

    def seconds_until_available(self) -> float:
        """Seconds until the oldest admitted request leaves the window."""
        now = self._clock()
        self._purge(now)
        if len(self._request_times) < self.config.max_requests:
            return 0.0
        return max(0.0, self._request_times[0] + self.config.window_seconds - now)

    def status(self) -> RateLimitStatus:
        now = self._clock()
        self._purge(now)
        window = self.config.window_seconds
        oldest = self._request_times[0] if self._request_times else None
        return RateLimitStatus(
            enabled=self.config.enabled,
            remaining=max(0, self.config.max_requests - len(self._request_times)),
            limit=self.config.max_requests,
            window_seconds=window,
            reset_time=(oldest if oldest is not None else now) + window,
            window_start=now - window,
        )

    def reset(self) -> None:
        self._request_times.clear()
        info(
            LogRecord(
                event=LogEvent.RATE_LIMIT_EVENT.value,
                message="Rate limiter reset",
            )
        )
