"""
Retry logic for upstream calls.

Outcomes travel as explicit values: an operation returns :class:`Success`
or :class:`Failure` instead of raising, and the retry handler decides from
the failure's ``retryable`` flag whether another attempt is worthwhile.
"""

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, Optional, TypeVar, Union

import anyio

from ...constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BACKOFF_FACTOR,
    DEFAULT_RETRY_BASE_DELAY_SECONDS,
    DEFAULT_RETRY_MAX_DELAY_SECONDS,
)
from ...domain.exceptions import PresearchError, classify_exception
from ...logging import debug, warning, LogRecord, LogEvent

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    error: PresearchError

    @property
    def ok(self) -> bool:
        return False


Outcome = Union[Success[T], Failure]


@dataclass
class RetryContext:
    """State of one logical request across its attempts."""

    request_id: Optional[str] = None
    attempt: int = 0
    last_error: Optional[PresearchError] = None
    next_delay: float = 0.0
    delays: list[float] = field(default_factory=list)


class RetryHandler:
    """Handles retry logic with capped exponential backoff."""

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_RETRY_BASE_DELAY_SECONDS,
        max_delay: float = DEFAULT_RETRY_MAX_DELAY_SECONDS,
        backoff_factor: float = DEFAULT_RETRY_BACKOFF_FACTOR,
    ):
        """
        Initialize retry handler.

        Args:
            max_retries: Maximum number of retry attempts after the first call
            base_delay: Delay in seconds before the first retry
            max_delay: Upper bound for any single delay
            backoff_factor: Multiplier applied per attempt
        """
        if max_retries < 0:
            raise ValueError(f"max_retries must be non-negative, got {max_retries}")
        if base_delay < 0 or max_delay < 0:
            raise ValueError("retry delays must be non-negative")

        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor

    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate exponential backoff delay.

        Args:
            attempt: Index of the failed attempt (0-based)

        Returns:
            Delay in seconds
        """
        return min(self.base_delay * (self.backoff_factor**attempt), self.max_delay)

    async def execute(
        self,
        operation: Callable[[], Awaitable[Outcome[T]]],
        request_id: Optional[str] = None,
    ) -> Outcome[T]:
        """
        Run ``operation`` until it succeeds, fails permanently or the
        attempt budget is spent.

        Exceptions raised by the operation count as failures. The last
        failure is returned unchanged.
        """
        context = RetryContext(request_id=request_id)

        while True:
            try:
                outcome = await operation()
            except Exception as e:
                outcome = Failure(classify_exception(e))

            if isinstance(outcome, Success):
                if context.attempt > 0:
                    debug(
                        LogRecord(
                            event=LogEvent.RETRY_EVENT.value,
                            message=f"Succeeded after {context.attempt} retries",
                            request_id=request_id,
                        )
                    )
                return outcome

            context.last_error = outcome.error
            if not outcome.error.retryable:
                return outcome

            if context.attempt >= self.max_retries:
                warning(
                    LogRecord(
                        event=LogEvent.RETRY_EVENT.value,
                        message="Retry budget exhausted",
                        request_id=request_id,
                        data={
                            "attempts": context.attempt + 1,
                            "delays": context.delays,
                            "code": outcome.error.code.value,
                        },
                    )
                )
                return outcome

            context.next_delay = self.calculate_delay(context.attempt)
            context.delays.append(context.next_delay)
            debug(
                LogRecord(
                    event=LogEvent.RETRY_EVENT.value,
                    message=(
                        f"{outcome.error.code.value}, retrying in "
                        f"{context.next_delay:.2f}s "
                        f"(attempt {context.attempt + 1}/{self.max_retries})"
                    ),
                    request_id=request_id,
                )
            )
            await anyio.sleep(context.next_delay)
            context.attempt += 1
