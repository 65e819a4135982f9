"""Tests for the retry handler."""

from unittest.mock import AsyncMock, patch

import pytest

from presearch_mcp.domain.exceptions import (
    AuthenticationError,
    BadRequestError,
    ForbiddenError,
    NotFoundError,
    RateLimitError,
    ServerError,
    UnknownError,
    UpstreamTimeoutError,
    ValidationError,
)
from presearch_mcp.infrastructure.providers.resilience import (
    Failure,
    RetryHandler,
    Success,
)

SLEEP = "presearch_mcp.infrastructure.providers.resilience.anyio.sleep"


def scripted(*outcomes):
    """Operation returning the given outcomes in order."""
    calls = {"count": 0}

    async def operation():
        outcome = outcomes[calls["count"]]
        calls["count"] += 1
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    operation.calls = calls
    return operation


class TestRetryHandler:
    def test_delay_formula(self):
        handler = RetryHandler(max_retries=5, base_delay=1.0, max_delay=10.0, backoff_factor=2.0)
        assert [handler.calculate_delay(n) for n in range(5)] == [1.0, 2.0, 4.0, 8.0, 10.0]

    def test_rejects_negative_retries(self):
        with pytest.raises(ValueError):
            RetryHandler(max_retries=-1)

    @pytest.mark.anyio
    async def test_success_first_try(self):
        handler = RetryHandler(max_retries=3)
        operation = scripted(Success({"ok": True}))
        with patch(SLEEP, new_callable=AsyncMock) as sleep:
            outcome = await handler.execute(operation)
        assert outcome == Success({"ok": True})
        assert operation.calls["count"] == 1
        sleep.assert_not_called()

    @pytest.mark.anyio
    async def test_retries_then_succeeds_with_backoff(self):
        handler = RetryHandler(max_retries=3, base_delay=1.0, max_delay=10.0, backoff_factor=2.0)
        operation = scripted(
            Failure(UpstreamTimeoutError("slow")),
            Failure(ServerError("boom", status_code=503)),
            Success("payload"),
        )
        with patch(SLEEP, new_callable=AsyncMock) as sleep:
            outcome = await handler.execute(operation)
        assert isinstance(outcome, Success)
        assert outcome.value == "payload"
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.anyio
    async def test_exhaustion_returns_last_failure(self):
        handler = RetryHandler(max_retries=2, base_delay=1.0, max_delay=10.0, backoff_factor=2.0)
        last = ServerError("still down", status_code=500)
        operation = scripted(
            Failure(ServerError("down", status_code=500)),
            Failure(UpstreamTimeoutError("slow")),
            Failure(last),
        )
        with patch(SLEEP, new_callable=AsyncMock) as sleep:
            outcome = await handler.execute(operation)
        assert isinstance(outcome, Failure)
        assert outcome.error is last
        assert operation.calls["count"] == 3
        assert sleep.await_count == 2

    @pytest.mark.anyio
    async def test_delay_is_capped(self):
        handler = RetryHandler(max_retries=4, base_delay=3.0, max_delay=5.0, backoff_factor=2.0)
        operation = scripted(*[Failure(ServerError("down"))] * 5)
        with patch(SLEEP, new_callable=AsyncMock) as sleep:
            await handler.execute(operation)
        assert [c.args[0] for c in sleep.await_args_list] == [3.0, 5.0, 5.0, 5.0]

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "error",
        [
            AuthenticationError("bad key"),
            ForbiddenError("denied"),
            ValidationError("bad input"),
            RateLimitError("slow down", retry_after=30),
        ],
    )
    async def test_non_retryable_errors_stop_immediately(self, error):
        handler = RetryHandler(max_retries=3)
        operation = scripted(Failure(error), Success("never"))
        with patch(SLEEP, new_callable=AsyncMock) as sleep:
            outcome = await handler.execute(operation)
        assert isinstance(outcome, Failure)
        assert outcome.error is error
        assert operation.calls["count"] == 1
        sleep.assert_not_called()

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "error", [NotFoundError("missing"), BadRequestError("rejected")]
    )
    async def test_not_found_and_bad_request_are_retried(self, error):
        handler = RetryHandler(max_retries=1, base_delay=0.5)
        operation = scripted(Failure(error), Success("ok"))
        with patch(SLEEP, new_callable=AsyncMock):
            outcome = await handler.execute(operation)
        assert isinstance(outcome, Success)
        assert operation.calls["count"] == 2

    @pytest.mark.anyio
    async def test_zero_retries_means_single_attempt(self):
        handler = RetryHandler(max_retries=0)
        operation = scripted(Failure(ServerError("down")), Success("never"))
        with patch(SLEEP, new_callable=AsyncMock) as sleep:
            outcome = await handler.execute(operation)
        assert isinstance(outcome, Failure)
        assert operation.calls["count"] == 1
        sleep.assert_not_called()

    @pytest.mark.anyio
    async def test_raised_exceptions_become_failures(self):
        handler = RetryHandler(max_retries=1)
        operation = scripted(RuntimeError("kaboom"), RuntimeError("kaboom again"))
        with patch(SLEEP, new_callable=AsyncMock):
            outcome = await handler.execute(operation)
        assert isinstance(outcome, Failure)
        assert isinstance(outcome.error, UnknownError)
        assert operation.calls["count"] == 2

    @pytest.mark.anyio
    async def test_raised_presearch_error_keeps_kind(self):
        handler = RetryHandler(max_retries=3)
        error = AuthenticationError("bad key")
        operation = scripted(error)
        with patch(SLEEP, new_callable=AsyncMock):
            outcome = await handler.execute(operation)
        assert outcome.error is error

    @pytest.mark.anyio
    async def test_exhaustion_log_lists_delays(self):
        handler = RetryHandler(max_retries=2, base_delay=1.0, max_delay=10.0, backoff_factor=3.0)
        operation = scripted(*[Failure(ServerError("down"))] * 3)
        with patch(SLEEP, new_callable=AsyncMock), patch(
            "presearch_mcp.infrastructure.providers.resilience.warning"
        ) as log_warning:
            await handler.execute(operation, request_id="req-9")

        record = log_warning.call_args.args[0]
        assert record.request_id == "req-9"
        assert record.data["attempts"] == 3
        assert record.data["delays"] == [1.0, 3.0]
