"""Tests for the exception hierarchy."""

import pytest

from presearch_mcp.domain.exceptions import (
    APIError,
    AuthenticationError,
    BadRequestError,
    ConfigurationError,
    ErrorCode,
    ForbiddenError,
    NetworkError,
    NotFoundError,
    PresearchError,
    RateLimitError,
    ServerError,
    UnknownError,
    UpstreamTimeoutError,
    ValidationError,
    classify_exception,
)


def test_all_errors_derive_from_base():
    for cls in (
        ValidationError,
        AuthenticationError,
        ForbiddenError,
        NotFoundError,
        BadRequestError,
        RateLimitError,
        UpstreamTimeoutError,
        NetworkError,
        ServerError,
        APIError,
        UnknownError,
        ConfigurationError,
    ):
        assert issubclass(cls, PresearchError)


@pytest.mark.parametrize(
    "error, retryable",
    [
        (ValidationError("bad"), False),
        (AuthenticationError("bad key"), False),
        (ForbiddenError("denied"), False),
        (RateLimitError("slow down"), False),
        (NotFoundError("missing"), True),
        (BadRequestError("rejected"), True),
        (UpstreamTimeoutError("slow"), True),
        (NetworkError("down"), True),
        (ServerError("boom", status_code=502), True),
        (APIError("teapot", status_code=418), True),
        (UnknownError("?"), True),
    ],
)
def test_retryable_flags(error, retryable):
    assert error.retryable is retryable


def test_status_codes():
    assert AuthenticationError("x").status_code == 401
    assert ForbiddenError("x").status_code == 403
    assert NotFoundError("x").status_code == 404
    assert BadRequestError("x").status_code == 422
    assert RateLimitError("x").status_code == 429
    assert UpstreamTimeoutError("x").status_code == 408
    assert ValidationError("x").status_code == 400


def test_validation_error_to_dict_lists_fields():
    error = ValidationError(
        "Validation failed", field_errors={"query": "required", "page": "too big"}
    )
    payload = error.to_dict()
    assert payload["success"] is False
    assert payload["code"] == "VALIDATION_ERROR"
    assert payload["error"] == "Validation failed"
    assert payload["details"] == {"fields": {"query": "required", "page": "too big"}}


def test_rate_limit_error_carries_retry_after():
    error = RateLimitError("slow down", retry_after=12.5)
    assert error.retry_after == 12.5
    assert error.to_dict()["details"] == {"retry_after": 12.5}


def test_bad_request_keeps_upstream_message():
    error = BadRequestError("Bad request: page too large", upstream_message="page too large")
    assert error.upstream_message == "page too large"
    assert error.to_dict()["details"]["upstream_message"] == "page too large"


def test_to_dict_omits_empty_details():
    payload = NetworkError("down").to_dict()
    assert "details" not in payload
    assert "status_code" not in payload
    assert payload["code"] == ErrorCode.NETWORK.value


def test_configuration_error_records_key():
    error = ConfigurationError("missing", config_key="PRESEARCH_API_KEY")
    assert error.config_key == "PRESEARCH_API_KEY"
    assert error.code == ErrorCode.CONFIGURATION


def test_classify_exception_keeps_presearch_errors():
    error = ServerError("boom")
    assert classify_exception(error) is error


def test_classify_exception_wraps_unknown():
    wrapped = classify_exception(KeyError("oops"))
    assert isinstance(wrapped, UnknownError)
    assert wrapped.code == ErrorCode.UNKNOWN
    assert wrapped.details == {"type": "KeyError"}
