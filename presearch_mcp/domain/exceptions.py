"""Custom exception hierarchy for the Presearch MCP server.

Every failure that can reach a tool caller is one of these types. Each carries
a stable ``code`` used in error envelopes and a ``retryable`` flag consulted by
the retry controller.
"""

from enum import StrEnum
from typing import Any, Dict, Optional


class ErrorCode(StrEnum):
    """Error codes exposed in tool error envelopes."""

    VALIDATION = "VALIDATION_ERROR"
    AUTHENTICATION = "AUTH_ERROR"
    FORBIDDEN = "FORBIDDEN_ERROR"
    NOT_FOUND = "NOT_FOUND_ERROR"
    BAD_REQUEST = "BAD_REQUEST_ERROR"
    RATE_LIMIT = "RATE_LIMIT_ERROR"
    TIMEOUT = "TIMEOUT_ERROR"
    NETWORK = "NETWORK_ERROR"
    SERVER = "SERVER_ERROR"
    API = "API_ERROR"
    UNKNOWN = "UNKNOWN_ERROR"
    CONFIGURATION = "CONFIGURATION_ERROR"


class PresearchError(Exception):
    """Base exception for all Presearch MCP specific exceptions."""

    code: ErrorCode = ErrorCode.UNKNOWN
    retryable: bool = True

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.request_id = request_id
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Render the error as the body of a tool error envelope."""
        payload: Dict[str, Any] = {
            "success": False,
            "error": self.message,
            "code": self.code.value,
        }
        if self.status_code is not None:
            payload["status_code"] = self.status_code
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(PresearchError):
    """Raised when tool arguments fail validation."""

    code = ErrorCode.VALIDATION
    retryable = False

    def __init__(
        self,
        message: str,
        field_errors: Optional[Dict[str, str]] = None,
        request_id: Optional[str] = None,
    ):
        self.field_errors = field_errors or {}
        super().__init__(
            message,
            status_code=400,
            request_id=request_id,
            details={"fields": self.field_errors} if self.field_errors else None,
        )


class AuthenticationError(PresearchError):
    """Raised when the upstream API rejects the API key."""

    code = ErrorCode.AUTHENTICATION
    retryable = False

    def __init__(self, message: str, request_id: Optional[str] = None):
        super().__init__(message, 401, request_id)


class ForbiddenError(PresearchError):
    """Raised when the API key lacks permission for the request."""

    code = ErrorCode.FORBIDDEN
    retryable = False

    def __init__(self, message: str, request_id: Optional[str] = None):
        super().__init__(message, 403, request_id)


class NotFoundError(PresearchError):
    """Raised for unknown endpoints and unknown tool names."""

    code = ErrorCode.NOT_FOUND

    def __init__(self, message: str, request_id: Optional[str] = None):
        super().__init__(message, 404, request_id)


class BadRequestError(PresearchError):
    """Raised when the upstream API rejects the request parameters (422)."""

    code = ErrorCode.BAD_REQUEST

    def __init__(
        self,
        message: str,
        upstream_message: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(
            message,
            422,
            request_id,
            {"upstream_message": upstream_message} if upstream_message else None,
        )
        self.upstream_message = upstream_message


class RateLimitError(PresearchError):
    """Raised on local admission denial or an upstream 429."""

    code = ErrorCode.RATE_LIMIT
    retryable = False

    def __init__(
        self,
        message: str,
        retry_after: Optional[float] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(
            message,
            429,
            request_id,
            {"retry_after": retry_after} if retry_after is not None else None,
        )
        self.retry_after = retry_after


class UpstreamTimeoutError(PresearchError):
    """Raised when an upstream call exceeds its timeout."""

    code = ErrorCode.TIMEOUT

    def __init__(
        self,
        message: str,
        timeout_seconds: Optional[float] = None,
        request_id: Optional[str] = None,
    ):
        super().__init__(message, 408, request_id)
        self.timeout_seconds = timeout_seconds


class NetworkError(PresearchError):
    """Raised on DNS failures, refused connections and other transport errors."""

    code = ErrorCode.NETWORK


class ServerError(PresearchError):
    """Raised when the upstream API answers with a 5xx status."""

    code = ErrorCode.SERVER


class APIError(PresearchError):
    """Raised for any other non-2xx upstream status."""

    code = ErrorCode.API


class UnknownError(PresearchError):
    """Wraps unexpected exceptions so they never cross the protocol boundary."""

    code = ErrorCode.UNKNOWN


class ConfigurationError(PresearchError):
    """Raised when configuration is invalid or missing."""

    code = ErrorCode.CONFIGURATION
    retryable = False

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(message)
        self.config_key = config_key


def classify_exception(exc: BaseException) -> PresearchError:
    """Return ``exc`` if it is already classified, else wrap it as UnknownError."""
    if isinstance(exc, PresearchError):
        return exc
    return UnknownError(str(exc) or type(exc).__name__, details={"type": type(exc).__name__})
