"""Structured JSON logging.

Records are pushed through a queue and written by a background listener, so
a slow sink never stalls a tool call. Everything goes to stderr or a file:
stdout belongs to the MCP protocol stream.
"""

import dataclasses
import enum
import json
import logging
import os
import queue
import sys
import traceback
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from .config import Settings
from .constants import LOG_FIELD_MAX_LENGTH

REDACTED = "***REDACTED***"

_redacted_keys: FrozenSet[str] = frozenset()

_logger: Optional[logging.Logger] = None
_listener: Optional[QueueListener] = None


class LogEvent(enum.Enum):
    """Event tags carried in ``LogRecord.event``."""

    SERVER_LIFECYCLE = "server_lifecycle"
    CONFIGURATION = "configuration"
    TOOL_CALL = "tool_call"
    TOOL_COMPLETED = "tool_completed"
    TOOL_FAILURE = "tool_failure"
    CACHE_EVENT = "cache_event"
    RATE_LIMIT_EVENT = "rate_limit_event"
    RETRY_EVENT = "retry_event"
    UPSTREAM_REQUEST = "upstream_request"
    UPSTREAM_RESPONSE = "upstream_response"
    UPSTREAM_ERROR = "upstream_error"
    HEALTH_CHECK = "health_check"
    NORMALIZATION_FAILURE = "normalization_failure"
    MOCK_RESPONSE = "mock_response"


@dataclasses.dataclass
class LogError:
    name: str
    message: str
    stack_trace: Optional[str] = None
    args: Optional[Tuple[Any, ...]] = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> "LogError":
        args = _jsonable(exc.args)
        return cls(
            name=type(exc).__name__,
            message=str(exc),
            stack_trace="".join(
                traceback.format_exception(type(exc), exc, exc.__traceback__)
            ),
            args=tuple(args) if isinstance(args, list) else (args,),
        )


@dataclasses.dataclass
class LogRecord:
    """One structured log entry.

    ``request_id`` ties together every entry written while serving a single
    tool call. ``data`` is redacted and long strings in it are truncated
    before they are written.
    """

    event: str
    message: str
    request_id: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    error: Optional[LogError] = None


def _jsonable(value: Any) -> Any:
    """Turn ``value`` into plain JSON data.

    Keys listed in ``redact_log_fields`` are masked at any depth and ``None``
    members are dropped. Anything json cannot encode falls back to ``repr``.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _jsonable(dataclasses.asdict(value))
    if isinstance(value, dict):
        out: Dict[Any, Any] = {}
        for key, item in value.items():
            if isinstance(key, str) and key.lower() in _redacted_keys:
                out[key] = REDACTED
                continue
            item = _jsonable(item)
            if item is not None:
                out[key] = item
        return out
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(item) for item in value if item is not None]
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return repr(value)
    return value


def _truncate(data: Dict[str, Any]) -> None:
    for key, value in data.items():
        if isinstance(value, str) and len(value) > LOG_FIELD_MAX_LENGTH:
            data[key] = value[:LOG_FIELD_MAX_LENGTH] + "...[truncated]"


class StructuredFormatter(logging.Formatter):
    """Render each record as a single compact JSON line."""

    def __init__(self, include_stack: bool = True):
        super().__init__()
        self.include_stack = include_stack

    def format(self, record: logging.LogRecord) -> str:
        line: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
        }

        payload = getattr(record, "log_record", None)
        if isinstance(payload, LogRecord):
            detail = _jsonable(payload)
            if isinstance(detail.get("data"), dict):
                _truncate(detail["data"])
            if not self.include_stack and isinstance(detail.get("error"), dict):
                detail["error"].pop("stack_trace", None)
            line["detail"] = detail
        else:
            # Plain records from third-party loggers
            line["message"] = record.getMessage()
            if record.exc_info and record.exc_info[1] is not None:
                err = LogError.from_exception(record.exc_info[1])
                if not self.include_stack:
                    err.stack_trace = None
                line["error"] = _jsonable(err)

        return json.dumps(_jsonable(line), ensure_ascii=False, separators=(",", ":"))


def init_logging(settings: Settings) -> logging.Logger:
    """Install the queue handler on the app, mcp, httpx and root loggers.

    Safe to call more than once; a previous listener is stopped first.
    """
    global _logger, _listener, _redacted_keys

    shutdown_logging()

    console = logging.StreamHandler(stream=sys.stderr)
    console.setFormatter(StructuredFormatter(include_stack=not settings.log_pretty_console))
    sinks: List[logging.Handler] = [console]

    if settings.log_file_path:
        try:
            directory = os.path.dirname(settings.log_file_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            file_sink = logging.FileHandler(settings.log_file_path, encoding="utf-8")
        except OSError as e:
            logging.getLogger(__name__).warning("Failed to configure file logging: %s", e)
        else:
            file_sink.setFormatter(StructuredFormatter())
            sinks.append(file_sink)

    records: "queue.Queue[logging.LogRecord]" = queue.Queue(-1)
    _listener = QueueListener(records, *sinks, respect_handler_level=False)
    _listener.start()

    levels = {
        "": logging.WARNING,
        "httpx": logging.WARNING,
        "mcp": logging.INFO,
        settings.app_name: settings.log_level.upper(),
    }
    handler = QueueHandler(records)
    for name, level in levels.items():
        target = logging.getLogger(name)
        target.handlers = [handler]
        target.setLevel(level)
        target.propagate = name == ""

    _redacted_keys = frozenset(key.lower() for key in settings.redact_log_fields)
    _logger = logging.getLogger(settings.app_name)
    return _logger


def shutdown_logging() -> None:
    """Stop the listener, flushing queued records."""
    global _listener
    if _listener is not None:
        _listener.stop()
        _listener = None


def _emit(level: int, record: LogRecord, exc: Optional[BaseException] = None) -> None:
    if exc is not None:
        record.error = LogError.from_exception(exc)
        if not record.message:
            record.message = str(exc) or type(exc).__name__
    if _logger is not None:
        _logger.log(level, record.message, extra={"log_record": record})


def debug(record: LogRecord) -> None:
    _emit(logging.DEBUG, record)


def info(record: LogRecord) -> None:
    _emit(logging.INFO, record)


def warning(record: LogRecord, exc: Optional[BaseException] = None) -> None:
    _emit(logging.WARNING, record, exc)


def error(record: LogRecord, exc: Optional[BaseException] = None) -> None:
    _emit(logging.ERROR, record, exc)
