"""Tool argument validation."""

from typing import Any, Dict, Mapping, Optional, Type

import pydantic

from ..domain.exceptions import NotFoundError, ValidationError
from ..domain.models import (
    AnalyticsRequest,
    CacheClearRequest,
    DomainSearchRequest,
    EmptyParams,
    FilteredSearchRequest,
    MultiSearchRequest,
    SearchRequest,
    SuggestionsRequest,
    ToolParams,
)
from ..enums import ToolName
from ..logging import debug, LogRecord, LogEvent

TOOL_PARAMS: Dict[ToolName, Type[ToolParams]] = {
    ToolName.Search: SearchRequest,
    ToolName.MultiSearch: MultiSearchRequest,
    ToolName.Suggestions: SuggestionsRequest,
    ToolName.Analytics: AnalyticsRequest,
    ToolName.DomainSearch: DomainSearchRequest,
    ToolName.FilteredSearch: FilteredSearchRequest,
    ToolName.CacheStats: EmptyParams,
    ToolName.CacheClear: CacheClearRequest,
}


def field_errors_from(exc: pydantic.ValidationError) -> Dict[str, str]:
    """Collect one message per violated field path."""
    errors: Dict[str, str] = {}
    for err in exc.errors():
        path = ".".join(str(part) for part in err["loc"]) or "arguments"
        message = err["msg"]
        # Strip pydantic's prefix from messages raised by our own validators
        if message.startswith("Value error, "):
            message = message[len("Value error, ") :]
        errors.setdefault(path, message)
    return errors


def validate_tool_arguments(
    tool_name: str,
    arguments: Optional[Mapping[str, Any]],
    request_id: Optional[str] = None,
) -> ToolParams:
    """Validate raw tool arguments against the tool's declared shape.

    Raises:
        NotFoundError: ``tool_name`` is not a known tool.
        ValidationError: One or more arguments are invalid; ``field_errors``
            lists every violated field.
    """
    try:
        model = TOOL_PARAMS[ToolName(tool_name)]
    except ValueError:
        raise NotFoundError(f"Unknown tool: {tool_name}", request_id)

    try:
        return model.model_validate(dict(arguments or {}))
    except pydantic.ValidationError as e:
        field_errors = field_errors_from(e)
        debug(
            LogRecord(
                event=LogEvent.TOOL_FAILURE.value,
                message="Tool arguments rejected",
                request_id=request_id,
                data={"tool": tool_name, "fields": field_errors},
            )
        )
        summary = ", ".join(f"{path}: {msg}" for path, msg in field_errors.items())
        raise ValidationError(
            f"Validation failed: {summary}",
            field_errors=field_errors,
            request_id=request_id,
        ) from e
