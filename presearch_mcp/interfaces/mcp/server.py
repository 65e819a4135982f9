"""MCP stdio server wiring."""

from typing import List

import anyio
import mcp.types as types
from mcp.server import Server
from mcp.server.stdio import stdio_server

from .dispatcher import ToolDispatcher
from .tools import TOOLS
from ...config import Settings
from ...domain.models import ToolResult
from ...logging import info, warning, LogRecord, LogEvent


def to_call_tool_result(result: ToolResult) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=c.text) for c in result.content],
        isError=result.is_error,
    )


def create_server(dispatcher: ToolDispatcher, settings: Settings) -> Server:
    """Register the tool list and the call handler on a low-level server."""
    server: Server = Server(settings.app_name, version=settings.app_version)

    @server.list_tools()
    async def list_tools() -> List[types.Tool]:
        return TOOLS

    async def call_tool(request: types.CallToolRequest) -> types.ServerResult:
        result = await dispatcher.dispatch(
            request.params.name, request.params.arguments or {}
        )
        return types.ServerResult(to_call_tool_result(result))

    # Registered directly so argument errors come back as our own envelopes
    server.request_handlers[types.CallToolRequest] = call_tool
    return server


async def serve(settings: Settings) -> None:
    """Run the server on stdio until the client disconnects."""
    dispatcher = ToolDispatcher.from_settings(settings)
    server = create_server(dispatcher, settings)
    components = dispatcher.components

    info(
        LogRecord(
            event=LogEvent.SERVER_LIFECYCLE.value,
            message=f"Starting {settings.app_name} v{settings.app_version}",
            data={
                "tools": len(TOOLS),
                "mock_mode": settings.mock_mode,
                "cache_enabled": settings.enable_cache,
                "rate_limit_enabled": settings.enable_rate_limit,
            },
        )
    )

    try:
        if settings.mock_mode:
            warning(
                LogRecord(
                    event=LogEvent.HEALTH_CHECK.value,
                    message="Mock mode enabled, skipping API connectivity test",
                )
            )
        else:
            await components.client.check_health()

        async with anyio.create_task_group() as tg:
            tg.start_soon(components.cache.run_sweeper)
            async with stdio_server() as (read_stream, write_stream):
                await server.run(
                    read_stream,
                    write_stream,
                    server.create_initialization_options(),
                )
            tg.cancel_scope.cancel()
    finally:
        await dispatcher.aclose()
        info(
            LogRecord(
                event=LogEvent.SERVER_LIFECYCLE.value,
                message=f"{settings.app_name} stopped",
            )
        )
