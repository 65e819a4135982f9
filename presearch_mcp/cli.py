"""Console entry point for the Presearch MCP server."""

import sys

import anyio
from dotenv import load_dotenv

from .config import Settings
from .domain.exceptions import ConfigurationError
from .interfaces.mcp.server import serve
from .logging import init_logging, shutdown_logging, info, LogRecord, LogEvent


def main() -> None:
    load_dotenv()

    try:
        settings = Settings()
    except ConfigurationError as e:
        print(f"\nConfiguration Error:\n{e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"\nUnexpected error during configuration: {e}", file=sys.stderr)
        sys.exit(1)

    init_logging(settings)
    info(
        LogRecord(
            event=LogEvent.CONFIGURATION.value,
            message="Configuration loaded",
            data=settings.masked(),
        )
    )

    try:
        anyio.run(serve, settings)
    except KeyboardInterrupt:
        pass
    finally:
        shutdown_logging()
