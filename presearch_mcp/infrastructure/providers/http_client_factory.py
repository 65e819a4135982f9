"""
HTTP client factory for the upstream Presearch client.
Handles configuration and teardown of the shared httpx client.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ...config import Settings
from ...constants import USER_AGENT
from ...logging import debug, warning, LogRecord, LogEvent


@dataclass
class ConnectionLimits:
    """Connection pool configuration."""

    max_keepalive: int = 10
    max_connections: int = 20
    keepalive_expiry: float = 30.0


class HttpClientFactory:
    """Factory for creating configured httpx clients."""

    @staticmethod
    def create_client(
        settings: Settings,
        limits: Optional[ConnectionLimits] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> httpx.AsyncClient:
        """
        Create the async client used for every upstream call.

        Args:
            settings: Application settings
            limits: Optional pool limits override
            transport: Optional transport, used by tests

        Returns:
            Configured httpx client
        """
        kwargs = HttpClientFactory._build_httpx_config(
            settings, limits or ConnectionLimits()
        )
        if transport is not None:
            kwargs["transport"] = transport
        client = httpx.AsyncClient(**kwargs)
        debug(
            LogRecord(
                event=LogEvent.SERVER_LIFECYCLE.value,
                message="HTTP client created",
                data={"base_url": settings.base_url, "timeout": settings.timeout},
            )
        )
        return client

    @staticmethod
    def _build_httpx_config(
        settings: Settings, limits: ConnectionLimits
    ) -> Dict[str, Any]:
        """Build httpx client configuration."""
        return {
            "base_url": settings.base_url.rstrip("/"),
            "headers": HttpClientFactory.get_default_headers(settings),
            "limits": httpx.Limits(
                max_keepalive_connections=limits.max_keepalive,
                max_connections=limits.max_connections,
                keepalive_expiry=limits.keepalive_expiry,
            ),
            "timeout": httpx.Timeout(settings.timeout),
            "follow_redirects": True,
        }

    @staticmethod
    def get_default_headers(settings: Settings) -> Dict[str, str]:
        """
        Get default headers for upstream requests.

        Args:
            settings: Application settings

        Returns:
            Dictionary of default headers
        """
        headers = {
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }
        if settings.presearch_api_key:
            headers["Authorization"] = f"Bearer {settings.presearch_api_key}"
        return headers

    @staticmethod
    async def close_client(client: Optional[httpx.AsyncClient]) -> None:
        """
        Properly close an HTTP client to avoid resource leaks.

        Args:
            client: HTTP client to close
        """
        if not client:
            return

        try:
            await client.aclose()
        except Exception as e:
            warning(
                LogRecord(
                    event=LogEvent.SERVER_LIFECYCLE.value,
                    message=f"Error closing HTTP client: {e}",
                ),
                exc=e,
            )
