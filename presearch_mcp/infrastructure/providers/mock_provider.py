"""Deterministic synthetic payloads for mock mode and failure fallback."""

import hashlib
from typing import Any, Dict, Optional

from ...constants import SOURCE_MOCK
from ...logging import info, LogRecord, LogEvent


def _seed(query: str) -> int:
    digest = hashlib.sha256(query.strip().casefold().encode("utf-8")).hexdigest()
    return int(digest[:16], 16)


class MockProvider:
    """
    Builds upstream-shaped payloads derived only from the query text.

    The same query always yields the same numbers, so tests and offline
    sessions are reproducible. Payloads go through the normal response
    normalizer like real upstream bodies.
    """

    def search(self, query: str, page: int = 1) -> Dict[str, Any]:
        return {
            "query": query,
            "results": [
                {
                    "title": f"Mock Result for: {query}",
                    "url": "https://example.com/mock-result",
                    "description": (
                        f"This is a mock search result for the query: {query}. "
                        "Real results come from the Presearch API."
                    ),
                },
                {
                    "title": f"Another Mock Result for: {query}",
                    "url": "https://example.com/mock-result-2",
                    "description": (
                        "This is another mock search result demonstrating the "
                        "structure of Presearch API responses."
                    ),
                },
            ],
            "total": 2,
            "page": page,
            "source": SOURCE_MOCK,
        }

    def suggestions(self, query: str) -> Dict[str, Any]:
        return {
            "query": query,
            "suggestions": [
                f"{query} tutorial",
                f"{query} guide",
                f"{query} examples",
                f"{query} documentation",
                f"{query} best practices",
            ],
            "source": SOURCE_MOCK,
        }

    def analytics(self, query: str) -> Dict[str, Any]:
        seed = _seed(query)
        return {
            "query": query,
            "analytics": {
                "searchVolume": seed % 10000,
                "competition": round((seed >> 16) % 1000 / 1000, 3),
                "trends": [
                    {"period": "2024-01", "volume": (seed >> 8) % 1000},
                    {"period": "2024-02", "volume": (seed >> 20) % 1000},
                    {"period": "2024-03", "volume": (seed >> 32) % 1000},
                ],
                "relatedQueries": [
                    f"related to {query}",
                    f"{query} alternatives",
                    f"best {query}",
                ],
            },
            "source": SOURCE_MOCK,
        }

    def payload_for(
        self, operation: str, query: str, page: int = 1, request_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Return the mock payload matching an upstream operation name."""
        info(
            LogRecord(
                event=LogEvent.MOCK_RESPONSE.value,
                message="Returning mock data",
                request_id=request_id,
                data={"operation": operation},
            )
        )
        if operation == "suggestions":
            return self.suggestions(query)
        if operation == "analytics":
            return self.analytics(query)
        return self.search(query, page)
