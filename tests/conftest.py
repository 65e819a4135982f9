from typing import Iterator

from unittest.mock import MagicMock, patch
import pytest

from presearch_mcp.config import Settings


# Configure anyio to only use asyncio backend
@pytest.fixture
def anyio_backend() -> str:
    """Force tests to use asyncio backend only."""
    return "asyncio"


@pytest.fixture(autouse=True, scope="session")
def mock_logger() -> Iterator[MagicMock]:
    with patch("presearch_mcp.logging._logger", MagicMock()) as mock_logger:
        mock_logger.log.return_value = None
        yield mock_logger


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Keep settings independent of the developer's shell and .env file."""
    import os

    for key in list(os.environ):
        if key.startswith("PRESEARCH_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


class FakeClock:
    """Manually advanced clock for cache and limiter tests."""

    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        presearch_api_key="test_api_key_1234567890",
        base_url="https://api.test.presearch.com/v1",
        max_retries=2,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
    )
