import logging
import re
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlparse

import pydantic
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    API_KEY_MIN_LENGTH,
    API_KEY_PATTERN,
    DEFAULT_BASE_URL,
    DEFAULT_CACHE_MAX_SIZE,
    DEFAULT_CACHE_SWEEP_INTERVAL_SECONDS,
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RATE_LIMIT,
    DEFAULT_RATE_LIMIT_WINDOW_SECONDS,
    DEFAULT_RETRY_BACKOFF_FACTOR,
    DEFAULT_RETRY_BASE_DELAY_SECONDS,
    DEFAULT_RETRY_MAX_DELAY_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
    PLACEHOLDER_API_KEYS,
    SERVER_NAME,
    SERVER_VERSION,
)
from .domain.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_prefix="",
        case_sensitive=False,
        populate_by_name=True,
    )

    # Required unless mock mode is on
    presearch_api_key: str = Field(
        default="", validation_alias=AliasChoices("PRESEARCH_API_KEY")
    )
    base_url: str = Field(
        default=DEFAULT_BASE_URL, validation_alias=AliasChoices("PRESEARCH_BASE_URL")
    )
    timeout: float = Field(
        default=DEFAULT_TIMEOUT_SECONDS,
        ge=1,
        le=60,
        validation_alias=AliasChoices("PRESEARCH_TIMEOUT"),
    )

    app_name: str = SERVER_NAME
    app_version: str = SERVER_VERSION
    log_level: str = Field(
        default="INFO", validation_alias=AliasChoices("PRESEARCH_LOG_LEVEL")
    )
    log_file_path: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("PRESEARCH_LOG_FILE")
    )
    log_pretty_console: bool = Field(
        default=False, validation_alias=AliasChoices("PRESEARCH_LOG_PRETTY_CONSOLE")
    )
    redact_log_fields: Union[List[str], str] = Field(
        default_factory=lambda: ["presearch_api_key", "api_key", "authorization"],
        validation_alias=AliasChoices("PRESEARCH_REDACT_LOG_FIELDS"),
    )

    # Retry policy
    max_retries: int = Field(
        default=DEFAULT_MAX_RETRIES,
        ge=0,
        le=10,
        validation_alias=AliasChoices("PRESEARCH_MAX_RETRIES"),
    )
    retry_base_delay: float = Field(
        default=DEFAULT_RETRY_BASE_DELAY_SECONDS,
        ge=0,
        validation_alias=AliasChoices("PRESEARCH_RETRY_BASE_DELAY"),
    )
    retry_max_delay: float = Field(
        default=DEFAULT_RETRY_MAX_DELAY_SECONDS,
        ge=0,
        validation_alias=AliasChoices("PRESEARCH_RETRY_MAX_DELAY"),
    )
    retry_backoff_factor: float = Field(
        default=DEFAULT_RETRY_BACKOFF_FACTOR,
        ge=1,
        validation_alias=AliasChoices("PRESEARCH_RETRY_BACKOFF_FACTOR"),
    )

    # Rate limiting
    enable_rate_limit: bool = Field(
        default=True, validation_alias=AliasChoices("PRESEARCH_ENABLE_RATE_LIMIT")
    )
    rate_limit: int = Field(
        default=DEFAULT_RATE_LIMIT,
        ge=1,
        le=1000,
        validation_alias=AliasChoices("PRESEARCH_RATE_LIMIT"),
    )
    rate_limit_window: float = Field(
        default=DEFAULT_RATE_LIMIT_WINDOW_SECONDS,
        ge=1,
        le=3600,
        validation_alias=AliasChoices("PRESEARCH_RATE_LIMIT_WINDOW"),
    )

    # Cache
    enable_cache: bool = Field(
        default=True, validation_alias=AliasChoices("PRESEARCH_ENABLE_CACHE")
    )
    cache_ttl: int = Field(
        default=DEFAULT_CACHE_TTL_SECONDS,
        ge=60,
        le=86400,
        validation_alias=AliasChoices("PRESEARCH_CACHE_TTL"),
    )
    cache_max_size: int = Field(
        default=DEFAULT_CACHE_MAX_SIZE,
        ge=10,
        le=10000,
        validation_alias=AliasChoices("PRESEARCH_CACHE_MAX_SIZE"),
    )
    cache_sweep_interval: float = Field(
        default=DEFAULT_CACHE_SWEEP_INTERVAL_SECONDS,
        gt=0,
        validation_alias=AliasChoices("PRESEARCH_CACHE_SWEEP_INTERVAL"),
    )

    # Mock mode
    mock_mode: bool = Field(
        default=False, validation_alias=AliasChoices("PRESEARCH_MOCK_MODE")
    )
    mock_fallback: bool = Field(
        default=False, validation_alias=AliasChoices("PRESEARCH_MOCK_FALLBACK")
    )

    @field_validator("redact_log_fields")
    @classmethod
    def parse_comma_separated(cls, v: Union[List[str], str]) -> List[str]:
        """Parse comma-separated string values into lists for configuration fields.

        Args:
            v: Input value which can be a string or list

        Returns:
            List of stripped, non-empty items
        """
        if isinstance(v, str):
            if v.strip() == "":
                return []
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    def __init__(self, **kwargs: Any) -> None:
        """Initialize settings object and perform validation.

        Raises:
            ConfigurationError: If the API key or base URL is invalid
        """
        try:
            super().__init__(**kwargs)
        except pydantic.ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
            raise ConfigurationError(f"Invalid configuration: {problems}") from e
        self._apply_placeholder_key()
        self._validate_api_key()
        self._validate_base_url()
        self._validate_retry_delays()

    def _apply_placeholder_key(self) -> None:
        """A placeholder key silently switches the server into mock mode."""
        if self.presearch_api_key.strip() in PLACEHOLDER_API_KEYS:
            if not self.mock_mode:
                logging.getLogger(__name__).warning(
                    "Using placeholder API key - enabling mock mode"
                )
            self.mock_mode = True

    def _validate_api_key(self) -> None:
        if self.mock_mode:
            return

        key = self.presearch_api_key.strip()
        if not key:
            raise ConfigurationError(
                "PRESEARCH_API_KEY is required. Set it in your environment or .env.",
                config_key="PRESEARCH_API_KEY",
            )
        if len(key) < API_KEY_MIN_LENGTH:
            raise ConfigurationError(
                "PRESEARCH_API_KEY appears to be invalid (too short).",
                config_key="PRESEARCH_API_KEY",
            )
        if not re.match(API_KEY_PATTERN, key):
            raise ConfigurationError(
                "PRESEARCH_API_KEY contains invalid characters.",
                config_key="PRESEARCH_API_KEY",
            )

    def _validate_base_url(self) -> None:
        parsed = urlparse(self.base_url)
        if parsed.scheme.lower() not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError(
                f"Invalid PRESEARCH_BASE_URL: {self.base_url}",
                config_key="PRESEARCH_BASE_URL",
            )

    def _validate_retry_delays(self) -> None:
        if self.retry_max_delay < self.retry_base_delay:
            raise ConfigurationError(
                "PRESEARCH_RETRY_MAX_DELAY must not be lower than PRESEARCH_RETRY_BASE_DELAY.",
                config_key="PRESEARCH_RETRY_MAX_DELAY",
            )

    def masked(self) -> Dict[str, Any]:
        """Return the settings as a dict with the API key masked for logging."""
        data = self.model_dump()
        key = self.presearch_api_key
        if key:
            data["presearch_api_key"] = (
                f"{key[:4]}***{key[-4:]}" if len(key) > 8 else "***"
            )
        return data
