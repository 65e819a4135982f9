"""Data models for the cache module."""

from dataclasses import dataclass

from pydantic import BaseModel


@dataclass
class CacheEntry:
    """A normalized response held by the cache with its expiry metadata."""

    response: BaseModel
    created_at: float
    ttl_seconds: float
    hits: int = 0

    @property
    def expires_at(self) -> float:
        return self.created_at + self.ttl_seconds

    def is_expired(self, now: float) -> bool:
        """Check if this entry is strictly past its expiry."""
        return now > self.expires_at

    def record_hit(self) -> None:
        self.hits += 1
