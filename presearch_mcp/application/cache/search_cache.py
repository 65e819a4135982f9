"""In-memory TTL cache for normalized upstream responses."""

import json
import re
import time
from typing import Any, Callable, Dict, Mapping, Optional

import anyio
from pydantic import BaseModel

from .models import CacheEntry
from .statistics import CacheStatistics
from ...constants import (
    DEFAULT_CACHE_MAX_SIZE,
    DEFAULT_CACHE_SWEEP_INTERVAL_SECONDS,
    DEFAULT_CACHE_TTL_SECONDS,
)
from ...domain.models import CacheStats
from ...logging import debug, info, warning, LogRecord, LogEvent

_QUERY_KEYS = ("query", "q")


def json_dumps_sorted(obj: Any) -> str:
    """JSON serialization with sorted keys for cache key consistency."""
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"), sort_keys=True)


def fingerprint(params: Mapping[str, Any], namespace: str = "search") -> str:
    """Build the cache key for a set of request parameters.

    Keys are sorted, ``None`` values dropped and the query case-folded and
    trimmed, so logically identical requests map to the same key whatever
    the argument order.
    """
    normalized: Dict[str, Any] = {}
    for key, value in params.items():
        if value is None:
            continue
        if key in _QUERY_KEYS and isinstance(value, str):
            value = " ".join(value.split()).casefold()
        elif isinstance(value, list):
            value = [
                " ".join(v.split()).casefold() if isinstance(v, str) else v
                for v in value
            ]
        normalized[key] = value
    return f"{namespace}:{json_dumps_sorted(normalized)}"


class SearchCache:
    """
    TTL cache of normalized responses keyed by request fingerprint.

    Eviction at capacity is by insertion order: the entry created first
    goes first, regardless of how often it was read. Expired entries are
    dropped lazily on read and by :meth:`run_sweeper`.

    All mutations are synchronous so they cannot interleave between
    cooperatively scheduled tasks.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_CACHE_MAX_SIZE,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        sweep_interval_seconds: float = DEFAULT_CACHE_SWEEP_INTERVAL_SECONDS,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        if max_size < 1:
            raise ValueError(f"max_size must be positive, got {max_size}")
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")

        self._max_size = max_size
        self._ttl_seconds = ttl_seconds
        self._sweep_interval = sweep_interval_seconds
        self._enabled = enabled
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._statistics = CacheStatistics()

    @property
    def enabled(self) -> bool:
        return self._enabled

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    @staticmethod
    def fingerprint(params: Mapping[str, Any], namespace: str = "search") -> str:
        return fingerprint(params, namespace)

    def get(self, key: str) -> Optional[BaseModel]:
        """Return a copy of the live entry for ``key`` or ``None``."""
        if not self._enabled:
            return None

        entry = self._entries.get(key)
        if entry is None:
            self._statistics.record_miss()
            return None

        if entry.is_expired(self._clock()):
            del self._entries[key]
            self._statistics.record_miss()
            self._statistics.record_expiration()
            debug(
                LogRecord(
                    event=LogEvent.CACHE_EVENT.value,
                    message="Cache entry expired",
                    data={"cache_key": key},
                )
            )
            return None

        entry.record_hit()
        self._statistics.record_hit()
        debug(
            LogRecord(
                event=LogEvent.CACHE_EVENT.value,
                message="Cache hit",
                data={"cache_key": key, "hits": entry.hits},
            )
        )
        return entry.response.model_copy(deep=True)

    def set(
        self, key: str, response: BaseModel, ttl_seconds: Optional[float] = None
    ) -> None:
        """Insert or overwrite ``key``, evicting the oldest entry when full."""
        if not self._enabled:
            return

        if key in self._entries:
            # Overwrite re-inserts the key as the newest entry
            del self._entries[key]
        elif len(self._entries) >= self._max_size:
            self._evict_oldest()

        self._entries[key] = CacheEntry(
            response=response.model_copy(deep=True),
            created_at=self._clock(),
            ttl_seconds=ttl_seconds if ttl_seconds is not None else self._ttl_seconds,
        )
        debug(
            LogRecord(
                event=LogEvent.CACHE_EVENT.value,
                message="Cache entry set",
                data={"cache_key": key, "cache_size": len(self._entries)},
            )
        )

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def delete_by_pattern(self, pattern: str) -> int:
        """Remove every entry whose key matches the regular expression."""
        regex = re.compile(pattern)
        matched = [key for key in self._entries if regex.search(key)]
        for key in matched:
            del self._entries[key]
        info(
            LogRecord(
                event=LogEvent.CACHE_EVENT.value,
                message="Cache entries deleted by pattern",
                data={"pattern": pattern, "deleted_count": len(matched)},
            )
        )
        return len(matched)

    def clear(self) -> int:
        """Remove all entries and reset counters; returns the number removed."""
        count = len(self._entries)
        self._entries.clear()
        self._statistics.reset()
        info(
            LogRecord(
                event=LogEvent.CACHE_EVENT.value,
                message="Cache cleared",
                data={"cleared_count": count},
            )
        )
        return count

    def stats(self) -> CacheStats:
        timestamps = [entry.created_at for entry in self._entries.values()]
        return CacheStats(
            enabled=self._enabled,
            size=len(self._entries),
            max_size=self._max_size,
            ttl_seconds=self._ttl_seconds,
            hits=self._statistics.hits,
            misses=self._statistics.misses,
            hit_rate=round(self._statistics.hit_rate, 4),
            evictions=self._statistics.evictions,
            expirations=self._statistics.expirations,
            oldest_entry_time=min(timestamps) if timestamps else None,
            newest_entry_time=max(timestamps) if timestamps else None,
        )

    def sweep_expired(self) -> int:
        """Remove all entries strictly past expiry."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            self._statistics.record_expiration(len(expired))
            debug(
                LogRecord(
                    event=LogEvent.CACHE_EVENT.value,
                    message=f"Swept {len(expired)} expired entries",
                    data={"expired_count": len(expired), "remaining": len(self._entries)},
                )
            )
        return len(expired)

    async def run_sweeper(self) -> None:
        """Background task removing expired entries at a fixed interval."""
        if not self._enabled:
            return
        while True:
            await anyio.sleep(self._sweep_interval)
            try:
                self.sweep_expired()
            except Exception as e:
                warning(
                    LogRecord(
                        event=LogEvent.CACHE_EVENT.value,
                        message=f"Error in cache sweep: {e}",
                    ),
                    exc=e,
                )

    def _evict_oldest(self) -> None:
        key = next(iter(self._entries))
        entry = self._entries.pop(key)
        self._statistics.record_eviction()
        debug(
            LogRecord(
                event=LogEvent.CACHE_EVENT.value,
                message="Evicted oldest cache entry",
                data={"evicted_key": key, "hits": entry.hits},
            )
        )
