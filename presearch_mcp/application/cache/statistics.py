"""Cache statistics tracking and reporting."""


class CacheStatistics:
    """Tracks cache lookup and eviction counters."""

    def __init__(self) -> None:
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.expirations = 0

    def record_hit(self) -> None:
        self.hits += 1

    def record_miss(self) -> None:
        self.misses += 1

    def record_eviction(self, count: int = 1) -> None:
        self.evictions += count

    def record_expiration(self, count: int = 1) -> None:
        self.expirations += count

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate; 0 when nothing was looked up yet."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def reset(self) -> None:
        """Reset the lookup counters."""
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.expirations = 0
