"""
Entry cache.

Memoizes the raw rows last fetched for a backend file identifier. No TTL and
no eviction; entries go away only through delete() or clear(). Each
lifecycle engine owns its own instance.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from .logging import StructuredLogger
from .types import RawRow


@dataclass
class CacheStats:
    """Hit/miss/write counters for an EntryCache."""

    hits: int = 0
    misses: int = 0
    writes: int = 0
    deletes: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate hit rate (0.0 to 1.0)."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def reset(self) -> None:
        self.hits = 0
        self.misses = 0
        self.writes = 0
        self.deletes = 0

    def to_dict(self) -> dict[str, float]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "writes": self.writes,
            "deletes": self.deletes,
            "hit_rate": round(self.hit_rate, 4),
        }


class EntryCache:
    """file identifier -> last fetched rows."""

    def __init__(self, logger: StructuredLogger | None = None) -> None:
        self._entries: dict[str, list[RawRow]] = {}
        self.stats = CacheStats()
        self.logger = logger

    def get(self, key: str) -> list[RawRow] | None:
        rows = self._entries.get(key)
        if rows is None:
            self.stats.misses += 1
            if self.logger:
                self.logger.log_cache_miss(key)
            return None
        self.stats.hits += 1
        if self.logger:
            self.logger.log_cache_hit(key)
        return list(rows)

    def set(self, key: str, rows: Sequence[RawRow]) -> None:
        self._entries[key] = list(rows)
        self.stats.writes += 1

    def delete(self, key: str) -> bool:
        if self._entries.pop(key, None) is None:
            return False
        self.stats.deletes += 1
        return True

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))


__all__ = ["CacheStats", "EntryCache"]
