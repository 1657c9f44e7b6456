"""In-process TTL cache for assignment reads, keyed by (organization, page)."""

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

CacheKey = tuple[str, str]


@dataclass
class _Entry:
    value: Any
    cached_at: float


class QueryCache:
    """Assignment views per (organization_id, feature_page).

    Entries older than ``ttl`` seconds are treated as missing. Callers
    invalidate explicitly after every mutation.
    """

    def __init__(self, ttl: float = 300, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[CacheKey, _Entry] = {}

    def get(self, organization_id: str, feature_page: str) -> Optional[Any]:
        key = (organization_id, feature_page)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if (self._clock() - entry.cached_at) >= self.ttl:
            del self._entries[key]
            return None
        return entry.value

    def set(self, organization_id: str, feature_page: str, value: Any) -> None:
        self._entries[(organization_id, feature_page)] = _Entry(value, self._clock())

    def invalidate(self, organization_id: str, feature_page: str | None = None) -> int:
        """Drop one page, or every page of the organization. Returns entries removed."""
        if feature_page is not None:
            return 1 if self._entries.pop((organization_id, feature_page), None) is not None else 0
        stale = [key for key in self._entries if key[0] == organization_id]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
