"""In-process TTL cache for computed sentiment results."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta

from app.domain import CacheEntry, SentimentResult


class SentimentCache:
    """Keyed store of the latest result per key.

    One instance is built per process and injected into the engine. Entries are
    only ever replaced whole; nothing is deleted. Freshness is decided by the
    caller through :meth:`is_fresh` and :meth:`is_stale`.
    """

    def __init__(
        self,
        *,
        ttl: timedelta = timedelta(hours=12),
        stale_after: timedelta = timedelta(hours=36),
    ) -> None:
        if stale_after < ttl:
            raise ValueError("stale_after must be at least as long as ttl")
        self.ttl = ttl
        self.stale_after = stale_after
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> CacheEntry | None:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: str, result: SentimentResult, now: datetime) -> CacheEntry:
        entry = CacheEntry(key=key, result=result, computed_at=now)
        with self._lock:
            self._entries[key] = entry
        return entry

    def is_fresh(self, entry: CacheEntry, now: datetime) -> bool:
        return now - entry.computed_at < self.ttl

    def is_stale(self, entry: CacheEntry, now: datetime) -> bool:
        return now - entry.computed_at > self.stale_after

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries
