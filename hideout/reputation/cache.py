"""Time-bounded, size-bounded cache of URL verdicts."""

from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from hideout.detection.urls import normalize_url

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ReputationEntry:
    """A cached verdict for one normalised URL."""

    url: str
    malicious: bool
    checked_at: datetime
    expires_at: datetime

    def expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class ReputationCache:
    """URL -> verdict cache with TTL expiry and oldest-insertion eviction.

    All reads and writes go through one lock so the insertion order used for
    eviction cannot be corrupted by concurrent callers.
    """

    def __init__(
        self,
        ttl: timedelta = timedelta(hours=24),
        capacity: int = 1000,
        clock: Optional[Clock] = None,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._ttl = ttl
        self._capacity = capacity
        self._clock = clock or utc_now
        self._entries: OrderedDict[str, ReputationEntry] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, url: str) -> Optional[bool]:
        """Return the cached verdict, or ``None`` on a miss or expired entry."""
        key = normalize_url(url)
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if entry.expired(now):
                del self._entries[key]
                self.misses += 1
                return None
            self.hits += 1
            return entry.malicious

    def put(self, url: str, malicious: bool) -> ReputationEntry:
        """Insert or overwrite the verdict for *url*, evicting the oldest if full."""
        key = normalize_url(url)
        now = self._clock()
        entry = ReputationEntry(
            url=key,
            malicious=malicious,
            checked_at=now,
            expires_at=now + self._ttl,
        )
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = entry
            while len(self._entries) > self._capacity:
                self._entries.popitem(last=False)
                self.evictions += 1
        return entry

    def entry(self, url: str) -> Optional[ReputationEntry]:
        with self._lock:
            return self._entries.get(normalize_url(url))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def reconfigure(self, ttl: timedelta, capacity: int) -> None:
        """Apply new limits; applies to later inserts, shrinking immediately."""
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        with self._lock:
            self._ttl = ttl
            self._capacity = capacity
            while len(self._entries) > self._capacity:
                self._entries.popitem(last=False)
                self.evictions += 1

    @property
    def hit_rate(self) -> float:
        with self._lock:
            lookups = self.hits + self.misses
            return self.hits / lookups if lookups else 0.0

    def info(self) -> dict[str, Any]:
        with self._lock:
            size = len(self._entries)
            hits, misses, evictions = self.hits, self.misses, self.evictions
        return {
            "size": size,
            "max_size": self._capacity,
            "usage_percentage": round(size / self._capacity * 100, 1),
            "ttl_hours": self._ttl.total_seconds() / 3600,
            "hits": hits,
            "misses": misses,
            "evictions": evictions,
        }
