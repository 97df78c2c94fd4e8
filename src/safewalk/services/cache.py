"""Injectable expiring cache used by external-data collaborators."""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Generic, Hashable, Optional, Protocol, TypeVar

T = TypeVar("T")


class Cache(Protocol[T]):
    def get(self, key: Hashable) -> Optional[T]:
        ...

    def put(self, key: Hashable, value: T, ttl: float) -> None:
        ...


class TTLCache(Generic[T]):
    """In-process cache with per-entry expiry. One instance per collaborator, never global."""

    def __init__(self, max_entries: int = 256, clock: Callable[[], float] = time.monotonic) -> None:
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[Hashable, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[T]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    def put(self, key: Hashable, value: T, ttl: float) -> None:
        if ttl <= 0:
            return
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_entries:
                # evict whichever entry expires first
                oldest = min(self._entries, key=lambda k: self._entries[k][0])
                del self._entries[oldest]
            self._entries[key] = (self._clock() + ttl, value)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
