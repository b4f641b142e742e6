"""Tiny TTL cache for vendor lookups (pump.fun, DexScreener)."""

import time
from collections import OrderedDict
from typing import Generic, TypeVar

V = TypeVar("V")


class TTLCache(Generic[V]):
    """Insertion-ordered TTL cache bounded by ``maxsize``.

    Expired entries are swept on every ``set``; when still over capacity the
    oldest entries are evicted first.
    """

    def __init__(self, ttl_sec: float, maxsize: int = 1024) -> None:
        self._ttl = ttl_sec
        self.maxsize = maxsize
        self._entries: OrderedDict[str, tuple[float, V]] = OrderedDict()

    def _expired(self, stored_at: float, now: float) -> bool:
        return now - stored_at >= self._ttl

    def _purge(self) -> None:
        now = time.monotonic()
        # Insertion order equals age order, so stop at the first live entry
        while self._entries:
            key, (stored_at, _) = next(iter(self._entries.items()))
            if not self._expired(stored_at, now):
                break
            del self._entries[key]

    def get(self, key: str) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._expired(stored_at, time.monotonic()):
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: V) -> None:
        self._entries.pop(key, None)
        self._entries[key] = (time.monotonic(), value)
        self._purge()
        while len(self._entries) > self.maxsize:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
