"""Small in-process response cache with per-entry TTL."""

from __future__ import annotations

import json
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Mapping


MISSING = object()


@dataclass(slots=True)
class CacheEntry:
    value: Any
    expires_at: float


def make_cache_key(endpoint: str, params: Mapping[str, Any] | None) -> str:
    """Stable key for an endpoint + params pair, independent of dict ordering."""

    return f"{endpoint}?{json.dumps(dict(params or {}), sort_keys=True, default=str)}"


class ResponseCache:
    """Bounded mapping; reads refresh recency and the oldest entry goes first."""

    def __init__(self, capacity: int = 200, *, clock: Callable[[], float] = time.monotonic) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str, default: Any = None) -> Any:
        """Fresh value for ``key``, else ``default``.

        Pass ``MISSING`` as ``default`` to tell a miss from a cached ``None``.
        """

        entry = self._entries.get(key)
        if entry is None:
            return default
        if entry.expires_at < self._clock():
            del self._entries[key]
            return default
        self._entries.move_to_end(key)
        return entry.value

    def set(self, key: str, value: Any, ttl: float) -> None:
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.capacity:
            self._entries.popitem(last=False)
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)

    def clear(self) -> None:
        self._entries.clear()
