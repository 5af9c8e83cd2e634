from __future__ import annotations

from threading import Lock
from typing import Any

from cachetools import TTLCache


class ThreadSafeTTLCache:
    """TTLCache behind a lock; route handlers run in the threadpool."""

    def __init__(self, *, maxsize: int, ttl: int) -> None:
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._lock = Lock()

    def __setitem__(self, key: str, value: Any) -> None:
        with self._lock:
            self._cache[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._cache.get(key, default)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
