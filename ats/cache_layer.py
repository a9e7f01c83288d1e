from __future__ import annotations

import hashlib
import json
import threading
from typing import Any

from cachetools import TTLCache


def make_cache_key(namespace: str, *, params: dict[str, Any] | None = None) -> str:
    blob = json.dumps(params or {}, sort_keys=True, separators=(",", ":"), default=str)
    return f"{str(namespace or '').strip().upper()}:{hashlib.sha256(blob.encode('utf-8')).hexdigest()[:16]}"


class NamespacedCache:
    """Process-local TTL cache for read-mostly listings.

    Keys look like ``NAMESPACE:digest`` so a write can drop one namespace
    without touching the others.
    """

    def __init__(self, *, ttl_seconds: int = 30, max_items: int = 10_000):
        self._lock = threading.RLock()
        self._cache: TTLCache = TTLCache(maxsize=max_items, ttl=ttl_seconds)

    def configure(self, *, ttl_seconds: int, max_items: int = 10_000) -> None:
        with self._lock:
            self._cache = TTLCache(maxsize=max(100, max_items), ttl=max(1, min(3600, ttl_seconds)))

    def get(self, key: str) -> Any:
        with self._lock:
            return self._cache.get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._cache[key] = value

    def invalidate(self, namespace: str) -> int:
        prefix = f"{str(namespace or '').strip().upper()}:"
        with self._lock:
            stale = [k for k in self._cache.keys() if str(k).startswith(prefix)]
            for k in stale:
                self._cache.pop(k, None)
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()


_cache = NamespacedCache()


def configure_cache(cfg) -> None:
    _cache.configure(ttl_seconds=cfg.CACHE_TTL_SECONDS)


def cache_get(key: str) -> Any:
    return _cache.get(key)


def cache_set(key: str, value: Any) -> None:
    _cache.set(key, value)


def cache_invalidate(namespace: str) -> int:
    return _cache.invalidate(namespace)


def cache_clear() -> None:
    _cache.clear()
