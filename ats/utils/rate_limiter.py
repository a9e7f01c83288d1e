from __future__ import annotations

import re
import threading

from cachetools import TTLCache

from ats.utils.errors import ApiError


class InMemoryRateLimiter:
    def __init__(self, *, window_seconds: int = 60, max_keys: int = 50_000):
        self._counts: TTLCache = TTLCache(maxsize=max_keys, ttl=window_seconds)
        self._lock = threading.Lock()

    @staticmethod
    def _parse_limit_per_minute(limit: str) -> int:
        m = re.match(r"^\s*(\d+)\s+per\s+minute\s*$", str(limit or ""), re.IGNORECASE)
        if not m:
            return 300
        return max(1, int(m.group(1)))

    def check(self, key: str, limit: str) -> None:
        max_per_minute = self._parse_limit_per_minute(limit)
        with self._lock:
            current = int(self._counts.get(key, 0)) + 1
            self._counts[key] = current
        if current > max_per_minute:
            raise ApiError("RATE_LIMITED", "Rate limit exceeded", status=429)

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()
