"""Lightweight in-memory TTL cache for hot read paths.

Host → tenant resolution runs on every tenant-scoped request, so resolved
tenants are kept for a short while. Entries are plain read models; writes
that change what they describe (toggling a tenant) invalidate explicitly.
Each worker process holds its own copy, so nothing here is authoritative.
"""

import time
from collections.abc import Hashable
from typing import Any


class TTLCache:
    def __init__(self, default_ttl: float = 30) -> None:
        self.default_ttl = default_ttl
        self._entries: dict[Hashable, tuple[float, Any]] = {}

    def get(self, key: Hashable, ttl: float | None = None) -> Any | None:
        """Return the cached value if present and fresh, else None."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if time.monotonic() - stored_at > (ttl if ttl is not None else self.default_ttl):
            del self._entries[key]
            return None
        return value

    def put(self, key: Hashable, value: Any) -> None:
        self._entries[key] = (time.monotonic(), value)

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()


tenant_cache = TTLCache(default_ttl=60)
