"""Keyed caches with time-to-live, and tenant namespacing for their keys."""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from typing import Any, Dict, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


def cache_key(tenant_id: str, key: str) -> str:
    """Add tenant context to a cache key suffix.

    Multiple tenants sharing one physical cache never see each other's values.
    """
    return "FOLIO-" + hashlib.md5(f"{tenant_id}|{key}".encode("utf-8")).hexdigest()


class Cache(Protocol):
    """Protocol for the keyed cache backends folioils stores tokens and lookups in."""

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None on a miss."""
        ...

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store a value. A ttl of None keeps it until deleted or evicted."""
        ...

    def delete(self, key: str) -> None:
        """Remove a value if present."""
        ...


class MemoryCache:
    """Process-local Cache implementation.

    Values are kept by reference; store immutable or serialized values when the
    caller must not observe later mutations.
    """

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._data: Dict[str, Tuple[Any, Optional[float]]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and self._clock() >= expires_at:
                del self._data[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl if ttl is not None else None
        with self._lock:
            self._data[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None


class NamespacedCache:
    """View of a Cache whose keys are namespaced by tenant."""

    def __init__(self, backend: Cache, tenant_id: str):
        self.backend = backend
        self.tenant_id = tenant_id

    def key(self, key: str) -> str:
        return cache_key(self.tenant_id, key)

    def get(self, key: str) -> Optional[Any]:
        return self.backend.get(self.key(key))

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        self.backend.set(self.key(key), value, ttl)

    def delete(self, key: str) -> None:
        self.backend.delete(self.key(key))
