"""Reference-data cache with expiry

Holds slow-changing lookup tables (transport methods, borough distances,
boroughs, stores, products). Owned by the repository and injected; there is
no module-level cache anywhere in the project.
"""

import threading
import time
from typing import Any, Callable, Hashable, Optional

from src.core.logging import get_logger

logger = get_logger(__name__)

_MISSING = object()


class TTLCache:
    """Thread-safe key/value cache where every entry expires after ttl_seconds.

    `clock` is injectable so tests can move time forward.
    """

    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be >= 0")
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[Hashable, tuple[float, Any]] = {}

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return default
            return value

    def set(self, key: Hashable, value: Any) -> Any:
        with self._lock:
            self._entries[key] = (self._clock() + self._ttl, value)
        return value

    def get_or_load(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        """Return the cached value or call loader() and cache its result.

        The loader runs outside the lock; two concurrent misses may both
        load, the last one wins.
        """
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value
        logger.debug("cache miss: %s", key)
        return self.set(key, loader())

    def invalidate(self, key: Hashable) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key, _MISSING) is not _MISSING


def maybe_cached(
    cache: Optional[TTLCache], key: Hashable, loader: Callable[[], Any]
) -> Any:
    """Load through the cache when one is configured."""
    if cache is None:
        return loader()
    return cache.get_or_load(key, loader)
