import fnmatch
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from lmslocal.services.request_guard import InFlightGuard

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TtlCache:
    """
    In-memory response cache with a per-entry time to live (seconds).
    Expired entries are dropped on read; cleanup() sweeps the rest.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[Any, float, float]] = {} # key -> (data, stored_at, ttl)
        self._guard = InFlightGuard()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            data, stored_at, ttl = entry
            if self._clock() - stored_at > ttl:
                del self._entries[key]
                return None
            return data

    def set(self, key: str, data: Any, ttl: float) -> None:
        with self._lock:
            self._entries[key] = (data, self._clock(), ttl)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def delete_pattern(self, pattern: str) -> int:
        """Deletes every key matching a `*` wildcard pattern. Returns how many went."""
        with self._lock:
            doomed = [k for k in self._entries if fnmatch.fnmatchcase(k, pattern)]
            for key in doomed:
                del self._entries[key]
        if doomed:
            logger.debug("Invalidated %d cache entries matching %s", len(doomed), pattern)
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def cleanup(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, (_, stored_at, ttl) in self._entries.items() if now - stored_at > ttl]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def get_stats(self) -> Dict[str, Any]:
        now = self._clock()
        with self._lock:
            entries: List[Dict[str, Any]] = [
                {"key": key, "age": int(now - stored_at), "ttl": int(ttl)}
                for key, (_, stored_at, ttl) in self._entries.items()
            ]
        return {"size": len(entries), "entries": entries}

    def with_cache(self, key: str, ttl: float, loader: Callable[[], T],
                   should_cache: Callable[[T], bool] = lambda _: True) -> T:
        """
        Returns the cached value for `key`, or loads it once. Concurrent callers
        asking for the same key while it loads share the one request.
        """
        cached = self.get(key)
        if cached is not None:
            logger.debug("Cache hit %s", key)
            return cached

        def load() -> T:
            result = loader()
            if should_cache(result):
                self.set(key, result, ttl)
            return result

        return self._guard.run("cache", key, load)
