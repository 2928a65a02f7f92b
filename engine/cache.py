"""
Explicit TTL cache with in-flight request de-duplication.

Passed by reference to whatever needs it instead of living in module state.
Concurrent ``get_or_load`` calls for the same key share one loader call: the
first caller runs the loader, the others wait on its Future.  Failed loads
are not cached, so the next caller retries.
"""
import logging
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Optional

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    value: Any
    expires_at: float


class ServiceCache:

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[Hashable, _Entry] = {}
        self._pending: dict[Hashable, Future] = {}

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            entry = self._fresh_entry(key)
            return entry.value if entry else None

    def set(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._entries[key] = _Entry(value, self._clock() + self.ttl_seconds)

    def get_or_load(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        with self._lock:
            entry = self._fresh_entry(key)
            if entry is not None:
                return entry.value
            future = self._pending.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._pending[key] = future

        if not owner:
            logger.debug("Cache: waiting on in-flight load for %r", key)
            return future.result()

        try:
            value = loader()
        except BaseException as exc:
            with self._lock:
                self._pending.pop(key, None)
            future.set_exception(exc)
            raise

        with self._lock:
            self._entries[key] = _Entry(value, self._clock() + self.ttl_seconds)
            self._pending.pop(key, None)
        future.set_result(value)
        return value

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for k in list(self._entries) if self._fresh_entry(k))

    def _fresh_entry(self, key: Hashable) -> Optional[_Entry]:
        # caller holds the lock
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[key]
            return None
        return entry
