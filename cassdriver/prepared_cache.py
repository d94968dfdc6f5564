"""A bounded least-recently-used cache of prepared statements."""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Any, Callable, Hashable

DEFAULT_MAX_PREPARED_STMTS = 1000


class PreparedCache:
    """LRU cache keyed by statement; a maximum of 0 means no limit."""

    def __init__(self, maximum: int = DEFAULT_MAX_PREPARED_STMTS) -> None:
        self.maximum = maximum
        self._entries: OrderedDict[Hashable, Any] = OrderedDict()
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def _remove_oldest(self) -> None:
        self._entries.popitem(last=False)

    def set_max(self, maximum: int) -> None:
        """Change the limit, dropping the oldest entries above it."""
        with self._lock:
            while len(self._entries) > maximum:
                self._remove_oldest()
            self.maximum = maximum

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def add(self, key: Hashable, value: Any) -> None:
        """Store a value as the most recent entry, evicting the oldest if full."""
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                self._entries[key] = value
                return
            self._entries[key] = value
            if self.maximum and len(self._entries) > self.maximum:
                self._remove_oldest()

    def remove(self, key: Hashable) -> bool:
        """Drop an entry; return whether it was present."""
        with self._lock:
            return self._entries.pop(key, _MISSING) is not _MISSING

    def exec_if_missing(
        self, key: Hashable, factory: Callable[[PreparedCache], Any]
    ) -> tuple[Any, bool]:
        """Return ``(value, True)`` for a cached key, else ``(factory(self), False)``.

        The factory runs under the cache lock and may add entries itself.
        """
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                return self._entries[key], True
            return factory(self), False


_MISSING = object()


def key_for(addr: str, keyspace: str, statement: str) -> str:
    """Return the cache key of a statement prepared on a host for a keyspace."""
    return addr + keyspace + statement