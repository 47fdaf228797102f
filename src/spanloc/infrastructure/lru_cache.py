"""Bounded least-recently-used cache.

Thread-safe structure; compute functions run outside the lock.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from collections.abc import Callable, Hashable
from typing import Generic, TypeVar

from spanloc.domain.exceptions import InvalidCapacityError

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

_MISSING = object()


class LruCache(Generic[K, V]):
    """Fixed-capacity LRU cache with get-or-compute.

    Contract:
      - fetch() returns the cached value or stores compute()'s result
      - None results are cached too (absent attribution is a valid answer)
      - Inserting past capacity evicts the least-recently-used entry

    Thread Safety:
      - _lock protects _entries and counters
      - compute() runs unlocked: two threads missing the same key may both
        compute, last write wins. Structure is never corrupted.
    """

    __slots__ = ("_capacity", "_entries", "_hits", "_lock", "_misses")

    def __init__(self, capacity: int) -> None:
        """Initialize empty cache.

        Raises:
            InvalidCapacityError: If capacity < 1.
        """
        if capacity < 1:
            raise InvalidCapacityError(capacity)

        self._capacity = capacity
        self._entries: OrderedDict[K, V] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def fetch(self, key: K, compute: Callable[[], V]) -> V:
        """Return cached value for key, computing and storing it on miss."""
        with self._lock:
            value = self._entries.get(key, _MISSING)
            if value is not _MISSING:
                self._entries.move_to_end(key)
                self._hits += 1
                return value  # type: ignore[return-value]
            self._misses += 1

        value = compute()

        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
            while len(self._entries) > self._capacity:
                self._entries.popitem(last=False)

        return value

    def __contains__(self, key: object) -> bool:
        """Membership test without touching recency."""
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        """Number of cached entries."""
        with self._lock:
            return len(self._entries)

    @property
    def capacity(self) -> int:
        """Maximum number of entries."""
        return self._capacity

    @property
    def hits(self) -> int:
        """Number of fetch() calls served from cache."""
        with self._lock:
            return self._hits

    @property
    def misses(self) -> int:
        """Number of fetch() calls that computed."""
        with self._lock:
            return self._misses
