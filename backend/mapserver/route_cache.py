from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Hashable
from dataclasses import dataclass, field
from threading import Lock
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass
class _RouteCacheEntry(Generic[V]):
    inserted_at: float
    payload: V


@dataclass
class _InFlight(Generic[V]):
    done: threading.Event = field(default_factory=threading.Event)
    result: V | None = None
    error: BaseException | None = None


class RouteCacheStore(Generic[K, V]):
    """Memoizes route results by exact query.

    Bounded LRU with an optional TTL (``ttl_s=0`` keeps entries until they are
    evicted). Concurrent misses on the same key are coalesced: one caller
    computes, the rest wait for its result. Payloads must be immutable since
    the same object is handed to every reader.
    """

    def __init__(
        self,
        *,
        max_entries: int,
        ttl_s: int = 0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_entries = max(1, int(max_entries))
        self._ttl_s = max(0, int(ttl_s))
        self._clock = clock
        self._lock = Lock()
        self._items: OrderedDict[K, _RouteCacheEntry[V]] = OrderedDict()
        self._inflight: dict[K, _InFlight[V]] = {}

        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._computations = 0
        self._coalesced = 0

    def _is_expired(self, entry: _RouteCacheEntry[V]) -> bool:
        return self._ttl_s > 0 and (self._clock() - entry.inserted_at) > self._ttl_s

    def _lookup_locked(self, key: K) -> _RouteCacheEntry[V] | None:
        entry = self._items.get(key)
        if entry is None:
            return None
        if self._is_expired(entry):
            self._items.pop(key, None)
            return None
        self._items.move_to_end(key)
        return entry

    def _store_locked(self, key: K, value: V) -> None:
        if key in self._items:
            self._items.move_to_end(key)
        self._items[key] = _RouteCacheEntry(inserted_at=self._clock(), payload=value)
        while len(self._items) > self._max_entries:
            self._items.popitem(last=False)
            self._evictions += 1

    def get(self, key: K) -> V | None:
        with self._lock:
            entry = self._lookup_locked(key)
            if entry is None:
                self._misses += 1
                return None
            self._hits += 1
            return entry.payload

    def set(self, key: K, value: V) -> None:
        with self._lock:
            self._store_locked(key, value)

    def get_or_compute(self, key: K, compute: Callable[[K], V]) -> V:
        with self._lock:
            entry = self._lookup_locked(key)
            if entry is not None:
                self._hits += 1
                return entry.payload
            self._misses += 1
            flight = self._inflight.get(key)
            leader = flight is None
            if flight is None:
                flight = _InFlight()
                self._inflight[key] = flight
            else:
                self._coalesced += 1

        if not leader:
            flight.done.wait()
            if flight.error is not None:
                raise flight.error
            return flight.result  # type: ignore[return-value]

        try:
            value = compute(key)
        except BaseException as exc:
            flight.error = exc
            with self._lock:
                self._inflight.pop(key, None)
            flight.done.set()
            raise

        flight.result = value
        with self._lock:
            self._computations += 1
            self._store_locked(key, value)
            self._inflight.pop(key, None)
        flight.done.set()
        return value

    def clear(self) -> int:
        with self._lock:
            cleared = len(self._items)
            self._items.clear()
            return cleared

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return {
                "size": len(self._items),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "computations": self._computations,
                "coalesced": self._coalesced,
                "in_flight": len(self._inflight),
                "ttl_s": self._ttl_s,
                "max_entries": self._max_entries,
            }
