"""In-memory keyed cache with per-call TTL and single-flight fetches."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Generic, Hashable, NamedTuple, TypeVar

from hivesync.services.result import SyncError, classify_error
from hivesync.services.ttl import is_older_than

log = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class CacheEntry(Generic[V]):
    """Last known value for one key plus the fetch currently running for it."""

    def __init__(self) -> None:
        self.value: V | None = None
        self.error: SyncError | None = None
        self.fetched_at: float | None = None
        self.in_flight: asyncio.Task | None = None


class CacheRead(NamedTuple):
    value: Any
    error: SyncError | None


class KeyedAsyncCache(Generic[K, V]):
    """Cache that collapses concurrent fetches for a key into one call.

    A failed fetch keeps the last good value, records the error and is
    stamped like a success, so failures are throttled by the TTL too.
    Entry fields are only written between awaits.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        timeout: float | None = 15.0,
    ) -> None:
        self._clock = clock
        self._timeout = timeout
        self._entries: dict[K, CacheEntry[V]] = {}

    async def get(
        self,
        key: K,
        fetcher: Callable[[K], Awaitable[V]],
        ttl: float,
        force_refresh: bool = False,
    ) -> CacheRead:
        entry = self._entries.get(key)
        if (
            entry is not None
            and not force_refresh
            and entry.fetched_at is not None
            and not is_older_than(entry.fetched_at, ttl, self._clock())
        ):
            return CacheRead(entry.value, entry.error)

        if entry is None:
            entry = CacheEntry()
            self._entries[key] = entry
        if entry.in_flight is None:
            entry.in_flight = asyncio.ensure_future(self._fetch(key, entry, fetcher))
        # A caller giving up must not cancel the fetch other callers share.
        return await asyncio.shield(entry.in_flight)

    async def _fetch(
        self,
        key: K,
        entry: CacheEntry[V],
        fetcher: Callable[[K], Awaitable[V]],
    ) -> CacheRead:
        try:
            value = await asyncio.wait_for(fetcher(key), self._timeout)
        except Exception as exc:
            error = classify_error(exc)
            if error is None:
                raise
            log.warning("Fetch for %r failed: %s", key, error)
            entry.error = error
            entry.fetched_at = self._clock()
            return CacheRead(entry.value, error)
        finally:
            entry.in_flight = None

        entry.value = value
        entry.error = None
        entry.fetched_at = self._clock()
        return CacheRead(value, None)

    def peek(self, key: K) -> CacheEntry[V] | None:
        return self._entries.get(key)

    def is_fetching(self, key: K) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.in_flight is not None

    def prime(self, key: K, value: V, fetched_at: float) -> None:
        """Seed a key from a copy fetched earlier (e.g. a persisted cache)."""
        entry = self._entries.setdefault(key, CacheEntry())
        entry.value = value
        entry.error = None
        entry.fetched_at = fetched_at

    def invalidate(self, key: K) -> None:
        """Forget the stored value. A running fetch still fills the entry."""
        entry = self._entries.get(key)
        if entry is None:
            return
        if entry.in_flight is None:
            del self._entries[key]
            return
        entry.value = None
        entry.error = None
        entry.fetched_at = None

    def discard(self, key: K) -> None:
        """Drop the entry outright. A running fetch finishes into the detached entry."""
        self._entries.pop(key, None)

    def clear(self) -> None:
        # Running fetches finish into detached entries and are not stored.
        self._entries.clear()
