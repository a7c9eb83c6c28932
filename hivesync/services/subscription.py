"""Per-user subscription snapshots with throttled refresh."""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, NamedTuple

from hivesync.api.models import SubscriptionInfo
from hivesync.services.cache import KeyedAsyncCache
from hivesync.services.result import Err, Ok, Result, SyncError, classify_error
from hivesync.services.throttle import ThrottledRefresher

log = logging.getLogger(__name__)

SUBSCRIPTION_TTL = 5 * 60
REFRESH_INTERVAL = 1.0


class SubscriptionState(NamedTuple):
    info: SubscriptionInfo | None
    loading: bool
    error: SyncError | None

    @property
    def entitlements(self) -> SubscriptionInfo:
        """The snapshot, or free-tier defaults before the first fetch."""
        return self.info if self.info is not None else SubscriptionInfo()


class SubscriptionSnapshotCache:
    """Caches one ``SubscriptionInfo`` per user id.

    Snapshots are replaced whole on every successful fetch. Derived flags
    live on ``SubscriptionInfo`` itself and are never stored separately.
    """

    def __init__(
        self,
        fetch_info: Callable[[str], Awaitable[SubscriptionInfo]],
        ttl: float = SUBSCRIPTION_TTL,
        refresh_interval: float = REFRESH_INTERVAL,
        clock: Callable[[], float] = time.time,
        timeout: float | None = 15.0,
    ) -> None:
        self._fetch_info = fetch_info
        self.ttl = ttl
        self.refresh_interval = refresh_interval
        self._clock = clock
        self.cache: KeyedAsyncCache[str, SubscriptionInfo] = KeyedAsyncCache(
            clock=clock, timeout=timeout
        )
        self._refreshers: dict[str, ThrottledRefresher] = {}

    def state(self, user_id: str) -> SubscriptionState:
        """What is known right now, without I/O."""
        entry = self.cache.peek(user_id)
        if entry is None:
            return SubscriptionState(None, False, None)
        return SubscriptionState(entry.value, entry.in_flight is not None, entry.error)

    async def get(self, user_id: str, force_refresh: bool = False) -> SubscriptionState:
        """Settled snapshot. Use ``state()`` to observe a fetch while it runs."""
        read = await self.cache.get(user_id, self._fetch_info, self.ttl, force_refresh)
        return SubscriptionState(read.value, False, read.error)

    async def refresh(self, user_id: str) -> SubscriptionState:
        """Invalidate and refetch, at most once per refresh interval."""
        refresher = self._refreshers.setdefault(user_id, ThrottledRefresher(self._clock))

        async def _reload() -> None:
            self.cache.invalidate(user_id)
            await self.get(user_id)

        if not await refresher.attempt(_reload, self.refresh_interval):
            log.debug("Subscription refresh for %s throttled", user_id)
        return self.state(user_id)

    async def mutate(
        self,
        user_id: str,
        action: Callable[[str], Awaitable[Any]],
    ) -> Result[SubscriptionState]:
        """Run a server-side entitlement change, then refetch before returning."""
        try:
            await action(user_id)
        except Exception as exc:
            error = classify_error(exc)
            if error is None:
                raise
            log.warning("Subscription change for %s failed: %s", user_id, error)
            return Err(error)

        # A fetch already running predates the change; let it land first so
        # it cannot overwrite the refetched snapshot.
        if self.cache.is_fetching(user_id):
            await self.get(user_id, force_refresh=True)
        self.cache.invalidate(user_id)
        state = await self.get(user_id, force_refresh=True)
        if state.error is not None:
            return Err(state.error)
        log.info("Subscription for %s is now %s", user_id, state.entitlements.status)
        return Ok(state)

    def invalidate(self, user_id: str) -> None:
        self.cache.invalidate(user_id)

    def clear(self) -> None:
        self.cache.clear()
        self._refreshers.clear()
