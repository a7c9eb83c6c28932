"""When screens should ask the stores for fresh data."""

from __future__ import annotations

import time
from typing import Callable

from hivesync.services.ttl import CacheStats, cache_stats, is_older_than

GROUPS_TTL = 5 * 60
# Invitations go stale sooner than groups.
INVITATIONS_TTL = 2 * 60


class SyncPolicy:
    """Stateless staleness decisions over the timestamps the stores keep."""

    def __init__(
        self,
        groups_ttl: float = GROUPS_TTL,
        invitations_ttl: float = INVITATIONS_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.groups_ttl = groups_ttl
        self.invitations_ttl = invitations_ttl
        self._clock = clock

    def should_refresh(self, fetched_at: float | None, ttl: float) -> bool:
        """Never fetched, or fetched longer ago than ``ttl``."""
        if fetched_at is None:
            return True
        return is_older_than(fetched_at, ttl, self._clock())

    def should_refresh_groups(self, fetched_at: float | None) -> bool:
        return self.should_refresh(fetched_at, self.groups_ttl)

    def should_refresh_invitations(self, fetched_at: float | None) -> bool:
        return self.should_refresh(fetched_at, self.invitations_ttl)

    def needs_focus_refresh(
        self,
        groups_fetched_at: float | None,
        *invitations_fetched_at: float | None,
    ) -> bool:
        """Screen-focus check: groups or any invitation list has gone stale."""
        if self.should_refresh_groups(groups_fetched_at):
            return True
        return any(self.should_refresh_invitations(t) for t in invitations_fetched_at)

    def stats(self, fetched_at: float | None, ttl: float) -> CacheStats:
        return cache_stats(fetched_at, ttl, self._clock())

    def groups_stats(self, fetched_at: float | None) -> CacheStats:
        return self.stats(fetched_at, self.groups_ttl)

    def invitations_stats(self, fetched_at: float | None) -> CacheStats:
        return self.stats(fetched_at, self.invitations_ttl)
