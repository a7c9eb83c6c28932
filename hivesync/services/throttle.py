"""Minimum-interval gate for refresh actions."""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable

log = logging.getLogger(__name__)


class ThrottledRefresher:
    """Runs a refresh at most once per interval and never twice at once.

    Dropped attempts are not queued: whichever call did run has already
    brought the cache up to date.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self.last_run_at: float | None = None
        self.is_running = False

    async def attempt(
        self,
        action: Callable[[], Awaitable[Any]],
        min_interval: float,
    ) -> bool:
        """Run ``action`` unless throttled. Returns whether it ran."""
        if self.is_running:
            log.debug("Refresh already running, dropping request")
            return False
        now = self._clock()
        if self.last_run_at is not None and now - self.last_run_at < min_interval:
            log.debug("Refresh ran %.2fs ago, dropping request", now - self.last_run_at)
            return False

        # Stamp before awaiting so a second caller in the same tick is gated.
        self.is_running = True
        self.last_run_at = now
        try:
            await action()
        finally:
            self.is_running = False
        return True
