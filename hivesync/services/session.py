"""Orchestrator: one signed-in user's stores, caches and refresh gates."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from functools import partial
from typing import Callable

from hivesync.api.client import HiveAPIClient
from hivesync.api.endpoints import (
    activate_trial_remote,
    fetch_subscription_info,
    upgrade_to_pro_remote,
)
from hivesync.api.models import (
    CreateGroupData,
    Group,
    GroupInvitation,
    InvitationResponse,
    InvitationStats,
    InvitationStatus,
    SubscriptionInfo,
)
from hivesync.config import Settings
from hivesync.services.cache import KeyedAsyncCache
from hivesync.services.entity_store import EntityStore, StoreState
from hivesync.services.persisted import (
    MemoryPersistedCache,
    PersistedCache,
    SQLitePersistedCache,
)
from hivesync.services.result import Ok, Result
from hivesync.services.subscription import SubscriptionSnapshotCache, SubscriptionState
from hivesync.services.sync_policy import SyncPolicy
from hivesync.services.throttle import ThrottledRefresher

log = logging.getLogger(__name__)


def make_persisted_cache(settings: Settings) -> PersistedCache:
    if settings.persisted_cache == "memory":
        return MemoryPersistedCache()
    return SQLitePersistedCache(settings.cache_path)


class SyncSession:
    """Owns every cache for one user between sign-in and sign-out.

    Nothing here is module-level: a new session starts empty, and
    ``close()`` drops what the previous user left behind.
    """

    def __init__(
        self,
        settings: Settings,
        user_id: str | None = None,
        client: HiveAPIClient | None = None,
        persisted: PersistedCache | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.user_id = user_id or settings.user_id
        if not self.user_id:
            raise ValueError("A session needs a user id")
        self.client = client or HiveAPIClient(
            settings.api_key,
            base_url=settings.api_url,
            timeout=settings.fetch_timeout,
        )
        self.persisted = persisted or make_persisted_cache(settings)
        self.policy = SyncPolicy(
            groups_ttl=settings.groups_ttl,
            invitations_ttl=settings.invitations_ttl,
            clock=clock,
        )
        self.store = EntityStore(
            self.client,
            self.user_id,
            persisted=self.persisted,
            cache=KeyedAsyncCache(clock=clock, timeout=settings.fetch_timeout),
            policy=self.policy,
            clock=clock,
            persisted_max_age=settings.persisted_max_age,
        )
        self.subscriptions = SubscriptionSnapshotCache(
            self._fetch_subscription,
            ttl=settings.subscription_ttl,
            refresh_interval=settings.subscription_refresh_interval,
            clock=clock,
            timeout=settings.fetch_timeout,
        )
        self._refresher = ThrottledRefresher(clock)

    async def _fetch_subscription(self, user_id: str) -> SubscriptionInfo:
        return await fetch_subscription_info(self.client, user_id)

    async def close(self, clear_persisted: bool = False) -> None:
        """Sign-out: forget cached data and release the connection."""
        await self.store.clear(clear_persisted=clear_persisted)
        self.subscriptions.clear()
        await self.client.close()
        if isinstance(self.persisted, SQLitePersistedCache):
            self.persisted.close()
        log.info("Closed sync session for %s", self.user_id)

    # ── Reads ──

    def groups_state(self) -> StoreState:
        return self.store.state()

    def subscription_state(self) -> SubscriptionState:
        return self.subscriptions.state(self.user_id)

    async def start(self) -> None:
        """Initial load on mount: groups, invitations and entitlements together."""
        await asyncio.gather(
            self.store.load(),
            self.subscriptions.get(self.user_id),
        )

    async def on_screen_focus(self) -> bool:
        """Reload stale collections, collapsing bursts of focus events."""
        if not self.policy.needs_focus_refresh(
            self.store.groups_fetched_at,
            self.store.invitations_fetched_at,
            self.store.sent_fetched_at,
        ):
            return False
        return await self._refresher.attempt(
            self.store.load, self.settings.focus_refresh_interval
        )

    async def pull_to_refresh(self) -> bool:
        """User-requested refresh; bypasses TTLs but still throttled."""

        async def _reload() -> None:
            await asyncio.gather(
                self.store.load(force_refresh=True),
                self.subscriptions.refresh(self.user_id),
            )

        return await self._refresher.attempt(_reload, self.settings.focus_refresh_interval)

    # ── Mutations ──

    async def create_group(self, data: CreateGroupData) -> Result[Group]:
        result = await self.store.create(data)
        if isinstance(result, Ok):
            # Usage counts changed server-side.
            await self.subscriptions.refresh(self.user_id)
        return result

    async def delete_group(self, group_id: str) -> Result[None]:
        result = await self.store.delete(group_id)
        if isinstance(result, Ok):
            await self.subscriptions.refresh(self.user_id)
        return result

    async def respond_to_invitation(
        self, invitation_id: str, status: InvitationStatus
    ) -> Result[InvitationResponse]:
        result = await self.store.respond_to_invitation(invitation_id, status)
        if isinstance(result, Ok) and status == "accepted":
            await self.subscriptions.refresh(self.user_id)
        return result

    async def invite_by_code(
        self, group_id: str, personal_code: str
    ) -> Result[GroupInvitation]:
        return await self.store.invite_by_code(group_id, personal_code)

    async def cancel_invitation(self, invitation_id: str) -> Result[None]:
        return await self.store.cancel_invitation(invitation_id)

    async def invitation_stats(self, group_id: str) -> Result[InvitationStats]:
        return await self.store.invitation_stats(group_id)

    async def activate_trial(self) -> Result[SubscriptionState]:
        return await self.subscriptions.mutate(
            self.user_id, partial(activate_trial_remote, self.client)
        )

    async def upgrade_to_pro(self, expires_at: datetime) -> Result[SubscriptionState]:
        async def _upgrade(user_id: str) -> None:
            await upgrade_to_pro_remote(self.client, user_id, expires_at)

        return await self.subscriptions.mutate(self.user_id, _upgrade)
