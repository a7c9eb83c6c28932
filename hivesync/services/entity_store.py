"""Session-owned groups and invitations with optimistic mutations."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Iterable, NamedTuple

from pydantic import BaseModel, ValidationError

from hivesync.api.client import HiveAPIClient
from hivesync.api.endpoints import (
    cancel_invitation_remote,
    create_group_remote,
    delete_group_remote,
    fetch_group_invitation_stats,
    fetch_groups_for_user,
    fetch_pending_invitations,
    fetch_sent_invitations,
    invite_by_code_remote,
    respond_invitation_remote,
)
from hivesync.api.models import (
    CreateGroupData,
    Group,
    GroupInvitation,
    InvitationResponse,
    InvitationStats,
    InvitationStatus,
)
from hivesync.services.cache import KeyedAsyncCache
from hivesync.services.persisted import MemoryPersistedCache, PersistedCache
from hivesync.services.result import Err, Ok, Result, SyncError, classify_error
from hivesync.services.sync_policy import SyncPolicy
from hivesync.services.ttl import CacheStats, is_older_than

log = logging.getLogger(__name__)

GROUPS = "groups"
INVITATIONS = "invitations"
SENT = "sent"
COLLECTIONS = (GROUPS, INVITATIONS, SENT)

CACHE_VERSION = "1.0.0"
PERSISTED_MAX_AGE = 30 * 60

_ADD = "add"
_REMOVE = "remove"


class StoreState(NamedTuple):
    groups: list[Group]
    invitations: list[GroupInvitation]
    sent_invitations: list[GroupInvitation]
    loading: bool
    error: SyncError | None


class Snapshot(NamedTuple):
    """A fetch result tagged with the mutation sequence seen when it started."""

    seq: int
    items: list


class GroupsCacheRecord(BaseModel):
    """Persisted copy used to bridge cold starts."""

    version: str
    user_id: str
    groups: list[Group]
    invitations: list[GroupInvitation]
    sent_invitations: list[GroupInvitation] = []
    groups_fetched_at: float | None = None
    invitations_fetched_at: float | None = None
    sent_fetched_at: float | None = None
    saved_at: float


def lists_differ(old: Iterable[Any], new: Iterable[Any]) -> bool:
    """Compare two entity lists by id and signature, ignoring identity and order."""
    old = list(old)
    new = list(new)
    if len(old) != len(new):
        return True
    by_id = {item.id: item.signature() for item in old}
    for item in new:
        sig = by_id.get(item.id)
        if sig is None or sig != item.signature():
            return True
    return False


class MutationJournal:
    """Optimistic mutations not yet confirmed by a fetch that started after them.

    Entries are tagged with their collection; replay and prune only ever see
    the entries of the collection they are asked about.
    """

    def __init__(self) -> None:
        self.seq = 0
        self._entries: list[tuple[int, str, str, Any]] = []

    def record(self, collection: str, op: str, payload: Any) -> int:
        self.seq += 1
        self._entries.append((self.seq, collection, op, payload))
        return self.seq

    def replay(self, collection: str, snapshot: Snapshot) -> list:
        items = list(snapshot.items)
        for seq, coll, op, payload in self._entries:
            if coll != collection or seq <= snapshot.seq:
                continue
            if op == _ADD:
                if all(item.id != payload.id for item in items):
                    items.insert(0, payload)
            else:
                items = [item for item in items if item.id != payload]
        return items

    def prune(self, collection: str, seq: int) -> None:
        self._entries = [
            e for e in self._entries if e[1] != collection or e[0] > seq
        ]

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()


class EntityStore:
    """Authoritative in-memory groups and invitations for one signed-in user.

    Three collections are kept: the user's groups, invitations waiting for
    the user's answer, and invitations the user sent. Every fetch goes
    through a ``KeyedAsyncCache`` so concurrent loads share one request.
    Results are merged with journaled optimistic mutations and compared
    against *current* state before anything is replaced or persisted.

    ``clear()`` starts a new generation. Work that began in an older
    generation still finishes, but its result is dropped on arrival.
    """

    def __init__(
        self,
        client: HiveAPIClient,
        user_id: str,
        persisted: PersistedCache | None = None,
        cache: KeyedAsyncCache | None = None,
        policy: SyncPolicy | None = None,
        clock: Callable[[], float] = time.time,
        persisted_max_age: float = PERSISTED_MAX_AGE,
    ) -> None:
        self.client = client
        self.user_id = user_id
        self.persisted = persisted or MemoryPersistedCache()
        self.cache = cache or KeyedAsyncCache(clock=clock)
        self.policy = policy or SyncPolicy(clock=clock)
        self.persisted_max_age = persisted_max_age
        self._clock = clock
        self._lists: dict[str, list] = {c: [] for c in COLLECTIONS}
        self._errors: dict[str, SyncError | None] = dict.fromkeys(COLLECTIONS)
        self._synced_at: dict[str, float | None] = dict.fromkeys(COLLECTIONS)
        self._loading = 0
        self._generation = 0
        self._journal = MutationJournal()
        self._listeners: list[Callable[[StoreState], None]] = []

    # ── State & observers ──

    def state(self) -> StoreState:
        return StoreState(
            groups=self._lists[GROUPS],
            invitations=self._lists[INVITATIONS],
            sent_invitations=self._lists[SENT],
            loading=self._loading > 0,
            error=next((e for e in self._errors.values() if e is not None), None),
        )

    def subscribe(self, listener: Callable[[StoreState], None]) -> Callable[[], None]:
        """Call ``listener`` after every state transition. Returns an unsubscribe."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        state = self.state()
        for listener in list(self._listeners):
            listener(state)

    @property
    def persisted_key(self) -> str:
        return f"groups_cache:{self.user_id}"

    def _key(self, collection: str) -> tuple[str, str]:
        return (collection, self.user_id)

    def _stale(self, generation: int, action: str) -> bool:
        if generation == self._generation:
            return False
        log.info("Dropping %s result for %s: store was cleared", action, self.user_id)
        return True

    @property
    def groups_fetched_at(self) -> float | None:
        """When groups were last fetched successfully."""
        return self._synced_at[GROUPS]

    @property
    def invitations_fetched_at(self) -> float | None:
        return self._synced_at[INVITATIONS]

    @property
    def sent_fetched_at(self) -> float | None:
        return self._synced_at[SENT]

    # ── Staleness ──

    def should_refresh(self) -> bool:
        return self.policy.should_refresh_groups(self.groups_fetched_at)

    def should_refresh_invitations(self) -> bool:
        """Either invitation list has outlived the invitations TTL."""
        return self.policy.should_refresh_invitations(
            self.invitations_fetched_at
        ) or self.policy.should_refresh_invitations(self.sent_fetched_at)

    def cache_stats(self, collection: str = GROUPS) -> CacheStats:
        if collection == GROUPS:
            return self.policy.groups_stats(self.groups_fetched_at)
        return self.policy.invitations_stats(self._synced_at[collection])

    # ── Loading ──

    async def load(self, force_refresh: bool = False) -> Result[StoreState]:
        """Hydrate on a cold start, then refresh every collection together."""
        if not force_refresh and not any(self._lists.values()):
            await self.hydrate()

        results = await asyncio.gather(
            self.load_groups(force_refresh),
            self.load_invitations(force_refresh),
            self.load_sent_invitations(force_refresh),
        )
        for result in results:
            if isinstance(result, Err):
                return result
        return Ok(self.state())

    async def load_groups(self, force_refresh: bool = False) -> Result[list[Group]]:
        return await self._load(GROUPS, fetch_groups_for_user, self.policy.groups_ttl, force_refresh)

    async def load_invitations(
        self, force_refresh: bool = False
    ) -> Result[list[GroupInvitation]]:
        return await self._load(
            INVITATIONS, fetch_pending_invitations, self.policy.invitations_ttl, force_refresh
        )

    async def load_sent_invitations(
        self, force_refresh: bool = False
    ) -> Result[list[GroupInvitation]]:
        return await self._load(
            SENT, fetch_sent_invitations, self.policy.invitations_ttl, force_refresh
        )

    def _fetcher(
        self,
        collection: str,
        fetch: Callable[[HiveAPIClient, str], Awaitable[list]],
    ) -> Callable[[tuple[str, str]], Awaitable[Snapshot]]:
        async def _fetch(key: tuple[str, str]) -> Snapshot:
            seq = self._journal.seq
            log.info("Fetching %s for %s", collection, self.user_id)
            return Snapshot(seq, await fetch(self.client, self.user_id))

        return _fetch

    async def _load(
        self,
        collection: str,
        fetch: Callable[[HiveAPIClient, str], Awaitable[list]],
        ttl: float,
        force_refresh: bool,
    ) -> Result[list]:
        key = self._key(collection)
        generation = self._generation
        self._loading += 1
        try:
            read = await self.cache.get(key, self._fetcher(collection, fetch), ttl, force_refresh)
        finally:
            self._loading -= 1
        if self._stale(generation, f"{collection} fetch"):
            return Ok(self._lists[collection])

        changed = False
        if read.value is not None:
            changed = self._commit(collection, read.value)
        if read.error is None:
            entry = self.cache.peek(key)
            self._synced_at[collection] = entry.fetched_at if entry else self._clock()
        error_changed = self._errors[collection] != read.error
        self._errors[collection] = read.error

        if changed or error_changed:
            self._notify()
        if changed:
            await self._persist()
        if read.error is not None:
            return Err(read.error)
        return Ok(self._lists[collection])

    def _commit(self, collection: str, snapshot: Snapshot) -> bool:
        """Merge a fetch result into current state. Returns whether it changed."""
        merged = self._journal.replay(collection, snapshot)
        self._journal.prune(collection, snapshot.seq)
        if not lists_differ(self._lists[collection], merged):
            log.debug("No %s changes for %s", collection, self.user_id)
            return False
        self._lists[collection] = merged
        log.info("%s updated for %s: %d item(s)", collection.capitalize(), self.user_id, len(merged))
        return True

    # ── Persisted copy ──

    async def hydrate(self) -> bool:
        """Fill empty state from the persisted copy. No network."""
        if any(t is not None for t in self._synced_at.values()):
            return False
        generation = self._generation
        raw = await self.persisted.read(self.persisted_key)
        if raw is None or self._stale(generation, "hydrate"):
            return False
        try:
            record = GroupsCacheRecord.model_validate(raw)
        except ValidationError:
            log.warning("Ignoring malformed groups cache for %s", self.user_id)
            return False
        if record.version != CACHE_VERSION or record.user_id != self.user_id:
            log.warning("Ignoring groups cache with version %s", record.version)
            return False
        if is_older_than(record.saved_at, self.persisted_max_age, self._clock()):
            log.info("Persisted groups cache for %s is too old", self.user_id)
            return False
        # A fetch may have landed while the read was pending.
        if any(self._lists.values()):
            return False

        seq = self._journal.seq
        for collection, items, fetched_at in (
            (GROUPS, record.groups, record.groups_fetched_at),
            (INVITATIONS, record.invitations, record.invitations_fetched_at),
            (SENT, record.sent_invitations, record.sent_fetched_at),
        ):
            self._lists[collection] = items
            if fetched_at is not None:
                self.cache.prime(self._key(collection), Snapshot(seq, items), fetched_at)
                self._synced_at[collection] = fetched_at
        log.info(
            "Hydrated %d group(s), %d pending and %d sent invitation(s) from cache",
            len(record.groups),
            len(record.invitations),
            len(record.sent_invitations),
        )
        self._notify()
        return True

    async def _persist(self) -> None:
        record = GroupsCacheRecord(
            version=CACHE_VERSION,
            user_id=self.user_id,
            groups=self._lists[GROUPS],
            invitations=self._lists[INVITATIONS],
            sent_invitations=self._lists[SENT],
            groups_fetched_at=self._synced_at[GROUPS],
            invitations_fetched_at=self._synced_at[INVITATIONS],
            sent_fetched_at=self._synced_at[SENT],
            saved_at=self._clock(),
        )
        try:
            await self.persisted.write(self.persisted_key, record.model_dump(mode="json"))
        except Exception:
            log.exception("Failed to persist groups cache for %s", self.user_id)

    # ── Optimistic mutations ──

    def _surface(self, collection: str, exc: Exception, action: str, generation: int) -> Err:
        error = classify_error(exc)
        if error is None:
            raise exc
        log.warning("%s failed for %s: %s", action, self.user_id, error)
        if generation == self._generation:
            self._errors[collection] = error
            self._notify()
        return Err(error)

    def _prepend(self, collection: str, item: Any) -> None:
        self._journal.record(collection, _ADD, item)
        self._lists[collection] = [item] + [
            i for i in self._lists[collection] if i.id != item.id
        ]

    def _remove(self, collection: str, item_id: str) -> None:
        self._journal.record(collection, _REMOVE, item_id)
        self._lists[collection] = [i for i in self._lists[collection] if i.id != item_id]

    async def _settle(self, collection: str) -> None:
        self._errors[collection] = None
        self._notify()
        await self._persist()

    async def create(self, data: CreateGroupData) -> Result[Group]:
        """Create remotely, then show the group first without waiting for a fetch."""
        generation = self._generation
        try:
            group = await create_group_remote(self.client, data)
        except Exception as exc:
            return self._surface(GROUPS, exc, "Create group", generation)
        if self._stale(generation, "create group"):
            return Ok(group)

        self._prepend(GROUPS, group)
        await self._settle(GROUPS)
        return Ok(group)

    async def delete(self, group_id: str) -> Result[None]:
        generation = self._generation
        try:
            await delete_group_remote(self.client, group_id)
        except Exception as exc:
            return self._surface(GROUPS, exc, "Delete group", generation)
        if self._stale(generation, "delete group"):
            return Ok(None)

        self._remove(GROUPS, group_id)
        await self._settle(GROUPS)
        return Ok(None)

    async def respond_to_invitation(
        self, invitation_id: str, status: InvitationStatus
    ) -> Result[InvitationResponse]:
        """Accept or decline; both collections change in one transition."""
        if status not in ("accepted", "declined"):
            raise ValueError(f"Cannot respond to an invitation with {status!r}")
        generation = self._generation
        try:
            response = await respond_invitation_remote(self.client, invitation_id, status)
        except Exception as exc:
            return self._surface(INVITATIONS, exc, "Respond to invitation", generation)
        if self._stale(generation, "invitation response"):
            return Ok(response)

        self._remove(INVITATIONS, invitation_id)
        if status == "accepted":
            if response.group is not None:
                self._prepend(GROUPS, response.group)
            else:
                log.warning(
                    "Invitation %s accepted without a group in the response; "
                    "groups will be refetched on the next load",
                    invitation_id,
                )
                self.cache.invalidate(self._key(GROUPS))
                self._synced_at[GROUPS] = None
        await self._settle(INVITATIONS)
        return Ok(response)

    async def invite_by_code(
        self, group_id: str, personal_code: str
    ) -> Result[GroupInvitation]:
        """Invite someone by their personal code and list it as sent right away."""
        generation = self._generation
        try:
            invitation = await invite_by_code_remote(self.client, group_id, personal_code)
        except Exception as exc:
            return self._surface(SENT, exc, "Invite by code", generation)
        if self._stale(generation, "invite by code"):
            return Ok(invitation)

        self._prepend(SENT, invitation)
        await self._settle(SENT)
        return Ok(invitation)

    async def cancel_invitation(self, invitation_id: str) -> Result[None]:
        generation = self._generation
        try:
            await cancel_invitation_remote(self.client, invitation_id)
        except Exception as exc:
            return self._surface(SENT, exc, "Cancel invitation", generation)
        if self._stale(generation, "cancel invitation"):
            return Ok(None)

        self._remove(SENT, invitation_id)
        await self._settle(SENT)
        return Ok(None)

    async def invitation_stats(self, group_id: str) -> Result[InvitationStats]:
        """Counts by status for one group. Not cached; read on demand."""
        try:
            return Ok(await fetch_group_invitation_stats(self.client, group_id))
        except Exception as exc:
            error = classify_error(exc)
            if error is None:
                raise
            log.warning("Invitation stats for group %s failed: %s", group_id, error)
            return Err(error)

    # ── Refresh entry points ──

    async def refresh(self) -> Result[StoreState]:
        """Reload only what the sync policy considers stale."""
        if not (self.should_refresh() or self.should_refresh_invitations()):
            log.debug("Groups cache still fresh for %s", self.user_id)
            return Ok(self.state())
        return await self.load()

    async def force_refresh(self) -> Result[StoreState]:
        """Drop the persisted copy and refetch everything."""
        await self.persisted.clear(self.persisted_key)
        result = await self.load(force_refresh=True)
        if isinstance(result, Ok):
            await self._persist()
        return result

    async def clear(self, clear_persisted: bool = False) -> None:
        """Forget everything for this user (sign-out)."""
        self._generation += 1
        for collection in COLLECTIONS:
            self.cache.discard(self._key(collection))
        self._journal.clear()
        self._lists = {c: [] for c in COLLECTIONS}
        self._errors = dict.fromkeys(COLLECTIONS)
        self._synced_at = dict.fromkeys(COLLECTIONS)
        self._notify()
        if clear_persisted:
            await self.persisted.clear(self.persisted_key)
