"""Shared test fixtures."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from hivesync.api.models import Group, GroupInvitation, GroupMember
from hivesync.services.entity_store import EntityStore
from hivesync.services.persisted import MemoryPersistedCache


class FakeClock:
    """Wall clock the tests move by hand."""

    def __init__(self, start: float = 1_750_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_group(group_id: str, name: str | None = None, **kwargs) -> Group:
    defaults = {
        "id": group_id,
        "name": name or f"Group {group_id}",
        "creator_id": "user-1",
        "member_count": 1,
        "item_count": 0,
        "members": [
            GroupMember(id=f"m-{group_id}", group_id=group_id, user_id="user-1", role="owner"),
        ],
    }
    defaults.update(kwargs)
    return Group(**defaults)


def make_invitation(invitation_id: str, group_id: str = "g9", **kwargs) -> GroupInvitation:
    defaults = {
        "id": invitation_id,
        "group_id": group_id,
        "invitee_id": "user-1",
        "inviter_id": "user-2",
        "status": "pending",
    }
    defaults.update(kwargs)
    return GroupInvitation(**defaults)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def persisted() -> MemoryPersistedCache:
    return MemoryPersistedCache()


@pytest.fixture
def backend():
    """Patch every backend call the entity store makes."""
    target = "hivesync.services.entity_store"
    with patch(f"{target}.fetch_groups_for_user", new_callable=AsyncMock) as groups, \
         patch(f"{target}.fetch_pending_invitations", new_callable=AsyncMock) as invitations, \
         patch(f"{target}.fetch_sent_invitations", new_callable=AsyncMock) as sent, \
         patch(f"{target}.invite_by_code_remote", new_callable=AsyncMock) as invite, \
         patch(f"{target}.cancel_invitation_remote", new_callable=AsyncMock) as cancel, \
         patch(f"{target}.fetch_group_invitation_stats", new_callable=AsyncMock) as stats, \
         patch(f"{target}.create_group_remote", new_callable=AsyncMock) as create, \
         patch(f"{target}.delete_group_remote", new_callable=AsyncMock) as delete, \
         patch(f"{target}.respond_invitation_remote", new_callable=AsyncMock) as respond:
        groups.return_value = []
        invitations.return_value = []
        sent.return_value = []
        delete.return_value = None
        cancel.return_value = None
        yield SimpleNamespace(
            groups=groups,
            invitations=invitations,
            create=create,
            delete=delete,
            respond=respond,
            sent=sent,
            invite=invite,
            cancel=cancel,
            stats=stats,
        )


@pytest.fixture
def store(clock, persisted) -> EntityStore:
    return EntityStore(AsyncMock(), "user-1", persisted=persisted, clock=clock)
