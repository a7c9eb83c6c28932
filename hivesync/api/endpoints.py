"""Typed calls to the Hive backend."""

from __future__ import annotations

import logging
from datetime import datetime

from hivesync.api.client import HiveAPIClient
from hivesync.api.models import (
    CreateGroupData,
    Group,
    GroupInvitation,
    InvitationResponse,
    InvitationStats,
    InvitationStatus,
    SubscriptionInfo,
)

log = logging.getLogger(__name__)


async def fetch_groups_for_user(client: HiveAPIClient, user_id: str) -> list[Group]:
    """Groups the user belongs to, newest first."""
    data = await client.get(f"/users/{user_id}/groups")
    return [Group.model_validate(g) for g in data or []]


async def fetch_pending_invitations(
    client: HiveAPIClient, user_id: str
) -> list[GroupInvitation]:
    data = await client.get(f"/users/{user_id}/invitations", params={"status": "pending"})
    return [GroupInvitation.model_validate(i) for i in data or []]


async def fetch_sent_invitations(
    client: HiveAPIClient, user_id: str
) -> list[GroupInvitation]:
    """Invitations the user sent, any status, newest first."""
    data = await client.get(f"/users/{user_id}/invitations/sent")
    return [GroupInvitation.model_validate(i) for i in data or []]


async def create_group_remote(client: HiveAPIClient, data: CreateGroupData) -> Group:
    payload = await client.post("/groups", json=data.model_dump(exclude_none=True))
    return Group.model_validate(payload)


async def delete_group_remote(client: HiveAPIClient, group_id: str) -> None:
    await client.delete(f"/groups/{group_id}")


async def respond_invitation_remote(
    client: HiveAPIClient,
    invitation_id: str,
    status: InvitationStatus,
) -> InvitationResponse:
    """Accept or decline. An accepted response normally carries the group."""
    payload = await client.post(
        f"/invitations/{invitation_id}/respond", json={"status": status}
    )
    return InvitationResponse.model_validate(payload or {})


async def invite_by_code_remote(
    client: HiveAPIClient, group_id: str, personal_code: str
) -> GroupInvitation:
    """Invite whoever owns ``personal_code``. The backend rejects members and duplicates."""
    payload = await client.post(
        f"/groups/{group_id}/invitations", json={"personal_code": personal_code}
    )
    return GroupInvitation.model_validate(payload)


async def cancel_invitation_remote(client: HiveAPIClient, invitation_id: str) -> None:
    await client.delete(f"/invitations/{invitation_id}")


async def fetch_group_invitation_stats(
    client: HiveAPIClient, group_id: str
) -> InvitationStats:
    data = await client.get(f"/groups/{group_id}/invitations", params={"select": "status"})
    return InvitationStats.from_statuses([row.get("status") for row in data or []])


async def fetch_subscription_info(client: HiveAPIClient, user_id: str) -> SubscriptionInfo:
    """Subscription status, usage and limits in one snapshot.

    The backend answers with a single-row list; an empty answer means the
    user has no profile row yet and gets the free-tier defaults.
    """
    data = await client.get(f"/users/{user_id}/subscription")
    if isinstance(data, list):
        data = data[0] if data else {}
    return SubscriptionInfo.model_validate(data or {})


async def activate_trial_remote(client: HiveAPIClient, user_id: str) -> None:
    await client.post(f"/users/{user_id}/subscription/trial")


async def upgrade_to_pro_remote(
    client: HiveAPIClient, user_id: str, expires_at: datetime
) -> None:
    await client.post(
        f"/users/{user_id}/subscription/upgrade",
        json={"subscription_expires_at": expires_at.isoformat()},
    )
    log.info("Upgraded %s to pro until %s", user_id, expires_at.isoformat())
