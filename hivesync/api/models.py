"""Pydantic models for backend payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

InvitationStatus = Literal["pending", "accepted", "declined"]
SubscriptionStatus = Literal["free", "trial", "pro", "expired"]

APPROACHING_LIMIT_PCT = 80.0


class GroupMember(BaseModel):
    id: str
    group_id: str
    user_id: str
    role: Literal["owner", "admin", "member"] = "member"
    joined_at: datetime | None = None


class Group(BaseModel):
    id: str
    name: str
    description: str | None = None
    creator_id: str
    member_count: int = 0
    member_limit: int | None = None
    item_count: int = 0
    members: list[GroupMember] = Field(default_factory=list)

    def signature(self) -> tuple:
        """Fields compared by change detection; object identity is ignored."""
        return (
            self.name,
            self.description,
            self.creator_id,
            self.member_count,
            self.member_limit,
            self.item_count,
            tuple(sorted((m.user_id, m.role) for m in self.members)),
        )


class GroupInvitation(BaseModel):
    id: str
    group_id: str
    invitee_id: str
    inviter_id: str | None = None
    status: InvitationStatus = "pending"
    created_at: datetime | None = None

    def signature(self) -> tuple:
        return (self.group_id, self.invitee_id, self.inviter_id, self.status)


class CreateGroupData(BaseModel):
    name: str
    description: str | None = None
    member_limit: int | None = None


class InvitationResponse(BaseModel):
    """Backend answer to accepting or declining an invitation."""

    invitation: GroupInvitation | None = None
    group: Group | None = None


class SubscriptionInfo(BaseModel):
    """Entitlement snapshot. Derived flags are properties so they always
    agree with the fields they come from."""

    model_config = ConfigDict(populate_by_name=True)

    status: SubscriptionStatus = Field("free", alias="subscription_status")
    groups_used: int = Field(0, alias="groups_count")
    groups_limit: int = Field(1, alias="max_groups")
    items_used: int = Field(0, alias="items_count")
    items_limit: int = Field(10, alias="max_items")
    ai_search_enabled: bool = False
    can_create_group: bool = False
    can_create_item: bool = False
    can_use_ai: bool = False
    trial_ends_at: datetime | None = None
    expires_at: datetime | None = Field(None, alias="subscription_expires_at")

    @property
    def is_free(self) -> bool:
        return self.status == "free"

    @property
    def is_trial(self) -> bool:
        return self.status == "trial"

    @property
    def is_pro(self) -> bool:
        return self.status == "pro"

    @property
    def is_expired(self) -> bool:
        return self.status == "expired"

    @property
    def groups_percentage(self) -> float:
        if self.groups_limit <= 0:
            return 0.0
        return self.groups_used / self.groups_limit * 100

    @property
    def items_percentage(self) -> float:
        if self.items_limit <= 0:
            return 0.0
        return self.items_used / self.items_limit * 100

    @property
    def is_approaching_limits(self) -> bool:
        return (
            self.groups_percentage >= APPROACHING_LIMIT_PCT
            or self.items_percentage >= APPROACHING_LIMIT_PCT
        )

    def limit_details(self) -> dict[str, dict[str, float]] | None:
        """Usage breakdown, only when a limit is close."""
        if not self.is_approaching_limits:
            return None
        return {
            "groups": {
                "current": self.groups_used,
                "max": self.groups_limit,
                "percentage": self.groups_percentage,
            },
            "items": {
                "current": self.items_used,
                "max": self.items_limit,
                "percentage": self.items_percentage,
            },
        }


class InvitationStats(BaseModel):
    """Invitation counts for one group, by status."""

    pending: int = 0
    accepted: int = 0
    declined: int = 0
    total: int = 0

    @classmethod
    def from_statuses(cls, statuses: list[str | None]) -> InvitationStats:
        return cls(
            pending=statuses.count("pending"),
            accepted=statuses.count("accepted"),
            declined=statuses.count("declined"),
            total=len(statuses),
        )
