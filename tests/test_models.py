"""Tests for API models."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from conftest import make_group, make_invitation
from hivesync.api.models import GroupMember, InvitationStats, SubscriptionInfo


class TestGroupSignature:
    def test_equal_for_same_fields(self):
        assert make_group("g1").signature() == make_group("g1").signature()

    def test_member_order_ignored(self):
        a = GroupMember(id="m1", group_id="g1", user_id="u1", role="owner")
        b = GroupMember(id="m2", group_id="g1", user_id="u2")
        assert make_group("g1", members=[a, b]).signature() == \
            make_group("g1", members=[b, a]).signature()

    def test_role_change_detected(self):
        owner = GroupMember(id="m1", group_id="g1", user_id="u1", role="owner")
        admin = GroupMember(id="m1", group_id="g1", user_id="u1", role="admin")
        assert make_group("g1", members=[owner]).signature() != \
            make_group("g1", members=[admin]).signature()

    def test_count_change_detected(self):
        assert make_group("g1").signature() != make_group("g1", item_count=3).signature()

    def test_missing_required_field(self):
        with pytest.raises(ValidationError):
            make_group("g1", name=None, creator_id=None)


class TestInvitation:
    def test_status_change_detected(self):
        assert make_invitation("i1").signature() != \
            make_invitation("i1", status="declined").signature()

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            make_invitation("i1", status="maybe")


class TestSubscriptionInfo:
    def test_defaults_are_free_tier(self):
        info = SubscriptionInfo()
        assert info.is_free
        assert info.groups_limit == 1
        assert info.items_limit == 10
        assert not info.can_create_group

    def test_parses_backend_names(self):
        info = SubscriptionInfo.model_validate({
            "subscription_status": "pro",
            "groups_count": 3,
            "max_groups": 10,
            "items_count": 40,
            "max_items": 100,
            "subscription_expires_at": "2026-12-31T00:00:00Z",
            "can_create_group": True,
        })
        assert info.is_pro
        assert info.groups_used == 3
        assert info.items_limit == 100
        assert info.expires_at == datetime(2026, 12, 31, tzinfo=timezone.utc)
        assert info.can_create_group

    def test_status_flags_follow_status(self):
        assert SubscriptionInfo(status="trial").is_trial
        assert SubscriptionInfo(status="expired").is_expired
        assert not SubscriptionInfo(status="expired").is_pro

    def test_percentages(self):
        info = SubscriptionInfo(groups_used=1, groups_limit=4, items_used=5, items_limit=10)
        assert info.groups_percentage == 25.0
        assert info.items_percentage == 50.0

    def test_zero_limit_percentage(self):
        assert SubscriptionInfo(groups_used=2, groups_limit=0).groups_percentage == 0.0

    def test_not_approaching_limits(self):
        info = SubscriptionInfo(groups_used=0, items_used=7)
        assert not info.is_approaching_limits
        assert info.limit_details() is None

    def test_approaching_limits_at_eighty_percent(self):
        info = SubscriptionInfo(items_used=8, items_limit=10)
        assert info.is_approaching_limits
        details = info.limit_details()
        assert details["items"] == {"current": 8, "max": 10, "percentage": 80.0}
        assert details["groups"]["max"] == 1


class TestInvitationStats:
    def test_counts_by_status(self):
        stats = InvitationStats.from_statuses(["pending", "declined", "pending", "accepted"])
        assert stats.pending == 2
        assert stats.accepted == 1
        assert stats.declined == 1
        assert stats.total == 4

    def test_unknown_status_only_counts_toward_total(self):
        stats = InvitationStats.from_statuses(["expired", None])
        assert stats.pending == 0
        assert stats.total == 2
