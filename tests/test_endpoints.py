"""Tests for the backend endpoint wrappers against a mock transport."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import httpx
import pytest
from pydantic import ValidationError

from hivesync.api.client import HiveAPIClient
from hivesync.api.endpoints import (
    activate_trial_remote,
    create_group_remote,
    cancel_invitation_remote,
    delete_group_remote,
    fetch_group_invitation_stats,
    fetch_groups_for_user,
    fetch_pending_invitations,
    fetch_sent_invitations,
    fetch_subscription_info,
    invite_by_code_remote,
    respond_invitation_remote,
    upgrade_to_pro_remote,
)
from hivesync.api.models import CreateGroupData

GROUP = {"id": "g1", "name": "Block party", "creator_id": "user-1", "member_count": 2}


class Recorder:
    """MockTransport handler that records requests and replies from a table."""

    def __init__(self, routes: dict[tuple[str, str], httpx.Response]) -> None:
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.routes.get(
            (request.method, request.url.path), httpx.Response(404, json={"error": "missing"})
        )


def _client(routes) -> tuple[HiveAPIClient, Recorder]:
    recorder = Recorder(routes)
    client = HiveAPIClient(
        "secret", base_url="https://test.local", transport=httpx.MockTransport(recorder)
    )
    return client, recorder


async def test_fetch_groups_sends_api_key():
    client, recorder = _client({("GET", "/users/user-1/groups"): httpx.Response(200, json=[GROUP])})

    groups = await fetch_groups_for_user(client, "user-1")

    assert [g.id for g in groups] == ["g1"]
    assert groups[0].member_count == 2
    assert recorder.requests[0].headers["apikey"] == "secret"
    await client.close()


async def test_fetch_groups_empty_body():
    client, _ = _client({("GET", "/users/user-1/groups"): httpx.Response(200, json=[])})
    assert await fetch_groups_for_user(client, "user-1") == []
    await client.close()


async def test_fetch_groups_malformed_row():
    client, _ = _client({("GET", "/users/user-1/groups"): httpx.Response(200, json=[{"id": "g1"}])})
    with pytest.raises(ValidationError):
        await fetch_groups_for_user(client, "user-1")
    await client.close()


async def test_fetch_pending_invitations_filters_status():
    invitation = {"id": "inv1", "group_id": "g1", "invitee_id": "user-1"}
    client, recorder = _client(
        {("GET", "/users/user-1/invitations"): httpx.Response(200, json=[invitation])}
    )

    invitations = await fetch_pending_invitations(client, "user-1")

    assert invitations[0].status == "pending"
    assert recorder.requests[0].url.params["status"] == "pending"
    await client.close()


async def test_fetch_sent_invitations_any_status():
    rows = [
        {"id": "s1", "group_id": "g1", "invitee_id": "user-3", "status": "declined"},
        {"id": "s2", "group_id": "g1", "invitee_id": "user-4"},
    ]
    client, recorder = _client(
        {("GET", "/users/user-1/invitations/sent"): httpx.Response(200, json=rows)}
    )

    sent = await fetch_sent_invitations(client, "user-1")

    assert [i.status for i in sent] == ["declined", "pending"]
    assert "status" not in recorder.requests[0].url.params
    await client.close()


async def test_server_error_raises_status_error():
    client, _ = _client({("GET", "/users/user-1/groups"): httpx.Response(500)})
    with pytest.raises(httpx.HTTPStatusError):
        await fetch_groups_for_user(client, "user-1")
    await client.close()


async def test_create_group_posts_payload():
    client, recorder = _client({("POST", "/groups"): httpx.Response(201, json=GROUP)})

    group = await create_group_remote(client, CreateGroupData(name="Block party"))

    assert group.id == "g1"
    assert json.loads(recorder.requests[0].content) == {"name": "Block party"}
    await client.close()


async def test_delete_group_accepts_no_content():
    client, recorder = _client({("DELETE", "/groups/g1"): httpx.Response(204)})
    assert await delete_group_remote(client, "g1") is None
    assert recorder.requests[0].method == "DELETE"
    await client.close()


async def test_respond_returns_group():
    client, recorder = _client({
        ("POST", "/invitations/inv1/respond"): httpx.Response(200, json={"group": GROUP}),
    })

    response = await respond_invitation_remote(client, "inv1", "accepted")

    assert response.group.id == "g1"
    assert response.invitation is None
    assert json.loads(recorder.requests[0].content) == {"status": "accepted"}
    await client.close()


async def test_respond_without_body():
    client, _ = _client({("POST", "/invitations/inv1/respond"): httpx.Response(204)})
    response = await respond_invitation_remote(client, "inv1", "declined")
    assert response.group is None
    await client.close()


async def test_subscription_single_row_list():
    row = {"subscription_status": "trial", "groups_count": 1, "max_groups": 5}
    client, _ = _client({("GET", "/users/user-1/subscription"): httpx.Response(200, json=[row])})

    info = await fetch_subscription_info(client, "user-1")

    assert info.is_trial
    assert info.groups_limit == 5
    await client.close()


async def test_subscription_empty_answer_is_free_tier():
    client, _ = _client({("GET", "/users/user-1/subscription"): httpx.Response(200, json=[])})
    info = await fetch_subscription_info(client, "user-1")
    assert info.is_free
    assert info.items_limit == 10
    await client.close()


async def test_activate_trial_and_upgrade():
    client, recorder = _client({
        ("POST", "/users/user-1/subscription/trial"): httpx.Response(204),
        ("POST", "/users/user-1/subscription/upgrade"): httpx.Response(204),
    })
    expires = datetime(2027, 1, 1, tzinfo=timezone.utc)

    await activate_trial_remote(client, "user-1")
    await upgrade_to_pro_remote(client, "user-1", expires)

    assert len(recorder.requests) == 2
    body = json.loads(recorder.requests[1].content)
    assert body == {"subscription_expires_at": expires.isoformat()}
    await client.close()


async def test_invite_by_code_posts_personal_code():
    invitation = {"id": "s1", "group_id": "g1", "invitee_id": "user-3", "inviter_id": "user-1"}
    client, recorder = _client(
        {("POST", "/groups/g1/invitations"): httpx.Response(201, json=invitation)}
    )

    sent = await invite_by_code_remote(client, "g1", "QX7-42")

    assert sent.id == "s1"
    assert sent.status == "pending"
    assert json.loads(recorder.requests[0].content) == {"personal_code": "QX7-42"}
    await client.close()


async def test_invite_by_unknown_code_raises_status_error():
    client, _ = _client({("POST", "/groups/g1/invitations"): httpx.Response(404)})
    with pytest.raises(httpx.HTTPStatusError):
        await invite_by_code_remote(client, "g1", "nobody")
    await client.close()


async def test_cancel_invitation_accepts_no_content():
    client, recorder = _client({("DELETE", "/invitations/s1"): httpx.Response(204)})
    assert await cancel_invitation_remote(client, "s1") is None
    assert recorder.requests[0].method == "DELETE"
    await client.close()


async def test_group_invitation_stats_counts_statuses():
    rows = [{"status": "pending"}, {"status": "pending"}, {"status": "accepted"}]
    client, recorder = _client(
        {("GET", "/groups/g1/invitations"): httpx.Response(200, json=rows)}
    )

    stats = await fetch_group_invitation_stats(client, "g1")

    assert (stats.pending, stats.accepted, stats.declined, stats.total) == (2, 1, 0, 3)
    assert recorder.requests[0].url.params["select"] == "status"
    await client.close()


async def test_group_invitation_stats_empty_body():
    client, _ = _client({("GET", "/groups/g1/invitations"): httpx.Response(200, json=[])})
    stats = await fetch_group_invitation_stats(client, "g1")
    assert stats.total == 0
    await client.close()
