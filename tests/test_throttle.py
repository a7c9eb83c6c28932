"""Tests for ThrottledRefresher."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from hivesync.services.throttle import ThrottledRefresher


async def test_second_attempt_inside_interval_is_dropped(clock):
    refresher = ThrottledRefresher(clock)
    action = AsyncMock()

    assert await refresher.attempt(action, 1.0)
    clock.advance(0.5)
    assert not await refresher.attempt(action, 1.0)
    assert action.await_count == 1


async def test_runs_again_after_interval(clock):
    refresher = ThrottledRefresher(clock)
    action = AsyncMock()

    await refresher.attempt(action, 1.0)
    clock.advance(1.0)
    assert await refresher.attempt(action, 1.0)
    assert action.await_count == 2


async def test_overlapping_attempt_is_dropped(clock):
    refresher = ThrottledRefresher(clock)
    release = asyncio.Event()
    calls = 0

    async def slow() -> None:
        nonlocal calls
        calls += 1
        await release.wait()

    first = asyncio.create_task(refresher.attempt(slow, 0))
    await asyncio.sleep(0)
    assert refresher.is_running
    assert not await refresher.attempt(slow, 0)

    release.set()
    assert await first
    assert calls == 1
    assert not refresher.is_running


async def test_last_run_stamped_before_action(clock):
    refresher = ThrottledRefresher(clock)
    seen: list[float | None] = []

    async def action() -> None:
        seen.append(refresher.last_run_at)

    await refresher.attempt(action, 1.0)
    assert seen == [clock.now]


async def test_failure_resets_running_flag(clock):
    refresher = ThrottledRefresher(clock)
    action = AsyncMock(side_effect=RuntimeError("boom"))

    with pytest.raises(RuntimeError):
        await refresher.attempt(action, 1.0)
    assert not refresher.is_running

    # The failed run still counts toward the interval.
    assert not await refresher.attempt(action, 1.0)
    clock.advance(1.0)
    with pytest.raises(RuntimeError):
        await refresher.attempt(action, 1.0)
