"""Timestamp helpers shared by every cache and policy."""

from __future__ import annotations

from typing import NamedTuple


class CacheStats(NamedTuple):
    """Age of a cached value and whether it has outlived its TTL."""

    age: float | None
    is_stale: bool


def is_older_than(timestamp: float, duration: float, now: float) -> bool:
    """True once ``duration`` seconds or more have passed since ``timestamp``."""
    return now - timestamp >= duration


def cache_stats(fetched_at: float | None, ttl: float, now: float) -> CacheStats:
    if fetched_at is None:
        return CacheStats(age=None, is_stale=True)
    return CacheStats(age=now - fetched_at, is_stale=is_older_than(fetched_at, ttl, now))
