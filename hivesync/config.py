"""Settings for the sync engine: .env for secrets, settings.yaml for tuning."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

from hivesync.api.client import DEFAULT_BASE_URL

log = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _load_env() -> None:
    load_dotenv(PROJECT_ROOT / ".env")


def _load_yaml() -> dict:
    path = PROJECT_ROOT / "settings.yaml"
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError:
        log.warning("Ignoring malformed %s, using defaults", path.name)
        return {}
    return data if isinstance(data, dict) else {}


class Settings(BaseModel):
    api_url: str = DEFAULT_BASE_URL
    api_key: str = ""
    user_id: str = ""

    @field_validator("api_key", "user_id")
    @classmethod
    def strip_value(cls, v: str) -> str:
        return v.strip()

    # Seconds. Invitations go stale sooner than groups.
    groups_ttl: float = 300
    invitations_ttl: float = 120
    subscription_ttl: float = 300
    subscription_refresh_interval: float = 1.0
    focus_refresh_interval: float = 2.0
    fetch_timeout: float = 15.0

    persisted_cache: str = "sqlite"  # "sqlite" or "memory"
    cache_path: str = str(PROJECT_ROOT / "hive_cache.db")
    persisted_max_age: float = 1800

    poll_interval: float = 30
    log_file: str = str(PROJECT_ROOT / "hivesync.log")

    @field_validator(
        "groups_ttl",
        "invitations_ttl",
        "subscription_ttl",
        "fetch_timeout",
        "persisted_max_age",
        "poll_interval",
    )
    @classmethod
    def positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("persisted_cache")
    @classmethod
    def known_backend(cls, v: str) -> str:
        if v not in ("sqlite", "memory"):
            raise ValueError("persisted_cache must be 'sqlite' or 'memory'")
        return v


def load_settings() -> Settings:
    """Environment variables win over settings.yaml."""
    _load_env()
    raw = _load_yaml()
    raw["api_key"] = os.getenv("HIVE_API_KEY", raw.get("api_key", ""))
    raw["user_id"] = os.getenv("HIVE_USER_ID", raw.get("user_id", ""))
    if os.getenv("HIVE_API_URL"):
        raw["api_url"] = os.environ["HIVE_API_URL"]
    return Settings(**raw)
