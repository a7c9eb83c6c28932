"""Tagged results and the error taxonomy used by the sync layer."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

import httpx
from pydantic import ValidationError

V = TypeVar("V")


class ErrorKind(str, Enum):
    NETWORK = "network"
    TIMEOUT = "timeout"
    VALIDATION = "validation"


@dataclass(frozen=True)
class SyncError:
    """A non-fatal failure the caller can render."""

    kind: ErrorKind
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class Ok(Generic[V]):
    value: V

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    error: SyncError

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[V], Err]


def classify_error(exc: BaseException) -> SyncError | None:
    """Map an exception onto the taxonomy.

    Returns None for exceptions outside it; those are programming errors and
    the caller re-raises them.
    """
    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return SyncError(ErrorKind.TIMEOUT, "Request timed out")
    if isinstance(exc, httpx.HTTPStatusError):
        return SyncError(
            ErrorKind.NETWORK,
            f"Server returned {exc.response.status_code}",
        )
    if isinstance(exc, (httpx.HTTPError, OSError)):
        return SyncError(ErrorKind.NETWORK, str(exc) or "Network error")
    if isinstance(exc, ValidationError):
        return SyncError(
            ErrorKind.VALIDATION,
            f"Malformed payload: {exc.error_count()} invalid field(s)",
        )
    return None
