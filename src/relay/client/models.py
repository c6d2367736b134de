"""Request and refresh bookkeeping models."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass
class RequestDescriptor:
    """A single outgoing API call.

    Created per call and mutated in place as it moves through the
    dispatcher: the decorator writes ``Authorization`` into ``headers`` and
    a post-refresh resubmission sets ``retried``. Once set, ``retried`` is
    never cleared.
    """

    method: str
    path: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None
    params: dict[str, Any] | None = None
    retried: bool = False

    def mark_retried(self, token: str) -> None:
        self.retried = True
        self.headers["Authorization"] = bearer(token)


class RefreshState(Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


@dataclass
class PendingWaiter:
    """A request parked until the in-flight refresh settles.

    The future resolves with the new access token, or fails with
    ``SessionExpiredError``.
    """

    request: RequestDescriptor
    future: asyncio.Future[str]


def bearer(token: str) -> str:
    return f"Bearer {token}"
