"""Data models shared across the bridge."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Protocol

from pydantic import BaseModel, Field


class HeldResource(Protocol):
    """One active inhibitor handed out by the resource client."""

    def release(self) -> None:
        ...


class LockEvent(str, Enum):
    """Audit events emitted over a lock's lifetime."""

    INHIBIT = "lock.inhibit"
    UNINHIBIT = "lock.uninhibit"
    RECLAIMED = "lock.reclaimed"
    DRAINED = "lock.drained"


class LockRecord(BaseModel):
    """Serialisable view of a lock, without its held resource."""

    handle: int = Field(ge=1, le=0xFFFFFFFF)
    owner: str
    reason: str
    peer: str = ""
    created_at: dt.datetime


@dataclass(slots=True, eq=False)
class Lock:
    """State for an individual inhibit lock requested from the session manager."""

    handle: int
    owner: str
    reason: str
    peer: str
    resource: HeldResource
    created_at: dt.datetime = field(default_factory=lambda: dt.datetime.now(dt.timezone.utc))

    def record(self) -> LockRecord:
        return LockRecord(
            handle=self.handle,
            owner=self.owner,
            reason=self.reason,
            peer=self.peer,
            created_at=self.created_at,
        )

    def payload(self) -> Dict[str, Any]:
        return self.record().model_dump(mode="json")

    def __str__(self) -> str:
        return f"{self.owner!r} / {self.reason!r} ({self.peer!r}, {self.handle})"
