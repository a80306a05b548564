from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any


class EventType(StrEnum):
    NORMAL = "Normal"
    WARNING = "Warning"


class Reason(StrEnum):
    POLICY_APPLIED = "PolicyApplied"
    POLICY_VIOLATION = "PolicyViolation"
    POLICY_ERROR = "PolicyError"


class Source(StrEnum):
    ADMISSION_CONTROLLER = "admitlayer-admission"


@dataclass(frozen=True, slots=True)
class ObjectReference:
    kind: str
    name: str
    namespace: str = ""
    api_version: str = ""

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind} {self.namespace}/{self.name}"
        return f"{self.kind} {self.name}"


@dataclass(frozen=True, slots=True)
class Event:
    """A record describing a policy's effect on a request."""

    regarding: ObjectReference
    reason: Reason
    message: str
    success: bool
    source: Source = Source.ADMISSION_CONTROLLER
    related: ObjectReference | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def type(self) -> EventType:
        return EventType.NORMAL if self.success else EventType.WARNING

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        data["timestamp"] = self.timestamp.isoformat()
        if data["related"] is None:
            del data["related"]
        return data
