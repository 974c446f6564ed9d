"""Data models for messages moving through the pipeline."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from hideout.detection.models import ScanResult
from hideout.policy.decision import SecurityAction

MAX_CONTENT_LENGTH = 4000


def new_message_id() -> str:
    return uuid.uuid4().hex


class MessageState(Enum):
    """Lifecycle of a message. Leaves SENDING exactly once."""

    SENDING = "sending"
    SENT = "sent"
    WARNING = "warning"  # Delivered with a warning annotation
    BLOCKED = "blocked"
    FAILED = "failed"  # Passed screening, transport failed


@dataclass(frozen=True)
class Message:
    """A chat message. ``id`` is caller-supplied and acts as idempotency key."""

    id: str
    room_id: str
    sender_id: str
    content: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    nickname: Optional[str] = None
    anonymous_id: Optional[int] = None
    unique_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "room_id": self.room_id,
            "sender_id": self.sender_id,
            "content": self.content,
            "created_at": self.created_at.isoformat(),
            "nickname": self.nickname,
            "anonymous_id": self.anonymous_id,
            "unique_id": self.unique_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        created = data.get("created_at")
        created_at = datetime.fromisoformat(created) if created else datetime.now(timezone.utc)
        return cls(
            id=str(data.get("id") or new_message_id()),
            room_id=str(data["room_id"]),
            sender_id=str(data.get("sender_id", "")),
            content=str(data.get("content", "")),
            created_at=created_at,
            nickname=data.get("nickname"),
            anonymous_id=data.get("anonymous_id"),
            unique_id=data.get("unique_id"),
        )


@dataclass(frozen=True)
class ScanAnnotation:
    """Scan result and decided action attached to a message."""

    result: ScanResult
    action: SecurityAction

    @property
    def warning(self) -> bool:
        return self.action is SecurityAction.WARN

    def to_dict(self) -> dict[str, Any]:
        return {"action": self.action.value, "result": self.result.to_dict()}


@dataclass
class MessageRecord:
    """A message plus its place in the lifecycle."""

    message: Message
    state: MessageState = MessageState.SENDING
    annotation: Optional[ScanAnnotation] = None
    error: str = ""

    @property
    def id(self) -> str:
        return self.message.id

    def transition(
        self,
        state: MessageState,
        annotation: Optional[ScanAnnotation] = None,
        error: str = "",
    ) -> None:
        if self.state is not MessageState.SENDING:
            raise ValueError(
                f"Message {self.id} already left SENDING (now {self.state.value})"
            )
        if state is MessageState.SENDING:
            raise ValueError("Cannot transition into SENDING")
        self.state = state
        if annotation is not None:
            self.annotation = annotation
        self.error = error

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message.to_dict(),
            "state": self.state.value,
            "annotation": self.annotation.to_dict() if self.annotation else None,
            "error": self.error,
        }


@dataclass(frozen=True)
class Advisory:
    """Outcome of the author-side pre-send check. Never enforced."""

    result: ScanResult
    action: SecurityAction
    should_warn: bool
