"""Data models for the security ledger."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from hideout.detection.models import ScanResult, ThreatLevel, ThreatType


def new_entry_id() -> str:
    return uuid.uuid4().hex[:16]


@dataclass
class LedgerEntry:
    """One recorded scan outcome. Evidence: never edited except for the
    false-positive mark."""

    message: str
    result: ScanResult
    sender_id: str
    room_id: str
    id: str = field(default_factory=new_entry_id)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    false_positive: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "message": self.message,
            "result": self.result.to_dict(),
            "sender_id": self.sender_id,
            "room_id": self.room_id,
            "false_positive": self.false_positive,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LedgerEntry:
        timestamp = datetime.fromisoformat(data["timestamp"])
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return cls(
            id=data["id"],
            timestamp=timestamp,
            message=data.get("message", ""),
            result=ScanResult.from_dict(data.get("result") or {}),
            sender_id=data.get("sender_id", ""),
            room_id=data.get("room_id", ""),
            false_positive=bool(data.get("false_positive", False)),
        )

    def matches_text(self, needle: str) -> bool:
        """Case-insensitive search over message, reason and indicators."""
        needle = needle.lower()
        return (
            needle in self.message.lower()
            or needle in self.result.reason.lower()
            or any(needle in ind.lower() for ind in self.result.detected_indicators)
        )


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class LedgerQuery:
    """Filters for :meth:`SecurityLedger.query`. Time bounds are inclusive."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    threat_level: Optional[ThreatLevel] = None
    threat_type: Optional[ThreatType] = None
    search: str = ""
    ascending: bool = False
    limit: Optional[int] = None

    def __post_init__(self) -> None:
        # Naive bounds are read as UTC
        self.start = _as_utc(self.start)
        self.end = _as_utc(self.end)

    def accepts(self, entry: LedgerEntry) -> bool:
        if self.start is not None and entry.timestamp < self.start:
            return False
        if self.end is not None and entry.timestamp > self.end:
            return False
        if self.threat_level is not None and entry.result.threat_level is not self.threat_level:
            return False
        if self.threat_type is not None and entry.result.threat_type is not self.threat_type:
            return False
        if self.search and not entry.matches_text(self.search):
            return False
        return True
