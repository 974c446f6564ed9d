"""Counters exposed to the statistics/diagnostics surface."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from hideout.detection.models import ScanResult
from hideout.policy.decision import SecurityAction


@dataclass
class SecurityStats:
    """Running totals of scan outcomes."""

    total_scanned: int = 0
    threats_detected: int = 0
    blocked: int = 0
    warned: int = 0
    false_positives: int = 0
    threat_types: dict[str, int] = field(default_factory=dict)
    last_scan: str = ""

    def __post_init__(self) -> None:
        self._lock = threading.Lock()

    def record_scan(self, result: ScanResult, action: SecurityAction) -> None:
        with self._lock:
            self.total_scanned += 1
            self.last_scan = datetime.now(timezone.utc).isoformat()
            if result.is_threat:
                self.threats_detected += 1
                key = result.threat_type.value
                self.threat_types[key] = self.threat_types.get(key, 0) + 1
            if action.withholds:
                self.blocked += 1
            elif action is SecurityAction.WARN:
                self.warned += 1

    def record_false_positive(self) -> None:
        with self._lock:
            self.false_positives += 1

    def reset(self) -> None:
        with self._lock:
            self.total_scanned = 0
            self.threats_detected = 0
            self.blocked = 0
            self.warned = 0
            self.false_positives = 0
            self.threat_types = {}
            self.last_scan = ""

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "total_scanned": self.total_scanned,
                "threats_detected": self.threats_detected,
                "blocked": self.blocked,
                "warned": self.warned,
                "false_positives": self.false_positives,
                "threat_types": dict(self.threat_types),
                "last_scan": self.last_scan,
            }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SecurityStats:
        return cls(
            total_scanned=int(data.get("total_scanned", 0)),
            threats_detected=int(data.get("threats_detected", 0)),
            blocked=int(data.get("blocked", 0)),
            warned=int(data.get("warned", 0)),
            false_positives=int(data.get("false_positives", 0)),
            threat_types={str(k): int(v) for k, v in (data.get("threat_types") or {}).items()},
            last_scan=str(data.get("last_scan", "")),
        )
