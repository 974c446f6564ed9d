"""Data models for scan results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ThreatType(Enum):
    """Category a threat was attributed to."""

    SAFE = "safe"
    PHISHING = "phishing"
    MALWARE = "malware"
    SCAM = "scam"
    SUSPICIOUS_URL = "suspicious_url"
    PHISHING_URL = "phishing_url"


class ThreatLevel(Enum):
    """Ordered severity derived from the confidence score."""

    SAFE = "safe"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return list(ThreatLevel).index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, ThreatLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, ThreatLevel):
            return NotImplemented
        return self.rank <= other.rank

    @classmethod
    def from_score(cls, score: float) -> ThreatLevel:
        for threshold, level in LEVEL_THRESHOLDS:
            if score >= threshold:
                return level
        return cls.SAFE


# Evaluated top-down; first match wins.
LEVEL_THRESHOLDS: list[tuple[float, ThreatLevel]] = [
    (0.8, ThreatLevel.CRITICAL),
    (0.6, ThreatLevel.HIGH),
    (0.4, ThreatLevel.MEDIUM),
    (0.2, ThreatLevel.LOW),
]

# Detection cut-off; independent of the configurable action threshold.
THREAT_CUTOFF = 0.3

SAFE_REASON = "Message appears safe."


@dataclass(frozen=True)
class ScanResult:
    """Immutable, explained outcome of scanning one message."""

    is_threat: bool
    confidence_score: float
    threat_type: ThreatType
    threat_level: ThreatLevel
    detected_indicators: tuple[str, ...] = field(default_factory=tuple)
    reason: str = SAFE_REASON

    @classmethod
    def safe(cls, reason: str = SAFE_REASON) -> ScanResult:
        return cls(
            is_threat=False,
            confidence_score=0.0,
            threat_type=ThreatType.SAFE,
            threat_level=ThreatLevel.SAFE,
            reason=reason,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_threat": self.is_threat,
            "confidence_score": self.confidence_score,
            "threat_type": self.threat_type.value,
            "threat_level": self.threat_level.value,
            "detected_indicators": list(self.detected_indicators),
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScanResult:
        try:
            threat_type = ThreatType(data.get("threat_type", "safe"))
        except ValueError:
            threat_type = ThreatType.SAFE
        try:
            threat_level = ThreatLevel(data.get("threat_level", "safe"))
        except ValueError:
            threat_level = ThreatLevel.SAFE
        return cls(
            is_threat=bool(data.get("is_threat", False)),
            confidence_score=float(data.get("confidence_score", 0.0)),
            threat_type=threat_type,
            threat_level=threat_level,
            detected_indicators=tuple(data.get("detected_indicators", [])),
            reason=data.get("reason", SAFE_REASON),
        )
