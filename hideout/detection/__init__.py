"""Threat detection: the pure scoring engine and the mode-aware scanner."""

from hideout.detection.models import ScanResult, ThreatLevel, ThreatType
from hideout.detection.engine import ThreatScanner

__all__ = ["ScanResult", "ThreatLevel", "ThreatType", "ThreatScanner"]
