"""Mode-aware scanning: lexicon engine plus URL reputation."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from hideout.detection.engine import ThreatScanner
from hideout.detection.models import (
    THREAT_CUTOFF,
    ScanResult,
    ThreatLevel,
    ThreatType,
)
from hideout.detection.urls import extract_urls
from hideout.policy.config import SecurityConfig, SecurityMode
from hideout.reputation.checker import ReputationChecker

logger = logging.getLogger(__name__)

DISABLED_REASON = "Security scanning is disabled."
REPUTATION_SAFE_REASON = "No URL reputation findings; message appears safe."
PHISHING_URL_REASON = "Known phishing URL confirmed by the reputation service."

# Weight of lexicon findings when the reputation service found nothing.
LEXICON_SUPPORT_WEIGHT = 0.5


class MessageScanner:
    """Combines the pure engine with URL reputation according to the mode.

    The same instance backs both the advisory pre-send check and the
    authoritative check at the fan-out boundary, so both always agree.
    """

    def __init__(
        self,
        engine: ThreatScanner,
        checker: Optional[ReputationChecker],
        config: Callable[[], SecurityConfig],
    ) -> None:
        self.engine = engine
        self.checker = checker
        self._config = config

    async def scan(self, text: str) -> ScanResult:
        config = self._config()
        if not config.enabled:
            return ScanResult.safe(DISABLED_REASON)

        basic = self.engine.scan(text)
        if config.mode is SecurityMode.BASIC or self.checker is None:
            return basic

        reputation = await self._reputation_scan(text, basic)
        if config.mode is SecurityMode.REPUTATION:
            return reputation
        return _combine(basic, reputation)

    async def _reputation_scan(self, text: str, basic: ScanResult) -> ScanResult:
        urls = extract_urls(text)
        malicious = await self.checker.check_urls(urls) if urls else None
        if malicious is not None:
            return ScanResult(
                is_threat=True,
                confidence_score=1.0,
                threat_type=ThreatType.PHISHING_URL,
                threat_level=ThreatLevel.CRITICAL,
                detected_indicators=(malicious,),
                reason=PHISHING_URL_REASON,
            )

        if not basic.is_threat:
            return ScanResult.safe(REPUTATION_SAFE_REASON)

        confidence = basic.confidence_score * LEXICON_SUPPORT_WEIGHT
        if confidence < THREAT_CUTOFF:
            return ScanResult(
                is_threat=False,
                confidence_score=confidence,
                threat_type=ThreatType.SAFE,
                threat_level=ThreatLevel.from_score(confidence),
                detected_indicators=basic.detected_indicators,
                reason=REPUTATION_SAFE_REASON,
            )
        return ScanResult(
            is_threat=True,
            confidence_score=confidence,
            threat_type=basic.threat_type,
            threat_level=ThreatLevel.from_score(confidence),
            detected_indicators=basic.detected_indicators,
            reason=basic.reason,
        )


def _combine(basic: ScanResult, reputation: ScanResult) -> ScanResult:
    """Hybrid mode: keep the more confident result, merge the evidence."""
    if reputation.confidence_score > basic.confidence_score:
        primary, secondary, label = reputation, basic, "Reputation + lexicon"
    else:
        primary, secondary, label = basic, reputation, "Lexicon + reputation"

    return ScanResult(
        is_threat=primary.is_threat or secondary.is_threat,
        confidence_score=primary.confidence_score,
        threat_type=primary.threat_type,
        threat_level=primary.threat_level,
        detected_indicators=tuple(
            dict.fromkeys(primary.detected_indicators + secondary.detected_indicators)
        ),
        reason=f"{label}: {primary.reason} {secondary.reason}",
    )
