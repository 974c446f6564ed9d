"""Mapping scan results to enforcement actions."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from enum import Enum
from typing import Optional

from hideout.detection.models import ScanResult, ThreatLevel
from hideout.policy.config import SecurityConfig, SecurityMode

logger = logging.getLogger(__name__)


class SecurityAction(Enum):
    """What happens to a scanned message."""

    ALLOW = "allow"
    WARN = "warn"
    BLOCK = "block"
    QUARANTINE = "quarantine"

    @property
    def withholds(self) -> bool:
        """True when the message must not reach other participants."""
        return self in (SecurityAction.BLOCK, SecurityAction.QUARANTINE)


def decide(result: ScanResult, config: SecurityConfig) -> SecurityAction:
    """Decide the action for *result* under *config*.

    Total over every threat level and flag combination. Critical threats are
    always blocked; configuration only softens or hardens lower levels.
    """
    if not result.is_threat:
        return SecurityAction.ALLOW

    level = result.threat_level
    if level is ThreatLevel.CRITICAL:
        return SecurityAction.BLOCK
    if level is ThreatLevel.HIGH:
        return SecurityAction.BLOCK if config.block_high_risk else SecurityAction.WARN
    if level is ThreatLevel.MEDIUM:
        return SecurityAction.QUARANTINE if config.auto_block_medium else SecurityAction.WARN
    if level is ThreatLevel.LOW:
        return SecurityAction.WARN if config.show_warnings else SecurityAction.ALLOW
    if level is ThreatLevel.SAFE:
        return SecurityAction.ALLOW
    raise AssertionError(f"unhandled threat level {level!r}")


class SecurityPolicy:
    """Owner of the active :class:`SecurityConfig`.

    Readers always see a complete config: updates swap the whole frozen
    struct under a lock.
    """

    def __init__(self, config: Optional[SecurityConfig] = None) -> None:
        self._config = config or SecurityConfig()
        self._lock = threading.Lock()

    @property
    def config(self) -> SecurityConfig:
        with self._lock:
            return self._config

    def update(self, config: SecurityConfig) -> SecurityConfig:
        """Replace the active config and return the previous one."""
        with self._lock:
            previous, self._config = self._config, config
        logger.info("Security config updated (mode=%s)", config.mode.value)
        return previous

    def decide(self, result: ScanResult) -> SecurityAction:
        return decide(result, self.config)

    # -- presets ---------------------------------------------------------------

    def emergency_mode(self) -> SecurityConfig:
        """Switch to the most sensitive settings."""
        new = replace(
            self.config,
            mode=SecurityMode.HYBRID,
            threat_threshold=0.2,
            block_high_risk=True,
            show_warnings=True,
            auto_block_medium=True,
            log_all_messages=True,
        )
        self.update(new)
        logger.warning("Emergency security mode enabled")
        return new

    def normal_mode(self) -> SecurityConfig:
        """Restore the default sensitivity, keeping reputation settings."""
        new = replace(SecurityConfig(), reputation=self.config.reputation)
        self.update(new)
        return new

    # -- diagnostics -----------------------------------------------------------

    def protection_score(self) -> int:
        cfg = self.config
        score = 0
        if cfg.enabled:
            score += 30
        if cfg.reputation.enabled:
            score += 20
        if cfg.mode is SecurityMode.HYBRID:
            score += 20
        if cfg.block_high_risk:
            score += 15
        if cfg.log_all_messages:
            score += 10
        if cfg.reputation.api_key:
            score += 5
        return score

    def protection_level(self) -> str:
        score = self.protection_score()
        if score >= 80:
            return "high"
        if score >= 60:
            return "medium"
        if score >= 40:
            return "low"
        return "very_low"

    def recommendations(self) -> list[str]:
        cfg = self.config
        tips: list[str] = []
        if not cfg.enabled:
            tips.append("Enable message scanning.")
        if not cfg.reputation.enabled:
            tips.append("Enable URL reputation lookups.")
        if not cfg.reputation.api_key:
            tips.append("Set a reputation service API key for higher rate limits.")
        if cfg.mode is SecurityMode.BASIC:
            tips.append("Use hybrid mode to combine lexicon and URL reputation.")
        if not cfg.block_high_risk:
            tips.append("Block high-risk messages automatically.")
        if not cfg.log_all_messages:
            tips.append("Log all messages to improve security analysis.")
        if cfg.threat_threshold > 0.5:
            tips.append("Lower the warning threshold for more sensitive checks.")
        return tips
