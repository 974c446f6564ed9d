"""Deterministic, explainable threat scoring.

The engine runs five independent category scans over the lower-cased text.
Each scan sums fixed weights for the indicators it finds; the total is scaled
into a confidence score and mapped onto a threat level. Work is bounded by
``len(text) * lexicon size``: every check is a substring test.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from hideout.detection.models import (
    SAFE_REASON,
    THREAT_CUTOFF,
    ScanResult,
    ThreatLevel,
    ThreatType,
)
from hideout.lexicon.models import Lexicon

# ---------------------------------------------------------------------------
# Weights
# ---------------------------------------------------------------------------

PHISHING_WEIGHTS: dict[str, float] = {
    "high_risk_keywords": 3.0,
    "medium_risk_keywords": 1.5,
    "financial_keywords": 1.0,
}

MALWARE_WEIGHTS: dict[str, float] = {
    "malware_extensions": 2.5,
    "suspicious_domains": 2.0,
    "command_injection_patterns": 4.0,
    "sql_injection_patterns": 4.0,
    "xss_patterns": 3.5,
}

SCAM_WEIGHTS: dict[str, float] = {
    "romance_scam_keywords": 2.0,
    "financial_emergency_scams": 2.5,
    "lottery_prize_scams": 2.0,
    "investment_fraud_keywords": 3.0,
    "government_impersonation": 3.5,
}

URL_WEIGHTS: dict[str, float] = {
    "url_patterns": 2.0,
    "link_shorteners": 1.5,
}

SOCIAL_ENGINEERING_WEIGHT = 1.5
URGENCY_BONUS = 0.5
EMOJI_BONUS = 0.5
EMOJI_LIMIT = 5

SCORE_SCALE = 10.0


@dataclass
class CategoryFinding:
    """Partial score and matched indicators of one category scan."""

    category: str
    score: float = 0.0
    indicators: list[str] = field(default_factory=list)

    def add(self, indicator: str, weight: float) -> None:
        self.indicators.append(indicator)
        self.score += weight


@dataclass(frozen=True)
class _Category:
    name: str
    threat_type: Optional[ThreatType]
    phrase: str


# Evaluation order matters: the last contributing typed category names the threat.
CATEGORIES: tuple[_Category, ...] = (
    _Category("phishing", ThreatType.PHISHING, "Phishing keywords detected."),
    _Category("malware", ThreatType.MALWARE, "Malicious patterns detected."),
    _Category("scam", ThreatType.SCAM, "Scam keywords detected."),
    _Category("url", ThreatType.SUSPICIOUS_URL, "Suspicious URL detected."),
    _Category("emotional", None, "Emotional manipulation detected."),
)


def _match_weighted(
    text: str, lexicon: Lexicon, group: str, weights: dict[str, float]
) -> CategoryFinding:
    finding = CategoryFinding(category=group)
    for list_name, weight in weights.items():
        for indicator in lexicon.indicators(group, list_name):
            if indicator in text:
                finding.add(indicator, weight)
    return finding


def _match_emotional(text: str, lexicon: Lexicon) -> CategoryFinding:
    finding = CategoryFinding(category="emotional")
    for phrase in lexicon.indicators("emotional", "social_engineering_phrases"):
        if phrase in text:
            finding.add(phrase, SOCIAL_ENGINEERING_WEIGHT)

    # Flat bonus, no matter how many urgency words appear
    if any(word in text for word in lexicon.indicators("emotional", "urgency_words")):
        finding.score += URGENCY_BONUS

    emoji = set(lexicon.indicators("emotional", "manipulative_emoji"))
    if emoji and len(emoji.intersection(text)) > EMOJI_LIMIT:
        finding.score += EMOJI_BONUS
    return finding


class ThreatScanner:
    """Pure scoring function over a fixed lexicon snapshot.

    Instances hold no mutable state, so one scanner can serve any number of
    concurrent callers.
    """

    def __init__(self, lexicon: Lexicon) -> None:
        self._lexicon = lexicon

    @property
    def lexicon(self) -> Lexicon:
        return self._lexicon

    def category_findings(self, text: str) -> list[CategoryFinding]:
        """Run the five category scans over already-normalised *text*."""
        lex = self._lexicon
        return [
            _match_weighted(text, lex, "phishing", PHISHING_WEIGHTS),
            _match_weighted(text, lex, "malware", MALWARE_WEIGHTS),
            _match_weighted(text, lex, "scam", SCAM_WEIGHTS),
            _match_weighted(text, lex, "url", URL_WEIGHTS),
            _match_emotional(text, lex),
        ]

    def scan(self, text: str) -> ScanResult:
        """Score *text* and explain the result."""
        normalized = (text or "").lower().strip()
        if not normalized:
            return ScanResult.safe()

        findings = self.category_findings(normalized)

        total = 0.0
        indicators: list[str] = []
        reasons: list[str] = []
        threat_type: Optional[ThreatType] = None
        for category, finding in zip(CATEGORIES, findings):
            if finding.score <= 0:
                continue
            total += finding.score
            indicators.extend(finding.indicators)
            reasons.append(category.phrase)
            if category.threat_type is not None:
                threat_type = category.threat_type

        confidence = min(total / SCORE_SCALE, 1.0)
        level = ThreatLevel.from_score(confidence)
        is_threat = confidence >= THREAT_CUTOFF

        if not is_threat:
            return ScanResult(
                is_threat=False,
                confidence_score=confidence,
                threat_type=ThreatType.SAFE,
                threat_level=level,
                detected_indicators=tuple(dict.fromkeys(indicators)),
                reason=SAFE_REASON,
            )

        return ScanResult(
            is_threat=True,
            confidence_score=confidence,
            # Emotional manipulation carries no type of its own
            threat_type=threat_type or ThreatType.SAFE,
            threat_level=level,
            detected_indicators=tuple(dict.fromkeys(indicators)),
            reason=" ".join(reasons),
        )
