"""Pydantic models for API request/response serialization.

These mirror the hideout dataclasses and provide JSON serialization for the
FastAPI endpoints.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Scan models
# ---------------------------------------------------------------------------


class ScanRequest(BaseModel):
    text: str = Field(..., max_length=4000)


class ScanResultResponse(BaseModel):
    """Mirrors hideout.detection.models.ScanResult."""

    is_threat: bool
    confidence_score: float
    threat_type: str
    threat_level: str
    detected_indicators: list[str] = Field(default_factory=list)
    reason: str = ""


class AdvisoryResponse(BaseModel):
    """Advisory pre-send check. Nothing is recorded."""

    result: ScanResultResponse
    action: str
    should_warn: bool


# ---------------------------------------------------------------------------
# Config models
# ---------------------------------------------------------------------------


class ReputationSettingsModel(BaseModel):
    """Mirrors hideout.policy.config.ReputationSettings."""

    enabled: bool = True
    api_key: str = ""
    use_cache: bool = True
    cache_ttl_hours: float = 24.0
    cache_capacity: int = 1000
    timeout_seconds: float = 10.0
    endpoint: str = ""
    log_requests: bool = True


class SecurityConfigResponse(BaseModel):
    """Mirrors hideout.policy.config.SecurityConfig."""

    enabled: bool
    mode: str
    threat_threshold: float
    block_high_risk: bool
    show_warnings: bool
    auto_block_medium: bool
    log_all_messages: bool
    max_ledger_entries: int
    reputation: ReputationSettingsModel
    protection_level: str = ""
    recommendations: list[str] = Field(default_factory=list)


class ReputationSettingsUpdate(BaseModel):
    enabled: Optional[bool] = None
    api_key: Optional[str] = None
    use_cache: Optional[bool] = None
    cache_ttl_hours: Optional[float] = Field(default=None, gt=0)
    cache_capacity: Optional[int] = Field(default=None, gt=0)
    timeout_seconds: Optional[float] = Field(default=None, gt=0, le=10)
    endpoint: Optional[str] = None
    log_requests: Optional[bool] = None


class SecurityConfigUpdate(BaseModel):
    """Partial update; omitted fields keep their current value."""

    enabled: Optional[bool] = None
    mode: Optional[str] = Field(default=None, pattern="^(basic|reputation|hybrid)$")
    threat_threshold: Optional[float] = Field(default=None, gt=0, lt=1)
    block_high_risk: Optional[bool] = None
    show_warnings: Optional[bool] = None
    auto_block_medium: Optional[bool] = None
    log_all_messages: Optional[bool] = None
    max_ledger_entries: Optional[int] = Field(default=None, gt=0)
    reputation: Optional[ReputationSettingsUpdate] = None


# ---------------------------------------------------------------------------
# Ledger models
# ---------------------------------------------------------------------------


class LedgerEntryResponse(BaseModel):
    """Mirrors hideout.ledger.models.LedgerEntry."""

    id: str
    timestamp: str
    message: str
    result: ScanResultResponse
    sender_id: str = ""
    room_id: str = ""
    false_positive: bool = False


class LedgerClearResponse(BaseModel):
    cleared: int


class FalsePositiveResponse(BaseModel):
    id: str
    false_positive: bool = True
    false_positives: int = 0


# ---------------------------------------------------------------------------
# Diagnostics models
# ---------------------------------------------------------------------------


class SecurityStatsResponse(BaseModel):
    total_scanned: int = 0
    threats_detected: int = 0
    blocked: int = 0
    warned: int = 0
    false_positives: int = 0
    threat_types: dict[str, int] = Field(default_factory=dict)
    last_scan: str = ""
    threat_rate: float = 0.0
    ledger_entries: int = 0
    reputation: dict[str, Any] = Field(default_factory=dict)
    cache: dict[str, Any] = Field(default_factory=dict)
    protection_level: str = ""


class LexiconResponse(BaseModel):
    version: str
    empty: bool
    lists: dict[str, int] = Field(default_factory=dict)
