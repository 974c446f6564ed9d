"""Security configuration, ledger and diagnostics API router.

Prefix: ``/api/security``
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from hideout.detection.models import ThreatLevel, ThreatType
from hideout.errors import StorageError
from hideout.ledger.models import LedgerEntry, LedgerQuery
from hideout.pipeline.pipeline import MessagePipeline
from hideout.services import SecurityServices
from web.backend.app.deps import get_pipeline, get_services
from web.backend.app.models.api import (
    AdvisoryResponse,
    FalsePositiveResponse,
    LedgerClearResponse,
    LedgerEntryResponse,
    LexiconResponse,
    ScanRequest,
    ScanResultResponse,
    SecurityConfigResponse,
    SecurityConfigUpdate,
    SecurityStatsResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/security", tags=["security"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _persist(services: SecurityServices) -> None:
    try:
        services.save()
    except StorageError as exc:
        logger.error("%s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


def _config_response(services: SecurityServices) -> SecurityConfigResponse:
    return SecurityConfigResponse(
        **services.config.to_dict(),
        protection_level=services.policy.protection_level(),
        recommendations=services.policy.recommendations(),
    )


def _entry_response(entry: LedgerEntry) -> LedgerEntryResponse:
    return LedgerEntryResponse(**entry.to_dict())


def _lexicon_response(services: SecurityServices) -> LexiconResponse:
    lexicon = services.lexicon.lexicon
    return LexiconResponse(
        version=lexicon.version,
        empty=lexicon.is_empty,
        lists=lexicon.summary(),
    )


# =========================================================================
# Statistics and configuration
# =========================================================================


@router.get("/stats", response_model=SecurityStatsResponse)
async def get_stats(services: SecurityServices = Depends(get_services)):
    """Scan counters merged with reputation and cache statistics."""
    return SecurityStatsResponse(**services.statistics())


@router.get("/config", response_model=SecurityConfigResponse)
async def get_config(services: SecurityServices = Depends(get_services)):
    return _config_response(services)


@router.put("/config", response_model=SecurityConfigResponse)
async def update_config(
    body: SecurityConfigUpdate,
    services: SecurityServices = Depends(get_services),
):
    """Apply a partial configuration update and persist it."""
    changes = body.model_dump(exclude_none=True)
    services.update_from_dict(changes)
    _persist(services)
    return _config_response(services)


@router.get("/lexicon", response_model=LexiconResponse)
async def get_lexicon(services: SecurityServices = Depends(get_services)):
    return _lexicon_response(services)


@router.post("/lexicon/reload", response_model=LexiconResponse)
async def reload_lexicon(services: SecurityServices = Depends(get_services)):
    """Re-read the lexicon file. A broken file leaves an empty lexicon."""
    services.reload_lexicon()
    return _lexicon_response(services)


# =========================================================================
# Ledger
# =========================================================================


@router.get("/ledger", response_model=list[LedgerEntryResponse])
async def list_ledger(
    start: Optional[datetime] = Query(None, description="Inclusive lower bound"),
    end: Optional[datetime] = Query(None, description="Inclusive upper bound"),
    level: Optional[ThreatLevel] = Query(None),
    threat_type: Optional[ThreatType] = Query(None, alias="type"),
    search: str = Query(""),
    ascending: bool = Query(False),
    limit: Optional[int] = Query(None, ge=1),
    services: SecurityServices = Depends(get_services),
):
    """Query ledger entries, newest first unless ``ascending``."""
    query = LedgerQuery(
        start=start,
        end=end,
        threat_level=level,
        threat_type=threat_type,
        search=search,
        ascending=ascending,
        limit=limit,
    )
    return [_entry_response(e) for e in services.ledger.query(query)]


@router.delete("/ledger", response_model=LedgerClearResponse)
async def clear_ledger(services: SecurityServices = Depends(get_services)):
    count = len(services.ledger)
    services.clear_ledger()
    _persist(services)
    return LedgerClearResponse(cleared=count)


@router.post("/ledger/{entry_id}/false-positive", response_model=FalsePositiveResponse)
async def report_false_positive(
    entry_id: str,
    services: SecurityServices = Depends(get_services),
):
    if not services.report_false_positive(entry_id):
        raise HTTPException(status_code=404, detail=f"Ledger entry '{entry_id}' not found")
    _persist(services)
    return FalsePositiveResponse(id=entry_id, false_positives=services.stats.false_positives)


# =========================================================================
# Advisory scan
# =========================================================================


@router.post("/scan", response_model=AdvisoryResponse)
async def advisory_scan(
    body: ScanRequest,
    pipeline: MessagePipeline = Depends(get_pipeline),
):
    """Pre-send check for the author. Nothing is recorded or enforced."""
    advisory = await pipeline.advise(body.text)
    return AdvisoryResponse(
        result=ScanResultResponse(**advisory.result.to_dict()),
        action=advisory.action.value,
        should_warn=advisory.should_warn,
    )
