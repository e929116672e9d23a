"""
FastAPI router: read-only analysis endpoints under /analysis.

Every request recomputes the bundle from the configured data source; nothing
derived is cached or persisted between requests.
"""

from __future__ import annotations

import os
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from backend_netrisk.analytics.analysis_pipeline import CRITICAL_MIN_SCORE, AnalysisFacade
from backend_netrisk.analytics.export import MEDIA_TYPES, export_bundle
from backend_netrisk.config.settings import get_settings
from backend_netrisk.ingestion import RestAuthoritativeBackend, get_data_source
from backend_netrisk.netrisk_logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/analysis", tags=["analysis"])


def get_facade() -> AnalysisFacade:
    """Dependency: facade over the env-selected data source (overridden in tests)."""
    settings = get_settings()
    authoritative = None
    if (os.getenv("NETRISK_USE_AUTHORITATIVE") or "").strip().lower() in ("1", "true", "yes"):
        authoritative = RestAuthoritativeBackend(timeout=settings.authoritative_timeout_sec)
    return AnalysisFacade(get_data_source(), settings=settings, authoritative=authoritative)


class DetailedEntityResponse(BaseModel):
    """One scored entity with the factors behind its score."""

    entity_id: str
    name: str
    type: str
    district: str
    pattern: str
    total_activities: int = Field(..., ge=0)
    recent_activities: int = Field(..., ge=0)
    total_relationships: int = Field(..., ge=0)
    new_relationships_90_days: int = Field(..., ge=0)
    avg_connection_strength: float = Field(..., ge=0)
    calculated_risk_score: int = Field(..., ge=0, le=100, description="Additive risk score (0-100)")
    risk_level: str | None = Field(None, description="CRITICAL/HIGH/MEDIUM/LOW; null below 35")
    risk_factors: dict[str, int] = Field(default_factory=dict)
    why_flagged: str = ""


class RiskDistributionResponse(BaseModel):
    CRITICAL: int = Field(0, ge=0)
    HIGH: int = Field(0, ge=0)
    MEDIUM: int = Field(0, ge=0)
    LOW: int = Field(0, ge=0)


@router.get("")
def get_analysis(facade: AnalysisFacade = Depends(get_facade)) -> JSONResponse:
    """Full analysis bundle for the current snapshot."""
    return JSONResponse(content=facade.run().to_dict())


@router.get("/export")
def export_analysis(
    format: str = Query("json", description="json or csv"),
    facade: AnalysisFacade = Depends(get_facade),
) -> Response:
    fmt = format.strip().lower()
    if fmt not in MEDIA_TYPES:
        raise HTTPException(status_code=400, detail=f"Unsupported export format: {format}")
    body = export_bundle(facade.run(), fmt)
    headers = {"Content-Disposition": f'attachment; filename="network_analysis.{fmt}"'}
    return Response(content=body, media_type=MEDIA_TYPES[fmt], headers=headers)


@router.get("/entities/critical", response_model=list[DetailedEntityResponse])
def get_critical_entities(
    min_score: int = Query(CRITICAL_MIN_SCORE, ge=0, le=100),
    facade: AnalysisFacade = Depends(get_facade),
) -> list[dict[str, Any]]:
    return facade.get_critical_entities(min_score)


@router.get("/patterns/{pattern}", response_model=list[DetailedEntityResponse])
def get_entities_by_pattern(
    pattern: str,
    facade: AnalysisFacade = Depends(get_facade),
) -> list[dict[str, Any]]:
    try:
        return facade.get_entities_by_pattern(pattern)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Unknown behavioral pattern: {pattern}") from e


@router.get("/risk-distribution", response_model=RiskDistributionResponse)
def get_risk_distribution(facade: AnalysisFacade = Depends(get_facade)) -> dict[str, int]:
    return facade.get_risk_distribution()


@router.get("/districts")
def get_district_risk(facade: AnalysisFacade = Depends(get_facade)) -> dict[str, Any]:
    return facade.run().district_risk


@router.get("/hotspots")
def get_hotspots(facade: AnalysisFacade = Depends(get_facade)) -> dict[str, Any]:
    return facade.run().hotspots
