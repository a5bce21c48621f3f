"""
Threat history, manual reporting, analyst verdicts and direct analysis.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from threatscope.api.deps import get_service, get_threat_or_404
from threatscope.api.schemas.threat import (
    AnalysisResponse,
    AnalyzeRequest,
    ThreatReport,
    ThreatResponse,
    ThreatVerdict,
)
from threatscope.models.threat import Threat
from threatscope.service import SecurityService

router = APIRouter()


@router.get("/", response_model=list[ThreatResponse], summary="Threat history")
async def list_threats(
    service: SecurityService = Depends(get_service),
) -> list[ThreatResponse]:
    """Return the bounded threat history, most recent first."""
    return [ThreatResponse.model_validate(threat) for threat in service.threats]


@router.post(
    "/",
    response_model=ThreatResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Report a threat manually",
)
async def report_threat(
    payload: ThreatReport,
    service: SecurityService = Depends(get_service),
) -> ThreatResponse:
    threat = await service.report_threat_manually(
        payload.type, payload.description, payload.severity
    )
    return ThreatResponse.model_validate(threat)


@router.post(
    "/analyze",
    response_model=AnalysisResponse,
    summary="Ask the enrichment oracle directly",
)
async def analyze(
    payload: AnalyzeRequest,
    service: SecurityService = Depends(get_service),
) -> AnalysisResponse:
    analysis = await service.analyze(payload.type, payload.content)
    return AnalysisResponse.model_validate(analysis)


@router.get("/{threat_id}", response_model=ThreatResponse, summary="Get a threat")
async def get_threat(
    threat: Threat = Depends(get_threat_or_404),
) -> ThreatResponse:
    return ThreatResponse.model_validate(threat)


@router.post(
    "/{threat_id}/respond",
    response_model=ThreatResponse,
    summary="Confirm or dismiss a pending threat",
)
async def respond_to_threat(
    payload: ThreatVerdict,
    threat: Threat = Depends(get_threat_or_404),
    service: SecurityService = Depends(get_service),
) -> ThreatResponse:
    """Apply the analyst verdict; a threat that is no longer pending yields *409*."""
    updated = await service.respond_to_threat(threat.id, payload.confirmed)
    return ThreatResponse.model_validate(updated)
