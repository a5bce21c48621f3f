"""
Incident listing and handling endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from threatscope.api.deps import get_incident_or_404, get_service
from threatscope.api.schemas.incident import IncidentResponse
from threatscope.models.incident import Incident
from threatscope.service import SecurityService

router = APIRouter()


@router.get("/", response_model=list[IncidentResponse], summary="List incidents")
async def list_incidents(
    service: SecurityService = Depends(get_service),
) -> list[IncidentResponse]:
    return [IncidentResponse.model_validate(i) for i in service.incidents]


@router.get("/{incident_id}", response_model=IncidentResponse, summary="Get an incident")
async def get_incident(
    incident: Incident = Depends(get_incident_or_404),
) -> IncidentResponse:
    return IncidentResponse.model_validate(incident)


@router.post(
    "/{incident_id}/handle",
    response_model=IncidentResponse,
    summary="Analyse and resolve an incident",
)
async def handle_incident(
    incident: Incident = Depends(get_incident_or_404),
    service: SecurityService = Depends(get_service),
) -> IncidentResponse:
    """Append the oracle's recommendations and mark the incident resolved."""
    handled = await service.handle_incident(incident.id)
    return IncidentResponse.model_validate(handled)
