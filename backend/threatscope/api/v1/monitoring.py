"""
Monitoring loop control and monitoring-target registry endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from threatscope.api.deps import get_service
from threatscope.api.schemas.monitoring import (
    MonitoringStatus,
    MonitoringTargetCreate,
    MonitoringTargetResponse,
)
from threatscope.api.schemas.threat import ThreatResponse
from threatscope.service import SecurityService

router = APIRouter()


# ---------------------------------------------------------------------------
# Loop lifecycle
# ---------------------------------------------------------------------------


@router.get("/status", response_model=MonitoringStatus, summary="Monitoring status")
async def monitoring_status(
    service: SecurityService = Depends(get_service),
) -> MonitoringStatus:
    return MonitoringStatus(**service.monitoring_status())


@router.post("/start", response_model=MonitoringStatus, summary="Start monitoring")
async def start_monitoring(
    service: SecurityService = Depends(get_service),
) -> MonitoringStatus:
    """Start the periodic poll of all enabled alert sources (idempotent)."""
    return MonitoringStatus(**await service.start_monitoring())


@router.post("/stop", response_model=MonitoringStatus, summary="Stop monitoring")
async def stop_monitoring(
    service: SecurityService = Depends(get_service),
) -> MonitoringStatus:
    """Stop the loop; returns once any in-flight poll has finished."""
    return MonitoringStatus(**await service.stop_monitoring())


@router.post(
    "/poll",
    response_model=list[ThreatResponse],
    summary="Poll alert sources once",
)
async def poll_once(
    service: SecurityService = Depends(get_service),
) -> list[ThreatResponse]:
    """Run a single poll now and return the newly recorded threats."""
    threats = await service.poll_once()
    return [ThreatResponse.model_validate(threat) for threat in threats]


# ---------------------------------------------------------------------------
# Targets
# ---------------------------------------------------------------------------


@router.get(
    "/targets",
    response_model=list[MonitoringTargetResponse],
    summary="List monitoring targets",
)
async def list_targets(
    service: SecurityService = Depends(get_service),
) -> list[MonitoringTargetResponse]:
    return [MonitoringTargetResponse.model_validate(t) for t in service.targets]


@router.post(
    "/targets",
    response_model=MonitoringTargetResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a monitoring target",
)
async def add_target(
    payload: MonitoringTargetCreate,
    service: SecurityService = Depends(get_service),
) -> MonitoringTargetResponse:
    entry = await service.add_monitoring_target(payload.source, payload.target)
    return MonitoringTargetResponse.model_validate(entry)


@router.post(
    "/targets/{target_id}/toggle",
    response_model=MonitoringTargetResponse,
    summary="Enable or disable a monitoring target",
)
async def toggle_target(
    target_id: str,
    service: SecurityService = Depends(get_service),
) -> MonitoringTargetResponse:
    entry = service.toggle_monitoring_target(target_id)
    if entry is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Monitoring target {target_id} not found.",
        )
    return MonitoringTargetResponse.model_validate(entry)


@router.delete(
    "/targets/{target_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a monitoring target",
)
async def remove_target(
    target_id: str,
    service: SecurityService = Depends(get_service),
) -> Response:
    if service.remove_monitoring_target(target_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Monitoring target {target_id} not found.",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
