"""
Shared FastAPI dependency functions for the ThreatScope API.

Provides injection of the application-wide :class:`SecurityService` and
lookup helpers that turn unknown ids into *404 Not Found*.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status

from threatscope.models.incident import Incident
from threatscope.models.scan import ScanReport
from threatscope.models.threat import Threat
from threatscope.service import SecurityService


def get_service(request: Request) -> SecurityService:
    """Return the :class:`SecurityService` created by the application lifespan.

    Usage::

        @router.get("/items")
        async def list_items(
            service: SecurityService = Depends(get_service),
        ) -> list[Item]:
            ...
    """
    return request.app.state.service


def get_report_or_404(
    report_id: str,
    service: SecurityService = Depends(get_service),
) -> ScanReport:
    report = service.get_report(report_id)
    if report is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Scan report {report_id} not found.",
        )
    return report


def get_threat_or_404(
    threat_id: str,
    service: SecurityService = Depends(get_service),
) -> Threat:
    threat = service.get_threat(threat_id)
    if threat is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Threat {threat_id} not found.",
        )
    return threat


def get_incident_or_404(
    incident_id: str,
    service: SecurityService = Depends(get_service),
) -> Incident:
    incident = service.get_incident(incident_id)
    if incident is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Incident {incident_id} not found.",
        )
    return incident
