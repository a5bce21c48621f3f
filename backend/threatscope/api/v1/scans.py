"""
Scan endpoints.

``POST /scans/`` runs the full scan pipeline synchronously and returns the
completed report.  An unreachable target yields *502* (see the exception
handlers in :mod:`threatscope.main`); a malformed target yields *422*.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from threatscope.api.deps import get_report_or_404, get_service
from threatscope.api.schemas.scan import ScanCreate, ScanListItem, ScanReportResponse
from threatscope.models.scan import ScanReport
from threatscope.service import SecurityService

router = APIRouter()


@router.post(
    "/",
    response_model=ScanReportResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Scan a target",
)
async def create_scan(
    payload: ScanCreate,
    service: SecurityService = Depends(get_service),
) -> ScanReportResponse:
    """Run reachability, port discovery, fingerprinting, TLS, header and CVE checks."""
    report = await service.run_scan(payload.target)
    return ScanReportResponse.model_validate(report)


@router.get(
    "/",
    response_model=list[ScanListItem],
    summary="List completed scans",
)
async def list_scans(
    service: SecurityService = Depends(get_service),
) -> list[ScanListItem]:
    """Return every stored report, most recent first."""
    return [
        ScanListItem(
            id=report.id,
            target=report.target,
            status=report.status,
            secure=report.secure,
            vulnerability_count=len(report.vulnerabilities),
            completed_at=report.completed_at,
        )
        for report in service.reports
    ]


@router.get(
    "/{report_id}",
    response_model=ScanReportResponse,
    summary="Get a scan report",
)
async def get_scan(
    report: ScanReport = Depends(get_report_or_404),
) -> ScanReportResponse:
    return ScanReportResponse.model_validate(report)
