"""
Pydantic v2 schemas for scan-related API requests and responses.

Every response model uses ``ConfigDict(from_attributes=True)`` so that the
frozen domain dataclasses can be serialised directly via
``Model.model_validate(report)``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from threatscope.models.scan import ScanStatus, Severity

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class ScanCreate(BaseModel):
    """Payload for ``POST /api/v1/scans/``.

    Attributes:
        target: Hostname or IP address to scan (e.g. ``scanme.nmap.org``).
            Validated server-side; a malformed value yields *422*.
    """

    target: str = Field(
        ...,
        max_length=253,
        examples=["scanme.nmap.org"],
        description="Hostname or IP address to scan.",
    )


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ServiceResponse(BaseModel):
    """A fingerprinted service on one open port."""

    port: int
    service: str
    version: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class TLSResponse(BaseModel):
    """TLS grading of the target."""

    valid: bool
    days_remaining: Optional[int] = None
    protocols: list[str] = Field(default_factory=list)
    grade: str

    model_config = ConfigDict(from_attributes=True)


class HeaderFindingResponse(BaseModel):
    header: str
    missing: bool
    severity: Severity

    model_config = ConfigDict(from_attributes=True)


class CVEResponse(BaseModel):
    """CVE reference attached to a vulnerability.

    Attributes:
        id: CVE identifier (e.g. ``CVE-2024-1234``).
        score: CVSS v3.1 base score.
        vector: CVSS vector string, if published.
    """

    id: str
    score: float
    vector: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class VulnerabilityResponse(BaseModel):
    """A single finding produced by any scan stage."""

    name: str
    description: str
    severity: Severity
    service: Optional[str] = None
    port: Optional[int] = None
    exploitable: bool = False
    cve: Optional[CVEResponse] = None

    model_config = ConfigDict(from_attributes=True)


class ScanReportResponse(BaseModel):
    """Full scan report returned by ``POST /api/v1/scans/`` and ``GET /api/v1/scans/{id}``.

    Attributes:
        id: Report UUID.
        target: The scanned host.
        status: ``completed`` or ``failed``.
        secure: Whether the target answered over HTTPS.
        error: Reason string, set only for failed scans.
        duration_seconds: Wall-clock duration of the scan.
    """

    id: UUID
    target: str
    status: ScanStatus
    secure: bool
    ports: list[int] = Field(default_factory=list)
    services: list[ServiceResponse] = Field(default_factory=list)
    tls: Optional[TLSResponse] = None
    header_findings: list[HeaderFindingResponse] = Field(default_factory=list)
    vulnerabilities: list[VulnerabilityResponse] = Field(default_factory=list)
    error: Optional[str] = None
    started_at: datetime
    completed_at: datetime
    duration_seconds: float

    model_config = ConfigDict(from_attributes=True)


class ScanListItem(BaseModel):
    """Compact representation used in ``GET /api/v1/scans/``."""

    id: UUID
    target: str
    status: ScanStatus
    secure: bool
    vulnerability_count: int
    completed_at: datetime

    model_config = ConfigDict(from_attributes=True)
