"""
Scan domain model.

Everything a scan produces is a frozen dataclass: a :class:`ScanReport` is
immutable once the orchestrator marks it ``completed`` or ``failed``.
Re-scanning a target always builds a new report.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class Severity(str, Enum):
    """Severity of a scan finding."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ScanStatus(str, Enum):
    """Terminal status of a scan report."""

    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Reachability:
    """Outcome of the transport probe.

    Attributes:
        reachable: ``True`` when any transport produced a response.
        secure:    ``True`` when HTTPS is the transport to use.
    """

    reachable: bool
    secure: bool

    @property
    def scheme(self) -> str:
        return "https" if self.secure else "http"

    @property
    def port(self) -> int:
        return 443 if self.secure else 80


@dataclass(frozen=True)
class ServiceRecord:
    """A service fingerprinted on one open port.

    Attributes:
        port:    Open port that answered the probe.
        service: Product name from the ``Server`` header, or ``"unknown"``.
        version: Version string following the product name, if any.
        banner:  Raw response headers returned by the probe.
    """

    port: int
    service: str
    version: Optional[str] = None
    banner: dict[str, str] = field(default_factory=dict, hash=False, compare=False)

    @property
    def major_version(self) -> Optional[int]:
        """Leading integer of :attr:`version`, or ``None`` when absent."""
        if not self.version:
            return None
        digits = ""
        for char in self.version:
            if not char.isdigit():
                break
            digits += char
        return int(digits) if digits else None


@dataclass(frozen=True)
class TLSAssessment:
    """Certificate and protocol grading of the target.

    Attributes:
        valid:          ``True`` when the grading service reached ``READY``.
        days_remaining: Days until certificate expiry, ``None`` if unknown.
        protocols:      Supported protocols, e.g. ``("TLS 1.2", "TLS 1.3")``.
        grade:          Letter grade or ``"Unknown"``.
    """

    valid: bool
    days_remaining: Optional[int] = None
    protocols: tuple[str, ...] = ()
    grade: str = "Unknown"


@dataclass(frozen=True)
class HeaderFinding:
    """Compliance state of a single security response header."""

    header: str
    missing: bool
    severity: Severity


@dataclass(frozen=True)
class CVEReference:
    """CVE identity attached to a correlated vulnerability."""

    id: str
    score: float
    vector: Optional[str] = None


@dataclass(frozen=True)
class Vulnerability:
    """A single discovered weakness.

    ``severity`` and ``exploitable`` are always set by the scan module that
    produced the finding.
    """

    name: str
    description: str
    severity: Severity
    service: Optional[str] = None
    port: Optional[int] = None
    exploitable: bool = False
    cve: Optional[CVEReference] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ScanReport:
    """Merged result of one scan run.

    Attributes:
        target:          The scanned hostname or IP.
        status:          ``completed`` or ``failed``.
        secure:          Whether HTTPS was the transport that answered.
        ports:           Open ports known for the target.
        services:        One record per port with a successful probe.
        tls:             TLS assessment; ``None`` for plain-transport targets.
        header_findings: Missing security headers.
        vulnerabilities: All findings of all stages, in no particular order.
        error:           Reason string of a ``failed`` scan.
    """

    target: str
    status: ScanStatus
    secure: bool = False
    ports: tuple[int, ...] = ()
    services: tuple[ServiceRecord, ...] = ()
    tls: Optional[TLSAssessment] = None
    header_findings: tuple[HeaderFinding, ...] = ()
    vulnerabilities: tuple[Vulnerability, ...] = ()
    error: Optional[str] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    started_at: datetime = field(default_factory=_utcnow)
    completed_at: datetime = field(default_factory=_utcnow)

    @property
    def duration_seconds(self) -> float:
        return round((self.completed_at - self.started_at).total_seconds(), 3)
