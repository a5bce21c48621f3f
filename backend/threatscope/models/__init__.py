"""
ThreatScope models package.

Re-exports the domain dataclasses and the ORM record so consumers can import
directly from ``threatscope.models``::

    from threatscope.models import ScanReport, Threat, Incident
"""

from threatscope.models.scan import (
    CVEReference,
    HeaderFinding,
    Reachability,
    ScanReport,
    ScanStatus,
    ServiceRecord,
    Severity,
    TLSAssessment,
    Vulnerability,
)
from threatscope.models.threat import Analysis, Threat, ThreatSeverity, ThreatStatus
from threatscope.models.incident import Incident, IncidentStatus, MonitoringTarget
from threatscope.models.incident_record import IncidentRecord

__all__: list[str] = [
    "CVEReference",
    "HeaderFinding",
    "Reachability",
    "ScanReport",
    "ScanStatus",
    "ServiceRecord",
    "Severity",
    "TLSAssessment",
    "Vulnerability",
    "Analysis",
    "Threat",
    "ThreatSeverity",
    "ThreatStatus",
    "Incident",
    "IncidentStatus",
    "MonitoringTarget",
    "IncidentRecord",
]
