"""
Pydantic v2 schemas for the ThreatScope REST API.

Re-exports every public schema so consumers can do::

    from threatscope.api.schemas import ScanCreate, ThreatResponse  # etc.
"""

from threatscope.api.schemas.scan import (
    CVEResponse,
    HeaderFindingResponse,
    ScanCreate,
    ScanListItem,
    ScanReportResponse,
    ServiceResponse,
    TLSResponse,
    VulnerabilityResponse,
)
from threatscope.api.schemas.threat import (
    AnalysisResponse,
    AnalyzeRequest,
    ThreatReport,
    ThreatResponse,
    ThreatVerdict,
)
from threatscope.api.schemas.incident import IncidentResponse
from threatscope.api.schemas.monitoring import (
    MonitoringStatus,
    MonitoringTargetCreate,
    MonitoringTargetResponse,
)

__all__: list[str] = [
    "CVEResponse",
    "HeaderFindingResponse",
    "ScanCreate",
    "ScanListItem",
    "ScanReportResponse",
    "ServiceResponse",
    "TLSResponse",
    "VulnerabilityResponse",
    "AnalysisResponse",
    "AnalyzeRequest",
    "ThreatReport",
    "ThreatResponse",
    "ThreatVerdict",
    "IncidentResponse",
    "MonitoringStatus",
    "MonitoringTargetCreate",
    "MonitoringTargetResponse",
]
