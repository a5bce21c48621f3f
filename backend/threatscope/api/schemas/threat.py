"""
Pydantic v2 schemas for threats and enrichment analyses.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from threatscope.models.threat import ThreatSeverity, ThreatStatus

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class ThreatReport(BaseModel):
    """Payload for ``POST /api/v1/threats/`` (analyst-reported threat).

    Attributes:
        type: Threat category, e.g. ``Phishing``.
        description: What was observed.
        severity: Optional severity; unrecognised values become ``unknown``.
    """

    type: str = Field(..., max_length=255, examples=["Phishing"])
    description: str = Field(..., max_length=5000)
    severity: str = Field(default="unknown", examples=["high"])


class ThreatVerdict(BaseModel):
    """Payload for ``POST /api/v1/threats/{id}/respond``."""

    confirmed: bool = Field(
        ...,
        description="``true`` confirms the threat, ``false`` marks it a false positive.",
    )


class AnalyzeRequest(BaseModel):
    """Payload for ``POST /api/v1/threats/analyze``."""

    type: str = Field(..., examples=["threat_analysis"])
    content: Any = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class AnalysisResponse(BaseModel):
    """Enrichment oracle answer.

    Attributes:
        confidence: Score in ``[0, 1]``.
        fallback: ``True`` when the oracle was unavailable and the fixed
            fallback analysis was used.
    """

    confidence: float
    recommendations: list[str] = Field(default_factory=list)
    narrative: str = ""
    fallback: bool = False
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


class ThreatResponse(BaseModel):
    id: str
    type: str
    severity: ThreatSeverity
    source: str
    description: str
    timestamp: datetime
    reported_at: Optional[datetime] = None
    status: ThreatStatus
    confidence: float
    enrichment: Optional[AnalysisResponse] = None

    model_config = ConfigDict(from_attributes=True)
