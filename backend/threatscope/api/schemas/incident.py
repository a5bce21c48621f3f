"""
Pydantic v2 schemas for incidents.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from threatscope.models.incident import IncidentStatus


class IncidentResponse(BaseModel):
    """An incident as returned by ``/api/v1/incidents``.

    Attributes:
        origin_id: Id of the threat or monitoring target that opened it.
        recommendations: Every recommendation gathered so far, oldest first.
    """

    id: str
    origin_id: str
    title: str
    description: str
    source: str
    severity: str
    status: IncidentStatus
    recommendations: list[str] = Field(default_factory=list)
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)
