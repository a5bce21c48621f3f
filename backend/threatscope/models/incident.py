"""
Incident and monitoring-target domain model.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class IncidentStatus(str, Enum):
    """Lifecycle of an incident; ``resolved`` is reached only by handling it."""

    ACTIVE = "active"
    CRITICAL = "critical"
    RESOLVED = "resolved"


@dataclass
class Incident:
    """An escalated, trackable response unit.

    Attributes:
        origin_id:       Id of the threat or monitoring target that created it.
        recommendations: Append-only list accumulated across handling attempts.
    """

    origin_id: str
    title: str
    description: str
    source: str
    severity: str
    status: IncidentStatus = IncidentStatus.ACTIVE
    recommendations: list[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def as_content(self) -> dict[str, object]:
        """Payload sent to the enrichment oracle when handling the incident."""
        return {
            "title": self.title,
            "description": self.description,
            "source": self.source,
            "severity": self.severity,
            "status": self.status.value,
            "recommendations": list(self.recommendations),
        }


@dataclass
class MonitoringTarget:
    """A ``(source, target)`` pair under continuous watch."""

    source: str
    target: str
    enabled: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
