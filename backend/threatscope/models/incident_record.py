"""
IncidentRecord model.

Persistent copy of an :class:`~threatscope.models.incident.Incident` kept by
the SQL incident store.  The in-memory store stays authoritative; this table
is the durable trail consumed by external tooling.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from threatscope.core.database import Base


class IncidentRecord(Base):
    """A persisted incident.

    Attributes:
        id: Incident UUID (string form), primary key.
        origin_id: Threat or monitoring-target id that created the incident,
            indexed so escalation trails can be looked up per threat.
        title: Short headline.
        description: Full description.
        source: Feed or component that raised the incident.
        severity: Severity label.
        status: ``active``, ``critical`` or ``resolved``.
        recommendations: JSON list of accumulated recommendations.
        created_at: When the incident was opened.
        updated_at: Last time the record changed.
    """

    __tablename__ = "incidents"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
    )
    origin_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )
    source: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    severity: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    recommendations: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return (
            f"<IncidentRecord {self.id} status={self.status!r} "
            f"severity={self.severity!r} origin={self.origin_id}>"
        )
