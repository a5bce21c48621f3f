"""
Incident persistence.

The in-memory :class:`~threatscope.monitoring.store.SecurityStore` is the
authoritative copy of every incident.  An :class:`IncidentStore` keeps a
durable trail of it; write failures are logged and never propagate to the
monitoring loop.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from threatscope.core.logging import get_logger
from threatscope.models.incident import Incident
from threatscope.models.incident_record import IncidentRecord

logger = get_logger(__name__)


class IncidentStore(Protocol):
    """Persistence collaborator used by the incident escalator."""

    async def create(self, incident: Incident) -> bool: ...

    async def update(self, incident_id: str, patch: dict[str, Any]) -> bool: ...


class SqlIncidentStore:
    """:class:`IncidentStore` backed by the ``incidents`` table.

    Args:
        session_factory: Async session-maker bound to the application engine.
    """

    _UPDATABLE = frozenset({"title", "description", "severity", "status", "recommendations"})

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(self, incident: Incident) -> bool:
        """Insert *incident*; returns ``False`` if the write failed."""
        record = IncidentRecord(
            id=incident.id,
            origin_id=incident.origin_id,
            title=incident.title,
            description=incident.description,
            source=incident.source,
            severity=incident.severity,
            status=incident.status.value,
            recommendations=list(incident.recommendations),
            created_at=incident.timestamp,
            updated_at=incident.timestamp,
        )
        try:
            async with self._session_factory() as session:
                session.add(record)
                await session.commit()
        except SQLAlchemyError:
            logger.exception(
                "Failed to persist incident %s",
                incident.id,
                extra={"action": "incident_create_failed"},
            )
            return False
        return True

    async def update(self, incident_id: str, patch: dict[str, Any]) -> bool:
        """Apply *patch* to a stored incident; returns ``False`` if not applied."""
        try:
            async with self._session_factory() as session:
                record = await session.get(IncidentRecord, incident_id)
                if record is None:
                    logger.warning("Incident %s not found in store", incident_id)
                    return False
                for key, value in patch.items():
                    if key not in self._UPDATABLE:
                        continue
                    if hasattr(value, "value"):
                        value = value.value
                    if key == "recommendations":
                        value = list(value)
                    setattr(record, key, value)
                record.updated_at = datetime.now(timezone.utc)
                await session.commit()
        except SQLAlchemyError:
            logger.exception(
                "Failed to update incident %s",
                incident_id,
                extra={"action": "incident_update_failed"},
            )
            return False
        return True
