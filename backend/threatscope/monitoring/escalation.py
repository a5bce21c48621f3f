"""
Incident escalation and handling.
"""

from __future__ import annotations

from typing import Optional

from threatscope.core.logging import get_logger
from threatscope.models.incident import Incident, IncidentStatus, MonitoringTarget
from threatscope.models.threat import Threat
from threatscope.monitoring.enrichment import INCIDENT_ANALYSIS, EnrichmentOracle
from threatscope.monitoring.incident_store import IncidentStore
from threatscope.monitoring.store import SecurityStore

logger = get_logger(__name__)


class IncidentEscalator:
    """Turns high-confidence threats into incidents and resolves incidents.

    The store entry is written before any ``await``, so escalating the same
    threat from two tasks still produces a single incident.

    Args:
        store:          Owned in-memory state.
        oracle:         Enrichment oracle consulted when handling incidents.
        incident_store: Optional durable store mirroring every change.
    """

    def __init__(
        self,
        store: SecurityStore,
        oracle: EnrichmentOracle,
        incident_store: Optional[IncidentStore] = None,
    ) -> None:
        self._store = store
        self._oracle = oracle
        self._incident_store = incident_store

    async def escalate(self, threat: Threat) -> Incident:
        """Open a ``critical`` incident for *threat* unless one already exists."""
        existing = self._store.incident_for_origin(threat.id)
        if existing is not None:
            return existing

        incident = self._store.add_incident(
            Incident(
                origin_id=threat.id,
                title=f"Critical threat: {threat.type}",
                description=threat.description,
                source=threat.source,
                severity=threat.severity.value,
                status=IncidentStatus.CRITICAL,
                recommendations=threat.recommendations,
            )
        )
        logger.warning(
            "Escalated threat %s (confidence %.2f) to incident %s",
            threat.id,
            threat.confidence,
            incident.id,
            extra={"action": "incident_escalated", "target": threat.source},
        )
        await self._persist(incident)
        return incident

    async def register_target_incident(self, target: MonitoringTarget) -> Incident:
        """Record a low-severity incident announcing a new monitoring target."""
        incident = self._store.add_incident(
            Incident(
                origin_id=target.id,
                title="New Monitoring Target Added",
                description=f"Started monitoring {target.target} via {target.source}",
                source=target.source,
                severity="low",
                status=IncidentStatus.ACTIVE,
            )
        )
        await self._persist(incident)
        return incident

    async def handle(self, incident_id: str) -> Optional[Incident]:
        """Analyse and resolve an incident.

        The oracle's recommendations are appended to the existing ones and
        the incident becomes ``resolved``.  Returns ``None`` for unknown ids.
        """
        incident = self._store.get_incident(incident_id)
        if incident is None:
            return None

        analysis = await self._oracle.analyze(INCIDENT_ANALYSIS, incident.as_content())
        incident.recommendations.extend(analysis.recommendations)
        incident.status = IncidentStatus.RESOLVED

        logger.info(
            "Incident %s resolved with %d recommendations",
            incident.id,
            len(incident.recommendations),
            extra={"action": "incident_resolved"},
        )
        if self._incident_store is not None:
            await self._incident_store.update(
                incident.id,
                {
                    "status": incident.status,
                    "recommendations": incident.recommendations,
                },
            )
        return incident

    async def _persist(self, incident: Incident) -> None:
        if self._incident_store is not None:
            await self._incident_store.create(incident)
