"""
ThreatScope command surface.

:class:`SecurityService` wires the scan orchestrator, the monitoring loop,
the enrichment oracle and the incident escalator around one
:class:`~threatscope.monitoring.store.SecurityStore`.  The FastAPI routes are
a thin layer over its methods.
"""

from __future__ import annotations

from typing import Any, Optional

from threatscope.config import Settings, get_settings
from threatscope.core.errors import TargetUnreachable
from threatscope.core.logging import get_logger
from threatscope.core.security import require_text, sanitize_input
from threatscope.engine.orchestrator import ScanOrchestrator
from threatscope.models.incident import Incident, MonitoringTarget
from threatscope.models.scan import ScanReport, ScanStatus
from threatscope.models.threat import Analysis, Threat, ThreatSeverity, ThreatStatus
from threatscope.monitoring.enrichment import THREAT_ANALYSIS, EnrichmentOracle
from threatscope.monitoring.escalation import IncidentEscalator
from threatscope.monitoring.incident_store import IncidentStore
from threatscope.monitoring.loop import MonitoringLoop
from threatscope.monitoring.sources import AlertSource
from threatscope.monitoring.store import SecurityStore

logger = get_logger(__name__)

MANUAL_SOURCE: str = "manual_report"


class SecurityService:
    """Facade exposing every user-facing operation.

    All collaborators are injectable so tests can substitute fakes.
    """

    def __init__(
        self,
        store: Optional[SecurityStore] = None,
        oracle: Optional[EnrichmentOracle] = None,
        orchestrator: Optional[ScanOrchestrator] = None,
        incident_store: Optional[IncidentStore] = None,
        sources: Optional[dict[str, AlertSource]] = None,
        settings: Optional[Settings] = None,
        interval: Optional[float] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.store = store or SecurityStore(
            history_size=self.settings.THREAT_HISTORY_SIZE,
            dedup_window=self.settings.DEDUP_WINDOW,
            incident_limit=self.settings.INCIDENT_HISTORY_SIZE,
            report_limit=self.settings.REPORT_HISTORY_SIZE,
        )
        self.oracle = oracle or EnrichmentOracle(settings=self.settings)
        self.orchestrator = orchestrator or ScanOrchestrator()
        self.escalator = IncidentEscalator(self.store, self.oracle, incident_store)
        self.monitor = MonitoringLoop(
            self.store,
            self.oracle,
            self.escalator,
            sources=sources,
            settings=self.settings,
            interval=interval,
        )

    # ── Scanning ─────────────────────────────────────────────────────────────

    async def run_scan(self, target: str) -> ScanReport:
        """Scan *target* and keep the report.

        Raises:
            InvalidInput: The target was rejected before any I/O.
            TargetUnreachable: Neither transport answered; the failed report
                is attached as ``exc.report`` and is not stored.
        """
        report = await self.orchestrator.run_scan(target)
        if report.status is ScanStatus.FAILED:
            raise TargetUnreachable(report.target, report.error, report=report)
        return self.store.add_report(report)

    # ── Monitoring ───────────────────────────────────────────────────────────

    async def start_monitoring(self) -> dict[str, Any]:
        await self.monitor.start()
        return self.monitoring_status()

    async def stop_monitoring(self) -> dict[str, Any]:
        await self.monitor.stop()
        return self.monitoring_status()

    def monitoring_status(self) -> dict[str, Any]:
        return self.monitor.status()

    async def poll_once(self) -> list[Threat]:
        return await self.monitor.poll_once()

    async def add_monitoring_target(self, source: str, target: str) -> MonitoringTarget:
        """Register a target and record the accompanying low-severity incident."""
        entry = self.store.add_target(source, target)
        logger.info(
            "Monitoring target added via %s",
            entry.source,
            extra={"action": "target_added", "target": entry.target},
        )
        await self.escalator.register_target_incident(entry)
        return entry

    def remove_monitoring_target(self, target_id: str) -> Optional[MonitoringTarget]:
        return self.store.remove_target(target_id)

    def toggle_monitoring_target(self, target_id: str) -> Optional[MonitoringTarget]:
        return self.store.toggle_target(target_id)

    # ── Threats and incidents ────────────────────────────────────────────────

    async def report_threat_manually(
        self,
        threat_type: str,
        description: str,
        severity: str | ThreatSeverity = ThreatSeverity.UNKNOWN,
    ) -> Threat:
        """Add an analyst-reported threat to the history.

        Raises:
            InvalidInput: If *threat_type* or *description* is empty.
        """
        threat = Threat(
            type=require_text(threat_type, "type"),
            severity=ThreatSeverity.parse(
                severity.value if isinstance(severity, ThreatSeverity) else severity
            ),
            source=MANUAL_SOURCE,
            description=sanitize_input(require_text(description, "description")),
        )
        threat.enrichment = await self.oracle.analyze(THREAT_ANALYSIS, threat.as_content())
        self.store.add_threat(threat)
        logger.info(
            "Manual threat %s recorded (confidence %.2f)",
            threat.id,
            threat.confidence,
            extra={"action": "threat_reported"},
        )

        if threat.confidence > self.settings.ESCALATION_CONFIDENCE:
            await self.escalator.escalate(threat)
        return threat

    async def respond_to_threat(self, threat_id: str, confirmed: bool) -> Optional[Threat]:
        """Confirm or dismiss a pending threat.

        Confirming never blocks anything: with ``AUTO_BLOCK_ENABLED`` set the
        intent to block is only logged.

        Raises:
            InvalidTransition: If the threat is not pending.
        """
        status = ThreatStatus.CONFIRMED if confirmed else ThreatStatus.FALSE_POSITIVE
        threat = self.store.set_threat_status(threat_id, status)
        if threat is None:
            return None

        logger.info(
            "Threat %s marked %s",
            threat.id,
            status.value,
            extra={"action": "threat_response"},
        )
        if confirmed and self.settings.AUTO_BLOCK_ENABLED:
            logger.warning(
                "Auto-block requested for %s threat from %s; no blocking action taken",
                threat.type,
                threat.source,
                extra={"action": "auto_block_intent"},
            )
        return threat

    async def handle_incident(self, incident_id: str) -> Optional[Incident]:
        return await self.escalator.handle(incident_id)

    async def analyze(self, kind: str, content: Any) -> Analysis:
        return await self.oracle.analyze(require_text(kind, "type"), content)

    # ── Accessors ────────────────────────────────────────────────────────────

    @property
    def threats(self) -> list[Threat]:
        return self.store.threats

    @property
    def incidents(self) -> list[Incident]:
        return self.store.incidents

    @property
    def targets(self) -> list[MonitoringTarget]:
        return self.store.list_targets()

    @property
    def reports(self) -> list[ScanReport]:
        return self.store.reports

    def get_threat(self, threat_id: str) -> Optional[Threat]:
        return self.store.get_threat(threat_id)

    def get_incident(self, incident_id: str) -> Optional[Incident]:
        return self.store.get_incident(incident_id)

    def get_report(self, report_id: str) -> Optional[ScanReport]:
        return self.store.get_report(report_id)
