"""
In-memory security state.

:class:`SecurityStore` is the single owner of everything the monitoring
loop and the command surface share: the bounded threat history, the
fingerprints already seen, the monitoring target registry, incidents and
completed scan reports.  Threats, incidents and reports are all kept in
bounded windows; the oldest entry is evicted first.

Every mutating method is synchronous (no ``await`` inside), so on a single
event loop mutations never interleave.
"""

from __future__ import annotations

from collections import OrderedDict, deque
from typing import Iterable, Optional

from threatscope.config import get_settings
from threatscope.core.errors import InvalidTransition
from threatscope.core.logging import get_logger
from threatscope.core.security import require_text
from threatscope.models.incident import Incident, MonitoringTarget
from threatscope.models.scan import ScanReport
from threatscope.models.threat import Threat, ThreatStatus

logger = get_logger(__name__)

_TERMINAL_VERDICTS = frozenset({ThreatStatus.CONFIRMED, ThreatStatus.FALSE_POSITIVE})


class SecurityStore:
    """Owned state container.

    Args:
        history_size: Maximum number of threats retained (most recent first).
        dedup_window: Number of fingerprints remembered for de-duplication.
        incident_limit: Maximum number of incidents retained.
        report_limit: Maximum number of scan reports retained.
    """

    def __init__(
        self,
        history_size: Optional[int] = None,
        dedup_window: Optional[int] = None,
        incident_limit: Optional[int] = None,
        report_limit: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self.history_size = history_size or settings.THREAT_HISTORY_SIZE
        self.dedup_window = dedup_window or settings.DEDUP_WINDOW
        self.incident_limit = incident_limit or settings.INCIDENT_HISTORY_SIZE
        self.report_limit = report_limit or settings.REPORT_HISTORY_SIZE

        self._threats: deque[Threat] = deque(maxlen=self.history_size)
        self._seen: OrderedDict[str, None] = OrderedDict()
        self._targets: dict[str, MonitoringTarget] = {}
        self._incidents: OrderedDict[str, Incident] = OrderedDict()
        self._reports: OrderedDict[str, ScanReport] = OrderedDict()

    # ── Threats ──────────────────────────────────────────────────────────────

    @property
    def threats(self) -> list[Threat]:
        """Threat history, most recent first."""
        return list(self._threats)

    def get_threat(self, threat_id: str) -> Optional[Threat]:
        return next((t for t in self._threats if t.id == threat_id), None)

    def has_seen(self, fingerprint: str) -> bool:
        return fingerprint in self._seen

    def record_threats(self, threats: Iterable[Threat]) -> list[Threat]:
        """Commit *threats* to the history in one step.

        Threats whose fingerprint has already been seen are skipped.  Each
        accepted threat is pushed to the front; once the history is full the
        oldest entry is evicted.

        Returns:
            The threats actually committed, in insertion order.
        """
        committed: list[Threat] = []
        for threat in threats:
            fingerprint = threat.fingerprint
            if fingerprint in self._seen:
                continue
            self._remember(fingerprint)
            self._threats.appendleft(threat)
            committed.append(threat)
        return committed

    def add_threat(self, threat: Threat) -> Threat:
        """Push a single threat to the front of the history."""
        self._remember(threat.fingerprint)
        self._threats.appendleft(threat)
        return threat

    def set_threat_status(self, threat_id: str, status: ThreatStatus) -> Optional[Threat]:
        """Apply an analyst verdict to a pending threat.

        Returns:
            The updated threat, or ``None`` when no threat has *threat_id*.

        Raises:
            InvalidTransition: If the threat is no longer pending or *status*
                is not a verdict.
        """
        threat = self.get_threat(threat_id)
        if threat is None:
            return None
        if status not in _TERMINAL_VERDICTS:
            raise InvalidTransition(f"Cannot set threat status to {status.value}")
        if threat.status is not ThreatStatus.PENDING:
            raise InvalidTransition(
                f"Threat {threat_id} is already {threat.status.value}"
            )
        threat.status = status
        return threat

    def _remember(self, fingerprint: str) -> None:
        self._seen[fingerprint] = None
        self._seen.move_to_end(fingerprint)
        _evict_oldest(self._seen, self.dedup_window)

    # ── Monitoring targets ───────────────────────────────────────────────────

    def add_target(self, source: str, target: str) -> MonitoringTarget:
        """Register a new ``(source, target)`` pair, enabled by default.

        Raises:
            InvalidInput: If either field is empty.
        """
        entry = MonitoringTarget(
            source=require_text(source, "source").lower(),
            target=require_text(target, "target"),
        )
        self._targets[entry.id] = entry
        return entry

    def remove_target(self, target_id: str) -> Optional[MonitoringTarget]:
        return self._targets.pop(target_id, None)

    def toggle_target(self, target_id: str) -> Optional[MonitoringTarget]:
        entry = self._targets.get(target_id)
        if entry is not None:
            entry.enabled = not entry.enabled
        return entry

    def list_targets(self) -> list[MonitoringTarget]:
        return list(self._targets.values())

    def targets_for(self, source: str) -> list[MonitoringTarget]:
        source = source.lower()
        return [t for t in self._targets.values() if t.source == source]

    def enabled_for(self, source: str) -> list[str]:
        """Target strings of the enabled targets registered for *source*."""
        return [t.target for t in self.targets_for(source) if t.enabled]

    # ── Incidents ────────────────────────────────────────────────────────────

    @property
    def incidents(self) -> list[Incident]:
        """All incidents, most recent first."""
        return list(reversed(self._incidents.values()))

    def add_incident(self, incident: Incident) -> Incident:
        self._incidents[incident.id] = incident
        _evict_oldest(self._incidents, self.incident_limit)
        return incident

    def get_incident(self, incident_id: str) -> Optional[Incident]:
        return self._incidents.get(incident_id)

    def incident_for_origin(self, origin_id: str) -> Optional[Incident]:
        return next(
            (i for i in self._incidents.values() if i.origin_id == origin_id), None
        )

    # ── Scan reports ─────────────────────────────────────────────────────────

    @property
    def reports(self) -> list[ScanReport]:
        """Completed scan reports, most recent first."""
        return list(reversed(self._reports.values()))

    def add_report(self, report: ScanReport) -> ScanReport:
        self._reports[str(report.id)] = report
        _evict_oldest(self._reports, self.report_limit)
        return report

    def get_report(self, report_id: str) -> Optional[ScanReport]:
        return self._reports.get(report_id)


def _evict_oldest(entries: OrderedDict, limit: int) -> None:
    while len(entries) > limit:
        entries.popitem(last=False)
