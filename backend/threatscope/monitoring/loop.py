"""
Continuous monitoring loop.

State machine with two states, ``stopped`` and ``running``.  While running,
a timer task fires a *tick* every ``MONITOR_INTERVAL_SECONDS``.  A tick:

1. fetches every enabled alert source concurrently,
2. normalises the records into threats,
3. drops threats whose fingerprint the store has already seen,
4. enriches the remaining threats concurrently,
5. commits them to the store in one synchronous step,
6. escalates threats whose confidence exceeds ``ESCALATION_CONFIDENCE``.

Only one tick is in flight at a time; a tick that fires while another is
still running is skipped.  :meth:`MonitoringLoop.stop` cancels the timer and
waits for the in-flight tick, so the store is not written after it returns.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from threatscope.config import Settings, get_settings
from threatscope.core.errors import SourceUnavailable
from threatscope.core.logging import get_logger
from threatscope.engine.fallbacks import fallback_analysis
from threatscope.models.threat import Analysis, Threat
from threatscope.monitoring.enrichment import THREAT_ANALYSIS, EnrichmentOracle
from threatscope.monitoring.escalation import IncidentEscalator
from threatscope.monitoring.normalizer import normalize
from threatscope.monitoring.sources import AlertSource, build_sources
from threatscope.monitoring.store import SecurityStore

logger = get_logger(__name__)


class LoopState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class MonitoringLoop:
    """Polls the alert sources on a timer and feeds the store.

    Args:
        store:     Owned in-memory state.
        oracle:    Enrichment oracle used to score new threats.
        escalator: Receives threats above the escalation threshold.
        sources:   Alert sources keyed by name (defaults to every known source).
        settings:  Optional settings override.
        interval:  Seconds between ticks (defaults to ``MONITOR_INTERVAL_SECONDS``).
    """

    def __init__(
        self,
        store: SecurityStore,
        oracle: EnrichmentOracle,
        escalator: IncidentEscalator,
        sources: Optional[dict[str, AlertSource]] = None,
        settings: Optional[Settings] = None,
        interval: Optional[float] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._store = store
        self._oracle = oracle
        self._escalator = escalator
        self._sources = sources if sources is not None else build_sources(settings=self._settings)
        self._interval = interval if interval is not None else self._settings.MONITOR_INTERVAL_SECONDS

        self._state = LoopState.STOPPED
        self._timer: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None
        self._ticks_completed = 0
        self._ticks_skipped = 0
        self._last_tick_at: Optional[datetime] = None

    # ── State ────────────────────────────────────────────────────────────────

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def tick_in_flight(self) -> bool:
        return self._tick_task is not None and not self._tick_task.done()

    def status(self) -> dict[str, Any]:
        """Snapshot of the loop for the status endpoint."""
        return {
            "state": self._state.value,
            "interval_seconds": self._interval,
            "sources": [source for source, _ in self._enabled_sources()],
            "tick_in_flight": self.tick_in_flight,
            "ticks_completed": self._ticks_completed,
            "ticks_skipped": self._ticks_skipped,
            "last_tick_at": self._last_tick_at,
        }

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Enter ``running`` and start the timer; no-op when already running."""
        if self._state is LoopState.RUNNING:
            return
        self._state = LoopState.RUNNING
        self._timer = asyncio.create_task(self._run_timer(), name="monitoring-timer")
        logger.info(
            "Monitoring started (interval=%.1fs)",
            self._interval,
            extra={"action": "monitoring_start"},
        )

    async def stop(self) -> None:
        """Enter ``stopped``, cancel the timer and wait for any in-flight tick."""
        was_running = self._state is LoopState.RUNNING
        self._state = LoopState.STOPPED

        if self._timer is not None:
            self._timer.cancel()
            await asyncio.gather(self._timer, return_exceptions=True)
            self._timer = None

        if self._tick_task is not None:
            await asyncio.gather(self._tick_task, return_exceptions=True)

        if was_running:
            logger.info("Monitoring stopped", extra={"action": "monitoring_stop"})

    async def poll_once(self) -> list[Threat]:
        """Run a single tick now and return the threats it committed.

        Returns an empty list when a tick is already in flight.
        """
        task = self._fire()
        if task is None:
            return []
        return await asyncio.shield(task)

    # ── Internals ────────────────────────────────────────────────────────────

    async def _run_timer(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self._fire()

    def _fire(self) -> Optional[asyncio.Task]:
        if self.tick_in_flight:
            self._ticks_skipped += 1
            logger.info("Previous tick still running, skipping", extra={"action": "tick_skipped"})
            return None
        self._tick_task = asyncio.create_task(self._tick(), name="monitoring-tick")
        self._tick_task.add_done_callback(self._on_tick_done)
        return self._tick_task

    @staticmethod
    def _on_tick_done(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Monitoring tick failed: %s",
                exc,
                exc_info=exc,
                extra={"action": "tick_failed"},
            )

    def _enabled_sources(self) -> list[tuple[str, list[str]]]:
        """``(source name, target scope)`` for every source to poll this tick."""
        enabled: list[tuple[str, list[str]]] = []
        for name in self._settings.MONITOR_SOURCES:
            name = name.lower()
            if name not in self._sources:
                continue
            scope = self._store.enabled_for(name)
            if self._store.targets_for(name) and not scope:
                continue
            enabled.append((name, scope))
        return enabled

    async def _collect(self) -> list[Threat]:
        enabled = self._enabled_sources()
        results = await asyncio.gather(
            *(self._sources[name].fetch(scope) for name, scope in enabled),
            return_exceptions=True,
        )

        threats: list[Threat] = []
        for (name, _), result in zip(enabled, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                failure = (
                    result if isinstance(result, SourceUnavailable)
                    else SourceUnavailable(name, str(result) or type(result).__name__)
                )
                logger.warning("%s", failure, extra={"action": "source_failed", "target": name})
                continue
            threats.extend(normalize(record) for record in result)
        return threats

    async def _enrich(self, threats: list[Threat]) -> None:
        analyses = await asyncio.gather(
            *(self._oracle.analyze(THREAT_ANALYSIS, t.as_content()) for t in threats),
            return_exceptions=True,
        )
        for threat, analysis in zip(threats, analyses):
            threat.enrichment = analysis if isinstance(analysis, Analysis) else fallback_analysis()

    async def _tick(self) -> list[Threat]:
        threats = await self._collect()

        fresh: list[Threat] = []
        batch: set[str] = set()
        for threat in threats:
            fingerprint = threat.fingerprint
            if fingerprint in batch or self._store.has_seen(fingerprint):
                continue
            batch.add(fingerprint)
            fresh.append(threat)

        await self._enrich(fresh)
        committed = self._store.record_threats(fresh)

        threshold = self._settings.ESCALATION_CONFIDENCE
        for threat in committed:
            if threat.confidence > threshold:
                await self._escalator.escalate(threat)

        self._ticks_completed += 1
        self._last_tick_at = datetime.now(timezone.utc)
        logger.info(
            "Tick committed %d new threats (%d fetched)",
            len(committed),
            len(threats),
            extra={"action": "tick_completed"},
        )
        return committed
