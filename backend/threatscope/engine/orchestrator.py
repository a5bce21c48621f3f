"""
Scan Orchestrator for ThreatScope.

Coordinates a complete scan of one target:

1. Validate the target before any network I/O.
2. Resolve the module execution order from the registry.
3. Execute modules phase-by-phase (modules within a phase run in
   parallel via :func:`asyncio.gather`):
   reachability -> port discovery -> fingerprinting ->
   TLS grading / header compliance / CVE correlation.
4. Merge every module's output into one immutable
   :class:`~threatscope.models.scan.ScanReport`.

An unreachable target is the only fatal condition and yields a ``failed``
report.  Any other module error is logged and the module simply contributes
nothing.  Every call builds a fresh context: nothing is cached across scans.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

import threatscope.modules  # noqa: F401  (registers all scan modules)
from threatscope.core.errors import SourceUnavailable, TargetUnreachable
from threatscope.core.logging import get_logger
from threatscope.core.security import validate_target
from threatscope.models.scan import Reachability, ScanReport, ScanStatus
from threatscope.modules.base import BaseScanModule, ModuleResult
from threatscope.modules.registry import ModuleRegistry

logger = get_logger(__name__)


class ScanOrchestrator:
    """Drives the scan pipeline for a single target.

    Usage::

        orchestrator = ScanOrchestrator()
        report = await orchestrator.run_scan("scanme.nmap.org")

    Args:
        modules: Optional subset of module names to run.  Defaults to every
            registered module.
    """

    def __init__(self, modules: list[str] | None = None) -> None:
        self._selected = modules

    # -- Public entry point ---------------------------------------------------

    async def run_scan(self, target: str) -> ScanReport:
        """Execute the full scan pipeline for *target*.

        Raises:
            InvalidInput: If *target* is empty or malformed.
        """
        target = validate_target(target)
        started_at = datetime.now(timezone.utc)

        logger.info(
            "Starting scan",
            extra={"action": "scan_start", "target": target},
        )

        phases: list[list[BaseScanModule]] = ModuleRegistry.get_execution_order(
            self._selected
        )
        context: dict[str, Any] = {}

        try:
            for phase in phases:
                results = await asyncio.gather(
                    *(module.execute(target, context) for module in phase),
                    return_exceptions=True,
                )
                for module, result in zip(phase, results):
                    self._absorb(target, module, result, context)
        except TargetUnreachable as exc:
            logger.warning(
                "Scan failed: %s",
                exc.reason,
                extra={"action": "scan_failed", "target": target},
            )
            return ScanReport(
                target=target,
                status=ScanStatus.FAILED,
                error=exc.reason,
                started_at=started_at,
                completed_at=datetime.now(timezone.utc),
            )

        report = self._build_report(target, context, started_at)
        logger.info(
            "Scan completed in %.1fs with %d vulnerabilities",
            report.duration_seconds,
            len(report.vulnerabilities),
            extra={"action": "scan_completed", "target": target},
        )
        return report

    # -- Helpers --------------------------------------------------------------

    @staticmethod
    def _absorb(
        target: str,
        module: BaseScanModule,
        result: ModuleResult | BaseException,
        context: dict[str, Any],
    ) -> None:
        """Merge one module outcome into *context* according to the failure policy."""
        if isinstance(result, TargetUnreachable):
            raise result
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                # Cancellation and interpreter exits are not stage failures.
                raise result
            failure = SourceUnavailable(module.name, str(result) or type(result).__name__)
            logger.warning(
                "%s",
                failure,
                extra={"action": "module_failed", "target": target},
            )
            return

        logger.info(
            "Module completed: %s (success=%s, duration=%.2fs)",
            module.name,
            result.success,
            result.duration_seconds,
            extra={"action": "module_completed", "target": target},
        )

        # Lists extend, dicts update, anything else replaces.
        for key, value in result.data.items():
            if isinstance(value, list):
                context.setdefault(key, []).extend(value)
            elif isinstance(value, dict):
                context.setdefault(key, {}).update(value)
            else:
                context[key] = value

    @staticmethod
    def _build_report(
        target: str, context: dict[str, Any], started_at: datetime
    ) -> ScanReport:
        """Freeze the merged *context* into a ``completed`` report."""
        reachability: Reachability | None = context.get("reachability")
        return ScanReport(
            target=target,
            status=ScanStatus.COMPLETED,
            secure=bool(reachability and reachability.secure),
            ports=tuple(sorted(set(context.get("ports", [])))),
            services=tuple(context.get("services", [])),
            tls=context.get("tls"),
            header_findings=tuple(context.get("header_findings", [])),
            vulnerabilities=tuple(context.get("vulnerabilities", [])),
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        )
