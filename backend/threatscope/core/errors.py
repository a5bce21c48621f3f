"""
Error taxonomy shared by the scan pipeline and the monitoring loop.

Only :class:`TargetUnreachable` is fatal to a scan.  The remaining errors
are raised at collaborator boundaries and absorbed by the caller, which
logs them and degrades to an empty contribution or a fallback value.
"""

from __future__ import annotations


class ThreatScopeError(Exception):
    """Base class for all ThreatScope errors."""


class InvalidInput(ThreatScopeError, ValueError):
    """User-supplied input was rejected before any I/O took place."""


class TargetUnreachable(ThreatScopeError):
    """Neither secure nor plain transport produced any response.

    Attributes:
        target: The host that could not be reached.
        report: The ``failed`` :class:`~threatscope.models.scan.ScanReport`
            produced by the orchestrator, when one exists.
    """

    def __init__(self, target: str, reason: str | None = None, report=None) -> None:
        self.target = target
        self.reason = reason or f"Target {target} is not reachable via HTTP or HTTPS"
        self.report = report
        super().__init__(self.reason)


class SourceUnavailable(ThreatScopeError):
    """A single data source or scan stage failed.

    Attributes:
        source: Name of the failing source (module or feed identifier).
    """

    def __init__(self, source: str, detail: str) -> None:
        self.source = source
        self.detail = detail
        super().__init__(f"{source} unavailable: {detail}")


class EnrichmentUnavailable(ThreatScopeError):
    """The enrichment oracle could not produce an analysis."""


class InvalidTransition(ThreatScopeError):
    """A status change that the lifecycle of the entity does not allow."""
