"""ThreatScope scan engine: orchestration and fallback policy."""

from threatscope.engine.fallbacks import (
    default_tls_assessment,
    fallback_analysis,
    resolve_reachability,
)
from threatscope.engine.orchestrator import ScanOrchestrator

__all__ = [
    "ScanOrchestrator",
    "default_tls_assessment",
    "fallback_analysis",
    "resolve_reachability",
]
