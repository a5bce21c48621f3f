"""Continuous threat monitoring: alert sources, enrichment, escalation."""

from threatscope.monitoring.enrichment import EnrichmentOracle
from threatscope.monitoring.escalation import IncidentEscalator
from threatscope.monitoring.incident_store import IncidentStore, SqlIncidentStore
from threatscope.monitoring.loop import LoopState, MonitoringLoop
from threatscope.monitoring.normalizer import normalize
from threatscope.monitoring.sources import (
    AlertSource,
    EndpointStatusRecord,
    IdsAlertRecord,
    LogHitRecord,
    build_sources,
)
from threatscope.monitoring.store import SecurityStore

__all__ = [
    "AlertSource",
    "EndpointStatusRecord",
    "EnrichmentOracle",
    "IdsAlertRecord",
    "IncidentEscalator",
    "IncidentStore",
    "LogHitRecord",
    "LoopState",
    "MonitoringLoop",
    "SecurityStore",
    "SqlIncidentStore",
    "build_sources",
    "normalize",
]
