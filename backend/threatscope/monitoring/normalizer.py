"""
Source record normalisation.

:func:`normalize` maps every tagged feed record onto a ``pending``
:class:`~threatscope.models.threat.Threat`.  It is total: absent or malformed
fields fall back to ``unknown`` type and severity, an empty description and
the current time, and an unrecognised record type yields an ``unknown``
threat instead of an exception.
"""

from __future__ import annotations

from datetime import datetime, timezone
from functools import singledispatch
from typing import Any, Mapping, Optional

from threatscope.core.logging import get_logger
from threatscope.models.threat import Threat, ThreatSeverity
from threatscope.monitoring.sources import (
    EndpointStatusRecord,
    IdsAlertRecord,
    LogHitRecord,
)

logger = get_logger(__name__)

UNKNOWN: str = "unknown"


@singledispatch
def normalize(record: object) -> Threat:
    """Convert a feed record into a canonical threat."""
    logger.warning("Unrecognised source record type %s", type(record).__name__)
    return Threat(type=UNKNOWN, severity=ThreatSeverity.UNKNOWN, source=UNKNOWN)


@normalize.register(LogHitRecord)
def _normalize_log_hit(record: LogHitRecord) -> Threat:
    return _build_threat(record.fields, source="SIEM", type_key="alert_type")


@normalize.register(IdsAlertRecord)
def _normalize_ids_alert(record: IdsAlertRecord) -> Threat:
    return _build_threat(record.fields, source="IDS", type_key="type")


@normalize.register(EndpointStatusRecord)
def _normalize_endpoint_status(record: EndpointStatusRecord) -> Threat:
    threat = _build_threat(record.fields, source="EDR", type_key="type")
    hostname = _text(_get(record.fields, "hostname"))
    if hostname:
        threat.description = (
            f"{threat.description} (host: {hostname})" if threat.description
            else f"host: {hostname}"
        )
    return threat


# ── Helpers ──────────────────────────────────────────────────────────────────

def _get(fields: Any, key: str) -> Any:
    return fields.get(key) if isinstance(fields, Mapping) else None


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_reported_at(value: Any) -> Optional[datetime]:
    """Parse a feed ISO-8601 timestamp; ``None`` when absent or unusable.

    Naive timestamps are assumed to be UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_timestamp(value: Any) -> datetime:
    """Like :func:`parse_reported_at`, defaulting to *now* (UTC)."""
    return parse_reported_at(value) or datetime.now(timezone.utc)


def _build_threat(fields: Any, source: str, type_key: str) -> Threat:
    reported_at = parse_reported_at(_get(fields, "timestamp"))
    return Threat(
        type=_text(_get(fields, type_key)) or UNKNOWN,
        severity=ThreatSeverity.parse(_get(fields, "severity")),
        source=source,
        description=_text(_get(fields, "description")),
        timestamp=reported_at or datetime.now(timezone.utc),
        reported_at=reported_at,
    )
