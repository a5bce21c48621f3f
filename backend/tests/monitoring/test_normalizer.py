"""
Tests for source record normalisation.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from threatscope.models.threat import ThreatSeverity, ThreatStatus
from threatscope.monitoring.normalizer import normalize, parse_timestamp
from threatscope.monitoring.sources import (
    EndpointStatusRecord,
    IdsAlertRecord,
    LogHitRecord,
)


def test_siem_hit_is_normalised() -> None:
    threat = normalize(
        LogHitRecord(
            fields={
                "alert_type": "Suspicious Login Attempt",
                "severity": "HIGH",
                "description": "Multiple failed login attempts",
                "timestamp": "2024-05-01T12:00:00Z",
            }
        )
    )

    assert threat.type == "Suspicious Login Attempt"
    assert threat.severity is ThreatSeverity.HIGH
    assert threat.source == "SIEM"
    assert threat.status is ThreatStatus.PENDING
    assert threat.timestamp == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    assert threat.enrichment is None


def test_ids_alert_is_normalised() -> None:
    threat = normalize(
        IdsAlertRecord(fields={"type": "Data Exfiltration Attempt", "severity": "critical"})
    )
    assert threat.type == "Data Exfiltration Attempt"
    assert threat.source == "IDS"
    assert threat.severity is ThreatSeverity.CRITICAL
    assert threat.description == ""


def test_endpoint_status_mentions_host() -> None:
    threat = normalize(
        EndpointStatusRecord(
            fields={
                "type": "System Anomaly",
                "severity": "medium",
                "description": "Unusual process activity",
                "hostname": "ws-042",
            }
        )
    )
    assert threat.source == "EDR"
    assert threat.description == "Unusual process activity (host: ws-042)"


def test_missing_fields_get_defaults() -> None:
    before = datetime.now(timezone.utc)
    threat = normalize(LogHitRecord(fields={}))

    assert threat.type == "unknown"
    assert threat.severity is ThreatSeverity.UNKNOWN
    assert threat.description == ""
    assert threat.timestamp >= before


@pytest.mark.parametrize("severity", ["catastrophic", 5, None, ""])
def test_unrecognised_severity_becomes_unknown(severity) -> None:
    threat = normalize(IdsAlertRecord(fields={"type": "x", "severity": severity}))
    assert threat.severity is ThreatSeverity.UNKNOWN


def test_non_mapping_fields_never_raise() -> None:
    threat = normalize(LogHitRecord(fields="garbage"))  # type: ignore[arg-type]
    assert threat.type == "unknown"


def test_unknown_record_type_yields_unknown_threat() -> None:
    threat = normalize({"type": "raw dict"})
    assert threat.type == "unknown"
    assert threat.source == "unknown"
    assert threat.severity is ThreatSeverity.UNKNOWN


def test_ids_are_unique_per_threat() -> None:
    record = IdsAlertRecord(fields={"type": "Port Scan", "timestamp": "2024-05-01T12:00:00Z"})
    first, second = normalize(record), normalize(record)
    assert first.id != second.id
    assert first.fingerprint == second.fingerprint


def test_missing_timestamp_leaves_reported_at_empty() -> None:
    record = IdsAlertRecord(fields={"type": "Port Scan", "timestamp": "not-a-date"})
    first, second = normalize(record), normalize(record)
    assert first.reported_at is None
    assert first.timestamp is not None
    assert first.fingerprint == second.fingerprint


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2024-05-01T12:00:00Z", datetime(2024, 5, 1, 12, tzinfo=timezone.utc)),
        ("2024-05-01T12:00:00", datetime(2024, 5, 1, 12, tzinfo=timezone.utc)),
        ("2024-05-01T14:00:00+02:00", datetime(2024, 5, 1, 12, tzinfo=timezone.utc)),
    ],
)
def test_parse_timestamp(raw, expected) -> None:
    assert parse_timestamp(raw) == expected


def test_parse_timestamp_garbage_defaults_to_now() -> None:
    before = datetime.now(timezone.utc)
    assert parse_timestamp("yesterday-ish") >= before
