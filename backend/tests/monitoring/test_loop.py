"""
Tests for the monitoring loop: polling, dedup, escalation and lifecycle.
"""

from __future__ import annotations

import asyncio

import pytest

from threatscope.core.errors import SourceUnavailable
from threatscope.models.incident import IncidentStatus
from threatscope.monitoring.enrichment import THREAT_ANALYSIS
from threatscope.monitoring.escalation import IncidentEscalator
from threatscope.monitoring.loop import LoopState, MonitoringLoop


def _loop(store, oracle, sources, settings, **kwargs) -> MonitoringLoop:
    return MonitoringLoop(
        store,
        oracle,
        IncidentEscalator(store, oracle),
        sources=sources,
        settings=settings,
        **kwargs,
    )


async def _wait_for(predicate, timeout: float = 1.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.mark.asyncio
async def test_poll_once_commits_enriched_threats(
    store, fake_oracle, fake_sources, settings, make_siem_hit, make_ids_alert
) -> None:
    fake_sources["siem"].records = [make_siem_hit("Suspicious Login Attempt")]
    fake_sources["ids"].records = [make_ids_alert("Port Scan")]
    loop = _loop(store, fake_oracle, fake_sources, settings)

    committed = await loop.poll_once()

    assert {t.type for t in committed} == {"Suspicious Login Attempt", "Port Scan"}
    assert all(t.enrichment is not None for t in committed)
    assert all(t.confidence == 0.5 for t in committed)
    assert [kind for kind, _ in fake_oracle.calls] == [THREAT_ANALYSIS, THREAT_ANALYSIS]
    assert len(store.threats) == 2
    assert loop.status()["ticks_completed"] == 1


@pytest.mark.asyncio
async def test_repeated_events_are_committed_once(
    store, fake_oracle, fake_sources, settings, make_siem_hit
) -> None:
    hit = make_siem_hit("Malware Detection")
    fake_sources["siem"].records = [hit, hit]
    loop = _loop(store, fake_oracle, fake_sources, settings)

    assert len(await loop.poll_once()) == 1
    assert await loop.poll_once() == []
    assert len(store.threats) == 1
    assert len(fake_oracle.calls) == 1


@pytest.mark.asyncio
async def test_failing_source_does_not_block_others(
    store, fake_oracle, fake_sources, settings, make_siem_hit
) -> None:
    fake_sources["siem"].records = [make_siem_hit("Malware Detection")]
    fake_sources["ids"].error = SourceUnavailable("ids", "connection refused")
    fake_sources["edr"].error = RuntimeError("boom")
    loop = _loop(store, fake_oracle, fake_sources, settings)

    committed = await loop.poll_once()

    assert [t.type for t in committed] == ["Malware Detection"]


@pytest.mark.asyncio
async def test_oracle_failure_falls_back(
    store, fake_sources, settings, make_siem_hit, make_oracle
) -> None:
    class BrokenOracle(make_oracle):
        async def analyze(self, kind, content):
            raise RuntimeError("oracle exploded")

    fake_sources["siem"].records = [make_siem_hit("Malware Detection")]
    loop = _loop(store, BrokenOracle(), fake_sources, settings)

    [threat] = await loop.poll_once()

    assert threat.enrichment.fallback is True
    assert threat.confidence == 0.5


@pytest.mark.asyncio
async def test_target_scope_and_disabled_sources(
    store, fake_oracle, fake_sources, settings
) -> None:
    store.add_target("siem", "web-01")
    ids_target = store.add_target("ids", "sensor-a")
    store.toggle_target(ids_target.id)
    loop = _loop(store, fake_oracle, fake_sources, settings)

    await loop.poll_once()

    assert fake_sources["siem"].calls == [["web-01"]]
    assert fake_sources["ids"].calls == []
    assert fake_sources["edr"].calls == [[]]
    assert loop.status()["sources"] == ["siem", "edr"]


@pytest.mark.asyncio
async def test_only_configured_sources_are_polled(
    store, fake_oracle, fake_sources, settings
) -> None:
    only_siem = settings.model_copy(update={"MONITOR_SOURCES": ["siem"]})
    loop = _loop(store, fake_oracle, fake_sources, only_siem)

    await loop.poll_once()

    assert fake_sources["siem"].calls == [[]]
    assert fake_sources["ids"].calls == []
    assert fake_sources["edr"].calls == []


@pytest.mark.asyncio
async def test_high_confidence_threats_escalate_once(
    store, fake_sources, settings, make_siem_hit, make_ids_alert, make_oracle
) -> None:
    oracle = make_oracle(confidence=0.95)
    fake_sources["siem"].records = [make_siem_hit("Malware Detection")]
    fake_sources["ids"].records = [make_ids_alert("Data Exfiltration Attempt")]
    loop = _loop(store, oracle, fake_sources, settings)

    committed = await loop.poll_once()
    await loop.poll_once()

    assert len(store.incidents) == 2
    assert {i.origin_id for i in store.incidents} == {t.id for t in committed}
    assert all(i.status is IncidentStatus.CRITICAL for i in store.incidents)


@pytest.mark.asyncio
async def test_event_without_timestamp_is_committed_and_escalated_once(
    store, fake_sources, settings, make_ids_alert, make_oracle
) -> None:
    fake_sources["ids"].records = [make_ids_alert("Port Scan", timestamp=None)]
    loop = _loop(store, make_oracle(confidence=0.95), fake_sources, settings)

    [threat] = await loop.poll_once()
    assert await loop.poll_once() == []
    assert await loop.poll_once() == []

    assert threat.reported_at is None
    assert len(store.threats) == 1
    assert [i.origin_id for i in store.incidents] == [threat.id]


@pytest.mark.asyncio
async def test_threshold_is_exclusive(
    store, fake_sources, settings, make_siem_hit, make_oracle
) -> None:
    fake_sources["siem"].records = [make_siem_hit("Malware Detection")]
    loop = _loop(store, make_oracle(confidence=0.9), fake_sources, settings)

    await loop.poll_once()

    assert store.incidents == []


@pytest.mark.asyncio
async def test_history_keeps_most_recent_threats(
    store, fake_oracle, fake_sources, settings, make_siem_hit
) -> None:
    fake_sources["siem"].records = [make_siem_hit(f"Alert {i}") for i in range(12)]
    loop = _loop(store, fake_oracle, fake_sources, settings)

    await loop.poll_once()

    assert len(store.threats) == settings.THREAT_HISTORY_SIZE
    assert store.threats[0].type == "Alert 11"


@pytest.mark.asyncio
async def test_overlapping_tick_is_skipped(
    store, fake_oracle, fake_sources, settings, make_siem_hit
) -> None:
    fake_sources["siem"].records = [make_siem_hit("Malware Detection")]
    fake_sources["siem"].delay = 0.05
    loop = _loop(store, fake_oracle, fake_sources, settings)

    first = asyncio.create_task(loop.poll_once())
    await asyncio.sleep(0)
    assert loop.tick_in_flight

    assert await loop.poll_once() == []
    assert len(await first) == 1
    assert loop.status()["ticks_skipped"] == 1
    assert len(fake_sources["siem"].calls) == 1


@pytest.mark.asyncio
async def test_start_is_idempotent_and_timer_ticks(
    store, fake_oracle, fake_sources, settings
) -> None:
    loop = _loop(store, fake_oracle, fake_sources, settings)

    await loop.start()
    await loop.start()
    assert loop.state is LoopState.RUNNING

    await _wait_for(lambda: loop.status()["ticks_completed"] >= 2)
    await loop.stop()

    assert loop.state is LoopState.STOPPED
    assert loop.status()["last_tick_at"] is not None


@pytest.mark.asyncio
async def test_stop_waits_for_in_flight_tick(
    store, fake_oracle, fake_sources, settings, make_siem_hit
) -> None:
    fake_sources["siem"].records = [make_siem_hit("Malware Detection")]
    fake_sources["siem"].delay = 0.05
    loop = _loop(store, fake_oracle, fake_sources, settings)

    await loop.start()
    await _wait_for(lambda: loop.tick_in_flight)
    await loop.stop()

    assert not loop.tick_in_flight
    assert len(store.threats) == 1

    calls = len(fake_sources["siem"].calls)
    await asyncio.sleep(0.05)
    assert len(fake_sources["siem"].calls) == calls
    assert len(store.threats) == 1


@pytest.mark.asyncio
async def test_stop_when_stopped_is_a_no_op(store, fake_oracle, fake_sources, settings) -> None:
    loop = _loop(store, fake_oracle, fake_sources, settings)
    await loop.stop()
    assert loop.state is LoopState.STOPPED
