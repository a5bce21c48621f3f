"""
Tests for the threat API endpoints: history, manual reports, analyst
verdicts and direct oracle analysis under ``/api/v1/threats``.
"""

from __future__ import annotations

import pytest
from httpx import AsyncClient


async def _report(client: AsyncClient, **overrides) -> dict:
    payload = {"type": "Phishing", "description": "Suspicious email", "severity": "high"}
    payload.update(overrides)
    response = await client.post("/api/v1/threats/", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_manual_report_is_created(client: AsyncClient) -> None:
    """POST /api/v1/threats/ returns 201 with the enriched threat."""
    threat = await _report(client)

    assert threat["source"] == "manual_report"
    assert threat["severity"] == "high"
    assert threat["status"] == "pending"
    assert threat["enrichment"]["recommendations"] == ["Isolate host"]

    fetched = await client.get(f"/api/v1/threats/{threat['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["id"] == threat["id"]


@pytest.mark.asyncio
async def test_unrecognised_severity_becomes_unknown(client: AsyncClient) -> None:
    threat = await _report(client, severity="apocalyptic")
    assert threat["severity"] == "unknown"


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["type", "description"])
async def test_manual_report_requires_text(client: AsyncClient, field: str) -> None:
    """An empty type or description returns 422."""
    payload = {"type": "Phishing", "description": "Suspicious email", field: "   "}
    response = await client.post("/api/v1/threats/", json=payload)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_verdict_is_applied_once(client: AsyncClient) -> None:
    """A pending threat accepts one verdict; a second one returns 409."""
    threat = await _report(client)

    confirmed = await client.post(
        f"/api/v1/threats/{threat['id']}/respond", json={"confirmed": True}
    )
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "confirmed"

    again = await client.post(
        f"/api/v1/threats/{threat['id']}/respond", json={"confirmed": False}
    )
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_unknown_threat_returns_404(client: AsyncClient) -> None:
    assert (await client.get("/api/v1/threats/missing")).status_code == 404
    response = await client.post("/api/v1/threats/missing/respond", json={"confirmed": True})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_direct_analysis(client: AsyncClient, fake_oracle) -> None:
    """POST /api/v1/threats/analyze forwards to the oracle."""
    response = await client.post(
        "/api/v1/threats/analyze",
        json={"type": "threat_analysis", "content": {"type": "Port Scan"}},
    )

    assert response.status_code == 200
    assert response.json()["confidence"] == 0.5
    assert fake_oracle.calls == [("threat_analysis", {"type": "Port Scan"})]


@pytest.mark.asyncio
async def test_history_is_most_recent_first(client: AsyncClient) -> None:
    first = await _report(client, type="Phishing")
    second = await _report(client, type="Malware")

    history = (await client.get("/api/v1/threats/")).json()
    assert [t["id"] for t in history] == [second["id"], first["id"]]
