"""
Shared pytest fixtures for the ThreatScope test suite.

Provides an in-memory SQLite database (via aiosqlite) for the incident
store, deterministic stand-ins for the enrichment oracle and the alert
sources, a fully wired :class:`SecurityService`, and a FastAPI test client
driven through ``httpx.ASGITransport``.
"""

from __future__ import annotations

import asyncio
from typing import Any, AsyncGenerator, Optional, Sequence

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from threatscope.config import Settings
from threatscope.core.database import Base
from threatscope.core.security import validate_target
from threatscope.models.scan import (
    HeaderFinding,
    ScanReport,
    ScanStatus,
    ServiceRecord,
    Severity,
    Vulnerability,
)
from threatscope.models.threat import Analysis
from threatscope.monitoring.incident_store import SqlIncidentStore
from threatscope.monitoring.sources import IdsAlertRecord, LogHitRecord
from threatscope.monitoring.store import SecurityStore
from threatscope.service import SecurityService

import threatscope.models.incident_record  # noqa: F401  (registers the incidents table)


# ---------------------------------------------------------------------------
# Collaborator stand-ins
# ---------------------------------------------------------------------------

class FakeOracle:
    """Enrichment oracle returning a fixed analysis and recording its calls."""

    def __init__(self, confidence: float = 0.5, recommendations: Sequence[str] = ("Isolate host",)):
        self.confidence = confidence
        self.recommendations = tuple(recommendations)
        self.calls: list[tuple[str, Any]] = []

    async def analyze(self, kind: str, content: Any) -> Analysis:
        self.calls.append((kind, content))
        return Analysis(
            confidence=self.confidence,
            recommendations=self.recommendations,
            narrative="stubbed analysis",
        )


class FakeSource:
    """Alert source returning canned records, optionally slowly or with an error."""

    def __init__(
        self,
        name: str,
        records: Optional[list[Any]] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.name = name
        self.records = list(records or [])
        self.error = error
        self.delay = delay
        self.calls: list[list[str]] = []

    async def fetch(self, targets: Sequence[str] = ()) -> list[Any]:
        self.calls.append(list(targets))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.records)


class FakeOrchestrator:
    """Scan orchestrator returning a canned report for any valid target."""

    def __init__(self, reachable: bool = True):
        self.reachable = reachable
        self.calls: list[str] = []

    async def run_scan(self, target: str) -> ScanReport:
        host = validate_target(target)
        self.calls.append(host)
        if not self.reachable:
            return ScanReport(
                target=host,
                status=ScanStatus.FAILED,
                error=f"Target {host} is not reachable via HTTP or HTTPS",
            )
        return ScanReport(
            target=host,
            status=ScanStatus.COMPLETED,
            secure=True,
            ports=(80, 443),
            services=(ServiceRecord(port=80, service="nginx", version="1.18.0"),),
            header_findings=(
                HeaderFinding(header="X-Frame-Options", missing=True, severity=Severity.MEDIUM),
            ),
            vulnerabilities=(
                Vulnerability(
                    name="Missing X-Frame-Options Header",
                    description="Security header X-Frame-Options is not set",
                    severity=Severity.MEDIUM,
                ),
            ),
        )


def siem_hit(alert_type: str, severity: str = "high", **extra: Any) -> LogHitRecord:
    fields = {
        "alert_type": alert_type,
        "severity": severity,
        "description": f"{alert_type} observed",
        "timestamp": "2024-05-01T12:00:00Z",
    }
    fields.update(extra)
    return LogHitRecord(fields=fields)


def ids_alert(alert_type: str, severity: str = "medium", **extra: Any) -> IdsAlertRecord:
    fields = {
        "type": alert_type,
        "severity": severity,
        "description": f"{alert_type} detected",
        "timestamp": "2024-05-01T12:00:00Z",
    }
    fields.update(extra)
    return IdsAlertRecord(fields=fields)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@pytest.fixture()
def settings() -> Settings:
    """Settings isolated from any ``.env`` file, tuned for fast tests."""
    return Settings(
        _env_file=None,
        ALERT_API_URL="http://alerts.test/api",
        ENRICHMENT_API_URL="http://oracle.test/api",
        MONITOR_INTERVAL_SECONDS=0.01,
        MONITOR_SOURCES=["siem", "ids", "edr"],
        THREAT_HISTORY_SIZE=10,
        DEDUP_WINDOW=500,
        ESCALATION_CONFIDENCE=0.9,
        AUTO_BLOCK_ENABLED=False,
    )


# ---------------------------------------------------------------------------
# Database engine and session fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture()
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an async in-memory SQLite engine and provision all tables.

    Yields the engine and disposes it after the test.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///",
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture()
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture()
def incident_store(session_factory: async_sessionmaker[AsyncSession]) -> SqlIncidentStore:
    return SqlIncidentStore(session_factory)


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------

@pytest.fixture()
def make_source():
    """Return the :class:`FakeSource` class for tests that build their own."""
    return FakeSource


@pytest.fixture()
def make_siem_hit():
    return siem_hit


@pytest.fixture()
def make_ids_alert():
    return ids_alert


@pytest.fixture()
def make_oracle():
    """Return the :class:`FakeOracle` class for tests that need a custom score."""
    return FakeOracle


@pytest.fixture()
def fake_oracle() -> FakeOracle:
    return FakeOracle()


@pytest.fixture()
def fake_orchestrator() -> FakeOrchestrator:
    return FakeOrchestrator()


@pytest.fixture()
def fake_sources() -> dict[str, FakeSource]:
    """One empty fake per alert source; tests fill in ``records`` as needed."""
    return {name: FakeSource(name) for name in ("siem", "ids", "edr")}


@pytest.fixture()
def store(settings: Settings) -> SecurityStore:
    return SecurityStore(
        history_size=settings.THREAT_HISTORY_SIZE,
        dedup_window=settings.DEDUP_WINDOW,
        incident_limit=settings.INCIDENT_HISTORY_SIZE,
        report_limit=settings.REPORT_HISTORY_SIZE,
    )


@pytest_asyncio.fixture()
async def service(
    settings: Settings,
    store: SecurityStore,
    fake_oracle: FakeOracle,
    fake_sources: dict[str, FakeSource],
    fake_orchestrator: FakeOrchestrator,
    incident_store: SqlIncidentStore,
) -> AsyncGenerator[SecurityService, None]:
    """A :class:`SecurityService` wired to fakes; monitoring is stopped on teardown."""
    svc = SecurityService(
        store=store,
        oracle=fake_oracle,
        orchestrator=fake_orchestrator,
        incident_store=incident_store,
        sources=fake_sources,
        settings=settings,
    )
    yield svc
    await svc.stop_monitoring()


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------

@pytest.fixture()
def test_app(service: SecurityService):
    """Return the FastAPI application with the test service installed.

    ``ASGITransport`` does not run the lifespan, so the service is placed on
    ``app.state`` directly.
    """
    from threatscope.main import create_app

    app = create_app()
    app.state.service = service
    return app


@pytest_asyncio.fixture()
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """Yield an httpx.AsyncClient wired to the test FastAPI app."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
