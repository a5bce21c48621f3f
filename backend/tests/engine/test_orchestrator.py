"""
Tests for the scan orchestrator.

Stub modules replace the registry contents to exercise phase ordering,
context merging and the partial-failure policy.  The end-to-end scenario
runs the real pipeline with every network helper patched.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from threatscope.core.errors import InvalidInput, TargetUnreachable
from threatscope.engine.orchestrator import ScanOrchestrator
from threatscope.models.scan import (
    Reachability,
    ScanStatus,
    ServiceRecord,
    Severity,
    TLSAssessment,
    Vulnerability,
)
from threatscope.modules.base import BaseScanModule, ModulePhase, ModuleResult
from threatscope.modules.fingerprint import ServiceFingerprintModule
from threatscope.modules.headeraudit import HeaderComplianceModule
from threatscope.modules.portscan import PortDiscoveryModule
from threatscope.modules.reachability import ReachabilityModule
from threatscope.modules.registry import ModuleRegistry
from threatscope.modules.sslaudit import TLSAssessmentModule

PIPELINE = ["reachability", "portscan", "fingerprint", "sslaudit", "headeraudit", "cvematch"]


def _finding(name: str) -> Vulnerability:
    return Vulnerability(name=name, description=name, severity=Severity.LOW)


class _Reachable(BaseScanModule):
    name = "_reach"
    phase = ModulePhase.REACHABILITY

    async def execute(self, target: str, context: dict[str, Any]) -> ModuleResult:
        return ModuleResult(
            module_name=self.name,
            success=True,
            data={"reachability": Reachability(reachable=True, secure=True)},
        )


class _Unreachable(BaseScanModule):
    name = "_reach"
    phase = ModulePhase.REACHABILITY

    async def execute(self, target: str, context: dict[str, Any]) -> ModuleResult:
        raise TargetUnreachable(target)


class _Ports(BaseScanModule):
    name = "_ports"
    phase = ModulePhase.DISCOVERY

    async def execute(self, target: str, context: dict[str, Any]) -> ModuleResult:
        assert "reachability" in context
        return ModuleResult(module_name=self.name, success=True, data={"ports": [443, 80]})


class _BrokenPorts(BaseScanModule):
    name = "_ports"
    phase = ModulePhase.DISCOVERY

    async def execute(self, target: str, context: dict[str, Any]) -> ModuleResult:
        raise RuntimeError("asset database exploded")


class _HeaderFindings(BaseScanModule):
    name = "_headers"
    phase = ModulePhase.ANALYSIS

    async def execute(self, target: str, context: dict[str, Any]) -> ModuleResult:
        return ModuleResult(
            module_name=self.name,
            success=True,
            data={"vulnerabilities": [_finding("Missing CSP")]},
        )


class _TlsFindings(BaseScanModule):
    name = "_tls"
    phase = ModulePhase.ANALYSIS

    async def execute(self, target: str, context: dict[str, Any]) -> ModuleResult:
        return ModuleResult(
            module_name=self.name,
            success=True,
            data={
                "tls": TLSAssessment(valid=True, days_remaining=100, grade="A"),
                "vulnerabilities": [_finding("Weak SSL/TLS Protocols")],
            },
        )


@pytest.fixture()
def use_modules(monkeypatch):
    """Replace the registry contents with the given stub classes."""

    def _install(*module_classes: type[BaseScanModule]) -> None:
        monkeypatch.setattr(
            ModuleRegistry, "_modules", {cls.name: cls for cls in module_classes}
        )

    return _install


@pytest.mark.asyncio
async def test_invalid_target_rejected_before_any_module_runs(use_modules) -> None:
    use_modules(_Reachable)
    with patch.object(_Reachable, "execute", AsyncMock()) as execute:
        with pytest.raises(InvalidInput):
            await ScanOrchestrator().run_scan("   ")
        with pytest.raises(InvalidInput):
            await ScanOrchestrator().run_scan("not a host!")
    execute.assert_not_called()


@pytest.mark.asyncio
async def test_phases_merge_into_completed_report(use_modules) -> None:
    use_modules(_Reachable, _Ports, _HeaderFindings, _TlsFindings)

    report = await ScanOrchestrator().run_scan("Example.COM")

    assert report.status is ScanStatus.COMPLETED
    assert report.target == "example.com"
    assert report.secure is True
    assert report.ports == (80, 443)
    assert report.tls is not None and report.tls.grade == "A"
    assert {v.name for v in report.vulnerabilities} == {"Missing CSP", "Weak SSL/TLS Protocols"}
    assert report.error is None
    assert report.completed_at >= report.started_at


@pytest.mark.asyncio
async def test_unreachable_target_yields_failed_report(use_modules) -> None:
    use_modules(_Unreachable, _Ports, _HeaderFindings)

    with patch.object(_Ports, "execute", AsyncMock()) as ports_execute:
        report = await ScanOrchestrator().run_scan("dead.example.com")

    ports_execute.assert_not_called()
    assert report.status is ScanStatus.FAILED
    assert "not reachable" in report.error
    assert report.vulnerabilities == ()


@pytest.mark.asyncio
async def test_stage_failure_is_isolated(use_modules) -> None:
    use_modules(_Reachable, _BrokenPorts, _HeaderFindings)

    report = await ScanOrchestrator().run_scan("example.com")

    assert report.status is ScanStatus.COMPLETED
    assert report.ports == ()
    assert {v.name for v in report.vulnerabilities} == {"Missing CSP"}


@pytest.mark.asyncio
async def test_each_run_starts_from_a_fresh_context(use_modules) -> None:
    use_modules(_Reachable, _HeaderFindings)
    orchestrator = ScanOrchestrator()

    first = await orchestrator.run_scan("example.com")
    second = await orchestrator.run_scan("example.com")

    assert len(first.vulnerabilities) == len(second.vulnerabilities) == 1
    assert first.id != second.id


@pytest.mark.asyncio
async def test_hardened_host_has_no_vulnerabilities() -> None:
    """scanme.nmap.org over HTTPS with grade A, every header and no risky ports."""
    headers_response = MagicMock(spec=httpx.Response)
    headers_response.status_code = 200
    headers_response.headers = httpx.Headers(
        {
            "Strict-Transport-Security": "max-age=63072000",
            "X-Frame-Options": "SAMEORIGIN",
            "X-Content-Type-Options": "nosniff",
            "Content-Security-Policy": "default-src 'self'",
            "X-XSS-Protection": "0",
        }
    )

    async def probe_port(client, target, port):
        return ServiceRecord(port=port, service="gws")

    with patch.object(ReachabilityModule, "_probe", AsyncMock(return_value=200)), \
            patch.object(PortDiscoveryModule, "_lookup", AsyncMock(return_value=[22, 80, 443])), \
            patch.object(ServiceFingerprintModule, "_probe", AsyncMock(side_effect=probe_port)), \
            patch.object(
                TLSAssessmentModule,
                "_assess",
                AsyncMock(
                    return_value=TLSAssessment(
                        valid=True,
                        days_remaining=240,
                        protocols=("TLS 1.2", "TLS 1.3"),
                        grade="A",
                    )
                ),
            ), \
            patch.object(
                HeaderComplianceModule, "_fetch_response", AsyncMock(return_value=headers_response)
            ):
        report = await ScanOrchestrator(modules=PIPELINE).run_scan("scanme.nmap.org")

    assert report.status is ScanStatus.COMPLETED
    assert report.secure is True
    assert report.ports == (22, 80, 443)
    assert [s.port for s in report.services] == [22, 80, 443]
    assert report.tls is not None and report.tls.grade == "A"
    assert report.header_findings == ()
    assert report.vulnerabilities == ()
