"""
HTTP security header compliance module for ThreatScope.

Sends a single request over whichever transport the reachability probe
selected and reports every header of a fixed security table that is absent
from the response.  Any status code is accepted; a failed request is logged
and produces no findings.

This is an **active** module that sends one HTTP request to the target.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Mapping, Optional

import httpx

from threatscope.config import get_settings
from threatscope.models.scan import HeaderFinding, Reachability, Severity, Vulnerability
from threatscope.modules.base import BaseScanModule, ModulePhase, ModuleResult
from threatscope.modules.registry import ModuleRegistry

logger = logging.getLogger(__name__)

# Security headers to check: header name -> (severity, description)
SECURITY_HEADERS: dict[str, tuple[Severity, str]] = {
    "Strict-Transport-Security": (Severity.HIGH, "Missing HSTS header"),
    "X-Frame-Options": (Severity.MEDIUM, "Missing clickjacking protection"),
    "X-Content-Type-Options": (Severity.MEDIUM, "Missing MIME-type protection"),
    "Content-Security-Policy": (Severity.HIGH, "Missing CSP header"),
    "X-XSS-Protection": (Severity.MEDIUM, "Missing XSS protection header"),
}


@ModuleRegistry.register
class HeaderComplianceModule(BaseScanModule):
    """Missing security response header detection."""

    name: str = "headeraudit"
    description: str = "HTTP Security Header Compliance"
    phase: ModulePhase = ModulePhase.ANALYSIS
    depends_on: list[str] = ["reachability"]

    async def execute(self, target: str, context: dict[str, Any]) -> ModuleResult:
        """Return ``data["header_findings"]`` and one vulnerability per missing header."""
        start: float = time.monotonic()
        settings = get_settings()
        reachability: Reachability = context.get(
            "reachability", Reachability(reachable=True, secure=False)
        )

        header_findings: list[HeaderFinding] = []
        vulnerabilities: list[Vulnerability] = []
        errors: list[str] = []

        response = await self._fetch_response(
            f"{reachability.scheme}://{target}", settings.HEADER_CHECK_TIMEOUT
        )
        if response is None:
            errors.append(f"Header check request to {target} failed")
        else:
            header_findings, vulnerabilities = check_security_headers(
                response.headers, reachability.port
            )

        duration: float = time.monotonic() - start
        logger.info(
            "Header audit of %s found %d missing headers in %.1fs",
            target,
            len(header_findings),
            duration,
        )

        return ModuleResult(
            module_name=self.name,
            success=not errors,
            data={"header_findings": header_findings, "vulnerabilities": vulnerabilities},
            errors=errors if errors else None,
            duration_seconds=round(duration, 3),
        )

    @staticmethod
    async def _fetch_response(url: str, timeout: float) -> Optional[httpx.Response]:
        """GET *url* tolerating any status; ``None`` when no response arrives."""
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(timeout),
                follow_redirects=True,
            ) as client:
                return await client.get(url)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Headers check failed for %s: %s", url, exc)
            return None


def check_security_headers(
    headers: Mapping[str, str], port: int
) -> tuple[list[HeaderFinding], list[Vulnerability]]:
    """Compare response *headers* against :data:`SECURITY_HEADERS`.

    Header names are matched case-insensitively.

    Returns:
        ``(header_findings, vulnerabilities)`` for every absent header.
    """
    present = {name.lower() for name in headers.keys()}
    header_findings: list[HeaderFinding] = []
    vulnerabilities: list[Vulnerability] = []

    for header, (severity, description) in SECURITY_HEADERS.items():
        if header.lower() in present:
            continue
        header_findings.append(HeaderFinding(header=header, missing=True, severity=severity))
        vulnerabilities.append(
            Vulnerability(
                name=f"Missing {header}",
                description=description,
                severity=severity,
                service="HTTP",
                port=port,
                exploitable=severity is Severity.HIGH,
            )
        )

    return header_findings, vulnerabilities
