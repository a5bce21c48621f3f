"""
SSL/TLS assessment module for ThreatScope.

Delegates certificate and protocol grading to the Qualys SSL Labs API v3,
polling until the assessment reaches a terminal state (``READY`` or
``ERROR``), then derives findings from the grade, the certificate expiry and
the supported protocol versions.

Only runs for targets that answered over HTTPS.  SSL Labs outages degrade to
a conservative default assessment; an unexpected failure still produces a
single "SSL Certificate Issues" finding instead of failing the scan.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from threatscope.config import get_settings
from threatscope.core.errors import SourceUnavailable
from threatscope.engine.fallbacks import default_tls_assessment
from threatscope.models.scan import Reachability, Severity, TLSAssessment, Vulnerability
from threatscope.modules.base import BaseScanModule, ModulePhase, ModuleResult
from threatscope.modules.registry import ModuleRegistry

logger = logging.getLogger(__name__)

_TERMINAL_STATES = {"READY", "ERROR"}
_EXPIRY_WARNING_DAYS = 30

# Normalised with spaces and "v" removed, e.g. "TLS 1.0" -> "tls1.0", "SSLv3" -> "ssl3".
_DEPRECATED_PROTOCOLS = {
    "ssl2", "ssl2.0",
    "ssl3", "ssl3.0",
    "tls1", "tls1.0",
    "tls1.1",
}


@ModuleRegistry.register
class TLSAssessmentModule(BaseScanModule):
    """Certificate / protocol grading via SSL Labs."""

    name: str = "sslaudit"
    description: str = "SSL/TLS grading via Qualys SSL Labs"
    phase: ModulePhase = ModulePhase.ANALYSIS
    depends_on: list[str] = ["reachability"]

    async def execute(self, target: str, context: dict[str, Any]) -> ModuleResult:
        """Assess *target* and return ``data["tls"]`` plus TLS findings."""
        start: float = time.monotonic()
        errors: list[str] = []

        reachability: Optional[Reachability] = context.get("reachability")
        if reachability is None or not reachability.secure:
            logger.info("%s is not served over HTTPS; skipping TLS assessment.", target)
            return ModuleResult(module_name=self.name, success=True, data={})

        try:
            try:
                assessment = await self._assess(target)
            except SourceUnavailable as exc:
                logger.warning("%s", exc)
                errors.append(str(exc))
                assessment = default_tls_assessment()
            vulnerabilities = derive_tls_findings(assessment)
        except Exception as exc:  # noqa: BLE001
            logger.exception("TLS assessment of %s failed", target)
            errors.append(f"TLS assessment failed: {exc}")
            assessment = default_tls_assessment()
            vulnerabilities = [
                Vulnerability(
                    name="SSL Certificate Issues",
                    description="Unable to verify SSL certificate",
                    severity=Severity.MEDIUM,
                    service="HTTPS",
                    port=443,
                )
            ]

        duration: float = time.monotonic() - start
        logger.info(
            "TLS assessment of %s: grade=%s, %d findings in %.1fs",
            target,
            assessment.grade,
            len(vulnerabilities),
            duration,
        )

        return ModuleResult(
            module_name=self.name,
            success=not errors,
            data={"tls": assessment, "vulnerabilities": vulnerabilities},
            errors=errors if errors else None,
            duration_seconds=round(duration, 3),
        )

    async def _assess(self, host: str) -> TLSAssessment:
        """Start an SSL Labs assessment and poll it to a terminal state.

        Raises:
            SourceUnavailable: On HTTP errors or when polling is exhausted.
        """
        settings = get_settings()
        params: dict[str, str] = {
            "host": host,
            "publish": "off",
            "startNew": "on",
            "all": "done",
            "ignoreMismatch": "on",
        }

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(settings.SSL_LABS_TIMEOUT),
        ) as client:
            for _ in range(settings.SSL_LABS_MAX_POLLS):
                try:
                    response = await client.get(settings.SSL_LABS_API_URL, params=params)
                    response.raise_for_status()
                    payload: dict[str, Any] = response.json()
                except httpx.HTTPError as exc:
                    raise SourceUnavailable(self.name, f"SSL Labs request failed: {exc}") from exc

                if payload.get("status") in _TERMINAL_STATES:
                    return parse_ssllabs_report(payload)

                # Subsequent calls poll the running assessment.
                params.pop("startNew", None)
                await asyncio.sleep(settings.SSL_LABS_POLL_INTERVAL)

        raise SourceUnavailable(
            self.name,
            f"SSL Labs assessment of {host} did not finish after "
            f"{settings.SSL_LABS_MAX_POLLS} polls",
        )


def parse_ssllabs_report(payload: dict[str, Any]) -> TLSAssessment:
    """Convert a terminal SSL Labs ``analyze`` payload into a :class:`TLSAssessment`."""
    endpoints: list[dict[str, Any]] = payload.get("endpoints") or []
    endpoint: dict[str, Any] = endpoints[0] if endpoints else {}
    details: dict[str, Any] = endpoint.get("details") or {}

    not_after = (details.get("cert") or {}).get("notAfter")
    if not_after is None:
        certs: list[dict[str, Any]] = payload.get("certs") or []
        if certs:
            not_after = certs[0].get("notAfter")

    days_remaining: Optional[int] = None
    if not_after is not None:
        # SSL Labs timestamps are milliseconds since the epoch.
        expiry = datetime.fromtimestamp(not_after / 1000, tz=timezone.utc)
        days_remaining = (expiry - datetime.now(timezone.utc)).days

    protocols = tuple(
        f"{proto.get('name', '')} {proto.get('version', '')}".strip()
        for proto in details.get("protocols") or []
    )

    return TLSAssessment(
        valid=payload.get("status") == "READY",
        days_remaining=days_remaining,
        protocols=protocols,
        grade=endpoint.get("grade") or "Unknown",
    )


def is_deprecated_protocol(protocol: str) -> bool:
    normalised = protocol.lower().replace(" ", "").replace("v", "")
    return normalised in _DEPRECATED_PROTOCOLS


def derive_tls_findings(assessment: TLSAssessment) -> list[Vulnerability]:
    """Map an assessment onto expiry, grade and protocol findings."""
    findings: list[Vulnerability] = []

    days = assessment.days_remaining
    if days is not None and days < _EXPIRY_WARNING_DAYS:
        findings.append(
            Vulnerability(
                name="SSL Certificate Expiring Soon",
                description=f"SSL certificate will expire in {days} days",
                severity=Severity.MEDIUM,
                service="HTTPS",
                port=443,
            )
        )

    grade = assessment.grade or "Unknown"
    if grade.startswith(("B", "C")):
        findings.append(
            Vulnerability(
                name="Weak SSL Configuration",
                description=f"SSL configuration received grade {grade}",
                severity=Severity.MEDIUM,
                service="HTTPS",
                port=443,
                exploitable=False,
            )
        )
    elif grade.startswith(("D", "F")):
        findings.append(
            Vulnerability(
                name="Critical SSL Configuration",
                description=f"SSL configuration received grade {grade}",
                severity=Severity.HIGH,
                service="HTTPS",
                port=443,
                exploitable=True,
            )
        )

    weak_protocols = [p for p in assessment.protocols if is_deprecated_protocol(p)]
    if weak_protocols:
        findings.append(
            Vulnerability(
                name="Weak SSL/TLS Protocols",
                description=(
                    "Server supports deprecated protocols: " + ", ".join(weak_protocols)
                ),
                severity=Severity.HIGH,
                service="HTTPS",
                port=443,
                exploitable=True,
            )
        )

    return findings
