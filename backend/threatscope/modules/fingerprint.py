"""
Service fingerprinting module for ThreatScope.

Sends one short plain-HTTP request to every open port and reads the
``Server`` response header to identify the service and its version.  Probes
run concurrently behind a semaphore; a port that does not answer simply
yields no service record and never affects its siblings.

This is an **active** module that connects to the target's open ports.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional

import httpx

from threatscope.config import get_settings
from threatscope.models.scan import ServiceRecord, Severity, Vulnerability
from threatscope.modules.base import BaseScanModule, ModulePhase, ModuleResult
from threatscope.modules.registry import ModuleRegistry

logger = logging.getLogger(__name__)

_OUTDATED_MAJOR_VERSION = 2


@ModuleRegistry.register
class ServiceFingerprintModule(BaseScanModule):
    """Banner grabbing on every port discovered in the previous phase."""

    name: str = "fingerprint"
    description: str = "Service banner grabbing and version detection"
    phase: ModulePhase = ModulePhase.FINGERPRINT
    depends_on: list[str] = ["portscan"]

    async def execute(self, target: str, context: dict[str, Any]) -> ModuleResult:
        """Fingerprint ``context["ports"]`` and return ``data["services"]``."""
        start: float = time.monotonic()
        settings = get_settings()
        ports: list[int] = context.get("ports", [])

        services: list[ServiceRecord] = []
        vulnerabilities: list[Vulnerability] = []
        semaphore = asyncio.Semaphore(settings.FINGERPRINT_CONCURRENCY)

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(settings.FINGERPRINT_TIMEOUT),
            follow_redirects=False,
        ) as client:

            async def _fingerprint_port(port: int) -> None:
                async with semaphore:
                    record = await self._probe(client, target, port)
                if record is None:
                    return
                services.append(record)
                finding = outdated_version_finding(record)
                if finding is not None:
                    vulnerabilities.append(finding)

            await asyncio.gather(
                *(_fingerprint_port(port) for port in ports),
                return_exceptions=True,
            )

        services.sort(key=lambda record: record.port)

        duration: float = time.monotonic() - start
        logger.info(
            "Fingerprinted %d/%d ports on %s in %.1fs",
            len(services),
            len(ports),
            target,
            duration,
        )

        return ModuleResult(
            module_name=self.name,
            success=True,
            data={"services": services, "vulnerabilities": vulnerabilities},
            duration_seconds=round(duration, 3),
        )

    @staticmethod
    async def _probe(
        client: httpx.AsyncClient, target: str, port: int
    ) -> Optional[ServiceRecord]:
        """Grab the banner on *port*; ``None`` when the port does not answer."""
        try:
            response = await client.get(f"http://{target}:{port}")
        except Exception as exc:  # noqa: BLE001
            logger.debug("Probe of %s:%d failed: %s", target, port, exc)
            return None

        service, version = parse_server_header(response.headers.get("server"))
        return ServiceRecord(
            port=port,
            service=service,
            version=version,
            banner=dict(response.headers),
        )


def parse_server_header(value: Optional[str]) -> tuple[str, Optional[str]]:
    """Split a ``Server`` header into ``(service, version)``.

    ``"Apache/2.4.49 (Unix)"`` gives ``("Apache", "2.4.49")``; a header
    without a slash gives no version; a missing header gives ``"unknown"``.
    """
    if not value or not value.strip():
        return "unknown", None

    first_product = value.strip().split()[0]
    if "/" not in first_product:
        return first_product, None

    service, _, version = first_product.partition("/")
    return service or "unknown", version or None


def outdated_version_finding(record: ServiceRecord) -> Optional[Vulnerability]:
    """Flag a service whose major version is below 2."""
    major = record.major_version
    if major is None or major >= _OUTDATED_MAJOR_VERSION:
        return None
    return Vulnerability(
        name="Outdated Service Version",
        description=(
            f"Service {record.service} is running an outdated version "
            f"({record.version})"
        ),
        severity=Severity.MEDIUM,
        service=record.service,
        port=record.port,
        exploitable=True,
    )
