"""
Passive port discovery module for ThreatScope.

Looks the target up in Shodan's InternetDB, a free passive-recon asset
database keyed by IPv4 address.  Hostnames are resolved with ``dnspython``
first.  No packets are sent to the target itself.

Any lookup failure degrades to an empty port list; it never aborts the scan.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import dns.asyncresolver
import dns.exception
import httpx

from threatscope.config import get_settings
from threatscope.core.errors import SourceUnavailable
from threatscope.core.security import is_ip_address
from threatscope.models.scan import Severity, Vulnerability
from threatscope.modules.base import BaseScanModule, ModulePhase, ModuleResult
from threatscope.modules.registry import ModuleRegistry

logger = logging.getLogger(__name__)

# telnet/ftp, MS-RPC, NetBIOS, SMB, RDP
DANGEROUS_PORTS: frozenset[int] = frozenset({21, 23, 135, 137, 138, 139, 445, 3389})


@ModuleRegistry.register
class PortDiscoveryModule(BaseScanModule):
    """Open port lookup via InternetDB with dangerous-port classification."""

    name: str = "portscan"
    description: str = "Passive open-port discovery (Shodan InternetDB)"
    phase: ModulePhase = ModulePhase.DISCOVERY
    depends_on: list[str] = ["reachability"]

    async def execute(self, target: str, context: dict[str, Any]) -> ModuleResult:
        """Return ``data["ports"]`` and any dangerous-port vulnerability."""
        start: float = time.monotonic()
        errors: list[str] = []
        ports: list[int] = []

        try:
            ports = await self._lookup(target)
        except SourceUnavailable as exc:
            logger.warning("%s", exc)
            errors.append(str(exc))

        vulnerabilities = classify_dangerous_ports(ports)

        duration: float = time.monotonic() - start
        logger.info(
            "Port lookup for %s returned %d ports in %.1fs",
            target,
            len(ports),
            duration,
        )

        return ModuleResult(
            module_name=self.name,
            success=not errors,
            data={"ports": ports, "vulnerabilities": vulnerabilities},
            errors=errors if errors else None,
            duration_seconds=round(duration, 3),
        )

    async def _lookup(self, target: str) -> list[int]:
        """Query InternetDB for *target* and return its sorted open ports.

        Raises:
            SourceUnavailable: On resolution, transport, or payload errors.
        """
        settings = get_settings()
        address = target if is_ip_address(target) else await self._resolve_ipv4(target)

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(settings.PORT_DB_TIMEOUT),
            ) as client:
                response = await client.get(f"{settings.PORT_DB_URL}/{address}")
                if response.status_code == 404:
                    # InternetDB has no record for this address.
                    return []
                response.raise_for_status()
                payload: dict[str, Any] = response.json()
        except httpx.HTTPError as exc:
            raise SourceUnavailable(self.name, f"InternetDB lookup failed: {exc}") from exc
        except ValueError as exc:
            raise SourceUnavailable(self.name, f"InternetDB returned invalid JSON: {exc}") from exc

        try:
            return sorted({int(port) for port in payload.get("ports") or []})
        except (AttributeError, TypeError, ValueError) as exc:
            raise SourceUnavailable(self.name, f"Malformed port list: {exc}") from exc

    async def _resolve_ipv4(self, hostname: str) -> str:
        """Resolve *hostname* to its first A record."""
        resolver = dns.asyncresolver.Resolver()
        resolver.timeout = 3.0
        resolver.lifetime = 5.0
        try:
            answer = await resolver.resolve(hostname, "A")
        except dns.exception.DNSException as exc:
            raise SourceUnavailable(self.name, f"DNS resolution of {hostname} failed: {exc}") from exc
        return answer[0].to_text()


def classify_dangerous_ports(ports: list[int]) -> list[Vulnerability]:
    """Return one finding listing every dangerous port, or nothing."""
    dangerous = [port for port in ports if port in DANGEROUS_PORTS]
    if not dangerous:
        return []
    return [
        Vulnerability(
            name="Potentially Dangerous Ports Open",
            description=(
                "The following potentially dangerous ports are open: "
                + ", ".join(str(port) for port in dangerous)
            ),
            severity=Severity.HIGH,
            service="Network",
            port=dangerous[0],
            exploitable=True,
        )
    ]
