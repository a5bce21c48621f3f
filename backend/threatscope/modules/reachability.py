"""
Reachability probe for ThreatScope.

Tries HTTPS first and falls back to plain HTTP.  A target only counts as
unreachable when neither attempt got *any* HTTP response: an error status
over plain HTTP still proves the host is alive.  Redirects are not followed:
a 3xx answer is itself proof of reachability.  The final verdict is taken
by :func:`~threatscope.engine.fallbacks.resolve_reachability`.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

import httpx

from threatscope.config import get_settings
from threatscope.engine.fallbacks import resolve_reachability
from threatscope.modules.base import BaseScanModule, ModulePhase, ModuleResult
from threatscope.modules.registry import ModuleRegistry

logger = logging.getLogger(__name__)


@ModuleRegistry.register
class ReachabilityModule(BaseScanModule):
    """Secure-then-plain transport probe.

    Raises :class:`~threatscope.core.errors.TargetUnreachable` out of
    :meth:`execute`; the orchestrator turns it into a ``failed`` report.
    """

    name: str = "reachability"
    description: str = "HTTPS / HTTP reachability probe"
    phase: ModulePhase = ModulePhase.REACHABILITY

    async def execute(self, target: str, context: dict[str, Any]) -> ModuleResult:
        """Probe *target* and return ``data["reachability"]``."""
        start: float = time.monotonic()
        settings = get_settings()

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(settings.REACHABILITY_TIMEOUT),
            follow_redirects=False,
        ) as client:
            secure_status = await self._probe(client, f"https://{target}")
            plain_status: Optional[int] = None
            if secure_status is None or secure_status >= 400:
                plain_status = await self._probe(client, f"http://{target}")

        reachability = resolve_reachability(target, secure_status, plain_status)

        duration: float = time.monotonic() - start
        logger.info(
            "%s reachable over %s (https=%s, http=%s)",
            target,
            reachability.scheme.upper(),
            secure_status,
            plain_status,
        )

        return ModuleResult(
            module_name=self.name,
            success=True,
            data={"reachability": reachability},
            duration_seconds=round(duration, 3),
        )

    @staticmethod
    async def _probe(client: httpx.AsyncClient, url: str) -> Optional[int]:
        """Return the status code of GET *url*, or ``None`` on connection failure."""
        try:
            response = await client.get(url)
        except httpx.HTTPError as exc:
            logger.debug("No response from %s: %s", url, exc)
            return None
        return response.status_code
