"""
CVE correlation module for ThreatScope.

Queries the NIST National Vulnerability Database (NVD) API v2.0 for CVEs
matching every fingerprinted service whose name and version are known.
Only entries with a CVSS v3.1 base score of at least 7.0 are reported;
each is treated as exploitable. An NVD entry that cannot be parsed is
skipped and recorded as a module error.

Supports an optional NVD API key (``NVD_API_KEY``) for higher rate limits.
Results are never cached: every scan queries the feed afresh.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional

import httpx

from threatscope.config import get_settings
from threatscope.models.scan import CVEReference, ServiceRecord, Severity, Vulnerability
from threatscope.modules.base import BaseScanModule, ModulePhase, ModuleResult
from threatscope.modules.registry import ModuleRegistry

logger = logging.getLogger(__name__)

MIN_CVSS_SCORE: float = 7.0
CRITICAL_CVSS_SCORE: float = 9.0


@ModuleRegistry.register
class CveCorrelationModule(BaseScanModule):
    """CVE matching via the NIST NVD REST API v2.0.

    Rate-limiting is adjusted based on whether an API key is configured:
    **0.6 s** delay per request without a key, **0.1 s** with a key.
    """

    name: str = "cvematch"
    description: str = "CVE correlation via NVD API"
    phase: ModulePhase = ModulePhase.ANALYSIS
    depends_on: list[str] = ["fingerprint"]

    async def execute(self, target: str, context: dict[str, Any]) -> ModuleResult:
        """Look up CVEs for ``context["services"]``.

        Returns:
            A :class:`ModuleResult` whose ``data["vulnerabilities"]`` holds
            one :class:`Vulnerability` per matching CVE and service port.
        """
        start: float = time.monotonic()
        settings = get_settings()
        errors: list[str] = []
        vulnerabilities: dict[tuple[str, int], Vulnerability] = {}

        services: list[ServiceRecord] = [
            record
            for record in context.get("services", [])
            if record.service != "unknown" and record.version
        ]

        headers: dict[str, str] = {}
        if settings.NVD_API_KEY:
            headers["apiKey"] = settings.NVD_API_KEY
        request_delay: float = 0.1 if settings.NVD_API_KEY else 0.6

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(settings.NVD_TIMEOUT),
        ) as client:
            for index, record in enumerate(services):
                if index:
                    await asyncio.sleep(request_delay)

                keyword: str = f"{record.service} {record.version}"
                try:
                    response = await client.get(
                        settings.NVD_API_URL,
                        params={"keywordSearch": keyword, "resultsPerPage": 50},
                        headers=headers,
                    )
                    response.raise_for_status()
                    nvd_data: dict[str, Any] = response.json()
                except httpx.TimeoutException as exc:
                    error_msg = f"NVD request timed out for {keyword}: {exc}"
                    logger.warning(error_msg)
                    errors.append(error_msg)
                    continue
                except httpx.HTTPStatusError as exc:
                    error_msg = (
                        f"NVD returned HTTP {exc.response.status_code} "
                        f"for {keyword}: {exc}"
                    )
                    logger.warning(error_msg)
                    errors.append(error_msg)
                    continue
                except Exception as exc:  # noqa: BLE001
                    error_msg = f"NVD query for {keyword}: {exc}"
                    logger.exception(error_msg)
                    errors.append(error_msg)
                    continue

                for vuln in nvd_data.get("vulnerabilities", []):
                    try:
                        finding = self._to_vulnerability(vuln.get("cve", {}), record)
                    except (AttributeError, TypeError, ValueError) as exc:
                        error_msg = f"Malformed NVD entry for {keyword}: {exc}"
                        logger.warning(error_msg)
                        errors.append(error_msg)
                        continue
                    if finding is not None and finding.cve is not None:
                        vulnerabilities.setdefault((finding.cve.id, record.port), finding)

        duration: float = time.monotonic() - start
        logger.info(
            "CVE correlation for %s matched %d CVEs across %d services in %.1fs",
            target,
            len(vulnerabilities),
            len(services),
            duration,
        )

        return ModuleResult(
            module_name=self.name,
            success=not errors,
            data={"vulnerabilities": list(vulnerabilities.values())},
            errors=errors if errors else None,
            duration_seconds=round(duration, 3),
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _to_vulnerability(
        self,
        cve_data: dict[str, Any],
        record: ServiceRecord,
    ) -> Optional[Vulnerability]:
        """Build a finding from one NVD ``cve`` object, or ``None`` below the cutoff.

        Raises:
            ValueError: If the base score is not numeric.
        """
        cve_id: Optional[str] = cve_data.get("id")
        metric_list = cve_data.get("metrics", {}).get("cvssMetricV31") or []
        if not cve_id or not metric_list:
            return None

        cvss_payload: dict[str, Any] = metric_list[0].get("cvssData", {})
        score = cvss_payload.get("baseScore")
        if score is None:
            return None
        score = float(score)
        if score < MIN_CVSS_SCORE:
            return None

        description_text: str = ""
        descriptions: list[dict[str, str]] = cve_data.get("descriptions", [])
        for desc in descriptions:
            if desc.get("lang", "en") == "en":
                description_text = desc.get("value", "")
                break
        if not description_text and descriptions:
            description_text = descriptions[0].get("value", "")

        return Vulnerability(
            name=cve_id,
            description=description_text or "No description available",
            severity=self._score_to_severity(score),
            service=record.service,
            port=record.port,
            exploitable=True,
            cve=CVEReference(
                id=cve_id,
                score=score,
                vector=cvss_payload.get("vectorString"),
            ),
        )

    @staticmethod
    def _score_to_severity(score: float) -> Severity:
        """Map a reportable CVSS base score: critical from 9.0, otherwise high."""
        if score >= CRITICAL_CVSS_SCORE:
            return Severity.CRITICAL
        return Severity.HIGH
