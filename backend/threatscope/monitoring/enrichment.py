"""
Enrichment oracle client.

Sends ``{type, content}`` to ``POST {ENRICHMENT_API_URL}/ai/analyze`` and
turns the answer into an :class:`~threatscope.models.threat.Analysis`.
Whenever the oracle cannot be used (transport error, non-2xx status,
undecodable or malformed body) the deterministic fallback analysis is
returned instead, so callers always receive an answer.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from threatscope.config import Settings, get_settings
from threatscope.core.errors import EnrichmentUnavailable
from threatscope.core.logging import get_logger
from threatscope.engine.fallbacks import fallback_analysis
from threatscope.models.threat import Analysis

logger = get_logger(__name__)

THREAT_ANALYSIS: str = "threat_analysis"
INCIDENT_ANALYSIS: str = "incident_analysis"


class EnrichmentOracle:
    """Asks the remote analysis service to score and explain an event.

    Args:
        client:   Optional shared :class:`httpx.AsyncClient`.
        settings: Optional settings override.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._client = client
        self._settings = settings or get_settings()

    async def analyze(self, kind: str, content: Any) -> Analysis:
        """Return the oracle's analysis of *content*, or the fallback analysis."""
        try:
            return await self._request(kind, content)
        except EnrichmentUnavailable as exc:
            logger.warning(
                "Enrichment unavailable, using fallback analysis: %s",
                exc,
                extra={"action": "enrichment_fallback"},
            )
            return fallback_analysis()

    async def _request(self, kind: str, content: Any) -> Analysis:
        url = f"{self._settings.ENRICHMENT_API_URL.rstrip('/')}/ai/analyze"
        headers: dict[str, str] = {}
        if self._settings.ENRICHMENT_API_KEY:
            headers["Authorization"] = f"Bearer {self._settings.ENRICHMENT_API_KEY}"
        body = {"type": kind, "content": content}

        try:
            if self._client is not None:
                response = await self._client.post(url, json=body, headers=headers)
            else:
                async with httpx.AsyncClient(
                    timeout=httpx.Timeout(self._settings.ENRICHMENT_TIMEOUT),
                ) as client:
                    response = await client.post(url, json=body, headers=headers)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise EnrichmentUnavailable(str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            raise EnrichmentUnavailable(f"invalid JSON: {exc}") from exc

        return parse_analysis(payload)


def parse_analysis(payload: Any) -> Analysis:
    """Build an :class:`Analysis` from the oracle's JSON answer.

    ``confidence`` is required and clamped into ``[0, 1]``.  The narrative is
    taken from ``prediction`` or ``narrative``, whichever is present.

    Raises:
        EnrichmentUnavailable: If the payload has no usable confidence.
    """
    if not isinstance(payload, dict):
        raise EnrichmentUnavailable("analysis payload is not an object")

    try:
        confidence = float(payload["confidence"])
    except (KeyError, TypeError, ValueError) as exc:
        raise EnrichmentUnavailable("analysis payload has no numeric confidence") from exc
    if confidence != confidence:  # NaN
        raise EnrichmentUnavailable("analysis confidence is NaN")
    confidence = min(max(confidence, 0.0), 1.0)

    raw_recommendations = payload.get("recommendations") or []
    if not isinstance(raw_recommendations, list):
        raw_recommendations = [raw_recommendations]
    recommendations = tuple(str(item) for item in raw_recommendations if item)

    narrative = payload.get("prediction") or payload.get("narrative") or ""

    return Analysis(
        confidence=confidence,
        recommendations=recommendations,
        narrative=str(narrative),
    )
