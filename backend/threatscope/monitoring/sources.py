"""
Alert source clients for the monitoring loop.

Each source wraps one endpoint of the alert API and returns *tagged records*:
thin frozen wrappers around the raw JSON object the feed produced.  The
record class tells :func:`threatscope.monitoring.normalizer.normalize` which
field layout to expect.

Feeds:

* **SIEM** -- ``GET /siem/logs?query=security_events``, an Elasticsearch
  style ``{"hits": {"hits": [{"_source": {...}}]}}`` response.
* **IDS** -- ``GET /ids/alerts``, a JSON list of alert objects.
* **EDR** -- ``GET /endpoint/status``, a JSON list of endpoint status objects.

Transport failures and malformed payloads raise
:class:`~threatscope.core.errors.SourceUnavailable`; the loop logs them and
treats the source as having produced nothing for that tick.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

import httpx

from threatscope.config import Settings, get_settings
from threatscope.core.errors import SourceUnavailable
from threatscope.core.logging import get_logger

logger = get_logger(__name__)


# ── Tagged records ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class LogHitRecord:
    """One SIEM search hit (the ``_source`` object of the hit)."""

    fields: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class IdsAlertRecord:
    """One IDS alert object."""

    fields: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EndpointStatusRecord:
    """One EDR endpoint status object."""

    fields: dict[str, Any] = field(default_factory=dict)


SourceRecord = LogHitRecord | IdsAlertRecord | EndpointStatusRecord


# ── Clients ──────────────────────────────────────────────────────────────────

class AlertSource(ABC):
    """Base class for a pollable alert feed.

    Args:
        client:   Optional shared :class:`httpx.AsyncClient`.  When omitted a
                  short-lived client is opened for every fetch.
        settings: Optional settings override (defaults to :func:`get_settings`).
    """

    name: str = ""
    path: str = ""
    default_params: dict[str, str] = {}

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._client = client
        self._settings = settings or get_settings()

    async def fetch(self, targets: Sequence[str] = ()) -> list[SourceRecord]:
        """Return the records currently reported by the feed.

        Args:
            targets: Enabled monitoring targets for this source, forwarded
                as a comma separated ``targets`` query parameter.

        Raises:
            SourceUnavailable: On transport errors or an unexpected payload.
        """
        params = dict(self.default_params)
        if targets:
            params["targets"] = ",".join(targets)

        payload = await self._get(params)
        try:
            records = self.parse(payload)
        except (KeyError, TypeError, AttributeError) as exc:
            raise SourceUnavailable(self.name, f"unexpected payload shape: {exc}") from exc

        logger.debug("%s returned %d records", self.name, len(records))
        return records

    @abstractmethod
    def parse(self, payload: Any) -> list[SourceRecord]:
        """Turn the decoded JSON body into tagged records."""

    # -- HTTP ----------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._settings.ALERT_API_TOKEN:
            headers["Authorization"] = f"Bearer {self._settings.ALERT_API_TOKEN}"
        return headers

    async def _get(self, params: dict[str, str]) -> Any:
        url = f"{self._settings.ALERT_API_URL.rstrip('/')}{self.path}"
        try:
            if self._client is not None:
                response = await self._client.get(
                    url, params=params, headers=self._headers()
                )
            else:
                async with httpx.AsyncClient(
                    timeout=httpx.Timeout(self._settings.ALERT_API_TIMEOUT),
                ) as client:
                    response = await client.get(
                        url, params=params, headers=self._headers()
                    )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as exc:
            raise SourceUnavailable(self.name, str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            raise SourceUnavailable(self.name, f"invalid JSON: {exc}") from exc


def _object_list(payload: Any) -> list[dict[str, Any]]:
    if not isinstance(payload, list):
        raise TypeError(f"expected a JSON list, got {type(payload).__name__}")
    return [item for item in payload if isinstance(item, dict)]


class SiemLogSource(AlertSource):
    """Security-event search against the SIEM."""

    name = "siem"
    path = "/siem/logs"
    default_params = {"query": "security_events"}

    def parse(self, payload: Any) -> list[SourceRecord]:
        hits = payload["hits"]["hits"]
        return [
            LogHitRecord(fields=hit.get("_source") or {})
            for hit in _object_list(hits)
        ]


class IdsAlertSource(AlertSource):
    """Alerts raised by the intrusion detection system."""

    name = "ids"
    path = "/ids/alerts"

    def parse(self, payload: Any) -> list[SourceRecord]:
        return [IdsAlertRecord(fields=item) for item in _object_list(payload)]


class EndpointStatusSource(AlertSource):
    """Endpoint detection and response status feed."""

    name = "edr"
    path = "/endpoint/status"

    def parse(self, payload: Any) -> list[SourceRecord]:
        return [EndpointStatusRecord(fields=item) for item in _object_list(payload)]


def build_sources(
    client: Optional[httpx.AsyncClient] = None,
    settings: Optional[Settings] = None,
) -> dict[str, AlertSource]:
    """Instantiate every known source, keyed by source name."""
    return {
        source.name: source
        for source in (
            SiemLogSource(client, settings),
            IdsAlertSource(client, settings),
            EndpointStatusSource(client, settings),
        )
    }
