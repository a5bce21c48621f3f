"""
Tests for the reachability probe.

The HTTP client is replaced by an ``AsyncMock`` whose ``get`` answers per
URL, so secure-then-plain fallback can be exercised without network access.
"""

from __future__ import annotations

from typing import Optional, Union
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from threatscope.core.errors import TargetUnreachable
from threatscope.modules.reachability import ReachabilityModule

Outcome = Union[int, Exception]


def _patched_client(https: Outcome, http: Optional[Outcome] = None):
    """Build a patched ``httpx.AsyncClient`` answering per scheme."""
    calls: list[str] = []

    async def mock_get(url: str, **kwargs):
        calls.append(url)
        outcome = https if url.startswith("https://") else http
        if isinstance(outcome, Exception):
            raise outcome
        response = MagicMock(spec=httpx.Response)
        response.status_code = outcome
        return response

    mock_client = AsyncMock()
    mock_client.get = mock_get
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    return mock_client, calls


@pytest.mark.asyncio
async def test_https_success_skips_plain_probe() -> None:
    mock_client, calls = _patched_client(https=200)

    with patch("threatscope.modules.reachability.httpx.AsyncClient", return_value=mock_client):
        result = await ReachabilityModule().execute("example.com", {})

    reachability = result.data["reachability"]
    assert reachability.reachable is True
    assert reachability.secure is True
    assert calls == ["https://example.com"]


@pytest.mark.asyncio
async def test_https_failure_falls_back_to_http() -> None:
    mock_client, calls = _patched_client(https=httpx.ConnectError("refused"), http=200)

    with patch("threatscope.modules.reachability.httpx.AsyncClient", return_value=mock_client):
        result = await ReachabilityModule().execute("example.com", {})

    reachability = result.data["reachability"]
    assert reachability.secure is False
    assert reachability.scheme == "http"
    assert reachability.port == 80
    assert calls == ["https://example.com", "http://example.com"]


@pytest.mark.asyncio
async def test_http_error_status_still_counts_as_reachable() -> None:
    """A 503 over plain HTTP proves the host is alive."""
    mock_client, _ = _patched_client(https=httpx.ConnectTimeout("timeout"), http=503)

    with patch("threatscope.modules.reachability.httpx.AsyncClient", return_value=mock_client):
        result = await ReachabilityModule().execute("example.com", {})

    assert result.data["reachability"].reachable is True
    assert result.data["reachability"].secure is False


@pytest.mark.asyncio
async def test_unreachable_on_both_transports_raises() -> None:
    mock_client, _ = _patched_client(
        https=httpx.ConnectError("refused"),
        http=httpx.ConnectError("refused"),
    )

    with patch("threatscope.modules.reachability.httpx.AsyncClient", return_value=mock_client):
        with pytest.raises(TargetUnreachable) as exc_info:
            await ReachabilityModule().execute("dead.example.com", {})

    assert exc_info.value.target == "dead.example.com"
    assert "not reachable" in exc_info.value.reason


@pytest.mark.asyncio
async def test_https_redirect_counts_as_secure() -> None:
    """A 3xx over HTTPS is answered without following the redirect."""
    mock_client, calls = _patched_client(https=301)

    with patch(
        "threatscope.modules.reachability.httpx.AsyncClient", return_value=mock_client
    ) as MockClient:
        result = await ReachabilityModule().execute("example.com", {})

    reachability = result.data["reachability"]
    assert reachability.reachable is True
    assert reachability.secure is True
    assert calls == ["https://example.com"]
    assert MockClient.call_args.kwargs["follow_redirects"] is False
