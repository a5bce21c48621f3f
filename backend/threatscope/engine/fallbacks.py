"""
Degrade-versus-fail policy for the unreliable collaborators.

Each collaborator whose failure must not block the caller gets exactly one
function here, so the decision is made in one place and can be tested on
its own:

* :func:`resolve_reachability` -- the only decision that may fail a scan.
* :func:`default_tls_assessment` -- conservative grading when SSL Labs fails.
* :func:`fallback_analysis` -- deterministic oracle answer when enrichment fails.
"""

from __future__ import annotations

from typing import Optional

from threatscope.core.errors import TargetUnreachable
from threatscope.models.scan import Reachability, TLSAssessment
from threatscope.models.threat import Analysis

FALLBACK_CONFIDENCE: float = 0.5

FALLBACK_RECOMMENDATIONS: tuple[str, ...] = (
    "Monitor system activity",
    "Review security logs",
    "Enable additional security controls",
)

FALLBACK_NARRATIVE: str = "Unable to perform complete analysis. Using fallback mode."


def resolve_reachability(
    target: str,
    secure_status: Optional[int],
    plain_status: Optional[int],
) -> Reachability:
    """Decide how (and whether) *target* can be scanned.

    Args:
        target:        Host being probed (used in the error message).
        secure_status: HTTP status returned over HTTPS, ``None`` when the
                       connection itself failed.
        plain_status:  HTTP status returned over plain HTTP, ``None`` when
                       the connection failed or HTTP was not attempted.

    Returns:
        A :class:`Reachability` describing the transport to use.

    Raises:
        TargetUnreachable: Only when neither transport produced a response.
    """
    if secure_status is not None and secure_status < 400:
        return Reachability(reachable=True, secure=True)
    if plain_status is not None:
        # Any HTTP response, even 4xx/5xx, means the host is alive.
        return Reachability(reachable=True, secure=False)
    if secure_status is not None:
        return Reachability(reachable=True, secure=True)
    raise TargetUnreachable(target)


def default_tls_assessment() -> TLSAssessment:
    """Grading used when the TLS analysis service cannot deliver a result."""
    return TLSAssessment(valid=False, days_remaining=None, protocols=(), grade="Unknown")


def fallback_analysis() -> Analysis:
    """Fixed analysis returned when the enrichment oracle is unavailable."""
    return Analysis(
        confidence=FALLBACK_CONFIDENCE,
        recommendations=FALLBACK_RECOMMENDATIONS,
        narrative=FALLBACK_NARRATIVE,
        fallback=True,
    )
