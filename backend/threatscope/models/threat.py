"""
Threat and enrichment domain model.

A :class:`Threat` is the canonical shape every alert source is normalised
into.  Its status may only move from ``pending`` to ``confirmed`` or
``false_positive``; the transition is enforced by the store.
"""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class ThreatSeverity(str, Enum):
    """Severity of a normalised threat; ``unknown`` when the feed omits it."""

    UNKNOWN = "unknown"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @classmethod
    def parse(cls, value: object) -> "ThreatSeverity":
        """Map a loosely typed feed value onto a member, never raising."""
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return cls.UNKNOWN
        return cls.UNKNOWN


class ThreatStatus(str, Enum):
    """Analyst verdict on a threat."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FALSE_POSITIVE = "false_positive"


@dataclass(frozen=True)
class Analysis:
    """Result returned by the enrichment oracle.

    Attributes:
        confidence:      Score in ``[0, 1]``.
        recommendations: Suggested response actions.
        narrative:       Free-text explanation from the oracle.
        fallback:        ``True`` when produced by the local fallback policy.
    """

    confidence: float
    recommendations: tuple[str, ...] = ()
    narrative: str = ""
    fallback: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class Threat:
    """A normalised security event.

    Attributes:
        id:          UUID4 string, unique per threat.
        type:        Event category reported by the feed (``"unknown"`` if absent).
        severity:    Normalised severity.
        source:      Tag of the feed that produced the event (``SIEM``, ``IDS``...).
        timestamp:   When the event happened according to the feed.
        description: Human-readable description, possibly empty.
        status:      Analyst verdict, ``pending`` until responded to.
        enrichment:  Oracle analysis, attached before the threat is stored.
        reported_at: Event time as supplied by the feed, ``None`` when the feed
                     gave none and :attr:`timestamp` was filled in locally.
    """

    type: str
    severity: ThreatSeverity
    source: str
    description: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: ThreatStatus = ThreatStatus.PENDING
    enrichment: Optional[Analysis] = None
    reported_at: Optional[datetime] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def confidence(self) -> float:
        return self.enrichment.confidence if self.enrichment else 0.0

    @property
    def recommendations(self) -> list[str]:
        return list(self.enrichment.recommendations) if self.enrichment else []

    @property
    def fingerprint(self) -> str:
        """Stable digest used to drop the same feed event seen twice.

        Built from feed-supplied fields only, so an event without its own
        timestamp keeps the same digest across polls.
        """
        material = "|".join(
            (
                self.source,
                self.type,
                self.severity.value,
                self.description,
                self.reported_at.isoformat() if self.reported_at else "",
            )
        )
        return hashlib.sha256(material.encode("utf-8")).hexdigest()

    def as_content(self) -> dict[str, str]:
        """Payload sent to the enrichment oracle."""
        return {
            "type": self.type,
            "severity": self.severity.value,
            "source": self.source,
            "description": self.description,
            "timestamp": self.timestamp.isoformat(),
        }
