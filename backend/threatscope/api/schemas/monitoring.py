"""
Pydantic v2 schemas for the monitoring loop and its target registry.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MonitoringTargetCreate(BaseModel):
    """Payload for ``POST /api/v1/monitoring/targets``.

    Attributes:
        source: Alert source tag (``siem``, ``ids``, ``edr`` ...).
        target: Host, index or sensor name to scope that source to.
    """

    source: str = Field(..., max_length=64, examples=["siem"])
    target: str = Field(..., max_length=255, examples=["web-01.internal"])


class MonitoringTargetResponse(BaseModel):
    id: str
    source: str
    target: str
    enabled: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MonitoringStatus(BaseModel):
    """Snapshot of the monitoring loop.

    Attributes:
        state: ``running`` or ``stopped``.
        sources: Sources that the next tick will poll.
        tick_in_flight: Whether a tick is currently executing.
    """

    state: str
    interval_seconds: float
    sources: list[str] = Field(default_factory=list)
    tick_in_flight: bool = False
    ticks_completed: int = 0
    ticks_skipped: int = 0
    last_tick_at: Optional[datetime] = None
