from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ConnectionInfo(BaseModel):
    """Liveness view of one registered push connection."""

    id: str
    transport: str
    connected_at: datetime
    elapsed_seconds: float
    messages_sent: int = 0


class HubStatistics(BaseModel):
    """Aggregate broadcast counters. Reset on restart, never persisted."""

    active_connections: int = 0
    total_messages_sent: int = 0
    ticks: int = 0
    failed_samples: int = 0
    failed_deliveries: int = 0
    skipped_deliveries: int = 0
    connections: list[ConnectionInfo] = Field(default_factory=list)
