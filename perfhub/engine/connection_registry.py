from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone

from perfhub.engine.channels import PushChannel
from perfhub.models.statistics import ConnectionInfo

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Connection:
    """One active push subscriber. ``connected_at`` never changes."""

    id: str
    channel: PushChannel
    transport: str
    connected_at: datetime = field(default_factory=_utcnow)
    messages_sent: int = 0
    # at most one send in flight per connection
    pending_send: asyncio.Task | None = field(default=None, repr=False, compare=False)

    def info(self, now: datetime | None = None) -> ConnectionInfo:
        now = now or _utcnow()
        return ConnectionInfo(
            id=self.id,
            transport=self.transport,
            connected_at=self.connected_at,
            elapsed_seconds=round((now - self.connected_at).total_seconds(), 1),
            messages_sent=self.messages_sent,
        )


class ConnectionRegistry:
    """Authoritative set of connected push subscribers plus broadcast counters.

    The lock guards only dict mutation and membership copies; readers iterate
    over a copy, so an unregister racing an iteration may or may not be seen.
    """

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}
        self._lock = threading.Lock()
        self._messages_sent = 0
        self._counter_lock = threading.Lock()

    # ── membership ──────────────────────────────────────

    def register(
        self,
        connection_id: str,
        channel: PushChannel,
        transport: str | None = None,
    ) -> Connection:
        connection = Connection(
            id=connection_id,
            channel=channel,
            transport=transport or channel.transport,
        )
        with self._lock:
            self._connections[connection_id] = connection
        logger.info("Connected: %s (%s)", connection_id, connection.transport)
        return connection

    def unregister(self, connection_id: str) -> Connection | None:
        """Remove a connection. Unknown ids (duplicate disconnects) are a no-op."""
        with self._lock:
            connection = self._connections.pop(connection_id, None)
        if connection is not None:
            logger.info("Disconnected: %s", connection_id)
        return connection

    def get(self, connection_id: str) -> Connection | None:
        return self._connections.get(connection_id)

    def count(self) -> int:
        return len(self._connections)

    def connections(self) -> list[Connection]:
        with self._lock:
            return list(self._connections.values())

    def all_connections(self) -> list[tuple[str, datetime]]:
        return [(c.id, c.connected_at) for c in self.connections()]

    def clear(self) -> None:
        with self._lock:
            self._connections.clear()

    # ── statistics ──────────────────────────────────────

    def record_broadcast(self) -> int:
        with self._counter_lock:
            self._messages_sent += 1
            return self._messages_sent

    @property
    def total_messages(self) -> int:
        return self._messages_sent

    def connection_durations(self, now: datetime | None = None) -> list[tuple[str, float]]:
        now = now or _utcnow()
        return [
            (c.id, (now - c.connected_at).total_seconds())
            for c in self.connections()
        ]
