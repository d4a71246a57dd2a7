from __future__ import annotations

import asyncio
import logging
import time
import uuid

from perfhub.engine.channels import LongPollChannel
from perfhub.engine.connection_registry import ConnectionRegistry
from perfhub.models.metrics import PushMessage

logger = logging.getLogger(__name__)


class LongPollSessionManager:
    """Lifecycle of long-polling push sessions.

    A session is opened by negotiation, kept alive by repeated poll requests
    and closed explicitly or by expiring after ``idle_timeout`` seconds
    without a poll. Expiry is the session's own disconnect, distinct from
    anything the broadcast hub does.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        poll_timeout: float = 30.0,
        idle_timeout: float = 90.0,
        buffer_size: int = 10,
        reap_interval: float = 5.0,
    ) -> None:
        self._registry = registry
        self.poll_timeout = poll_timeout
        self.idle_timeout = idle_timeout
        self.buffer_size = buffer_size
        self.reap_interval = reap_interval
        self._running = False
        self._task: asyncio.Task | None = None

    # ── lifecycle ────────────────────────────────────────

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._reap_loop())
        logger.info("LongPollSessionManager started (idle_timeout=%.0fs)", self.idle_timeout)

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("LongPollSessionManager stopped")

    # ── sessions ────────────────────────────────────────

    def open(self) -> str:
        connection_id = uuid.uuid4().hex
        self._registry.register(connection_id, LongPollChannel(self.buffer_size))
        return connection_id

    async def poll(self, connection_id: str) -> list[PushMessage] | None:
        """Collect pending messages, or ``None`` if the session is unknown."""
        channel = self._channel(connection_id)
        if channel is None:
            return None
        return await channel.receive(self.poll_timeout)

    def close(self, connection_id: str) -> bool:
        if self._channel(connection_id) is None:
            return False
        return self._registry.unregister(connection_id) is not None

    def reap_idle(self, now: float | None = None) -> list[str]:
        now = time.monotonic() if now is None else now
        expired = []
        for connection in self._registry.connections():
            channel = connection.channel
            if not isinstance(channel, LongPollChannel) or channel.polling:
                continue
            if now - channel.last_polled >= self.idle_timeout:
                if self._registry.unregister(connection.id) is not None:
                    expired.append(connection.id)
        if expired:
            logger.info("Expired %d idle long-poll session(s)", len(expired))
        return expired

    # ── internals ───────────────────────────────────────

    def _channel(self, connection_id: str) -> LongPollChannel | None:
        connection = self._registry.get(connection_id)
        if connection is None or not isinstance(connection.channel, LongPollChannel):
            return None
        return connection.channel

    async def _reap_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.reap_interval)
            self.reap_idle()

    @property
    def running(self) -> bool:
        return self._running
