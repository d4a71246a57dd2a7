from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod

from fastapi import WebSocket

from perfhub.models.metrics import MetricsSnapshot, PushMessage


class PushChannel(ABC):
    """Send capability of one push connection, independent of its transport."""

    transport: str = "base"

    @abstractmethod
    async def send(self, snapshot: MetricsSnapshot) -> None:
        ...


class WebSocketChannel(PushChannel):
    transport = "websocket"

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket

    async def send(self, snapshot: MetricsSnapshot) -> None:
        await self._websocket.send_json(PushMessage(data=snapshot).to_wire())


class LongPollChannel(PushChannel):
    """Buffers pushes until the subscriber's next poll request collects them.

    When the buffer is full the oldest message is dropped, keeping the most
    recent values.
    """

    transport = "long_polling"

    def __init__(self, buffer_size: int = 10) -> None:
        self._queue: asyncio.Queue[PushMessage] = asyncio.Queue(maxsize=buffer_size)
        self.last_polled = time.monotonic()
        self.dropped = 0
        self._polls = 0  # poll requests currently held open

    async def send(self, snapshot: MetricsSnapshot) -> None:
        message = PushMessage(data=snapshot)
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(message)

    async def receive(self, timeout: float) -> list[PushMessage]:
        """Wait up to ``timeout`` seconds for messages and return all buffered."""
        self._polls += 1
        try:
            try:
                first = await asyncio.wait_for(self._queue.get(), timeout=timeout)
            except asyncio.TimeoutError:
                return []
            messages = [first]
            while not self._queue.empty():
                messages.append(self._queue.get_nowait())
            return messages
        finally:
            self._polls -= 1
            self.last_polled = time.monotonic()

    @property
    def polling(self) -> bool:
        return self._polls > 0

    @property
    def pending(self) -> int:
        return self._queue.qsize()
