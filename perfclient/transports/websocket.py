from __future__ import annotations

import json
import logging

from websockets.asyncio.client import ClientConnection, connect

from perfclient.models import TransportState
from perfclient.transports.base import HUB_PATH, Transport
from perfhub.models.metrics import CONNECTED, RECEIVE_PERFORMANCE_DATA, MetricsSnapshot

logger = logging.getLogger(__name__)


def websocket_url(server_url: str) -> str:
    if server_url.startswith("https://"):
        return "wss://" + server_url[len("https://"):]
    if server_url.startswith("http://"):
        return "ws://" + server_url[len("http://"):]
    return server_url


class WebSocketPushTransport(Transport):
    """Persistent full-duplex push session."""

    mode = TransportState.WEBSOCKET

    def __init__(self, server_url: str, open_timeout: float = 10.0) -> None:
        super().__init__()
        self.url = websocket_url(server_url.rstrip("/")) + HUB_PATH
        self.open_timeout = open_timeout
        self.connection_id: str | None = None
        self._ws: ClientConnection | None = None

    async def _open(self) -> None:
        self._ws = await connect(
            self.url,
            open_timeout=self.open_timeout,
            ping_interval=20,
            ping_timeout=20,
            close_timeout=5,
        )

    async def _receive_loop(self) -> None:
        async for raw in self._ws:
            data = json.loads(raw)
            event = data.get("event")
            if event == RECEIVE_PERFORMANCE_DATA:
                self._deliver(MetricsSnapshot.from_wire(data["data"]))
            elif event == CONNECTED:
                self.connection_id = data.get("connectionId")
                logger.debug("WebSocket session %s established", self.connection_id)

    async def _close(self) -> None:
        ws, self._ws = self._ws, None
        self.connection_id = None
        if ws is not None:
            await ws.close()
