from __future__ import annotations

import logging

import httpx

from perfclient.models import TransportState
from perfclient.transports.base import HUB_PATH, Transport
from perfhub.models.metrics import RECEIVE_PERFORMANCE_DATA, MetricsSnapshot

logger = logging.getLogger(__name__)


class LongPollPushTransport(Transport):
    """Push simulated by repeated long-held poll requests."""

    mode = TransportState.LONG_POLLING

    def __init__(
        self,
        server_url: str,
        poll_timeout: float = 30.0,
        request_timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__()
        self.poll_timeout = poll_timeout
        self.request_timeout = request_timeout
        self.connection_id: str | None = None
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=server_url, timeout=request_timeout)

    async def _open(self) -> None:
        resp = await self._client.post(f"{HUB_PATH}/negotiate")
        resp.raise_for_status()
        self.connection_id = resp.json()["connectionId"]
        logger.debug("Long-poll session %s negotiated", self.connection_id)

    async def _receive_loop(self) -> None:
        # The server holds each request up to poll_timeout
        timeout = self.poll_timeout + self.request_timeout
        while True:
            resp = await self._client.get(f"{HUB_PATH}/poll/{self.connection_id}", timeout=timeout)
            resp.raise_for_status()
            for message in resp.json()["messages"]:
                if message.get("event") == RECEIVE_PERFORMANCE_DATA:
                    self._deliver(MetricsSnapshot.from_wire(message["data"]))

    async def _close(self) -> None:
        connection_id, self.connection_id = self.connection_id, None
        try:
            if connection_id is not None:
                await self._client.delete(f"{HUB_PATH}/{connection_id}")
        except httpx.HTTPError as exc:
            # The server expires sessions that stop polling
            logger.warning("Could not release long-poll session %s: %s", connection_id, exc)
        finally:
            if self._owns_client:
                await self._client.aclose()
