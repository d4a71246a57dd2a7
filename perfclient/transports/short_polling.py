from __future__ import annotations

import asyncio

import httpx

from perfclient.models import TransportState
from perfclient.transports.base import METRICS_PATH, Transport
from perfhub.models.metrics import MetricsSnapshot


class ShortIntervalPullTransport(Transport):
    """Fixed-period timer issuing one pull request per tick.

    Any failed request ends the timer; there is no retry.
    """

    mode = TransportState.SHORT_POLLING

    def __init__(
        self,
        server_url: str,
        interval: float = 1.0,
        request_timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__()
        self.interval = interval
        self.requests = 0
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=server_url, timeout=request_timeout)

    async def _open(self) -> None:
        pass

    async def _receive_loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.requests += 1
            resp = await self._client.get(METRICS_PATH)
            resp.raise_for_status()
            self._deliver(MetricsSnapshot.from_wire(resp.json()))

    async def _close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
