from __future__ import annotations

import logging
import time
from collections import deque
from functools import partial
from typing import Callable

from perfclient.config import ClientSettings
from perfclient.config import settings as default_settings
from perfclient.models import TRANSPORT_LABELS, RateSample, TransportFailure, TransportState
from perfclient.transports import (
    LongPollPushTransport,
    ShortIntervalPullTransport,
    Transport,
    WebSocketPushTransport,
)
from perfhub.models.metrics import MetricsSnapshot

logger = logging.getLogger(__name__)

TransportFactory = Callable[[TransportState], Transport]
Notifier = Callable[[TransportFailure], None]
MetricsListener = Callable[[MetricsSnapshot], None]


def default_transport_factory(settings: ClientSettings) -> TransportFactory:
    def build(state: TransportState) -> Transport:
        if state is TransportState.WEBSOCKET:
            return WebSocketPushTransport(settings.server_url, open_timeout=settings.request_timeout)
        if state is TransportState.LONG_POLLING:
            return LongPollPushTransport(
                settings.server_url,
                poll_timeout=settings.long_poll_timeout,
                request_timeout=settings.request_timeout,
            )
        if state is TransportState.SHORT_POLLING:
            return ShortIntervalPullTransport(
                settings.server_url,
                interval=settings.poll_interval,
                request_timeout=settings.request_timeout,
            )
        raise ValueError(f"No transport for state {state!r}")

    return build


def _log_failure(failure: TransportFailure) -> None:
    logger.error(failure.message)


class MetricsSubscriber:
    """Receives snapshots over exactly one transport at a time.

    Every transition tears the current transport down (timer stopped, push
    session closed, displayed metrics zeroed) and passes through
    ``DISCONNECTED`` before the next one starts. Transitions are not locked:
    callers must await one ``select()`` before issuing the next.
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        transport_factory: TransportFactory | None = None,
        notify: Notifier | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or default_settings
        self._factory = transport_factory or default_transport_factory(self.settings)
        self._notify = notify or _log_failure
        self._clock = clock
        self._transport: Transport | None = None
        self._listeners: list[MetricsListener] = []
        self.state = TransportState.DISCONNECTED
        self.metrics = MetricsSnapshot()
        self.received = 0
        self.rate_samples: deque[RateSample] = deque(maxlen=100)
        self._entered_at = clock()
        self._window_started = self._entered_at

    async def __aenter__(self) -> MetricsSubscriber:
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ── transitions ─────────────────────────────────────

    async def start(self) -> None:
        await self.select(self.settings.default_transport)

    async def select(self, target: TransportState) -> None:
        target = TransportState(target)
        await self.disconnect()
        if target is TransportState.DISCONNECTED:
            return

        transport = self._factory(target)
        self._transport = transport
        self.state = target
        self._entered_at = self._window_started = self._clock()
        logger.info("Subscriber switched to %s", TRANSPORT_LABELS[target])
        try:
            await transport.start(self._handle_snapshot, partial(self._handle_failure, transport))
        except Exception as exc:
            await self._handle_failure(transport, exc)

    async def disconnect(self) -> None:
        transport, self._transport = self._transport, None
        if transport is not None:
            await transport.stop()
        self.state = TransportState.DISCONNECTED
        self.received = 0
        self._render(MetricsSnapshot())

    async def close(self) -> None:
        await self.disconnect()
        logger.info("Subscriber closed")

    # ── metrics updated event ───────────────────────────

    def add_listener(self, listener: MetricsListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: MetricsListener) -> None:
        self._listeners.remove(listener)

    # ── internals ───────────────────────────────────────

    def _handle_snapshot(self, snapshot: MetricsSnapshot) -> None:
        self.received += 1
        self._render(snapshot)
        every = self.settings.rate_log_every
        if every > 0 and self.received % every == 0:
            self._record_rate()

    async def _handle_failure(self, transport: Transport, error: BaseException) -> None:
        if transport is not self._transport:
            return
        failure = TransportFailure(self.state, error)
        self._notify(failure)
        await self.disconnect()

    def _record_rate(self) -> None:
        now = self._clock()
        elapsed = now - self._entered_at
        sample = RateSample(
            mode=self.state,
            messages=self.received,
            rate=self.received / elapsed if elapsed > 0 else 0.0,
            window_seconds=now - self._window_started,
        )
        self.rate_samples.append(sample)
        self._window_started = now
        logger.debug(
            "Mode=%s | %.1f msg/s | last %d in %.0f ms",
            sample.mode,
            sample.rate,
            self.settings.rate_log_every,
            sample.window_seconds * 1000,
        )

    def _render(self, snapshot: MetricsSnapshot) -> None:
        self.metrics = snapshot
        for listener in list(self._listeners):
            listener(snapshot)

    @property
    def transport(self) -> Transport | None:
        return self._transport
