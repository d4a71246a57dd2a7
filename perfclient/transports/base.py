from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from perfclient.models import TransportState
from perfhub.models.metrics import MetricsSnapshot

logger = logging.getLogger(__name__)

HUB_PATH = "/performanceHub"
METRICS_PATH = "/api/performance/metrics"

SnapshotHandler = Callable[[MetricsSnapshot], None]
FailureHandler = Callable[[BaseException], Awaitable[None]]


class Transport(ABC):
    """One way of receiving snapshots from the server.

    ``start()`` establishes the session (raising if that fails) and spawns a
    receive task. When the receive task dies on its own, the failure handler
    is awaited exactly once; the session is never retried.
    """

    mode: TransportState = TransportState.DISCONNECTED

    def __init__(self) -> None:
        self._task: asyncio.Task | None = None
        self._on_snapshot: SnapshotHandler | None = None
        self._on_failure: FailureHandler | None = None
        self.received = 0

    # ── lifecycle ────────────────────────────────────────

    async def start(self, on_snapshot: SnapshotHandler, on_failure: FailureHandler) -> None:
        if self._task is not None:
            return
        self._on_snapshot = on_snapshot
        self._on_failure = on_failure
        await self._open()
        self._task = asyncio.create_task(self._run())
        logger.info("Transport [%s] started", self.mode)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._close()
        logger.info("Transport [%s] stopped", self.mode)

    # ── abstract methods ────────────────────────────────

    @abstractmethod
    async def _open(self) -> None:
        ...

    @abstractmethod
    async def _receive_loop(self) -> None:
        """Deliver snapshots until cancelled. Returning means the server ended the session."""
        ...

    @abstractmethod
    async def _close(self) -> None:
        ...

    # ── internals ───────────────────────────────────────

    def _deliver(self, snapshot: MetricsSnapshot) -> None:
        self.received += 1
        if self._on_snapshot is not None:
            self._on_snapshot(snapshot)

    async def _run(self) -> None:
        try:
            await self._receive_loop()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error: BaseException = exc
        else:
            error = ConnectionError(f"{self.mode} session closed by server")
        # The loop is over; stop() must not wait on this task any more
        self._task = None
        logger.warning("Transport [%s] failed: %s", self.mode, error)
        if self._on_failure is not None:
            await self._on_failure(error)

    @property
    def active(self) -> bool:
        return self._task is not None
