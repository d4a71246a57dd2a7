from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from perfhub.collectors.sampler import Sampler
from perfhub.engine.connection_registry import Connection, ConnectionRegistry
from perfhub.engine.snapshot_store import LatestSnapshotStore
from perfhub.models.metrics import MetricsSnapshot
from perfhub.models.statistics import HubStatistics

logger = logging.getLogger(__name__)


class BroadcastHub:
    """Single producer loop: sample, publish, push to every connection.

    Exactly one sampling task runs per hub. Deliveries are fire-and-continue:
    a tick schedules one send per connection and never waits on them. A
    connection whose previous send is still pending skips the tick, and a
    single send is cancelled after ``send_timeout`` seconds.
    """

    name = "broadcast_hub"

    def __init__(
        self,
        sampler: Sampler,
        store: LatestSnapshotStore,
        registry: ConnectionRegistry,
        interval: float = 1.0,
        summary_every: int = 10,
        send_timeout: float = 5.0,
    ) -> None:
        self._sampler = sampler
        self._store = store
        self._registry = registry
        self.interval = interval
        self.summary_every = summary_every
        self.send_timeout = send_timeout
        self._running = False
        self._task: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()
        self._ticks = 0
        self._failed_samples = 0
        self._failed_deliveries = 0
        self._skipped_deliveries = 0

    # ── lifecycle ────────────────────────────────────────

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("BroadcastHub started (interval=%.1fs)", self.interval)

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
        abandoned = list(self._inflight)
        for task in abandoned:
            task.cancel()
        if abandoned:
            await asyncio.gather(*abandoned, return_exceptions=True)
        logger.info(
            "BroadcastHub stopped after %d ticks (%d sends abandoned)",
            self._ticks,
            len(abandoned),
        )

    # ── tick ─────────────────────────────────────────────

    async def tick(self) -> MetricsSnapshot | None:
        """Run one sample/publish/broadcast cycle.

        Returns the published snapshot, or ``None`` when sampling failed and
        the previous snapshot was kept.
        """
        self._ticks += 1
        try:
            snapshot = await asyncio.to_thread(self._sampler.sample)
        except asyncio.CancelledError:
            raise
        except Exception:
            self._failed_samples += 1
            logger.exception("Sampling failed; keeping snapshot v%d", self._store.version)
            snapshot = None

        if snapshot is not None:
            self._store.publish(snapshot)
            self._broadcast(snapshot)
            self._registry.record_broadcast()
            # Let sends that complete without blocking finish before the next step
            await asyncio.sleep(0)

        if self.summary_every > 0 and self._ticks % self.summary_every == 0:
            self._log_summary()
        return snapshot

    def _broadcast(self, snapshot: MetricsSnapshot) -> None:
        skipped = 0
        for connection in self._registry.connections():
            pending = connection.pending_send
            if pending is not None and not pending.done():
                skipped += 1
                continue
            task = asyncio.create_task(self._deliver(connection, snapshot))
            connection.pending_send = task
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
        if skipped:
            self._skipped_deliveries += skipped
            logger.debug("%d connection(s) still busy with the previous send; skipped", skipped)

    async def _deliver(self, connection: Connection, snapshot: MetricsSnapshot) -> bool:
        try:
            async with asyncio.timeout(self.send_timeout):
                await connection.channel.send(snapshot)
        except asyncio.CancelledError:
            raise
        except TimeoutError:
            self._failed_deliveries += 1
            logger.warning("Send to %s timed out after %.1fs", connection.id, self.send_timeout)
            return False
        except Exception as exc:
            self._failed_deliveries += 1
            logger.warning("Send to %s failed: %s", connection.id, exc)
            return False
        connection.messages_sent += 1
        return True

    # ── internals ───────────────────────────────────────

    async def _loop(self) -> None:
        try:
            await asyncio.to_thread(self._sampler.prime)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Sampler warm-up read failed")
        await asyncio.sleep(self.interval)

        while self._running:
            await self.tick()
            await asyncio.sleep(self.interval)

    def _log_summary(self) -> None:
        stats = self.statistics()
        logger.info(
            "Hub stats: active connections=%d, messages sent=%d, "
            "failed samples=%d, failed deliveries=%d, skipped deliveries=%d",
            stats.active_connections,
            stats.total_messages_sent,
            stats.failed_samples,
            stats.failed_deliveries,
            stats.skipped_deliveries,
        )
        for info in stats.connections:
            logger.info("  %s: connected for %.0fs", info.id, info.elapsed_seconds)

    # ── introspection ───────────────────────────────────

    def statistics(self) -> HubStatistics:
        now = datetime.now(timezone.utc)
        connections = [c.info(now) for c in self._registry.connections()]
        return HubStatistics(
            active_connections=len(connections),
            total_messages_sent=self._registry.total_messages,
            ticks=self._ticks,
            failed_samples=self._failed_samples,
            failed_deliveries=self._failed_deliveries,
            skipped_deliveries=self._skipped_deliveries,
            connections=connections,
        )

    @property
    def running(self) -> bool:
        return self._running

    @property
    def ticks(self) -> int:
        return self._ticks
