from __future__ import annotations

import asyncio
import logging

import pytest

from perfhub.collectors.sampler import Sampler
from perfhub.engine.broadcast_hub import BroadcastHub
from perfhub.engine.connection_registry import ConnectionRegistry
from perfhub.engine.snapshot_store import LatestSnapshotStore
from tests.fakes import FailingChannel, FakeSource, RecordingChannel, StalledChannel


def _make_hub(source: FakeSource, **kwargs) -> tuple[BroadcastHub, LatestSnapshotStore, ConnectionRegistry]:
    store = LatestSnapshotStore()
    registry = ConnectionRegistry()
    hub = BroadcastHub(Sampler(source), store, registry, **kwargs)
    return hub, store, registry


# ── tick ────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_tick_publishes_and_counts(source: FakeSource):
    hub, store, registry = _make_hub(source)

    snapshot = await hub.tick()

    assert snapshot is not None
    assert store.current() is snapshot
    assert store.version == 1
    assert registry.total_messages == 1


@pytest.mark.asyncio
async def test_25_ticks_without_subscribers(source: FakeSource):
    hub, _, registry = _make_hub(source)

    for _ in range(25):
        await hub.tick()

    assert registry.total_messages == 25
    assert registry.count() == 0
    stats = hub.statistics()
    assert stats.total_messages_sent == 25
    assert stats.active_connections == 0
    assert stats.ticks == 25


@pytest.mark.asyncio
async def test_connection_receives_only_while_registered(source: FakeSource):
    """Registered before tick 5, unregistered before tick 15: ticks 5–14."""
    hub, store, registry = _make_hub(source)
    channel = RecordingChannel()

    for tick in range(1, 21):
        if tick == 5:
            registry.register("late", channel)
        if tick == 15:
            registry.unregister("late")
        source.processes = tick  # tag each snapshot with its tick
        await hub.tick()

    assert len(channel.received) == 10
    assert [s.total_processes for s in channel.received] == list(range(5, 15))
    assert registry.total_messages == 20


@pytest.mark.asyncio
async def test_every_connection_gets_each_snapshot(source: FakeSource):
    hub, _, registry = _make_hub(source)
    channels = [RecordingChannel() for _ in range(5)]
    for i, ch in enumerate(channels):
        registry.register(f"c{i}", ch)

    await hub.tick()
    await hub.tick()

    assert all(len(ch.received) == 2 for ch in channels)
    assert registry.total_messages == 2  # once per tick, not per delivery
    assert all(c.messages_sent == 2 for c in registry.connections())


@pytest.mark.asyncio
async def test_failing_connection_does_not_block_others(source: FakeSource):
    hub, _, registry = _make_hub(source)
    bad, good = FailingChannel(), RecordingChannel()
    registry.register("bad", bad)
    registry.register("good", good)

    for _ in range(3):
        await hub.tick()

    assert bad.attempts == 3
    assert len(good.received) == 3
    # the hub never evicts; removal is the connection's own lifecycle
    assert registry.get("bad") is not None
    stats = hub.statistics()
    assert stats.failed_deliveries == 3
    assert stats.total_messages_sent == 3


@pytest.mark.asyncio
async def test_sampling_failure_keeps_previous_snapshot(source: FakeSource):
    hub, store, registry = _make_hub(source)
    channel = RecordingChannel()
    registry.register("c", channel)

    first = await hub.tick()
    source.fail = True
    assert await hub.tick() is None

    assert store.current() is first
    assert store.version == 1
    assert len(channel.received) == 1
    assert registry.total_messages == 1
    assert hub.statistics().failed_samples == 1

    source.fail = False
    assert await hub.tick() is not None
    assert store.version == 2


@pytest.mark.asyncio
async def test_slow_connection_does_not_stall_tick(source: FakeSource):
    hub, _, registry = _make_hub(source)  # default send_timeout
    stalled, fast = StalledChannel(), RecordingChannel()
    registry.register("stalled", stalled)
    registry.register("fast", fast)

    loop = asyncio.get_running_loop()
    started = loop.time()
    for _ in range(3):
        await hub.tick()
    elapsed = loop.time() - started

    assert elapsed < 0.5
    assert len(fast.received) == 3
    assert stalled.delivered == 0
    assert registry.total_messages == 3

    # the pending send still completes once the peer catches up
    stalled.release.set()
    await asyncio.sleep(0.05)
    assert stalled.delivered == 1


@pytest.mark.asyncio
async def test_loop_keeps_period_with_stalled_connection(source: FakeSource):
    hub, _, registry = _make_hub(source, interval=0.05)
    stalled, fast = StalledChannel(), RecordingChannel()
    registry.register("stalled", stalled)
    registry.register("fast", fast)

    await hub.start()
    await asyncio.sleep(0.5)
    await hub.stop()

    # warm-up interval plus roughly one tick every 50ms
    assert len(fast.received) >= 5
    assert stalled.attempts == 1


@pytest.mark.asyncio
async def test_one_send_in_flight_per_connection(source: FakeSource):
    hub, _, registry = _make_hub(source)
    stalled = StalledChannel()
    registry.register("stalled", stalled)

    for _ in range(5):
        await hub.tick()

    assert len(hub._inflight) == 1
    assert stalled.attempts == 1
    assert hub.statistics().skipped_deliveries == 4

    # once the send completes the connection gets the next tick again
    stalled.release.set()
    await asyncio.sleep(0.02)
    assert len(hub._inflight) == 0
    await hub.tick()
    assert stalled.attempts == 2
    assert stalled.delivered == 2
    assert registry.get("stalled").messages_sent == 2


@pytest.mark.asyncio
async def test_send_timeout_frees_the_connection(source: FakeSource):
    hub, _, registry = _make_hub(source, send_timeout=0.05)
    stalled = StalledChannel()
    registry.register("stalled", stalled)

    await hub.tick()
    await asyncio.sleep(0.1)

    assert len(hub._inflight) == 0
    assert hub.statistics().failed_deliveries == 1
    assert stalled.delivered == 0

    await hub.tick()
    assert stalled.attempts == 2
    # still registered; removal is the connection's own lifecycle
    assert registry.get("stalled") is not None


@pytest.mark.asyncio
async def test_stop_cancels_pending_sends(source: FakeSource):
    hub, _, registry = _make_hub(source, interval=0.02)
    registry.register("stalled", StalledChannel())

    await hub.start()
    await asyncio.sleep(0.1)
    await hub.stop()

    assert len(hub._inflight) == 0


@pytest.mark.asyncio
async def test_summary_logged_every_n_ticks(source: FakeSource, caplog):
    hub, _, registry = _make_hub(source, summary_every=10)
    registry.register("watcher", RecordingChannel())

    with caplog.at_level(logging.INFO, logger="perfhub.engine.broadcast_hub"):
        for _ in range(25):
            await hub.tick()

    summaries = [r for r in caplog.records if r.getMessage().startswith("Hub stats")]
    assert len(summaries) == 2
    assert "active connections=1" in summaries[0].getMessage()
    assert "messages sent=10" in summaries[0].getMessage()
    assert any("watcher: connected for" in r.getMessage() for r in caplog.records)


# ── lifecycle ───────────────────────────────────────────


@pytest.mark.asyncio
async def test_loop_primes_then_publishes(source: FakeSource):
    hub, store, _ = _make_hub(source, interval=0.05)

    await hub.start()
    await asyncio.sleep(0.3)
    await hub.stop()

    # one warm-up read plus at least a couple of ticks
    assert source.cpu_calls >= 3
    assert store.version >= 2


@pytest.mark.asyncio
async def test_nothing_published_during_warm_up(source: FakeSource):
    hub, store, _ = _make_hub(source, interval=0.5)

    await hub.start()
    await asyncio.sleep(0.1)
    assert source.cpu_calls == 1
    assert store.version == 0
    await hub.stop()


@pytest.mark.asyncio
async def test_loop_survives_sampling_errors(source: FakeSource):
    source.fail = True
    hub, store, _ = _make_hub(source, interval=0.02)

    await hub.start()
    await asyncio.sleep(0.15)
    assert hub.running is True
    await hub.stop()

    assert store.version == 0
    assert hub.statistics().failed_samples >= 2


@pytest.mark.asyncio
async def test_start_stop_idempotent(source: FakeSource):
    hub, _, _ = _make_hub(source, interval=0.05)

    await hub.start()
    await hub.start()  # double start
    assert hub.running is True

    await hub.stop()
    await hub.stop()  # double stop
    assert hub.running is False
    assert hub._task is None
