from __future__ import annotations

from types import SimpleNamespace

import pytest

from perfhub.collectors.sampler import Sampler
from perfhub.engine import BroadcastHub, ConnectionRegistry, LatestSnapshotStore, LongPollSessionManager
from perfhub.main import app
from tests.fakes import FakeSource


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def state():
    """Inject app.state so routes work without the full lifespan."""
    source = FakeSource()
    store = LatestSnapshotStore()
    registry = ConnectionRegistry()
    hub = BroadcastHub(Sampler(source), store, registry)
    long_polling = LongPollSessionManager(registry, poll_timeout=0.2)

    app.state.store = store
    app.state.registry = registry
    app.state.hub = hub
    app.state.long_polling = long_polling
    yield SimpleNamespace(
        source=source, store=store, registry=registry, hub=hub, long_polling=long_polling
    )
    # Cleanup
    del app.state.store
    del app.state.registry
    del app.state.hub
    del app.state.long_polling
