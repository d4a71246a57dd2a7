from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from perfhub.api.routes import router
from perfhub.collectors import PsutilMetricsSource, Sampler
from perfhub.config import settings
from perfhub.engine import BroadcastHub, ConnectionRegistry, LatestSnapshotStore, LongPollSessionManager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ── startup ───────────────────────────────────────
    store = LatestSnapshotStore()
    registry = ConnectionRegistry()
    hub = BroadcastHub(
        sampler=Sampler(PsutilMetricsSource()),
        store=store,
        registry=registry,
        interval=settings.sample_interval,
        summary_every=settings.summary_every,
        send_timeout=settings.send_timeout,
    )
    long_polling = LongPollSessionManager(
        registry,
        poll_timeout=settings.long_poll_timeout,
        idle_timeout=settings.long_poll_idle_timeout,
        buffer_size=settings.long_poll_buffer,
    )

    # Store on app.state for route access
    app.state.store = store
    app.state.registry = registry
    app.state.hub = hub
    app.state.long_polling = long_polling

    await hub.start()
    await long_polling.start()
    logger.info("PerfHub started, sampling every %.1fs", settings.sample_interval)

    yield

    # ── shutdown ──────────────────────────────────────
    await long_polling.stop()
    await hub.stop()
    registry.clear()
    logger.info("PerfHub shut down")


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)
