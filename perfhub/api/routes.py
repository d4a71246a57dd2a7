from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, HTTPException, Request, WebSocket, WebSocketDisconnect

from perfhub.engine.channels import WebSocketChannel
from perfhub.models.metrics import CONNECTED, MetricsSnapshot
from perfhub.models.statistics import HubStatistics

logger = logging.getLogger(__name__)

router = APIRouter()


# ── REST routes ───────────────────────────────────────


@router.get("/api/performance/metrics")
async def get_metrics(request: Request) -> MetricsSnapshot:
    return request.app.state.store.current()


@router.get("/api/performance/statistics")
async def get_statistics(request: Request) -> HubStatistics:
    return request.app.state.hub.statistics()


@router.get("/api/status")
async def get_status(request: Request) -> dict:
    state = request.app.state
    hub = state.hub
    return {
        "status": "running",
        "hub_running": hub.running,
        "sample_interval": hub.interval,
        "snapshot_version": state.store.version,
        "active_connections": state.registry.count(),
    }


# ── long-polling push sessions ────────────────────────


@router.post("/performanceHub/negotiate")
async def negotiate(request: Request) -> dict:
    connection_id = request.app.state.long_polling.open()
    return {"connectionId": connection_id, "transport": "long_polling"}


@router.get("/performanceHub/poll/{connection_id}")
async def poll(connection_id: str, request: Request) -> dict:
    messages = await request.app.state.long_polling.poll(connection_id)
    if messages is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return {"messages": [m.to_wire() for m in messages]}


@router.delete("/performanceHub/{connection_id}")
async def disconnect(connection_id: str, request: Request) -> dict:
    return {"disconnected": request.app.state.long_polling.close(connection_id)}


# ── WebSocket push sessions ───────────────────────────


@router.websocket("/performanceHub")
async def performance_hub(websocket: WebSocket) -> None:
    registry = websocket.app.state.registry
    await websocket.accept()
    connection_id = uuid.uuid4().hex
    registry.register(connection_id, WebSocketChannel(websocket))
    try:
        await websocket.send_json({"event": CONNECTED, "connectionId": connection_id})
        while True:
            # Inbound frames only keep the session alive
            await websocket.receive_text()
    except WebSocketDisconnect as exc:
        logger.debug("WebSocket %s closed (code=%s)", connection_id, exc.code)
    finally:
        registry.unregister(connection_id)
