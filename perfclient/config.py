from __future__ import annotations

from pydantic_settings import BaseSettings

from perfclient.models import TransportState


class ClientSettings(BaseSettings):
    server_url: str = "http://localhost:8000"
    default_transport: TransportState = TransportState.WEBSOCKET

    # --- polling ---
    poll_interval: float = 1.0  # seconds between short-interval pulls
    request_timeout: float = 10.0
    long_poll_timeout: float = 30.0  # must match the server's hold time

    # --- diagnostics ---
    rate_log_every: int = 10  # received messages between rate samples

    model_config = {"env_file": ".env", "env_prefix": "PERFCLIENT_"}


settings = ClientSettings()
