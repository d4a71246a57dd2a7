from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # --- app ---
    app_name: str = "PerfHub"
    debug: bool = False
    log_level: str = "INFO"

    # --- sampling / broadcast ---
    sample_interval: float = 1.0  # seconds between ticks
    summary_every: int = 10  # ticks between diagnostic summaries
    send_timeout: float = 5.0  # max seconds a single send may take

    # --- long polling ---
    long_poll_timeout: float = 30.0  # seconds a poll request is held open
    long_poll_idle_timeout: float = 90.0  # sessions not polled for this long expire
    long_poll_buffer: int = 10  # undelivered messages kept per session

    # --- server ---
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = ["http://localhost:5173"]

    model_config = {"env_file": ".env", "env_prefix": "PERFHUB_"}


settings = Settings()
