from .base import HUB_PATH, METRICS_PATH, Transport
from .long_polling import LongPollPushTransport
from .short_polling import ShortIntervalPullTransport
from .websocket import WebSocketPushTransport

__all__ = [
    "HUB_PATH",
    "METRICS_PATH",
    "Transport",
    "LongPollPushTransport",
    "ShortIntervalPullTransport",
    "WebSocketPushTransport",
]
