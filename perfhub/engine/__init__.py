from .broadcast_hub import BroadcastHub
from .channels import LongPollChannel, PushChannel, WebSocketChannel
from .connection_registry import Connection, ConnectionRegistry
from .long_polling import LongPollSessionManager
from .snapshot_store import LatestSnapshotStore

__all__ = [
    "BroadcastHub",
    "LongPollChannel",
    "PushChannel",
    "WebSocketChannel",
    "Connection",
    "ConnectionRegistry",
    "LongPollSessionManager",
    "LatestSnapshotStore",
]
