from .metrics import CONNECTED, RECEIVE_PERFORMANCE_DATA, MetricsSnapshot, PushMessage
from .statistics import ConnectionInfo, HubStatistics

__all__ = [
    "CONNECTED",
    "RECEIVE_PERFORMANCE_DATA",
    "MetricsSnapshot",
    "PushMessage",
    "ConnectionInfo",
    "HubStatistics",
]
