from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class TransportState(StrEnum):
    DISCONNECTED = "disconnected"
    WEBSOCKET = "websocket"
    LONG_POLLING = "long_polling"
    SHORT_POLLING = "short_polling"


TRANSPORT_LABELS: dict[TransportState, str] = {
    TransportState.DISCONNECTED: "Disconnected",
    TransportState.WEBSOCKET: "Web Sockets",
    TransportState.LONG_POLLING: "Long Polling",
    TransportState.SHORT_POLLING: "Frequent Polls",
}


@dataclass(frozen=True)
class TransportFailure:
    """A subscriber-side failure that ended the active transport."""

    mode: TransportState
    error: BaseException

    @property
    def message(self) -> str:
        return f"{TRANSPORT_LABELS[self.mode]} error: {self.error}"


@dataclass(frozen=True)
class RateSample:
    """Observed inbound message rate, recorded every N messages."""

    mode: TransportState
    messages: int
    rate: float  # messages per second since the state was entered
    window_seconds: float  # time since the previous sample
