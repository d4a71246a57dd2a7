"""Console subscriber for a running PerfHub server.

Usage:
    python -m perfclient                          # WebSocket push
    python -m perfclient --transport short_polling --duration 30
    python -m perfclient --cycle 10               # rotate transports every 10s
"""

from __future__ import annotations

import argparse
import asyncio
import itertools
import logging

from perfclient.config import settings
from perfclient.models import TRANSPORT_LABELS, TransportFailure, TransportState
from perfclient.subscriber import MetricsSubscriber
from perfhub.models.metrics import MetricsSnapshot

logger = logging.getLogger("perfclient")

_ACTIVE = [TransportState.WEBSOCKET, TransportState.LONG_POLLING, TransportState.SHORT_POLLING]


def render(snapshot: MetricsSnapshot) -> None:
    print(
        f"CPU {snapshot.cpu_usage:5.1f}% | MEM {snapshot.memory_usage:5.1f}% "
        f"| free {snapshot.available_memory_gb:6.2f} GB | procs {snapshot.total_processes:4d} "
        f"| up {snapshot.system_uptime_sec:8.1f}s"
    )


def show_failure(failure: TransportFailure) -> None:
    print(f"!! {failure.message}")


async def run(transport: TransportState, duration: float, cycle: float | None) -> None:
    subscriber = MetricsSubscriber(settings=settings, notify=show_failure)
    subscriber.add_listener(render)
    try:
        if cycle:
            first = _ACTIVE.index(transport)
            order = itertools.cycle(_ACTIVE[first:] + _ACTIVE[:first])
            loop = asyncio.get_running_loop()
            deadline = loop.time() + duration
            while loop.time() < deadline:
                mode = next(order)
                print(f"── {TRANSPORT_LABELS[mode]} ──")
                await subscriber.select(mode)
                await asyncio.sleep(min(cycle, max(deadline - loop.time(), 0)))
        else:
            await subscriber.select(transport)
            await asyncio.sleep(duration)
    finally:
        await subscriber.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="PerfHub console subscriber")
    parser.add_argument("--server", default=settings.server_url, help="PerfHub base URL")
    parser.add_argument(
        "--transport",
        choices=[t.value for t in _ACTIVE],
        default=settings.default_transport.value,
    )
    parser.add_argument("--duration", type=float, default=60.0, help="seconds to stay subscribed")
    parser.add_argument("--cycle", type=float, default=None, help="switch transport every N seconds")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(name)s] %(message)s",
    )
    settings.server_url = args.server

    try:
        asyncio.run(run(TransportState(args.transport), args.duration, args.cycle))
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
