"""Subscriber churn simulator for PerfHub.

Spawns many subscribers against a running server, connects and disconnects
them and switches their transports, then reports the server's own view of
connections and throughput.

Usage:
    python simulator/simulate.py                        # run all scenarios
    python simulator/simulate.py --scenario churn
    python simulator/simulate.py --server http://localhost:8000
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
import sys
from pathlib import Path

import httpx

# Allow running from project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from perfclient.config import ClientSettings
from perfclient.models import TransportFailure, TransportState
from perfclient.subscriber import MetricsSubscriber

logging.basicConfig(level=logging.INFO, format="%(asctime)s [SIM] %(message)s")
logger = logging.getLogger("simulator")

_ACTIVE = [TransportState.WEBSOCKET, TransportState.LONG_POLLING, TransportState.SHORT_POLLING]


def _subscriber(client_settings: ClientSettings, failures: list[TransportFailure]) -> MetricsSubscriber:
    return MetricsSubscriber(settings=client_settings, notify=failures.append)


# ── Scenario generators ──────────────────────────────


async def steady(client_settings: ClientSettings, count: int = 10, hold: float = 10.0) -> None:
    """Connect ``count`` subscribers over random transports and hold them."""
    failures: list[TransportFailure] = []
    subscribers = [_subscriber(client_settings, failures) for _ in range(count)]
    for sub in subscribers:
        await sub.select(random.choice(_ACTIVE))
    logger.info("Steady: %d subscribers connected, holding %.0fs", count, hold)
    await asyncio.sleep(hold)
    received = sum(sub.received for sub in subscribers)
    for sub in subscribers:
        await sub.close()
    logger.info("Steady: %d snapshots received, %d failures", received, len(failures))


async def churn(client_settings: ClientSettings, count: int = 10, rounds: int = 20, delay: float = 0.5) -> None:
    """Randomly connect and disconnect subscribers."""
    failures: list[TransportFailure] = []
    subscribers = [_subscriber(client_settings, failures) for _ in range(count)]
    for i in range(rounds):
        sub = random.choice(subscribers)
        if sub.state is TransportState.DISCONNECTED:
            mode = random.choice(_ACTIVE)
            await sub.select(mode)
            logger.info("Churn %d/%d: subscriber joined via %s", i + 1, rounds, mode)
        else:
            await sub.disconnect()
            logger.info("Churn %d/%d: subscriber left", i + 1, rounds)
        await asyncio.sleep(delay)
    for sub in subscribers:
        await sub.close()
    logger.info("Churn finished with %d failures", len(failures))


async def switch_storm(client_settings: ClientSettings, switches: int = 30, delay: float = 0.1) -> None:
    """Rapidly switch one subscriber between transports."""
    failures: list[TransportFailure] = []
    sub = _subscriber(client_settings, failures)
    for i in range(switches):
        mode = random.choice(_ACTIVE)
        await sub.select(mode)
        logger.info("Switch %d/%d: now %s", i + 1, switches, sub.state)
        await asyncio.sleep(delay)
    await sub.close()
    logger.info("Switch storm finished with %d failures", len(failures))


SCENARIOS = {
    "steady": steady,
    "churn": churn,
    "switch_storm": switch_storm,
}


# ── Main runner ──────────────────────────────────────


async def report(server: str) -> None:
    async with httpx.AsyncClient(base_url=server, timeout=5.0) as client:
        resp = await client.get("/api/performance/statistics")
        resp.raise_for_status()
        stats = resp.json()
    logger.info(
        "Server: %d active connections, %d messages sent, %d failed deliveries",
        stats["active_connections"],
        stats["total_messages_sent"],
        stats["failed_deliveries"],
    )


async def run_all(client_settings: ClientSettings) -> None:
    """Run all scenarios sequentially with pauses between them."""
    for name, fn in SCENARIOS.items():
        logger.info("=== Starting scenario: %s ===", name)
        await fn(client_settings)
        await report(client_settings.server_url)
        await asyncio.sleep(2)
    logger.info("=== All scenarios complete ===")


async def main() -> None:
    parser = argparse.ArgumentParser(description="PerfHub subscriber churn simulator")
    parser.add_argument("--scenario", choices=list(SCENARIOS.keys()), help="Run a single scenario")
    parser.add_argument("--server", default="http://localhost:8000", help="PerfHub base URL")
    args = parser.parse_args()

    client_settings = ClientSettings(server_url=args.server)

    if args.scenario:
        logger.info("Running scenario: %s", args.scenario)
        await SCENARIOS[args.scenario](client_settings)
        await report(args.server)
    else:
        await run_all(client_settings)

    logger.info("Simulator finished.")


if __name__ == "__main__":
    asyncio.run(main())
