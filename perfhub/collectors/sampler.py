from __future__ import annotations

import logging
import time
from typing import Callable

from perfhub.collectors.base import MetricsSource, SamplingError
from perfhub.models.metrics import MetricsSnapshot

logger = logging.getLogger(__name__)


def _clamp_percent(value: float) -> float:
    return min(max(value, 0.0), 100.0)


class Sampler:
    """Turns raw source readings into a published ``MetricsSnapshot``.

    Uptime is measured from construction of the sampler, i.e. how long this
    service has been sampling.
    """

    def __init__(
        self,
        source: MetricsSource,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source = source
        self._clock = clock
        self._started = clock()

    def prime(self) -> None:
        """Discard one reading of the delta counters."""
        self._source.sample_cpu_percent()
        self._source.sample_available_memory_mb()
        logger.debug("Sampler [%s] primed", self._source.name)

    def sample(self) -> MetricsSnapshot:
        try:
            cpu = self._source.sample_cpu_percent()
            available_mb = self._source.sample_available_memory_mb()
            total_mb = self._source.total_memory_mb()
            processes = self._source.process_count()
        except SamplingError:
            raise
        except Exception as exc:
            raise SamplingError(f"metrics source [{self._source.name}] failed: {exc}") from exc

        if total_mb <= 0:
            raise SamplingError(f"total memory unavailable ({total_mb!r} MB)")

        used_percent = 100.0 * (1.0 - available_mb / total_mb)
        return MetricsSnapshot(
            cpu_usage=_clamp_percent(cpu),
            memory_usage=_clamp_percent(used_percent),
            available_memory_gb=max(available_mb, 0.0) / 1024.0,
            total_processes=max(processes, 0),
            system_uptime_sec=max(self._clock() - self._started, 0.0),
        )
