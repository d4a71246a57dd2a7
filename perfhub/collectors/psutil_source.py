from __future__ import annotations

import psutil

from perfhub.collectors.base import MetricsSource

_MB = 1024 * 1024


class PsutilMetricsSource(MetricsSource):
    """Reads host counters through psutil."""

    name = "psutil"

    def sample_cpu_percent(self) -> float:
        # interval=0 compares against the previous call instead of blocking
        return float(psutil.cpu_percent(interval=0))

    def sample_available_memory_mb(self) -> float:
        return psutil.virtual_memory().available / _MB

    def total_memory_mb(self) -> float:
        return psutil.virtual_memory().total / _MB

    def process_count(self) -> int:
        return len(psutil.pids())
