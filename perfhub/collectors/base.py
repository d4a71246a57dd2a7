from __future__ import annotations

from abc import ABC, abstractmethod


class SamplingError(RuntimeError):
    """The OS metrics source could not produce a usable reading."""


class MetricsSource(ABC):
    """Abstract boundary to the host's performance counters.

    Each method is called at most once per tick. ``sample_cpu_percent`` and
    ``sample_available_memory_mb`` are delta counters: their first reading
    after construction is unreliable and is discarded by the sampler.
    """

    name: str = "base"

    @abstractmethod
    def sample_cpu_percent(self) -> float:
        """System-wide CPU utilisation since the previous call, 0–100."""
        ...

    @abstractmethod
    def sample_available_memory_mb(self) -> float:
        ...

    @abstractmethod
    def total_memory_mb(self) -> float:
        ...

    @abstractmethod
    def process_count(self) -> int:
        ...
