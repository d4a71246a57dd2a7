from .base import MetricsSource, SamplingError
from .psutil_source import PsutilMetricsSource
from .sampler import Sampler

__all__ = [
    "MetricsSource",
    "SamplingError",
    "PsutilMetricsSource",
    "Sampler",
]
