from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from perfhub.collectors.base import SamplingError
from perfhub.collectors.psutil_source import PsutilMetricsSource
from perfhub.collectors.sampler import Sampler
from tests.fakes import FakeSource


class FakeClock:
    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


# ── Sampler ─────────────────────────────────────────────


def test_sample_builds_rounded_snapshot(source: FakeSource):
    clock = FakeClock()
    sampler = Sampler(source, clock=clock)
    clock.now += 12.345

    snapshot = sampler.sample()

    assert snapshot.cpu_usage == 12.3
    assert snapshot.memory_usage == 75.0  # 4 GB free of 16 GB
    assert snapshot.available_memory_gb == 4.0
    assert snapshot.total_processes == 321
    assert snapshot.system_uptime_sec == 12.3


def test_prime_reads_delta_counters_once(source: FakeSource):
    sampler = Sampler(source)
    sampler.prime()
    assert source.cpu_calls == 1
    assert source.memory_calls == 1


def test_memory_usage_clamped(source: FakeSource):
    source.available_mb = source.total_mb * 2  # bogus reading
    snapshot = Sampler(source).sample()
    assert snapshot.memory_usage == 0.0


def test_cpu_clamped(source: FakeSource):
    source.cpu = 100.7
    assert Sampler(source).sample().cpu_usage == 100.0


def test_source_error_becomes_sampling_error(source: FakeSource):
    source.fail = True
    with pytest.raises(SamplingError):
        Sampler(source).sample()


def test_unexpected_source_error_wrapped(source: FakeSource):
    with patch.object(source, "process_count", side_effect=OSError("denied")):
        with pytest.raises(SamplingError, match="denied"):
            Sampler(source).sample()


def test_zero_total_memory_is_sampling_error(source: FakeSource):
    source.total_mb = 0
    with pytest.raises(SamplingError, match="total memory"):
        Sampler(source).sample()


def test_uptime_grows_between_samples(source: FakeSource):
    clock = FakeClock()
    sampler = Sampler(source, clock=clock)
    clock.now += 1.0
    first = sampler.sample()
    clock.now += 1.0
    second = sampler.sample()
    assert second.system_uptime_sec - first.system_uptime_sec == pytest.approx(1.0)


# ── PsutilMetricsSource ─────────────────────────────────


def test_psutil_source_reads_counters():
    with patch("perfhub.collectors.psutil_source.psutil") as mock_psutil:
        mock_psutil.cpu_percent.return_value = 37.5
        mock_psutil.virtual_memory.return_value = SimpleNamespace(
            available=2 * 1024**3,
            total=8 * 1024**3,
        )
        mock_psutil.pids.return_value = [1, 2, 3]

        src = PsutilMetricsSource()
        assert src.sample_cpu_percent() == 37.5
        assert src.sample_available_memory_mb() == 2048.0
        assert src.total_memory_mb() == 8192.0
        assert src.process_count() == 3
        mock_psutil.cpu_percent.assert_called_with(interval=0)


def test_psutil_source_through_sampler():
    with patch("perfhub.collectors.psutil_source.psutil") as mock_psutil:
        mock_psutil.cpu_percent.return_value = 10.0
        mock_psutil.virtual_memory.return_value = SimpleNamespace(
            available=6 * 1024**3,
            total=8 * 1024**3,
        )
        mock_psutil.pids.return_value = list(range(250))

        snapshot = Sampler(PsutilMetricsSource()).sample()

    assert snapshot.memory_usage == 25.0
    assert snapshot.available_memory_gb == 6.0
    assert snapshot.total_processes == 250
