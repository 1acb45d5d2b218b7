"""Tests for idswatch.core.sampler — counter snapshots to rate series."""

from __future__ import annotations

import pytest

from idswatch.core.sampler import RateSampler
from tests.conftest import make_snapshot


class FakeClock:
    def __init__(self, start: float = 1_000.0, step: float = 1.0):
        self.now = start
        self.step = step

    def __call__(self) -> float:
        value = self.now
        self.now += self.step
        return value


class TestAddSample:
    def test_first_zero_then_delta(self):
        sampler = RateSampler(clock=FakeClock())
        first = sampler.add_sample(make_snapshot(bytes_=1000))
        second = sampler.add_sample(make_snapshot(bytes_=1500))
        assert first.bandwidth == 0
        assert second.bandwidth == 500

    def test_counters_copied(self):
        sampler = RateSampler(clock=FakeClock())
        s = sampler.add_sample(make_snapshot(packets=42, threats=3, bytes_=10))
        assert (s.packets, s.threats, s.timestamp) == (42, 3, 1000.0)

    def test_window_trims_front(self):
        sampler = RateSampler(max_points=60, clock=FakeClock())
        for i in range(75):
            sampler.add_sample(make_snapshot(bytes_=i * 100, packets=i))
        samples = sampler.samples()
        assert len(samples) == 60
        assert samples[0].packets == 15
        assert sampler.latest().packets == 74

    def test_no_elapsed_normalisation_by_default(self):
        sampler = RateSampler(clock=FakeClock(step=5.0))
        sampler.add_sample(make_snapshot(bytes_=0))
        assert sampler.add_sample(make_snapshot(bytes_=1000)).bandwidth == 1000

    def test_elapsed_normalisation(self):
        sampler = RateSampler(clock=FakeClock(step=5.0), normalize_elapsed=True)
        sampler.add_sample(make_snapshot(bytes_=0))
        assert sampler.add_sample(make_snapshot(bytes_=1000)).bandwidth == 200

    def test_counter_reset_reported_negative(self):
        sampler = RateSampler(clock=FakeClock())
        sampler.add_sample(make_snapshot(bytes_=5000))
        assert sampler.add_sample(make_snapshot(bytes_=100)).bandwidth == -4900


class TestWindow:
    def test_set_max_points_truncates_to_last(self):
        sampler = RateSampler(max_points=300, clock=FakeClock())
        for i in range(200):
            sampler.add_sample(make_snapshot(packets=i))
        sampler.set_max_points(60)
        samples = sampler.samples()
        assert len(samples) == 60
        assert samples[0].packets == 140
        assert sampler.max_points == 60

    def test_growing_window_keeps_data(self):
        sampler = RateSampler(clock=FakeClock())
        for i in range(10):
            sampler.add_sample(make_snapshot(packets=i))
        sampler.set_max_points(3600)
        assert len(sampler) == 10

    @pytest.mark.parametrize("n", [0, 59, 3601])
    def test_out_of_range(self, n):
        with pytest.raises(ValueError):
            RateSampler().set_max_points(n)


class TestClear:
    def test_clear_forgets_previous(self):
        sampler = RateSampler(clock=FakeClock())
        sampler.add_sample(make_snapshot(bytes_=1000))
        sampler.clear()
        assert len(sampler) == 0
        assert sampler.add_sample(make_snapshot(bytes_=9000)).bandwidth == 0


class TestFrame:
    def test_to_frame(self):
        sampler = RateSampler(clock=FakeClock())
        sampler.add_sample(make_snapshot(bytes_=1000, packets=1))
        sampler.add_sample(make_snapshot(bytes_=1500, packets=2))
        df = sampler.to_frame()
        assert list(df.columns) == ["timestamp", "threats", "packets", "bandwidth"]
        assert df["bandwidth"].tolist() == [0, 500]
        assert str(df["timestamp"].dt.tz) == "UTC"

    def test_empty_frame(self):
        df = RateSampler().to_frame()
        assert df.empty
