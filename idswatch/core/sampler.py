"""Rate Sampler — cumulative counter snapshots → bounded rate time-series.

``bandwidth`` is the byte-counter delta between consecutive snapshots. By
default no elapsed-time normalisation is applied, so the value is "bytes
per polling interval" and is only a per-second rate while the poller keeps
a fixed 1 s cadence. ``normalize_elapsed=True`` divides by the real elapsed
seconds instead.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from typing import Callable

import pandas as pd

from idswatch.contracts.stats import HistorySample, StatsSnapshot
from idswatch.core.export import history_frame
from idswatch.shared.settings import HISTORY_MAX_POINTS, HISTORY_MIN_POINTS

log = logging.getLogger(__name__)

DEFAULT_MAX_POINTS = 60


class RateSampler:
    def __init__(
        self,
        max_points: int = DEFAULT_MAX_POINTS,
        *,
        clock: Callable[[], float] = time.time,
        normalize_elapsed: bool = False,
    ) -> None:
        _check_window(max_points)
        self._max_points = max_points
        self._clock = clock
        self.normalize_elapsed = normalize_elapsed
        self._data: deque[HistorySample] = deque()
        self._previous: StatsSnapshot | None = None
        self._previous_ts: float | None = None

    @property
    def max_points(self) -> int:
        return self._max_points

    def add_sample(self, snapshot: StatsSnapshot) -> HistorySample:
        """Append one point derived from *snapshot* and return it."""
        now = self._clock()
        bandwidth: float = 0
        if self._previous is not None:
            bandwidth = snapshot.bytes_processed - self._previous.bytes_processed
            if bandwidth < 0:
                log.debug("bytes_processed went backwards (%d) — backend restarted?", bandwidth)
            if self.normalize_elapsed and self._previous_ts is not None:
                elapsed = now - self._previous_ts
                if elapsed > 0:
                    bandwidth = bandwidth / elapsed

        self._previous = snapshot
        self._previous_ts = now

        sample = HistorySample(
            timestamp=now,
            threats=snapshot.threats_detected,
            packets=snapshot.packets_processed,
            bandwidth=bandwidth,
        )
        self._data.append(sample)
        while len(self._data) > self._max_points:
            self._data.popleft()
        return sample

    def set_max_points(self, max_points: int) -> None:
        """Change the window, keeping only the last *max_points* samples."""
        _check_window(max_points)
        self._max_points = max_points
        while len(self._data) > max_points:
            self._data.popleft()

    def clear(self) -> None:
        """Drop all samples and forget the previous snapshot."""
        self._data.clear()
        self._previous = None
        self._previous_ts = None

    def samples(self) -> tuple[HistorySample, ...]:
        return tuple(self._data)

    def latest(self) -> HistorySample | None:
        return self._data[-1] if self._data else None

    def __len__(self) -> int:
        return len(self._data)

    def to_frame(self) -> pd.DataFrame:
        """History as a DataFrame (UTC timestamps) for chart consumers."""
        return history_frame(self.samples())


def _check_window(max_points: int) -> None:
    if not HISTORY_MIN_POINTS <= max_points <= HISTORY_MAX_POINTS:
        raise ValueError(
            f"max_points must be within {HISTORY_MIN_POINTS}..{HISTORY_MAX_POINTS}, got {max_points}"
        )
