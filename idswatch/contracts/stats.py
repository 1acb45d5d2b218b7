"""Cumulative statistics snapshot and the derived history sample."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from idswatch.errors import StatsFetchError


@dataclass(frozen=True, slots=True)
class StatsSnapshot:
    """One poll of ``/api/stats``.

    The three counters are monotonically non-decreasing for the lifetime of
    a backend process; everything else is informational.
    """

    packets_processed: int
    bytes_processed: int
    threats_detected: int
    processing_rate: float = 0.0
    active_flows: int = 0
    memory_usage: int = 0
    cpu_usage: float = 0.0
    alert_counts: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StatsSnapshot:
        try:
            return cls(
                packets_processed=int(data["packets_processed"]),
                bytes_processed=int(data["bytes_processed"]),
                threats_detected=int(data["threats_detected"]),
                processing_rate=float(data.get("processing_rate") or 0.0),
                active_flows=int(data.get("active_flows") or 0),
                memory_usage=int(data.get("memory_usage") or 0),
                cpu_usage=float(data.get("cpu_usage") or 0.0),
                alert_counts={str(k): int(v) for k, v in (data.get("alert_counts") or {}).items()},
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise StatsFetchError(f"malformed stats payload: {exc}") from exc


@dataclass(frozen=True, slots=True)
class HistorySample:
    """Point of the derived time-series (timestamp in epoch seconds)."""

    timestamp: float
    threats: int
    packets: int
    bandwidth: float  # bytes per polling interval

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
