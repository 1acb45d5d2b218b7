"""Модель оповіщення (Alert), отриманого від бекенду IDS."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping

from idswatch.contracts.enums import Severity
from idswatch.errors import AlertDecodeError

_FRACTION_RE = re.compile(r"\.(\d{6})\d+")


def parse_ts(value: str | datetime) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    The backend emits nanosecond precision with a trailing ``Z``; anything
    past microseconds is truncated.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        text = _FRACTION_RE.sub(r".\1", str(value).strip().replace("Z", "+00:00"))
        try:
            dt = datetime.fromisoformat(text)
        except ValueError as exc:
            raise AlertDecodeError(f"bad timestamp '{value}'") from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_ts(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class ThreatExplanation:
    """Why the backend raised the alert."""

    primary_indicators: tuple[str, ...] = ()
    # Read-only view; excluded from the hash, still compared by value.
    feature_importance: Mapping[str, float] = field(default_factory=dict, hash=False)
    similar_incidents: tuple[str, ...] = ()
    recommended_actions: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "feature_importance", MappingProxyType(dict(self.feature_importance))
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ThreatExplanation:
        if not data:
            return cls()
        return cls(
            primary_indicators=tuple(str(s) for s in data.get("primary_indicators") or ()),
            feature_importance={
                str(k): float(v) for k, v in (data.get("feature_importance") or {}).items()
            },
            similar_incidents=tuple(str(s) for s in data.get("similar_incidents") or ()),
            recommended_actions=tuple(str(s) for s in data.get("recommended_actions") or ()),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "primary_indicators": list(self.primary_indicators),
            "feature_importance": dict(self.feature_importance),
            "similar_incidents": list(self.similar_incidents),
            "recommended_actions": list(self.recommended_actions),
        }


@dataclass(frozen=True, slots=True)
class Alert:
    """One immutable threat event emitted by the backend detection system."""

    # ── mandatory ──
    id: str
    timestamp: datetime
    severity: Severity
    threat_type: str        # "Port Scan" | "DDoS Attack" | ...
    confidence: float       # 0.0 .. 1.0
    anomaly_score: float    # 0.0 .. 1.0
    source_ip: str
    description: str

    # ── optional ──
    target_ip: str | None = None
    affected_ports: tuple[int, ...] = ()
    explanation: ThreatExplanation = field(default_factory=ThreatExplanation)
    raw_packets: tuple[str, ...] = ()

    # ── serialisation ─────────────────────────────────────────────────────

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Alert:
        """Build an Alert from the backend JSON object.

        Raises:
            AlertDecodeError: on a missing field or an invalid value.
        """
        if not isinstance(data, dict):
            raise AlertDecodeError(f"alert must be an object, got {type(data).__name__}")
        missing = [
            k for k in ("id", "timestamp", "severity", "threat_type", "source_ip")
            if data.get(k) in (None, "")
        ]
        if missing:
            raise AlertDecodeError(f"alert missing fields: {', '.join(missing)}")
        try:
            severity = Severity.parse(data["severity"])
            return cls(
                id=str(data["id"]),
                timestamp=parse_ts(data["timestamp"]),
                severity=severity,
                threat_type=str(data["threat_type"]),
                confidence=float(data.get("confidence", 0.0)),
                anomaly_score=float(data.get("anomaly_score", 0.0)),
                source_ip=str(data["source_ip"]),
                description=str(data.get("description", "")),
                target_ip=data.get("target_ip") or None,
                affected_ports=tuple(int(p) for p in data.get("affected_ports") or ()),
                explanation=ThreatExplanation.from_dict(data.get("explanation")),
                raw_packets=tuple(str(p) for p in data.get("raw_packets") or ()),
            )
        except AlertDecodeError:
            raise
        except (TypeError, ValueError, AttributeError) as exc:
            raise AlertDecodeError(f"invalid alert {data.get('id')!r}: {exc}") from exc

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": format_ts(self.timestamp),
            "severity": self.severity.value,
            "threat_type": self.threat_type,
            "confidence": self.confidence,
            "anomaly_score": self.anomaly_score,
            "source_ip": self.source_ip,
            "target_ip": self.target_ip,
            "affected_ports": list(self.affected_ports),
            "description": self.description,
            "explanation": self.explanation.to_dict(),
            "raw_packets": list(self.raw_packets),
        }

    def to_json(self) -> str:
        """Return compact JSON string."""
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))
