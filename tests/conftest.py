"""Shared fixtures for idswatch tests."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from idswatch.contracts.alert import Alert, ThreatExplanation
from idswatch.contracts.enums import Permission, Severity
from idswatch.contracts.stats import StatsSnapshot
from idswatch.core.notifications import Notification, NotificationBackend
from idswatch.errors import StorageError
from idswatch.shared.storage import MemoryStorage

BASE_TS = datetime(2026, 2, 26, 10, 0, 0, tzinfo=timezone.utc)

# ── Helper: create Alert with sensible defaults ─────────────────────────


def make_alert(
    *,
    id: str = "a-0001",
    timestamp: datetime | None = None,
    severity: Severity | str = Severity.HIGH,
    threat_type: str = "Port Scan",
    confidence: float = 0.9,
    anomaly_score: float = 0.8,
    source_ip: str = "10.0.0.5",
    target_ip: str | None = "192.168.1.10",
    affected_ports: tuple[int, ...] = (22, 80, 443),
    description: str = "Port scan detected from 10.0.0.5",
) -> Alert:
    return Alert(
        id=id,
        timestamp=timestamp or BASE_TS,
        severity=Severity.parse(severity),
        threat_type=threat_type,
        confidence=confidence,
        anomaly_score=anomaly_score,
        source_ip=source_ip,
        target_ip=target_ip,
        affected_ports=affected_ports,
        description=description,
        explanation=ThreatExplanation(
            primary_indicators=("many ports",),
            feature_importance={"unique_ports": 0.7},
            recommended_actions=("block source",),
        ),
        raw_packets=("pkt-1",),
    )


def alert_payload(**overrides: Any) -> dict[str, Any]:
    """Wire-format alert object as sent by the backend."""
    data = {
        "id": "7f1c2c1e-0000-4000-8000-000000000001",
        "timestamp": "2026-02-26T10:00:00.123456789Z",
        "severity": "High",
        "threat_type": "Port Scan",
        "confidence": 0.91,
        "anomaly_score": 0.77,
        "source_ip": "10.0.0.5",
        "target_ip": None,
        "affected_ports": [22, 23],
        "description": "Port scan detected",
        "explanation": {
            "primary_indicators": ["unique ports > 30"],
            "feature_importance": {"unique_ports": 0.8},
            "similar_incidents": [],
            "recommended_actions": ["Block IP"],
        },
        "raw_packets": [],
    }
    data.update(overrides)
    return data


def envelope(data: Any = None, *, success: bool = True, error: str | None = None) -> str:
    return json.dumps(
        {"success": success, "data": data, "error": error, "timestamp": "2026-02-26T10:00:00Z"}
    )


def make_snapshot(
    *,
    packets: int = 0,
    bytes_: int = 0,
    threats: int = 0,
) -> StatsSnapshot:
    return StatsSnapshot(
        packets_processed=packets,
        bytes_processed=bytes_,
        threats_detected=threats,
    )


def ts_offset(seconds: int = 0) -> datetime:
    return BASE_TS + timedelta(seconds=seconds)


# ── Fakes ────────────────────────────────────────────────────────────────


class FakeChannel:
    """Async-iterable channel fed from a queue; ``None`` ends the stream."""

    def __init__(self) -> None:
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def feed(self, message: Any) -> None:
        self.queue.put_nowait(message)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self.queue.get()
        if item is None:
            raise StopAsyncIteration
        if isinstance(item, Exception):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True


class FakeConnector:
    """Hands out prepared channels; raises when given an exception."""

    def __init__(self, *results: Any) -> None:
        self.results = list(results)
        self.urls: list[str] = []

    async def __call__(self, url: str):
        self.urls.append(url)
        if not self.results:
            raise ConnectionRefusedError("no more channels")
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class BrokenStorage(MemoryStorage):
    """Every read, write and delete fails."""

    def get(self, key):
        raise StorageError("disk on fire")

    def set(self, key, value):
        raise StorageError("read-only filesystem")

    def remove(self, key):
        raise StorageError("read-only filesystem")


class RecordingBackend(NotificationBackend):
    def __init__(self, permission: Permission = Permission.GRANTED, prompt_result: Permission | None = None):
        self._permission = permission
        self.prompt_result = prompt_result or permission
        self.prompts = 0
        self.shown: list[Notification] = []
        self.closed: list[str] = []
        self.tones = 0
        self.fail_show = False

    def permission(self) -> Permission:
        return self._permission

    async def request_permission(self) -> Permission:
        self.prompts += 1
        self._permission = self.prompt_result
        return self.prompt_result

    def show(self, notification: Notification) -> None:
        if self.fail_show:
            raise RuntimeError("notification daemon unavailable")
        self.shown.append(notification)

    def close(self, tag: str) -> None:
        self.closed.append(tag)

    def play_tone(self) -> None:
        self.tones += 1


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()
