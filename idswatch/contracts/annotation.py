"""Operator annotation (investigation status) for a class of alerts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from idswatch.contracts.enums import AlertStatus


@dataclass(frozen=True, slots=True)
class Annotation:
    """Last status change recorded for an annotation key."""

    alert_id: str           # alert that produced the change
    status: AlertStatus
    acknowledged_at: str    # ISO-8601 UTC
    notes: str | None = None

    # ── serialisation ─────────────────────────────────────────────────────
    # Stored with camelCase keys to stay readable by the web dashboard.

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "alertId": self.alert_id,
            "status": self.status.value,
            "acknowledgedAt": self.acknowledged_at,
        }
        if self.notes is not None:
            data["notes"] = self.notes
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Annotation:
        return cls(
            alert_id=str(data.get("alertId", "")),
            status=AlertStatus(data["status"]),
            acknowledged_at=str(data.get("acknowledgedAt", "")),
            notes=data.get("notes"),
        )
