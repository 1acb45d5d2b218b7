"""Saved filter presets over the alert stream."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from idswatch.contracts.enums import AlertStatus, Severity, SortOrder

ALL_SEVERITIES = "All"
ALL_STATUSES = "all"


@dataclass(frozen=True, slots=True)
class FilterPredicate:
    """Search / severity / status / sort state of the alert list.

    ``severity_filter`` is ``"All"`` or a :class:`Severity`;
    ``status_filter`` is ``"all"`` or an :class:`AlertStatus`.
    """

    search_query: str = ""
    severity_filter: Severity | str = ALL_SEVERITIES
    status_filter: AlertStatus | str = ALL_STATUSES
    sort_order: SortOrder = SortOrder.NEWEST

    def __post_init__(self) -> None:
        # Normalise strings coming from storage or the CLI.
        if self.severity_filter != ALL_SEVERITIES:
            object.__setattr__(self, "severity_filter", Severity.parse(self.severity_filter))
        if self.status_filter != ALL_STATUSES:
            object.__setattr__(self, "status_filter", AlertStatus(self.status_filter))
        object.__setattr__(self, "sort_order", SortOrder(self.sort_order))

    def to_dict(self) -> dict[str, str]:
        return {
            "searchQuery": self.search_query,
            "severityFilter": _value(self.severity_filter),
            "statusFilter": _value(self.status_filter),
            "sortOrder": self.sort_order.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FilterPredicate:
        return cls(
            search_query=str(data.get("searchQuery", "")),
            severity_filter=data.get("severityFilter", ALL_SEVERITIES),
            status_filter=data.get("statusFilter", ALL_STATUSES),
            sort_order=data.get("sortOrder", SortOrder.NEWEST.value),
        )


def _value(v: Any) -> str:
    return v.value if hasattr(v, "value") else str(v)


@dataclass(frozen=True, slots=True)
class SavedFilter:
    id: str
    name: str
    predicate: FilterPredicate = field(default_factory=FilterPredicate)
    created_at: str = ""
    description: str | None = None
    color: str | None = None
    is_default: bool = False

    def with_changes(self, **changes: Any) -> SavedFilter:
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "filters": self.predicate.to_dict(),
            "createdAt": self.created_at,
        }
        if self.description is not None:
            data["description"] = self.description
        if self.color is not None:
            data["color"] = self.color
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SavedFilter:
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            predicate=FilterPredicate.from_dict(data.get("filters") or {}),
            created_at=str(data.get("createdAt", "")),
            description=data.get("description"),
            color=data.get("color"),
        )
