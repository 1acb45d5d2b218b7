"""Filter Engine — predicate evaluation and saved filter presets.

Evaluation order for one alert (all must hold):
  1. ``search_query`` — case-insensitive substring of description,
     source_ip or threat_type (empty query matches everything)
  2. ``severity_filter`` — "All" or equal to the alert severity
  3. ``status_filter`` — "all" or equal to the annotation status

Sorting runs after filtering. The visible preset collection is always
``DEFAULT_FILTERS + user filters``; only the user part is persisted.
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from idswatch.contracts.alert import Alert
from idswatch.contracts.enums import AlertStatus, Severity, SortOrder
from idswatch.contracts.saved_filter import (
    ALL_SEVERITIES,
    ALL_STATUSES,
    FilterPredicate,
    SavedFilter,
)
from idswatch.core.annotations import AnnotationStore
from idswatch.core.buffer import AlertBuffer
from idswatch.core.severity import sort_key_desc
from idswatch.errors import StorageError
from idswatch.shared.storage import KeyValueStorage

log = logging.getLogger(__name__)

STORAGE_KEY = "ids_saved_filters"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _default(id_: str, name: str, description: str, color: str, **predicate: Any) -> SavedFilter:
    return SavedFilter(
        id=id_,
        name=name,
        description=description,
        predicate=FilterPredicate(**predicate),
        created_at=_now_iso(),
        color=color,
        is_default=True,
    )


DEFAULT_FILTERS: tuple[SavedFilter, ...] = (
    _default(
        "critical-unresolved", "Critical Unresolved",
        "Critical threats that need attention", "#ef4444",
        severity_filter="Critical", status_filter="new",
    ),
    _default(
        "high-investigating", "Under Investigation",
        "High severity alerts being investigated", "#f97316",
        severity_filter="High", status_filter="investigating",
    ),
    _default(
        "port-scans", "Port Scans",
        "All port scanning activity", "#8b5cf6",
        search_query="port scan",
    ),
    _default(
        "ddos-attacks", "DDoS Attacks",
        "Potential DDoS attacks", "#ec4899",
        search_query="ddos", sort_order="severity",
    ),
)
DEFAULT_IDS = frozenset(f.id for f in DEFAULT_FILTERS)

# Fields of a user filter that update_filter() may change.
_MUTABLE_FIELDS = {"name", "description", "predicate", "color"}


# ═══════════════════════════════════════════════════════════════════════════
#  Pure evaluation
# ═══════════════════════════════════════════════════════════════════════════


def matches(
    alert: Alert,
    predicate: FilterPredicate,
    status_of: Callable[[Alert], Any] | None = None,
) -> bool:
    query = predicate.search_query.lower()
    if query and not (
        query in alert.description.lower()
        or query in alert.source_ip.lower()
        or query in alert.threat_type.lower()
    ):
        return False
    if predicate.severity_filter != ALL_SEVERITIES and alert.severity != predicate.severity_filter:
        return False
    if predicate.status_filter != ALL_STATUSES:
        status = status_of(alert) if status_of else AlertStatus.NEW
        if status != predicate.status_filter:
            return False
    return True


def sort_alerts(alerts: Iterable[Alert], order: SortOrder | str) -> list[Alert]:
    order = SortOrder(order)
    items = list(alerts)
    if order is SortOrder.NEWEST:
        items.sort(key=lambda a: a.timestamp, reverse=True)
    elif order is SortOrder.OLDEST:
        items.sort(key=lambda a: a.timestamp)
    else:
        # Stable: equal severities keep their incoming order.
        items.sort(key=lambda a: sort_key_desc(a.severity))
    return items


def evaluate(
    alerts: Iterable[Alert],
    predicate: FilterPredicate,
    status_of: Callable[[Alert], Any] | None = None,
) -> list[Alert]:
    """Filter then sort *alerts* according to *predicate*."""
    selected = [a for a in alerts if matches(a, predicate, status_of)]
    return sort_alerts(selected, predicate.sort_order)


# ═══════════════════════════════════════════════════════════════════════════
#  Engine
# ═══════════════════════════════════════════════════════════════════════════


class FilterEngine:
    """Active predicate over the alert buffer plus persisted presets."""

    def __init__(
        self,
        buffer: AlertBuffer,
        annotations: AnnotationStore,
        storage: KeyValueStorage,
    ) -> None:
        self._buffer = buffer
        self._annotations = annotations
        self._storage = storage
        self.active = FilterPredicate()
        self._user: list[SavedFilter] = self._load()

    # ── persistence ──────────────────────────────────────────────────────

    def _load(self) -> list[SavedFilter]:
        try:
            stored = self._storage.get(STORAGE_KEY)
        except StorageError:
            log.exception("Failed to load saved filters — using defaults only")
            return []
        if not stored:
            return []
        if not isinstance(stored, list):
            log.warning("Stored filters are not a list — ignored")
            return []

        user: list[SavedFilter] = []
        for item in stored:
            try:
                flt = SavedFilter.from_dict(item)
            except (KeyError, TypeError, ValueError, AttributeError):
                log.warning("Skipping invalid saved filter: %r", item)
                continue
            if flt.id in DEFAULT_IDS:
                log.warning("Stored filter '%s' shadows a default — ignored", flt.id)
                continue
            user.append(flt)
        log.info("Loaded %d user filters", len(user))
        return user

    def _save(self) -> None:
        try:
            self._storage.set(STORAGE_KEY, [f.to_dict() for f in self._user])
        except StorageError:
            log.exception("Failed to save filters (kept in memory)")

    # ── presets ──────────────────────────────────────────────────────────

    def filters(self) -> list[SavedFilter]:
        return [*DEFAULT_FILTERS, *self._user]

    def user_filters(self) -> list[SavedFilter]:
        return list(self._user)

    def get_filter(self, filter_id: str) -> SavedFilter | None:
        for flt in self.filters():
            if flt.id == filter_id:
                return flt
        return None

    def add_filter(
        self,
        name: str,
        predicate: FilterPredicate | None = None,
        *,
        description: str | None = None,
        color: str | None = None,
    ) -> SavedFilter:
        """Save a new user filter (defaults to the active predicate)."""
        flt = SavedFilter(
            id=self._new_id(),
            name=name,
            predicate=predicate or self.active,
            created_at=_now_iso(),
            description=description,
            color=color,
        )
        self._user.append(flt)
        self._save()
        log.info("Saved filter '%s' (%s)", name, flt.id)
        return flt

    def _new_id(self) -> str:
        base = f"custom-{int(time.time() * 1000)}"
        taken = {f.id for f in self.filters()}
        candidate, n = base, 1
        while candidate in taken:
            candidate = f"{base}-{n}"
            n += 1
        return candidate

    def update_filter(self, filter_id: str, **changes: Any) -> bool:
        """Update a user filter; defaults and unknown ids are rejected."""
        if filter_id in DEFAULT_IDS:
            log.warning("Default filter '%s' cannot be edited", filter_id)
            return False
        unknown = set(changes) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"cannot update filter fields: {', '.join(sorted(unknown))}")
        for idx, flt in enumerate(self._user):
            if flt.id == filter_id:
                self._user[idx] = flt.with_changes(**changes)
                self._save()
                return True
        log.debug("update_filter: no user filter '%s'", filter_id)
        return False

    def delete_filter(self, filter_id: str) -> bool:
        if filter_id in DEFAULT_IDS:
            log.warning("Default filter '%s' cannot be deleted", filter_id)
            return False
        before = len(self._user)
        self._user = [f for f in self._user if f.id != filter_id]
        if len(self._user) == before:
            return False
        self._save()
        return True

    def reset(self) -> None:
        """Drop all user filters."""
        self._user = []
        try:
            self._storage.remove(STORAGE_KEY)
        except StorageError:
            log.exception("Failed to remove stored filters")

    # ── active predicate ─────────────────────────────────────────────────

    def apply_filter(self, flt: SavedFilter | str) -> FilterPredicate:
        """Replace the active predicate with the preset's (no persistence)."""
        if isinstance(flt, str):
            found = self.get_filter(flt)
            if found is None:
                raise KeyError(f"unknown filter '{flt}'")
            flt = found
        self.active = flt.predicate
        return self.active

    def set_active(self, **changes: Any) -> FilterPredicate:
        """Change parts of the active predicate (search_query, sort_order, ...)."""
        self.active = replace(self.active, **changes)
        return self.active

    def set_search(self, query: str) -> FilterPredicate:
        return self.set_active(search_query=query)

    def set_severity(self, severity: Severity | str) -> FilterPredicate:
        return self.set_active(severity_filter=severity)

    def set_status(self, status: AlertStatus | str) -> FilterPredicate:
        return self.set_active(status_filter=status)

    def set_sort(self, order: SortOrder | str) -> FilterPredicate:
        return self.set_active(sort_order=order)

    def reset_active(self) -> None:
        self.active = FilterPredicate()

    def view(self, predicate: FilterPredicate | None = None) -> list[Alert]:
        """Filtered, sorted snapshot of the buffer; recomputed on every call."""
        return evaluate(
            self._buffer.snapshot(),
            predicate or self.active,
            self._annotations.get_status,
        )
