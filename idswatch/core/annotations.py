"""Annotation Store — investigation status overlaid on the alert stream.

Status is keyed by alert *class* ``(source_ip, threat_type)``, not by
occurrence: marking one Port Scan from 1.2.3.4 as ``investigating`` marks
every past and future Port Scan from 1.2.3.4 the same way. The key policy is
injectable so per-occurrence triage can be switched on without touching call
sites.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Callable, Iterable

from idswatch.contracts.alert import Alert
from idswatch.contracts.annotation import Annotation
from idswatch.contracts.enums import AlertStatus
from idswatch.errors import StorageError
from idswatch.shared.storage import KeyValueStorage

log = logging.getLogger(__name__)

STORAGE_KEY = "ids_alert_statuses"

KeyPolicy = Callable[[Alert], str]


def class_key(alert: Alert) -> str:
    """``"<source_ip>-<threat_type>"`` — shared by every occurrence of the class."""
    return f"{alert.source_ip}-{alert.threat_type}"


def occurrence_key(alert: Alert) -> str:
    return alert.id


class AnnotationStore:
    """Persisted map ``key -> Annotation`` with O(1) lookup."""

    def __init__(
        self,
        storage: KeyValueStorage,
        key_policy: KeyPolicy = class_key,
    ) -> None:
        self._storage = storage
        self._key = key_policy
        self._acks: dict[str, Annotation] = self._load()

    # ── persistence ──────────────────────────────────────────────────────

    def _load(self) -> dict[str, Annotation]:
        try:
            stored = self._storage.get(STORAGE_KEY)
        except StorageError:
            log.exception("Failed to load alert statuses — starting empty")
            return {}
        if not stored:
            return {}
        raw = stored.get("acknowledgments", {}) if isinstance(stored, dict) else {}
        if not isinstance(raw, dict):
            log.warning("Stored alert statuses are malformed — starting empty")
            return {}

        acks: dict[str, Annotation] = {}
        for key, item in raw.items():
            try:
                acks[key] = Annotation.from_dict(item)
            except (KeyError, TypeError, ValueError, AttributeError):
                log.warning("Skipping invalid annotation for key '%s'", key)
        log.info("Loaded %d alert annotations", len(acks))
        return acks

    def _save(self) -> None:
        payload = {"acknowledgments": {k: a.to_dict() for k, a in self._acks.items()}}
        try:
            self._storage.set(STORAGE_KEY, payload)
        except StorageError:
            log.exception("Failed to save alert statuses (kept in memory)")

    # ── public API ───────────────────────────────────────────────────────

    def key_for(self, alert: Alert) -> str:
        return self._key(alert)

    def set_status(
        self,
        alert: Alert,
        status: AlertStatus | str,
        notes: str | None = None,
    ) -> Annotation:
        """Record *status* for the class of *alert* and persist the map."""
        ack = Annotation(
            alert_id=alert.id,
            status=AlertStatus(status),
            acknowledged_at=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            notes=notes,
        )
        key = self._key(alert)
        self._acks[key] = ack
        log.info("Status of %s set to %s (alert %s)", key, ack.status.value, alert.id)
        self._save()
        return ack

    def get_status(self, alert: Alert) -> AlertStatus:
        ack = self._acks.get(self._key(alert))
        return ack.status if ack else AlertStatus.NEW

    def get_annotation(self, alert: Alert) -> Annotation | None:
        return self._acks.get(self._key(alert))

    def annotations(self) -> dict[str, Annotation]:
        return dict(self._acks)

    def clear_all(self) -> None:
        self._acks = {}
        self._save()

    def counts(self, alerts: Iterable[Alert]) -> dict[AlertStatus, int]:
        """Resolved-status histogram for *alerts* (every status present)."""
        counter = Counter(self.get_status(a) for a in alerts)
        return {status: counter.get(status, 0) for status in AlertStatus}

    def __len__(self) -> int:
        return len(self._acks)
