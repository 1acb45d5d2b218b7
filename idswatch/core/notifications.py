"""Notification Engine — decide on and emit desktop notifications for alerts.

The platform side (permission prompt, showing/closing a notification,
playing a tone) sits behind :class:`NotificationBackend`. Failures there are
logged and swallowed at this boundary: a broken notifier must never stop
alert ingestion.
"""

from __future__ import annotations

import abc
import asyncio
import logging
from dataclasses import dataclass

from idswatch.contracts.alert import Alert
from idswatch.contracts.enums import Permission, Severity
from idswatch.contracts.settings import NotificationSettings
from idswatch.core.severity import is_at_least
from idswatch.errors import StorageError
from idswatch.shared.storage import KeyValueStorage

log = logging.getLogger(__name__)

STORAGE_KEY = "ids_notification_settings"
NOTIFICATION_TITLE = "Network Threat Detected"
DEFAULT_AUTO_DISMISS_SEC = 10.0

_SOUND_SEVERITIES = {Severity.HIGH, Severity.CRITICAL}


@dataclass(frozen=True, slots=True)
class Notification:
    title: str
    body: str
    tag: str                    # alert id; the platform coalesces equal tags
    severity: Severity
    require_interaction: bool   # stays until dismissed by the user
    silent: bool


class NotificationBackend(abc.ABC):
    """Platform notification primitives."""

    @abc.abstractmethod
    def permission(self) -> Permission:
        """Current permission as reported by the platform."""

    @abc.abstractmethod
    async def request_permission(self) -> Permission:
        """Show the permission prompt; may never resolve if ignored."""

    @abc.abstractmethod
    def show(self, notification: Notification) -> None:
        ...

    @abc.abstractmethod
    def close(self, tag: str) -> None:
        ...

    @abc.abstractmethod
    def play_tone(self) -> None:
        """Short audible cue (800 Hz sine, 0.5 s on the web dashboard)."""


class LogNotificationBackend(NotificationBackend):
    """Backend for headless runs: notifications go to the log."""

    def __init__(self, permission: Permission | str = Permission.GRANTED) -> None:
        self._permission = Permission(permission)
        self.shown: list[Notification] = []

    def permission(self) -> Permission:
        return self._permission

    async def request_permission(self) -> Permission:
        return self._permission

    def show(self, notification: Notification) -> None:
        self.shown.append(notification)
        log.warning("%s | %s", notification.title, notification.body.replace("\n", " | "))

    def close(self, tag: str) -> None:
        log.debug("Notification %s dismissed", tag)

    def play_tone(self) -> None:
        # Terminal bell.
        print("\a", end="", flush=True)


# ═══════════════════════════════════════════════════════════════════════════
#  Decision
# ═══════════════════════════════════════════════════════════════════════════


def should_notify(settings: NotificationSettings, severity: Severity | str) -> bool:
    """True iff enabled, permission granted and severity ≥ min_severity."""
    if not settings.enabled or settings.permission is not Permission.GRANTED:
        return False
    return is_at_least(severity, settings.min_severity)


def build_notification(alert: Alert, settings: NotificationSettings) -> Notification:
    body = (
        f"{alert.severity.value.upper()}: {alert.threat_type}\n"
        f"Source: {alert.source_ip}\n"
        f"{alert.description}"
    )
    return Notification(
        title=NOTIFICATION_TITLE,
        body=body,
        tag=alert.id,
        severity=alert.severity,
        require_interaction=alert.severity is Severity.CRITICAL,
        silent=not settings.sound_enabled,
    )


# ═══════════════════════════════════════════════════════════════════════════
#  Engine
# ═══════════════════════════════════════════════════════════════════════════


class NotificationEngine:
    """Owns the persisted :class:`NotificationSettings` and the side effects."""

    def __init__(
        self,
        backend: NotificationBackend,
        storage: KeyValueStorage,
        *,
        auto_dismiss_sec: float = DEFAULT_AUTO_DISMISS_SEC,
    ) -> None:
        self.backend = backend
        self._storage = storage
        self.auto_dismiss_sec = auto_dismiss_sec
        self._dismiss_timers: dict[str, asyncio.TimerHandle] = {}
        self._settings = self._load()

    # ── settings ─────────────────────────────────────────────────────────

    @property
    def settings(self) -> NotificationSettings:
        return self._settings

    def _load(self) -> NotificationSettings:
        settings = NotificationSettings()
        try:
            stored = self._storage.get(STORAGE_KEY)
            if isinstance(stored, dict):
                settings = NotificationSettings.from_dict(stored)
        except StorageError:
            log.exception("Failed to load notification settings — using defaults")
        # Permission can change outside our control; the platform is authoritative.
        return settings.with_changes(permission=self._platform_permission(settings.permission))

    def _platform_permission(self, fallback: Permission) -> Permission:
        try:
            return Permission(self.backend.permission())
        except Exception:
            log.exception("Could not read notification permission")
            return fallback

    def _update(self, **changes) -> NotificationSettings:
        self._settings = self._settings.with_changes(**changes)
        try:
            self._storage.set(STORAGE_KEY, self._settings.to_dict())
        except StorageError:
            log.exception("Failed to save notification settings (kept in memory)")
        return self._settings

    def toggle_enabled(self) -> NotificationSettings:
        return self._update(enabled=not self._settings.enabled)

    def toggle_sound(self) -> NotificationSettings:
        return self._update(sound_enabled=not self._settings.sound_enabled)

    def set_min_severity(self, severity: Severity | str) -> NotificationSettings:
        return self._update(min_severity=Severity.parse(severity))

    def set_enabled(self, enabled: bool) -> NotificationSettings:
        return self._update(enabled=bool(enabled))

    @property
    def permission_warning(self) -> str | None:
        """Message for the UI while notifications are on but blocked."""
        if self._settings.enabled and self._settings.permission is Permission.DENIED:
            return "Notifications are blocked. Allow them in the system settings to receive alerts."
        return None

    async def request_permission(self) -> bool:
        """Prompt once, persist the answer, return whether it is ``granted``."""
        try:
            permission = Permission(await self.backend.request_permission())
        except Exception:
            log.exception("Failed to request notification permission")
            return False
        self._update(permission=permission)
        log.info("Notification permission: %s", permission.value)
        return permission is Permission.GRANTED

    # ── dispatch ─────────────────────────────────────────────────────────

    def dispatch(self, alert: Alert, settings: NotificationSettings | None = None) -> bool:
        """Show a notification for *alert* if the settings allow it.

        Returns True when a notification was shown.
        """
        settings = settings or self._settings
        if not should_notify(settings, alert.severity):
            return False

        try:
            notification = build_notification(alert, settings)
            self.backend.show(notification)
        except Exception:
            log.exception("Failed to send notification for alert %s", alert.id)
            return False

        if settings.sound_enabled and alert.severity in _SOUND_SEVERITIES:
            try:
                self.backend.play_tone()
            except Exception:
                log.exception("Failed to play notification sound")

        if not notification.require_interaction:
            self._schedule_dismiss(notification.tag)
        return True

    def _schedule_dismiss(self, tag: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log.debug("No running loop — notification %s will not auto-dismiss", tag)
            return
        previous = self._dismiss_timers.pop(tag, None)
        if previous is not None:
            previous.cancel()
        self._dismiss_timers[tag] = loop.call_later(self.auto_dismiss_sec, self._dismiss, tag)

    def _dismiss(self, tag: str) -> None:
        self._dismiss_timers.pop(tag, None)
        try:
            self.backend.close(tag)
        except Exception:
            log.exception("Failed to close notification %s", tag)

    @property
    def pending_dismissals(self) -> int:
        return len(self._dismiss_timers)

    def shutdown(self) -> None:
        """Cancel outstanding auto-dismiss timers."""
        for handle in self._dismiss_timers.values():
            handle.cancel()
        self._dismiss_timers.clear()
