"""Tests for idswatch.core.notifications — decision and side effects."""

from __future__ import annotations

import asyncio

import pytest

from idswatch.contracts.enums import Permission, Severity
from idswatch.contracts.settings import NotificationSettings
from idswatch.core.notifications import (
    STORAGE_KEY,
    NotificationEngine,
    build_notification,
    should_notify,
)
from idswatch.shared.storage import MemoryStorage
from tests.conftest import BrokenStorage, RecordingBackend, make_alert

GRANTED_HIGH = NotificationSettings(
    enabled=True, permission=Permission.GRANTED, min_severity=Severity.HIGH
)

# ═══════════════════════════════════════════════════════════════════════════
#  should_notify
# ═══════════════════════════════════════════════════════════════════════════


class TestShouldNotify:
    def test_below_threshold(self):
        assert should_notify(GRANTED_HIGH, "Medium") is False

    def test_above_threshold(self):
        assert should_notify(GRANTED_HIGH, "Critical") is True

    def test_equal_threshold(self):
        assert should_notify(GRANTED_HIGH, Severity.HIGH) is True

    def test_disabled(self):
        assert should_notify(GRANTED_HIGH.with_changes(enabled=False), "Critical") is False

    @pytest.mark.parametrize("perm", [Permission.DEFAULT, Permission.DENIED])
    def test_permission_not_granted(self, perm):
        assert should_notify(GRANTED_HIGH.with_changes(permission=perm), "Critical") is False

    def test_unknown_severity_never_notifies(self):
        low = GRANTED_HIGH.with_changes(min_severity=Severity.LOW)
        assert should_notify(low, "Extreme") is False


class TestBuildNotification:
    def test_critical_requires_interaction(self):
        n = build_notification(make_alert(id="c-1", severity="Critical"), GRANTED_HIGH)
        assert n.tag == "c-1"
        assert n.require_interaction is True
        assert n.body.startswith("CRITICAL: Port Scan\nSource: 10.0.0.5\n")

    def test_silent_follows_sound_setting(self):
        n = build_notification(make_alert(), GRANTED_HIGH.with_changes(sound_enabled=False))
        assert n.silent is True
        assert n.require_interaction is False


# ═══════════════════════════════════════════════════════════════════════════
#  NotificationEngine
# ═══════════════════════════════════════════════════════════════════════════


def _engine(backend=None, storage=None, **kw) -> NotificationEngine:
    engine = NotificationEngine(backend or RecordingBackend(), storage or MemoryStorage(), **kw)
    engine.set_enabled(True)
    return engine


class TestDispatch:
    def test_below_threshold_is_noop(self, backend):
        engine = _engine(backend)
        assert engine.dispatch(make_alert(severity="Medium")) is False
        assert backend.shown == []
        assert backend.tones == 0

    def test_high_shows_and_plays_tone(self, backend):
        engine = _engine(backend)
        assert engine.dispatch(make_alert(severity="High")) is True
        assert len(backend.shown) == 1
        assert backend.tones == 1

    def test_sound_disabled_no_tone(self, backend):
        engine = _engine(backend)
        engine.toggle_sound()
        engine.dispatch(make_alert(severity="Critical"))
        assert backend.tones == 0
        assert backend.shown[0].silent is True

    def test_medium_with_low_threshold_no_tone(self, backend):
        engine = _engine(backend)
        engine.set_min_severity("Low")
        engine.dispatch(make_alert(severity="Medium"))
        assert len(backend.shown) == 1
        assert backend.tones == 0

    def test_explicit_settings_override(self, backend):
        engine = _engine(backend)
        assert engine.dispatch(make_alert(), GRANTED_HIGH.with_changes(enabled=False)) is False

    def test_backend_failure_is_swallowed(self, backend):
        backend.fail_show = True
        engine = _engine(backend)
        assert engine.dispatch(make_alert(severity="Critical")) is False

    def test_no_loop_no_auto_dismiss(self, backend):
        engine = _engine(backend)
        engine.dispatch(make_alert())
        assert engine.pending_dismissals == 0

    def test_non_critical_auto_dismissed(self, backend):
        engine = _engine(backend, auto_dismiss_sec=0.01)

        async def scenario():
            engine.dispatch(make_alert(id="h-1", severity="High"))
            engine.dispatch(make_alert(id="c-1", severity="Critical"))
            assert engine.pending_dismissals == 1
            await asyncio.sleep(0.05)

        asyncio.run(scenario())
        assert backend.closed == ["h-1"]
        assert engine.pending_dismissals == 0

    def test_shutdown_cancels_dismissals(self, backend):
        engine = _engine(backend, auto_dismiss_sec=0.01)

        async def scenario():
            engine.dispatch(make_alert(id="h-1"))
            engine.shutdown()
            await asyncio.sleep(0.05)

        asyncio.run(scenario())
        assert backend.closed == []


class TestSettings:
    def test_defaults_with_platform_permission(self):
        engine = NotificationEngine(RecordingBackend(Permission.DENIED), MemoryStorage())
        assert engine.settings.enabled is False
        assert engine.settings.permission is Permission.DENIED

    def test_mutations_persist(self, storage):
        engine = NotificationEngine(RecordingBackend(), storage)
        engine.toggle_enabled()
        engine.set_min_severity("critical")
        stored = storage.get(STORAGE_KEY)
        assert stored["enabled"] is True
        assert stored["minSeverity"] == "Critical"

    def test_permission_resynced_on_load(self, storage):
        NotificationEngine(RecordingBackend(Permission.GRANTED), storage).toggle_enabled()
        reloaded = NotificationEngine(RecordingBackend(Permission.DENIED), storage)
        assert reloaded.settings.enabled is True
        assert reloaded.settings.permission is Permission.DENIED
        assert reloaded.permission_warning is not None

    def test_no_warning_when_granted(self, storage):
        engine = _engine(RecordingBackend(Permission.GRANTED), storage)
        assert engine.permission_warning is None


class TestBrokenStorage:
    def test_defaults_load(self):
        engine = NotificationEngine(RecordingBackend(Permission.GRANTED), BrokenStorage())
        assert engine.settings.enabled is False
        assert engine.settings.min_severity is Severity.HIGH
        assert engine.settings.permission is Permission.GRANTED

    def test_mutations_kept_in_memory(self):
        engine = NotificationEngine(RecordingBackend(), BrokenStorage())
        engine.toggle_enabled()
        engine.toggle_sound()
        engine.set_min_severity("medium")
        assert engine.settings.enabled is True
        assert engine.settings.sound_enabled is False
        assert engine.settings.min_severity is Severity.MEDIUM

    def test_dispatch_still_works(self):
        backend = RecordingBackend()
        engine = _engine(backend, BrokenStorage())
        assert engine.dispatch(make_alert(severity="Critical")) is True
        assert len(backend.shown) == 1

    def test_permission_answer_kept(self):
        backend = RecordingBackend(Permission.DEFAULT, prompt_result=Permission.GRANTED)
        engine = NotificationEngine(backend, BrokenStorage())
        assert asyncio.run(engine.request_permission()) is True
        assert engine.settings.permission is Permission.GRANTED

class TestRequestPermission:
    def test_granted(self, storage):
        backend = RecordingBackend(Permission.DEFAULT, prompt_result=Permission.GRANTED)
        engine = NotificationEngine(backend, storage)
        assert asyncio.run(engine.request_permission()) is True
        assert backend.prompts == 1
        assert engine.settings.permission is Permission.GRANTED
        assert storage.get(STORAGE_KEY)["permission"] == "granted"

    def test_denied(self, storage):
        backend = RecordingBackend(Permission.DEFAULT, prompt_result=Permission.DENIED)
        engine = NotificationEngine(backend, storage)
        assert asyncio.run(engine.request_permission()) is False
        assert engine.settings.permission is Permission.DENIED

    def test_prompt_failure(self, storage):
        class FailingPrompt(RecordingBackend):
            async def request_permission(self):
                raise OSError("no display")

        engine = NotificationEngine(FailingPrompt(Permission.DEFAULT), storage)
        assert asyncio.run(engine.request_permission()) is False
        assert engine.settings.permission is Permission.DEFAULT
