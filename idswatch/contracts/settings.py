"""Persisted desktop-notification preferences."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from idswatch.contracts.enums import Permission, Severity


@dataclass(frozen=True, slots=True)
class NotificationSettings:
    enabled: bool = False
    sound_enabled: bool = True
    min_severity: Severity = Severity.HIGH
    permission: Permission = Permission.DEFAULT

    def with_changes(self, **changes: Any) -> NotificationSettings:
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "soundEnabled": self.sound_enabled,
            "minSeverity": self.min_severity.value,
            "permission": self.permission.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NotificationSettings:
        """Build settings from stored JSON; unknown values fall back to defaults."""
        base = cls()
        try:
            min_sev = Severity.parse(data.get("minSeverity", base.min_severity))
        except ValueError:
            min_sev = base.min_severity
        try:
            perm = Permission(data.get("permission", base.permission.value))
        except ValueError:
            perm = base.permission
        return cls(
            enabled=_flag(data.get("enabled"), base.enabled),
            sound_enabled=_flag(data.get("soundEnabled"), base.sound_enabled),
            min_severity=min_sev,
            permission=perm,
        )


def _flag(value: Any, default: bool) -> bool:
    # Only real JSON booleans count; "false" must not turn into True.
    return value if isinstance(value, bool) else default
