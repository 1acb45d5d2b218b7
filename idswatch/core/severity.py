"""Severity ranking: Low < Medium < High < Critical."""

from __future__ import annotations

from idswatch.contracts.enums import Severity

_SEV_ORDER: dict[Severity, int] = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


def rank(severity: Severity | str) -> int:
    """Return the numeric rank; unknown values rank 0 (below Low)."""
    try:
        return _SEV_ORDER[Severity.parse(severity)]
    except ValueError:
        return 0


def is_at_least(severity: Severity | str, minimum: Severity | str) -> bool:
    return rank(severity) >= rank(minimum)


def sort_key_desc(severity: Severity | str) -> int:
    """Key for ``sorted()`` that puts the most severe first."""
    return -rank(severity)
