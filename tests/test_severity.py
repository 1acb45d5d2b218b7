"""Tests for idswatch.core.severity — rank order."""

from __future__ import annotations

import pytest

from idswatch.contracts.enums import Severity
from idswatch.core.severity import is_at_least, rank, sort_key_desc


class TestRank:
    def test_total_order(self):
        ordered = [Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL]
        assert [rank(s) for s in ordered] == [1, 2, 3, 4]

    def test_accepts_strings(self):
        assert rank("Critical") == rank(Severity.CRITICAL)
        assert rank("medium") == 2

    def test_unknown_ranks_below_low(self):
        assert rank("Extreme") == 0
        assert rank("Extreme") < rank(Severity.LOW)


class TestIsAtLeast:
    @pytest.mark.parametrize(
        "severity,minimum,expected",
        [
            ("Low", "Low", True),
            ("Medium", "High", False),
            ("High", "High", True),
            ("Critical", "High", True),
            ("Low", "Critical", False),
        ],
    )
    def test_threshold(self, severity, minimum, expected):
        assert is_at_least(severity, minimum) is expected


class TestSortKey:
    def test_most_severe_first(self):
        levels = ["Low", "Critical", "Medium", "High"]
        assert sorted(levels, key=sort_key_desc) == ["Critical", "High", "Medium", "Low"]

    def test_unknown_sorts_last(self):
        assert sorted(["bogus", "Low"], key=sort_key_desc) == ["Low", "bogus"]
