"""Alert contract — canonical data structures shared by all modules."""

from idswatch.contracts.alert import Alert, ThreatExplanation
from idswatch.contracts.annotation import Annotation
from idswatch.contracts.enums import (
    AlertStatus,
    ConnectionState,
    Permission,
    Severity,
    SortOrder,
)
from idswatch.contracts.envelope import ApiEnvelope, decode_envelope
from idswatch.contracts.saved_filter import FilterPredicate, SavedFilter
from idswatch.contracts.settings import NotificationSettings
from idswatch.contracts.stats import HistorySample, StatsSnapshot

__all__ = [
    "Alert",
    "AlertStatus",
    "Annotation",
    "ApiEnvelope",
    "ConnectionState",
    "FilterPredicate",
    "HistorySample",
    "NotificationSettings",
    "Permission",
    "SavedFilter",
    "Severity",
    "SortOrder",
    "StatsSnapshot",
    "ThreatExplanation",
    "decode_envelope",
]
