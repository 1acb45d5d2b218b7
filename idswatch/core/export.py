"""Експорт оповіщень та історії у JSON / CSV."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Sequence

import pandas as pd

from idswatch.contracts.alert import Alert, format_ts
from idswatch.contracts.stats import HistorySample
from idswatch.core.annotations import AnnotationStore
from idswatch.shared.storage import atomic_write

log = logging.getLogger(__name__)

ALERT_COLUMNS: list[str] = [
    "id",
    "timestamp",
    "severity",
    "threat_type",
    "confidence",
    "anomaly_score",
    "source_ip",
    "target_ip",
    "affected_ports",
    "description",
]


@dataclass(frozen=True, slots=True)
class ExportOptions:
    format: str = "json"                # json | csv
    include_alerts: bool = True
    include_stats: bool = True
    time_range: tuple[datetime, datetime] | None = None

    def __post_init__(self) -> None:
        if self.format not in ("json", "csv"):
            raise ValueError(f"unsupported export format '{self.format}'")


def _in_range(alert: Alert, time_range: tuple[datetime, datetime] | None) -> bool:
    if time_range is None:
        return True
    start, end = time_range
    return start <= alert.timestamp <= end


def alerts_frame(
    alerts: Iterable[Alert],
    annotations: AnnotationStore | None = None,
) -> pd.DataFrame:
    """One row per alert; adds a ``status`` column when annotations are given."""
    rows = []
    for a in alerts:
        row = a.to_dict()
        row["timestamp"] = a.timestamp
        row["affected_ports"] = ";".join(str(p) for p in a.affected_ports)
        if annotations is not None:
            row["status"] = annotations.get_status(a).value
        rows.append(row)
    columns = ALERT_COLUMNS + (["status"] if annotations is not None else [])
    return pd.DataFrame(rows, columns=columns)


def history_frame(history: Sequence[HistorySample]) -> pd.DataFrame:
    df = pd.DataFrame(
        [s.to_dict() for s in history],
        columns=["timestamp", "threats", "packets", "bandwidth"],
    )
    df["timestamp"] = pd.to_datetime(df["timestamp"], unit="s", utc=True)
    return df


def export_alerts(
    alerts: Sequence[Alert],
    history: Sequence[HistorySample],
    options: ExportOptions,
    path: str | Path,
    annotations: AnnotationStore | None = None,
) -> list[Path]:
    """Write the export and return the files written.

    JSON produces a single document. CSV writes the alert table to *path*
    and, when stats are included, the history to ``<stem>_history.csv``.
    """
    target = Path(path)
    selected = [a for a in alerts if _in_range(a, options.time_range)] if options.include_alerts else []
    written: list[Path] = []

    if options.format == "json":
        doc: dict = {"exported_at": format_ts(datetime.now(timezone.utc))}
        if options.include_alerts:
            items = []
            for a in selected:
                item = a.to_dict()
                if annotations is not None:
                    item["status"] = annotations.get_status(a).value
                items.append(item)
            doc["alerts"] = items
        if options.include_stats:
            doc["history"] = [s.to_dict() for s in history]
        atomic_write(target, json.dumps(doc, ensure_ascii=False, indent=2))
        written.append(target)
    else:
        if options.include_alerts:
            df = alerts_frame(selected, annotations)
            df["timestamp"] = df["timestamp"].map(format_ts)
            atomic_write(target, df.to_csv(index=False))
            written.append(target)
        if options.include_stats:
            hist_path = target.with_name(f"{target.stem}_history.csv")
            atomic_write(hist_path, history_frame(history).to_csv(index=False))
            written.append(hist_path)

    log.info("Exported %d alerts / %d samples to %s",
             len(selected), len(history) if options.include_stats else 0,
             ", ".join(str(p) for p in written))
    return written
