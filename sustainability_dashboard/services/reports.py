# sustainability_dashboard/services/reports.py
"""Tabular report export of bucketed meter readings (CSV / Excel via pandas)."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List

import pandas as pd

from sustainability_dashboard.core.config import settings
from sustainability_dashboard.core.kpi import aggregate_by_time, get_metric_unit
from sustainability_dashboard.models.enums import ReportType

logger = logging.getLogger(__name__)

REPORT_COLUMNS = ["timestamp", "metric", "unit", "average"]

FILE_EXTENSIONS = {
    ReportType.CSV.value: ".csv",
    ReportType.EXCEL.value: ".xlsx",
}

MEDIA_TYPES = {
    ReportType.CSV.value: "text/csv",
    ReportType.EXCEL.value: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


async def fetch_points(db, match: Dict) -> List[dict]:
    return await db.meter_readings.find(
        match, {"metric": 1, "timestamp": 1, "value": 1}
    ).to_list(length=None)


def build_report_frame(points: List[dict], metrics: List[str], interval: str) -> pd.DataFrame:
    """One row per (metric, time bucket) with the bucket mean."""
    rows = []
    for metric in metrics:
        series = [p for p in points if p.get("metric") == metric]
        if not series:
            continue
        for bucket in aggregate_by_time(series, interval):
            rows.append(
                {
                    "timestamp": bucket["timestamp"],
                    "metric": metric,
                    "unit": get_metric_unit(metric),
                    "average": round(bucket["value"], 4),
                }
            )

    frame = pd.DataFrame(rows, columns=REPORT_COLUMNS)
    if frame.empty:
        return frame
    return frame.sort_values(["timestamp", "metric"], kind="stable").reset_index(drop=True)


def report_path(report_id: str, report_type: str) -> Path:
    return Path(settings.REPORT_DIR) / f"{report_id}{FILE_EXTENSIONS[report_type]}"


def write_report(frame: pd.DataFrame, report_id: str, report_type: str) -> Path:
    path = report_path(report_id, report_type)
    path.parent.mkdir(parents=True, exist_ok=True)

    out = frame.copy()
    if not out.empty:
        # Excel cannot store tz-aware datetimes
        out["timestamp"] = pd.to_datetime(out["timestamp"], utc=True).dt.tz_localize(None)

    if report_type == ReportType.EXCEL.value:
        out.to_excel(path, index=False, sheet_name="readings")
    else:
        out.to_csv(path, index=False)

    logger.info(f"Report written: {path} ({len(out)} rows)")
    return path
