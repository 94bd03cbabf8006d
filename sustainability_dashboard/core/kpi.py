# sustainability_dashboard/core/kpi.py
"""
KPI computation helpers - pure functions with no I/O.

Used by the KPI/insights routes, readings ingestion and report export.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from sustainability_dashboard.models.enums import MetricType, QualityFlag, TrendDirection

METRIC_UNITS = {
    MetricType.ENERGY: "kWh",
    MetricType.WATER: "m³",
    MetricType.WASTE: "kg",
    MetricType.EMISSIONS: "tCO₂e",
}

INTERVALS = ("hour", "day", "week", "month")


# ---------------------------------------------------------------------------
# Period helpers
# ---------------------------------------------------------------------------
def get_date_range(range_name: str, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Return (start, end) for a dashboard date-range keyword. End is always `now`."""
    now = now or datetime.now(timezone.utc)

    if range_name == "today":
        start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    elif range_name == "week":
        start = now - timedelta(days=7)
    elif range_name == "month":
        start = now - relativedelta(months=1)
    elif range_name == "quarter":
        start = now - relativedelta(months=3)
    elif range_name == "year":
        start = now - relativedelta(years=1)
    else:
        raise ValueError(f"Unknown date range: {range_name}")

    return start, now


def previous_period(start: datetime, end: datetime) -> Tuple[datetime, datetime]:
    """Equal-length window immediately preceding [start, end]."""
    duration = end - start
    return start - duration, end - duration


# ---------------------------------------------------------------------------
# Deltas and trends
# ---------------------------------------------------------------------------
def calculate_delta(current: float, previous: float) -> float:
    return current - previous


def calculate_delta_percentage(current: float, previous: float) -> float:
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100


def determine_trend(delta: float, threshold: float = 0.05) -> TrendDirection:
    if abs(delta) < threshold:
        return TrendDirection.STABLE
    return TrendDirection.UP if delta > 0 else TrendDirection.DOWN


def generate_sparkline(data: Sequence[float], points: int = 7) -> List[float]:
    """
    Pick every len/points-th sample. This is index sampling, not averaging,
    so short spikes between picked samples are lost.
    """
    if len(data) <= points:
        return list(data)

    step = len(data) // points
    return [data[i * step] for i in range(points)]


# ---------------------------------------------------------------------------
# Anomalies and quality
# ---------------------------------------------------------------------------
def mean_and_std(values: Sequence[float]) -> Tuple[float, float]:
    """Population mean and standard deviation."""
    n = len(values)
    mean = sum(values) / n
    variance = sum((v - mean) ** 2 for v in values) / n
    return mean, math.sqrt(variance)


def z_score(values: Sequence[float], current: float) -> float:
    mean, std = mean_and_std(values)
    if std == 0:
        return 0.0 if current == mean else math.inf
    return abs(current - mean) / std


def detect_anomaly(values: Sequence[float], current: float, threshold: float = 2) -> bool:
    if len(values) < 3:
        return False
    return z_score(values, current) > threshold


def assess_data_quality(value: float, expected_range: Tuple[float, float]) -> QualityFlag:
    low, high = expected_range
    if low <= value <= high:
        return QualityFlag.GOOD
    if low * 0.8 <= value <= high * 1.2:
        return QualityFlag.SUSPICIOUS
    return QualityFlag.BAD


def calculate_cost_impact(value: float, baseline: float, cost_per_unit: float) -> float:
    return (value - baseline) * cost_per_unit


def get_metric_unit(metric: Any) -> str:
    try:
        return METRIC_UNITS[MetricType(metric)]
    except ValueError:
        return ""


# ---------------------------------------------------------------------------
# Time bucketing
# ---------------------------------------------------------------------------
def _as_utc(ts: Any) -> datetime:
    if isinstance(ts, str):
        ts = date_parser.isoparse(ts)
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def bucket_key(ts: Any, interval: str) -> str:
    """Truncated ISO date string identifying the bucket `ts` falls in."""
    ts = _as_utc(ts)
    if interval == "hour":
        return ts.strftime("%Y-%m-%dT%H")
    if interval == "week":
        # weeks start on Sunday
        week_start = ts - timedelta(days=(ts.weekday() + 1) % 7)
        return week_start.strftime("%Y-%m-%d")
    if interval == "month":
        return ts.strftime("%Y-%m")
    return ts.strftime("%Y-%m-%d")


def bucket_start(key: str) -> datetime:
    """Inverse of bucket_key: the UTC datetime a bucket starts at."""
    if "T" in key:
        day, hour = key.split("T", 1)
        return datetime.strptime(f"{day} {hour}", "%Y-%m-%d %H").replace(tzinfo=timezone.utc)
    if len(key) == 7:
        return datetime.strptime(key, "%Y-%m").replace(tzinfo=timezone.utc)
    return datetime.strptime(key, "%Y-%m-%d").replace(tzinfo=timezone.utc)


def aggregate_by_time(data: Iterable[Dict[str, Any]], interval: str) -> List[Dict[str, Any]]:
    """Average `{timestamp, value}` points per time bucket, oldest bucket first."""
    if interval not in INTERVALS:
        interval = "day"

    grouped: Dict[str, List[float]] = {}
    for item in data:
        key = bucket_key(item["timestamp"], interval)
        grouped.setdefault(key, []).append(float(item["value"]))

    out = [
        {"timestamp": bucket_start(key), "value": sum(vals) / len(vals)}
        for key, vals in grouped.items()
    ]
    out.sort(key=lambda x: x["timestamp"])
    return out
