# sustainability_dashboard/services/kpi_service.py
"""
Aggregation pipelines over `meter_readings` and the shaping of their output
into KPI summary / insights payloads.

Fetchers (`fetch_*`) talk to Mongo; `summarize_*` / `shape_*` are pure and
take the raw aggregation rows.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sustainability_dashboard.core.config import settings
from sustainability_dashboard.core.kpi import (
    bucket_start,
    calculate_delta,
    calculate_delta_percentage,
    determine_trend,
    generate_sparkline,
    get_metric_unit,
    previous_period,
)
from sustainability_dashboard.models.common import to_object_id
from sustainability_dashboard.models.enums import MetricType, TrendDirection
from sustainability_dashboard.models.meter_reading import KPISummary

logger = logging.getLogger(__name__)

FILTER_FIELDS = ("unitId", "departmentId", "machineId", "shiftId")

# a day needs this many readings before any of them can be called anomalous
MIN_ANOMALY_SAMPLES = 3

# $dateToString formats producing the same keys as core.kpi.bucket_key
BUCKET_FORMATS = {
    "hour": "%Y-%m-%dT%H",
    "day": "%Y-%m-%d",
    "week": "%Y-%m-%d",
    "month": "%Y-%m",
}


def build_match_filter(
    start: datetime,
    end: datetime,
    metric: Optional[str] = None,
    **refs: Optional[str],
) -> Dict[str, Any]:
    match: Dict[str, Any] = {"timestamp": {"$gte": start, "$lte": end}}
    if metric:
        match["metric"] = metric
    for field in FILTER_FIELDS:
        value = refs.get(field)
        if value:
            match[field] = to_object_id(value)
    return match


def _shift_window(match: Dict[str, Any]) -> Dict[str, Any]:
    start, end = previous_period(match["timestamp"]["$gte"], match["timestamp"]["$lte"])
    shifted = dict(match)
    shifted["timestamp"] = {"$gte": start, "$lte": end}
    return shifted


def _bucket_expr(interval: str) -> Dict[str, Any]:
    date: Any = "$timestamp"
    if interval == "week":
        date = {"$dateTrunc": {"date": "$timestamp", "unit": "week", "startOfWeek": "sunday"}}
    return {"$dateToString": {"format": BUCKET_FORMATS.get(interval, "%Y-%m-%d"), "date": date}}


# ---------------------------------------------------------------------------
# KPI summary
# ---------------------------------------------------------------------------
async def fetch_metric_totals(db, match: Dict[str, Any], with_points: bool = False) -> List[dict]:
    group: Dict[str, Any] = {"_id": "$metric", "total": {"$sum": "$value"}}
    if with_points:
        group["points"] = {"$push": {"timestamp": "$timestamp", "value": "$value"}}
    pipeline = [{"$match": match}, {"$group": group}]
    return await db.meter_readings.aggregate(pipeline).to_list(length=None)


def summarize_kpis(
    current_rows: List[dict],
    previous_rows: List[dict],
    points: int = 7,
    threshold: float = 0.05,
) -> Dict[str, Any]:
    current = {row["_id"]: row for row in current_rows}
    previous = {row["_id"]: row for row in previous_rows}

    kpis: List[KPISummary] = []
    for metric in MetricType:
        cur = current.get(metric.value) or {}
        current_value = float(cur.get("total") or 0)
        previous_value = float((previous.get(metric.value) or {}).get("total") or 0)
        delta = calculate_delta(current_value, previous_value)

        series = sorted(cur.get("points") or [], key=lambda p: p["timestamp"])
        kpis.append(
            KPISummary(
                metric=metric.value,
                current_value=current_value,
                previous_value=previous_value,
                delta=delta,
                delta_percentage=calculate_delta_percentage(current_value, previous_value),
                trend=determine_trend(delta, threshold),
                sparkline=generate_sparkline([p["value"] for p in series], points),
                unit=get_metric_unit(metric),
            )
        )

    overall_current = sum(k.current_value for k in kpis)
    overall_previous = sum(k.previous_value for k in kpis)
    overall_delta = calculate_delta(overall_current, overall_previous)
    overall = KPISummary(
        metric="overall",
        current_value=overall_current,
        previous_value=overall_previous,
        delta=overall_delta,
        delta_percentage=calculate_delta_percentage(overall_current, overall_previous),
        trend=determine_trend(overall_delta, threshold),
        sparkline=[k.current_value for k in kpis],
        unit="total",
    )

    return {
        "kpis": [k.model_dump(by_alias=True) for k in kpis],
        "overall": overall.model_dump(by_alias=True),
    }


async def get_kpi_summary(db, match: Dict[str, Any]) -> Dict[str, Any]:
    current_rows = await fetch_metric_totals(db, match, with_points=True)
    previous_rows = await fetch_metric_totals(db, _shift_window(match))
    return summarize_kpis(
        current_rows,
        previous_rows,
        points=settings.SPARKLINE_POINTS,
        threshold=settings.TREND_THRESHOLD,
    )


# ---------------------------------------------------------------------------
# Insights: time series
# ---------------------------------------------------------------------------
async def fetch_time_series(db, match: Dict[str, Any], interval: str) -> List[dict]:
    pipeline = [
        {"$match": match},
        {
            "$group": {
                "_id": _bucket_expr(interval),
                "value": {"$sum": "$value"},
                "count": {"$sum": 1},
            }
        },
        {"$sort": {"_id": 1}},
    ]
    return await db.meter_readings.aggregate(pipeline).to_list(length=None)


def shape_time_series(rows: List[dict]) -> List[dict]:
    series = [
        {"timestamp": bucket_start(row["_id"]), "value": row["value"], "count": row["count"]}
        for row in rows
    ]
    series.sort(key=lambda x: x["timestamp"])
    return series


# ---------------------------------------------------------------------------
# Insights: department hotspots
# ---------------------------------------------------------------------------
async def fetch_department_totals(db, match: Dict[str, Any], limit: Optional[int] = None) -> List[dict]:
    pipeline: List[Dict[str, Any]] = [
        {"$match": match},
        {"$group": {"_id": "$departmentId", "value": {"$sum": "$value"}, "count": {"$sum": 1}}},
        {"$sort": {"value": -1}},
    ]
    if limit:
        pipeline.append({"$limit": limit})
    pipeline += [
        {
            "$lookup": {
                "from": "departments",
                "localField": "_id",
                "foreignField": "_id",
                "as": "department",
            }
        },
        {"$addFields": {"departmentName": {"$first": "$department.name"}}},
        {"$project": {"department": 0}},
    ]
    return await db.meter_readings.aggregate(pipeline).to_list(length=None)


async def fetch_total(db, match: Dict[str, Any]) -> float:
    rows = await db.meter_readings.aggregate(
        [{"$match": match}, {"$group": {"_id": None, "total": {"$sum": "$value"}}}]
    ).to_list(length=1)
    return float(rows[0]["total"]) if rows else 0.0


def shape_hotspots(
    rows: List[dict],
    total: float,
    previous_rows: List[dict],
    threshold: float = 0.05,
) -> List[dict]:
    previous = {str(r["_id"]): float(r.get("value") or 0) for r in previous_rows}
    out = []
    for row in rows:
        value = float(row.get("value") or 0)
        key = str(row["_id"])
        trend = (
            determine_trend(calculate_delta(value, previous[key]), threshold)
            if key in previous
            else TrendDirection.STABLE
        )
        out.append(
            {
                "departmentId": key,
                "category": row.get("departmentName") or "Unknown",
                "value": value,
                "count": row.get("count", 0),
                "percentage": (value / total * 100) if total > 0 else 0.0,
                "trend": trend.value,
            }
        )
    return out


# ---------------------------------------------------------------------------
# Insights: daily z-score anomalies
# ---------------------------------------------------------------------------
async def fetch_daily_anomalies(db, match: Dict[str, Any], threshold: float = 2.0) -> List[dict]:
    pipeline = [
        {"$match": match},
        {
            "$group": {
                "_id": {"$dateToString": {"format": "%Y-%m-%d", "date": "$timestamp"}},
                "values": {"$push": "$value"},
                "avgValue": {"$avg": "$value"},
                "stdDev": {"$stdDevPop": "$value"},
                "count": {"$sum": 1},
            }
        },
        {"$match": {"count": {"$gte": MIN_ANOMALY_SAMPLES}}},
        {
            "$project": {
                "avgValue": 1,
                "stdDev": 1,
                "count": 1,
                "anomalies": {
                    "$filter": {
                        "input": "$values",
                        "as": "value",
                        "cond": {
                            "$gt": [
                                {"$abs": {"$subtract": ["$$value", "$avgValue"]}},
                                {"$multiply": ["$stdDev", threshold]},
                            ]
                        },
                    }
                },
            }
        },
        {"$match": {"anomalies.0": {"$exists": True}}},
        {"$sort": {"_id": -1}},
    ]
    return await db.meter_readings.aggregate(pipeline).to_list(length=None)


def shape_anomalies(rows: List[dict]) -> List[dict]:
    out = []
    for row in rows:
        anomalies = row.get("anomalies") or []
        if not anomalies or row.get("count", 0) < MIN_ANOMALY_SAMPLES:
            continue
        mean = float(row["avgValue"])
        worst = max(anomalies, key=lambda v: abs(v - mean))
        out.append(
            {
                "timestamp": bucket_start(row["_id"]),
                "value": worst,
                "expectedValue": mean,
                "deviation": float(row["stdDev"]),
                "severity": len(anomalies),
            }
        )
    out.sort(key=lambda x: x["timestamp"], reverse=True)
    return out


async def get_insights(db, match: Dict[str, Any], interval: str) -> Dict[str, Any]:
    time_series = await fetch_time_series(db, match, interval)

    departments = await fetch_department_totals(db, match, limit=settings.HOTSPOT_LIMIT)
    total = await fetch_total(db, match)
    previous_match = _shift_window(match)
    if departments:
        previous_match["departmentId"] = {"$in": [d["_id"] for d in departments]}
    previous_departments = await fetch_department_totals(db, previous_match) if departments else []

    anomalies = await fetch_daily_anomalies(db, match, settings.ANOMALY_THRESHOLD)

    return {
        "timeSeries": shape_time_series(time_series),
        "hotspots": {
            "departments": shape_hotspots(
                departments, total, previous_departments, settings.TREND_THRESHOLD
            )
        },
        "anomalies": shape_anomalies(anomalies),
    }
