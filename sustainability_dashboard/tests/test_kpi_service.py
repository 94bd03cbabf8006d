from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId

from sustainability_dashboard.services import kpi_service

START = datetime(2024, 3, 1, tzinfo=timezone.utc)
END = datetime(2024, 3, 8, tzinfo=timezone.utc)


def _points(values):
    return [
        {"timestamp": START + timedelta(hours=i), "value": v}
        for i, v in enumerate(values)
    ]


def test_build_match_filter_converts_reference_ids():
    dept = str(ObjectId())
    match = kpi_service.build_match_filter(START, END, metric="water", departmentId=dept, unitId=None)
    assert match == {
        "timestamp": {"$gte": START, "$lte": END},
        "metric": "water",
        "departmentId": ObjectId(dept),
    }


def test_shift_window_moves_to_previous_period():
    match = kpi_service.build_match_filter(START, END, metric="energy")
    shifted = kpi_service._shift_window(match)
    assert shifted["timestamp"] == {"$gte": START - (END - START), "$lte": START}
    assert shifted["metric"] == "energy"
    # original left untouched
    assert match["timestamp"]["$gte"] == START


def test_week_bucket_truncates_to_sunday():
    expr = kpi_service._bucket_expr("week")
    assert expr["$dateToString"]["date"]["$dateTrunc"]["startOfWeek"] == "sunday"
    assert kpi_service._bucket_expr("hour")["$dateToString"]["format"] == "%Y-%m-%dT%H"


def test_summarize_kpis_deltas_and_trends():
    current = [
        {"_id": "energy", "total": 150.0, "points": _points([10, 20, 30])},
        {"_id": "water", "total": 80.0, "points": _points([80])},
    ]
    previous = [
        {"_id": "energy", "total": 100.0},
        {"_id": "water", "total": 80.0},
        {"_id": "waste", "total": 5.0},
    ]
    out = kpi_service.summarize_kpis(current, previous)
    by_metric = {k["metric"]: k for k in out["kpis"]}

    assert [k["metric"] for k in out["kpis"]] == ["energy", "water", "waste", "emissions"]

    energy = by_metric["energy"]
    assert energy["currentValue"] == 150.0
    assert energy["previousValue"] == 100.0
    assert energy["delta"] == 50.0
    assert energy["deltaPercentage"] == pytest.approx(50.0)
    assert energy["trend"] == "up"
    assert energy["sparkline"] == [10, 20, 30]
    assert energy["unit"] == "kWh"

    assert by_metric["water"]["trend"] == "stable"
    assert by_metric["waste"]["trend"] == "down"
    assert by_metric["waste"]["deltaPercentage"] == pytest.approx(-100.0)
    assert by_metric["emissions"]["currentValue"] == 0.0
    assert by_metric["emissions"]["deltaPercentage"] == 0.0

    overall = out["overall"]
    assert overall["metric"] == "overall"
    assert overall["currentValue"] == 230.0
    assert overall["previousValue"] == 185.0
    assert overall["unit"] == "total"
    assert overall["sparkline"] == [150.0, 80.0, 0.0, 0.0]


def test_summarize_kpis_sparkline_uses_time_order():
    unordered = list(reversed(_points([1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12, 13, 14])))
    out = kpi_service.summarize_kpis([{"_id": "energy", "total": 105, "points": unordered}], [])
    assert out["kpis"][0]["sparkline"] == [1, 3, 5, 7, 9, 11, 13]
    assert out["kpis"][0]["deltaPercentage"] == 100.0


def test_shape_time_series_sorted_by_bucket():
    rows = [
        {"_id": "2024-03-02", "value": 20.0, "count": 2},
        {"_id": "2024-03-01", "value": 10.0, "count": 1},
    ]
    out = kpi_service.shape_time_series(rows)
    assert out == [
        {"timestamp": datetime(2024, 3, 1, tzinfo=timezone.utc), "value": 10.0, "count": 1},
        {"timestamp": datetime(2024, 3, 2, tzinfo=timezone.utc), "value": 20.0, "count": 2},
    ]


def test_shape_hotspots_percentages_and_trend():
    prod, maint, orphan = ObjectId(), ObjectId(), ObjectId()
    rows = [
        {"_id": prod, "value": 60.0, "count": 6, "departmentName": "Production"},
        {"_id": maint, "value": 30.0, "count": 3, "departmentName": "Maintenance"},
        {"_id": orphan, "value": 10.0, "count": 1},
    ]
    previous = [{"_id": prod, "value": 40.0}, {"_id": maint, "value": 30.0}]
    out = kpi_service.shape_hotspots(rows, 100.0, previous)

    assert [h["category"] for h in out] == ["Production", "Maintenance", "Unknown"]
    assert [h["percentage"] for h in out] == [60.0, 30.0, 10.0]
    assert [h["trend"] for h in out] == ["up", "stable", "stable"]
    assert out[0]["departmentId"] == str(prod)


def test_shape_hotspots_zero_total():
    out = kpi_service.shape_hotspots([{"_id": ObjectId(), "value": 0.0, "count": 0}], 0.0, [])
    assert out[0]["percentage"] == 0.0


def test_shape_anomalies_reports_worst_value_newest_first():
    rows = [
        {"_id": "2024-03-01", "avgValue": 100.0, "stdDev": 10.0, "count": 24, "anomalies": [125.0, 70.0]},
        {"_id": "2024-03-03", "avgValue": 50.0, "stdDev": 5.0, "count": 24, "anomalies": [65.0]},
        {"_id": "2024-03-02", "avgValue": 50.0, "stdDev": 5.0, "count": 24, "anomalies": []},
    ]
    out = kpi_service.shape_anomalies(rows)
    assert [a["timestamp"].day for a in out] == [3, 1]
    assert out[1] == {
        "timestamp": datetime(2024, 3, 1, tzinfo=timezone.utc),
        "value": 70.0,
        "expectedValue": 100.0,
        "deviation": 10.0,
        "severity": 2,
    }


@pytest.mark.asyncio
async def test_get_insights_queries_previous_period_for_top_departments(monkeypatch):
    dept = ObjectId()
    seen = []

    async def fake_series(db, match, interval):
        assert interval == "week"
        return [{"_id": "2024-03-03", "value": 42.0, "count": 3}]

    async def fake_departments(db, match, limit=None):
        seen.append(match)
        if limit:
            return [{"_id": dept, "value": 42.0, "count": 3, "departmentName": "Production"}]
        return [{"_id": dept, "value": 10.0, "count": 1}]

    async def fake_total(db, match):
        return 42.0

    async def fake_anomalies(db, match, threshold=2.0):
        return []

    monkeypatch.setattr(kpi_service, "fetch_time_series", fake_series)
    monkeypatch.setattr(kpi_service, "fetch_department_totals", fake_departments)
    monkeypatch.setattr(kpi_service, "fetch_total", fake_total)
    monkeypatch.setattr(kpi_service, "fetch_daily_anomalies", fake_anomalies)

    match = kpi_service.build_match_filter(START, END, metric="energy")
    out = await kpi_service.get_insights(None, match, "week")

    assert out["timeSeries"][0]["value"] == 42.0
    assert out["hotspots"]["departments"][0]["trend"] == "up"
    assert out["hotspots"]["departments"][0]["percentage"] == 100.0
    assert out["anomalies"] == []

    previous_match = seen[1]
    assert previous_match["departmentId"] == {"$in": [dept]}
    assert previous_match["timestamp"]["$lte"] == START


def test_shape_anomalies_ignores_days_with_too_few_samples():
    rows = [
        {"_id": "2024-03-04", "avgValue": 50.0, "stdDev": 40.0, "count": 2, "anomalies": [130.0]},
        {"_id": "2024-03-05", "avgValue": 50.0, "stdDev": 5.0, "count": 3, "anomalies": [70.0]},
    ]
    out = kpi_service.shape_anomalies(rows)
    assert [a["timestamp"].day for a in out] == [5]
