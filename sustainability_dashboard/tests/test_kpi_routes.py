from datetime import timedelta

from bson import ObjectId

from sustainability_dashboard.models.common import now_utc
from sustainability_dashboard.services import kpi_service


def _fake_totals(calls):
    async def fetch_metric_totals(db, match, with_points=False):
        calls.append((match, with_points))
        if with_points:
            now = now_utc()
            return [
                {
                    "_id": "energy",
                    "total": 300.0,
                    "points": [
                        {"timestamp": now - timedelta(hours=2), "value": 100.0},
                        {"timestamp": now - timedelta(hours=1), "value": 200.0},
                    ],
                }
            ]
        return [{"_id": "energy", "total": 200.0}]

    return fetch_metric_totals


def test_summary_requires_auth(client):
    r = client.get("/api/kpi/summary")
    assert r.status_code == 401
    assert r.json() == {"success": False, "error": "Not authorized to access this route"}


def test_summary_returns_kpis_and_filters(client, make_user, monkeypatch):
    _, headers = make_user(role="viewer")
    calls = []
    monkeypatch.setattr(kpi_service, "fetch_metric_totals", _fake_totals(calls))

    dept = str(ObjectId())
    r = client.get(
        "/api/kpi/summary",
        params={"dateRange": "week", "departmentId": dept},
        headers=headers,
    )
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True

    energy = body["data"]["kpis"][0]
    assert energy["metric"] == "energy"
    assert energy["currentValue"] == 300.0
    assert energy["previousValue"] == 200.0
    assert energy["trend"] == "up"
    assert energy["sparkline"] == [100.0, 200.0]
    assert body["data"]["overall"]["currentValue"] == 300.0
    assert body["data"]["filters"]["dateRange"] == "week"
    assert body["data"]["filters"]["departmentId"] == dept

    (current_match, with_points), (previous_match, _) = calls
    assert with_points is True
    assert current_match["departmentId"] == ObjectId(dept)
    assert previous_match["timestamp"]["$lte"] == current_match["timestamp"]["$gte"]


def test_summary_rejects_unknown_date_range(client, make_user):
    _, headers = make_user()
    r = client.get("/api/kpi/summary", params={"dateRange": "decade"}, headers=headers)
    assert r.status_code == 400
    assert r.json()["success"] is False
    assert r.json()["error"].startswith("dateRange")


def test_summary_rejects_malformed_reference_id(client, make_user):
    _, headers = make_user()
    r = client.get("/api/kpi/summary", params={"unitId": "not-an-id"}, headers=headers)
    assert r.status_code == 400
    assert r.json()["error"].startswith("unitId")


def test_insights_invalid_metric(client, make_user):
    _, headers = make_user()
    r = client.get("/api/kpi/steam/insights", headers=headers)
    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "Invalid metric type"}


def test_insights_payload(client, make_user, monkeypatch):
    _, headers = make_user()
    captured = {}

    async def fake_get_insights(db, match, interval):
        captured["match"] = match
        captured["interval"] = interval
        return {
            "timeSeries": kpi_service.shape_time_series([{"_id": "2024-03-01", "value": 5.0, "count": 1}]),
            "hotspots": {"departments": []},
            "anomalies": [],
        }

    monkeypatch.setattr(kpi_service, "get_insights", fake_get_insights)

    r = client.get("/api/kpi/water/insights", params={"interval": "hour"}, headers=headers)
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["metric"] == "water"
    assert data["timeSeries"][0]["timestamp"].startswith("2024-03-01T00:00:00")
    assert data["filters"] == {
        "dateRange": "month",
        "interval": "hour",
        "unitId": None,
        "departmentId": None,
        "machineId": None,
        "shiftId": None,
    }
    assert captured["match"]["metric"] == "water"
    assert captured["interval"] == "hour"


def test_insights_unexpected_failure_is_500(client, make_user, monkeypatch):
    _, headers = make_user()

    async def boom(db, match, interval):
        raise RuntimeError("aggregation exploded")

    monkeypatch.setattr(kpi_service, "get_insights", boom)

    r = client.get("/api/kpi/energy/insights", headers=headers)
    assert r.status_code == 500
    assert r.json()["success"] is False
    assert r.json()["error"] == "Server error"
