# sustainability_dashboard/api/kpi.py

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from sustainability_dashboard.api.auth import get_current_user
from sustainability_dashboard.core.database import get_db
from sustainability_dashboard.core.errors import ApiError
from sustainability_dashboard.core.kpi import get_date_range
from sustainability_dashboard.models.common import OBJECT_ID_PATTERN, envelope
from sustainability_dashboard.models.enums import MetricType
from sustainability_dashboard.services import kpi_service

logger = logging.getLogger(__name__)
router = APIRouter()

DateRange = Literal["today", "week", "month", "quarter", "year"]
Interval = Literal["hour", "day", "week", "month"]


def _refs(unit_id, department_id, machine_id, shift_id) -> dict:
    return {
        "unitId": unit_id,
        "departmentId": department_id,
        "machineId": machine_id,
        "shiftId": shift_id,
    }


@router.get("/summary")
async def kpi_summary(
    date_range: DateRange = Query("today", alias="dateRange"),
    unit_id: Optional[str] = Query(None, alias="unitId", pattern=OBJECT_ID_PATTERN),
    department_id: Optional[str] = Query(None, alias="departmentId", pattern=OBJECT_ID_PATTERN),
    machine_id: Optional[str] = Query(None, alias="machineId", pattern=OBJECT_ID_PATTERN),
    shift_id: Optional[str] = Query(None, alias="shiftId", pattern=OBJECT_ID_PATTERN),
    db=Depends(get_db),
    _user=Depends(get_current_user),
):
    """KPI tiles: per-metric totals vs. the preceding period, plus an overall roll-up."""
    refs = _refs(unit_id, department_id, machine_id, shift_id)
    start, end = get_date_range(date_range)
    match = kpi_service.build_match_filter(start, end, **refs)

    data = await kpi_service.get_kpi_summary(db, match)
    data["filters"] = {"dateRange": date_range, **refs}
    return envelope(data)


@router.get("/{metric}/insights")
async def kpi_insights(
    metric: str,
    date_range: DateRange = Query("month", alias="dateRange"),
    interval: Interval = Query("day"),
    unit_id: Optional[str] = Query(None, alias="unitId", pattern=OBJECT_ID_PATTERN),
    department_id: Optional[str] = Query(None, alias="departmentId", pattern=OBJECT_ID_PATTERN),
    machine_id: Optional[str] = Query(None, alias="machineId", pattern=OBJECT_ID_PATTERN),
    shift_id: Optional[str] = Query(None, alias="shiftId", pattern=OBJECT_ID_PATTERN),
    db=Depends(get_db),
    _user=Depends(get_current_user),
):
    """Time series, department hotspots and daily anomalies for one metric."""
    if metric not in {m.value for m in MetricType}:
        raise ApiError(400, "Invalid metric type")

    refs = _refs(unit_id, department_id, machine_id, shift_id)
    start, end = get_date_range(date_range)
    match = kpi_service.build_match_filter(start, end, metric=metric, **refs)

    data = await kpi_service.get_insights(db, match, interval)
    return envelope(
        {
            "metric": metric,
            **data,
            "filters": {"dateRange": date_range, "interval": interval, **refs},
        }
    )
