# sustainability_dashboard/api/readings.py

import logging
from typing import List, Literal, Optional, Union

from fastapi import APIRouter, Depends, File, Query, UploadFile

from sustainability_dashboard.api.auth import get_current_user, require_roles
from sustainability_dashboard.core.database import get_db
from sustainability_dashboard.core.errors import ApiError
from sustainability_dashboard.core.kpi import get_date_range
from sustainability_dashboard.models.common import OBJECT_ID_PATTERN, envelope, serialize_doc
from sustainability_dashboard.models.enums import MetricType, UserRole
from sustainability_dashboard.models.meter_reading import MeterReadingIn
from sustainability_dashboard.services import ingestion
from sustainability_dashboard.services.kpi_service import build_match_filter
from sustainability_dashboard.services.pagination import paginate

logger = logging.getLogger(__name__)
router = APIRouter()

ingest_required = require_roles(
    UserRole.ADMIN, UserRole.HEAD_OF_SUSTAINABILITY, UserRole.ANALYST
)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024


@router.get("")
async def list_readings(
    date_range: Literal["today", "week", "month", "quarter", "year"] = Query("today", alias="dateRange"),
    metric: Optional[MetricType] = None,
    unit_id: Optional[str] = Query(None, alias="unitId", pattern=OBJECT_ID_PATTERN),
    department_id: Optional[str] = Query(None, alias="departmentId", pattern=OBJECT_ID_PATTERN),
    machine_id: Optional[str] = Query(None, alias="machineId", pattern=OBJECT_ID_PATTERN),
    shift_id: Optional[str] = Query(None, alias="shiftId", pattern=OBJECT_ID_PATTERN),
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=1000),
    db=Depends(get_db),
    _user=Depends(get_current_user),
):
    start, end = get_date_range(date_range)
    match = build_match_filter(
        start,
        end,
        metric=metric.value if metric else None,
        unitId=unit_id,
        departmentId=department_id,
        machineId=machine_id,
        shiftId=shift_id,
    )
    return await paginate(db.meter_readings, match, page, limit, sort=("timestamp", -1))


@router.post("", status_code=201)
async def create_readings(
    payload: Union[MeterReadingIn, List[MeterReadingIn]],
    db=Depends(get_db),
    _user=Depends(ingest_required),
):
    """Store one reading or a batch. Readings are immutable once stored."""
    readings = payload if isinstance(payload, list) else [payload]
    if not readings:
        raise ApiError(400, "No readings supplied")

    result = await ingestion.ingest_readings(db, readings)
    return envelope(
        {
            "inserted": result["inserted"],
            "alertsRaised": len(result["alerts"]),
            "readings": serialize_doc(result["readings"]),
        },
        f"{result['inserted']} reading(s) stored",
    )


@router.post("/upload", status_code=201)
async def upload_readings(
    file: UploadFile = File(...),
    db=Depends(get_db),
    _user=Depends(ingest_required),
):
    """Bulk ingest from CSV (header row uses the JSON field names)."""
    if not (file.filename or "").lower().endswith(".csv"):
        raise ApiError(400, "Only .csv uploads are supported")

    content = await file.read()
    if len(content) > MAX_UPLOAD_BYTES:
        raise ApiError(400, "File too large")

    try:
        readings, errors = ingestion.parse_readings_csv(content)
    except ValueError as e:
        raise ApiError(400, str(e))

    if errors:
        logger.warning(f"CSV upload {file.filename}: {len(errors)} row(s) rejected")

    if not readings:
        raise ApiError(400, f"No valid readings in file: {errors[0]}" if errors else "No readings in file")

    result = await ingestion.ingest_readings(db, readings)
    return envelope(
        {
            "inserted": result["inserted"],
            "rejected": len(errors),
            "errors": errors[:50],
            "alertsRaised": len(result["alerts"]),
        },
        f"{result['inserted']} reading(s) stored",
    )
