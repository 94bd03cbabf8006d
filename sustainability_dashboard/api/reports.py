# sustainability_dashboard/api/reports.py

import logging
from datetime import timedelta

from bson import ObjectId
from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse

from sustainability_dashboard.api.auth import editor_required, get_current_user
from sustainability_dashboard.core.config import settings
from sustainability_dashboard.core.database import get_db
from sustainability_dashboard.core.errors import ApiError
from sustainability_dashboard.core.kpi import get_date_range
from sustainability_dashboard.models.common import envelope, now_utc, serialize_doc
from sustainability_dashboard.models.enums import MetricType, ReportType, UserRole
from sustainability_dashboard.models.report import ReportCreate
from sustainability_dashboard.services import reports as report_service
from sustainability_dashboard.services.kpi_service import build_match_filter
from sustainability_dashboard.services.pagination import get_or_404, paginate

logger = logging.getLogger(__name__)
router = APIRouter()


def _public(doc: dict) -> dict:
    out = serialize_doc(doc)
    out.pop("filePath", None)
    return out


@router.get("")
async def list_reports(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db=Depends(get_db),
    user=Depends(get_current_user),
):
    query = {} if user.get("role") == UserRole.ADMIN.value else {"generatedBy": user["_id"]}
    body = await paginate(db.reports, query, page, limit, sort=("generatedAt", -1))
    for doc in body["data"]:
        doc.pop("filePath", None)
    return body


@router.post("", status_code=201)
async def generate_report(payload: ReportCreate, db=Depends(get_db), user=Depends(editor_required)):
    """Export bucketed readings for the chosen filters as CSV or Excel."""
    if payload.type == ReportType.PDF.value:
        raise ApiError(400, "PDF reports are not supported; use csv or excel")

    refs = {
        "unitId": payload.unit_id,
        "departmentId": payload.department_id,
        "machineId": payload.machine_id,
        "shiftId": payload.shift_id,
    }
    metrics = [MetricType(m).value for m in payload.metrics]
    start, end = get_date_range(payload.date_range)
    match = build_match_filter(start, end, **refs)
    match["metric"] = {"$in": metrics}

    points = await report_service.fetch_points(db, match)
    frame = report_service.build_report_frame(points, metrics, payload.interval)

    report_id = ObjectId()
    path = report_service.write_report(frame, str(report_id), payload.type)

    now = now_utc()
    doc = {
        "_id": report_id,
        "name": payload.name,
        "type": payload.type,
        "filters": {
            "dateRange": payload.date_range,
            "start": start,
            "end": end,
            "interval": payload.interval,
            "metrics": metrics,
            **refs,
        },
        "rowCount": len(frame),
        "generatedBy": user["_id"],
        "generatedAt": now,
        "downloadUrl": f"/api/reports/{report_id}/download",
        "expiresAt": now + timedelta(days=settings.REPORT_TTL_DAYS),
        "filePath": str(path),
        "createdAt": now,
        "updatedAt": now,
    }
    await db.reports.insert_one(doc)
    return envelope(_public(doc), "Report generated")


async def _owned_report(db, report_id: str, user: dict) -> dict:
    report = await get_or_404(db.reports, report_id, "Report")
    if user.get("role") != UserRole.ADMIN.value and report.get("generatedBy") != user["_id"]:
        raise ApiError(403, "Not allowed to access this report")
    return report


@router.get("/{report_id}/download")
async def download_report(report_id: str, db=Depends(get_db), user=Depends(get_current_user)):
    report = await _owned_report(db, report_id, user)

    expires_at = report.get("expiresAt")
    if expires_at is not None and expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=now_utc().tzinfo)
    if expires_at is not None and expires_at < now_utc():
        raise ApiError(410, "Report has expired")

    path = report_service.report_path(str(report["_id"]), report["type"])
    if not path.exists():
        raise ApiError(404, "Report file not found")

    filename = f"{report['name']}{path.suffix}".replace("/", "_")
    return FileResponse(path, media_type=report_service.MEDIA_TYPES[report["type"]], filename=filename)


@router.delete("/{report_id}")
async def delete_report(report_id: str, db=Depends(get_db), user=Depends(get_current_user)):
    report = await _owned_report(db, report_id, user)
    path = report_service.report_path(str(report["_id"]), report["type"])
    path.unlink(missing_ok=True)
    await db.reports.delete_one({"_id": report["_id"]})
    return envelope(message="Report deleted")
