# sustainability_dashboard/api/alerts.py

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from sustainability_dashboard.api.auth import editor_required, get_current_user
from sustainability_dashboard.core.database import get_db
from sustainability_dashboard.core.errors import ApiError
from sustainability_dashboard.models.collaboration import AlertCreate, AlertUpdate
from sustainability_dashboard.models.common import envelope, now_utc, serialize_doc, to_object_id
from sustainability_dashboard.models.enums import AlertSeverity, MetricType
from sustainability_dashboard.services.pagination import get_or_404, paginate

logger = logging.getLogger(__name__)
router = APIRouter()

REF_FIELDS = ("unitId", "departmentId", "machineId")


@router.get("")
async def list_alerts(
    severity: Optional[AlertSeverity] = None,
    metric: Optional[MetricType] = None,
    resolved: Optional[bool] = None,
    acknowledged: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db=Depends(get_db),
    _user=Depends(get_current_user),
):
    query = {}
    if severity:
        query["severity"] = severity.value
    if metric:
        query["metric"] = metric.value
    if resolved is not None:
        query["isResolved"] = resolved
    if acknowledged is not None:
        query["isAcknowledged"] = acknowledged
    return await paginate(db.alerts, query, page, limit)


@router.get("/{alert_id}")
async def get_alert(alert_id: str, db=Depends(get_db), _user=Depends(get_current_user)):
    alert = await get_or_404(db.alerts, alert_id, "Alert")
    return envelope(serialize_doc(alert))


@router.post("", status_code=201)
async def create_alert(payload: AlertCreate, db=Depends(get_db), _user=Depends(editor_required)):
    now = now_utc()
    doc = payload.model_dump(by_alias=True)
    for field in REF_FIELDS:
        if doc.get(field):
            doc[field] = to_object_id(doc[field])
    doc.update(
        {
            "isAcknowledged": False,
            "isResolved": False,
            "source": "manual",
            "createdAt": now,
            "updatedAt": now,
        }
    )

    ins = await db.alerts.insert_one(doc)
    doc["_id"] = ins.inserted_id
    return envelope(serialize_doc(doc), "Alert created successfully")


@router.put("/{alert_id}")
async def update_alert(alert_id: str, payload: AlertUpdate, db=Depends(get_db), _user=Depends(editor_required)):
    alert = await get_or_404(db.alerts, alert_id, "Alert")

    fields = payload.model_dump(by_alias=True, exclude_unset=True)
    fields["updatedAt"] = now_utc()

    await db.alerts.update_one({"_id": alert["_id"]}, {"$set": fields})
    alert.update(fields)
    return envelope(serialize_doc(alert), "Alert updated successfully")


@router.put("/{alert_id}/acknowledge")
async def acknowledge_alert(alert_id: str, db=Depends(get_db), user=Depends(editor_required)):
    alert = await get_or_404(db.alerts, alert_id, "Alert")
    if alert.get("isAcknowledged"):
        raise ApiError(400, "Alert already acknowledged")

    now = now_utc()
    fields = {
        "isAcknowledged": True,
        "acknowledgedBy": user["_id"],
        "acknowledgedAt": now,
        "updatedAt": now,
    }
    await db.alerts.update_one({"_id": alert["_id"]}, {"$set": fields})
    alert.update(fields)
    return envelope(serialize_doc(alert), "Alert acknowledged")


@router.put("/{alert_id}/resolve")
async def resolve_alert(alert_id: str, db=Depends(get_db), user=Depends(editor_required)):
    alert = await get_or_404(db.alerts, alert_id, "Alert")
    if alert.get("isResolved"):
        raise ApiError(400, "Alert already resolved")

    now = now_utc()
    fields = {
        "isResolved": True,
        "resolvedBy": user["_id"],
        "resolvedAt": now,
        "updatedAt": now,
    }
    # resolving implies it has been seen
    if not alert.get("isAcknowledged"):
        fields.update({"isAcknowledged": True, "acknowledgedBy": user["_id"], "acknowledgedAt": now})

    await db.alerts.update_one({"_id": alert["_id"]}, {"$set": fields})
    alert.update(fields)
    logger.info(f"Alert {alert_id} resolved by {user.get('email')}")
    return envelope(serialize_doc(alert), "Alert resolved")


@router.delete("/{alert_id}")
async def delete_alert(alert_id: str, db=Depends(get_db), _user=Depends(editor_required)):
    alert = await get_or_404(db.alerts, alert_id, "Alert")
    await db.alerts.delete_one({"_id": alert["_id"]})
    return envelope(message="Alert deleted")
