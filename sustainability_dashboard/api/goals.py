# sustainability_dashboard/api/goals.py

import logging
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, Query

from sustainability_dashboard.api.auth import get_current_user, require_roles
from sustainability_dashboard.core.database import get_db
from sustainability_dashboard.core.errors import NotFoundError
from sustainability_dashboard.core.kpi import get_metric_unit
from sustainability_dashboard.models.collaboration import GoalCreate, GoalUpdate
from sustainability_dashboard.models.common import envelope, now_utc, serialize_doc, to_object_id
from sustainability_dashboard.models.enums import GoalStatus, MetricType, UserRole
from sustainability_dashboard.services.pagination import get_or_404, paginate, parse_id

logger = logging.getLogger(__name__)
router = APIRouter()

goal_editor = require_roles(UserRole.ADMIN, UserRole.HEAD_OF_SUSTAINABILITY)


@router.get("")
async def list_goals(
    status: Optional[GoalStatus] = None,
    metric: Optional[MetricType] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db=Depends(get_db),
    _user=Depends(get_current_user),
):
    query = {}
    if status:
        query["status"] = status.value
    if metric:
        query["metric"] = metric.value
    return await paginate(db.goals, query, page, limit, sort=("deadline", 1))


@router.get("/{goal_id}")
async def get_goal(goal_id: str, db=Depends(get_db), _user=Depends(get_current_user)):
    goal = await get_or_404(db.goals, goal_id, "Goal")
    return envelope(serialize_doc(goal))


@router.post("", status_code=201)
async def create_goal(payload: GoalCreate, db=Depends(get_db), user=Depends(goal_editor)):
    now = now_utc()
    doc = payload.model_dump(by_alias=True)
    doc["unit"] = doc.get("unit") or get_metric_unit(payload.metric)
    if doc.get("assignedTo"):
        doc["assignedTo"] = to_object_id(doc["assignedTo"])
    doc["milestones"] = [
        {**m, "_id": ObjectId(), "isCompleted": False, "completedAt": None}
        for m in doc.get("milestones", [])
    ]
    doc.update({"createdBy": user["_id"], "createdAt": now, "updatedAt": now})

    ins = await db.goals.insert_one(doc)
    doc["_id"] = ins.inserted_id
    logger.info(f"Goal created: {payload.title}")
    return envelope(serialize_doc(doc), "Goal created successfully")


@router.put("/{goal_id}")
async def update_goal(goal_id: str, payload: GoalUpdate, db=Depends(get_db), _user=Depends(goal_editor)):
    goal = await get_or_404(db.goals, goal_id, "Goal")

    fields = payload.model_dump(by_alias=True, exclude_unset=True)
    if fields.get("assignedTo"):
        fields["assignedTo"] = to_object_id(fields["assignedTo"])
    fields["updatedAt"] = now_utc()

    await db.goals.update_one({"_id": goal["_id"]}, {"$set": fields})
    goal.update(fields)
    return envelope(serialize_doc(goal), "Goal updated successfully")


@router.put("/{goal_id}/milestones/{milestone_id}/complete")
async def complete_milestone(
    goal_id: str,
    milestone_id: str,
    db=Depends(get_db),
    _user=Depends(goal_editor),
):
    goal = await get_or_404(db.goals, goal_id, "Goal")
    mid = parse_id(milestone_id, "Milestone")

    milestones = goal.get("milestones") or []
    target = next((m for m in milestones if m.get("_id") == mid), None)
    if target is None:
        raise NotFoundError("Milestone")

    now = now_utc()
    if not target.get("isCompleted"):
        target["isCompleted"] = True
        target["completedAt"] = now

    await db.goals.update_one(
        {"_id": goal["_id"]},
        {"$set": {"milestones": milestones, "updatedAt": now}},
    )
    goal["milestones"] = milestones
    goal["updatedAt"] = now
    return envelope(serialize_doc(goal), "Milestone completed")


@router.delete("/{goal_id}")
async def delete_goal(goal_id: str, db=Depends(get_db), _user=Depends(goal_editor)):
    goal = await get_or_404(db.goals, goal_id, "Goal")
    await db.goals.delete_one({"_id": goal["_id"]})
    return envelope(message="Goal deleted")
