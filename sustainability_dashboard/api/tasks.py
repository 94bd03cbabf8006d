# sustainability_dashboard/api/tasks.py

from typing import Optional

from fastapi import APIRouter, Depends, Query

from sustainability_dashboard.api.auth import editor_required, get_current_user
from sustainability_dashboard.core.database import get_db
from sustainability_dashboard.models.collaboration import TaskCreate, TaskUpdate
from sustainability_dashboard.models.common import envelope, now_utc, serialize_doc, to_object_id
from sustainability_dashboard.models.enums import TaskPriority, TaskStatus
from sustainability_dashboard.services.pagination import get_or_404, paginate, parse_id

router = APIRouter()

REF_FIELDS = ("assignedTo", "relatedAlert")


def _refs_to_oid(doc: dict) -> dict:
    for field in REF_FIELDS:
        if doc.get(field):
            doc[field] = to_object_id(doc[field])
    return doc


@router.get("")
async def list_tasks(
    status: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
    assigned_to: Optional[str] = Query(None, alias="assignedTo"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db=Depends(get_db),
    _user=Depends(get_current_user),
):
    query = {}
    if status:
        query["status"] = status.value
    if priority:
        query["priority"] = priority.value
    if assigned_to:
        query["assignedTo"] = parse_id(assigned_to, "User")
    return await paginate(db.tasks, query, page, limit)


@router.get("/{task_id}")
async def get_task(task_id: str, db=Depends(get_db), _user=Depends(get_current_user)):
    task = await get_or_404(db.tasks, task_id, "Task")
    return envelope(serialize_doc(task))


@router.post("", status_code=201)
async def create_task(payload: TaskCreate, db=Depends(get_db), user=Depends(editor_required)):
    now = now_utc()
    doc = _refs_to_oid(payload.model_dump(by_alias=True))
    doc.update({"createdBy": user["_id"], "createdAt": now, "updatedAt": now})

    ins = await db.tasks.insert_one(doc)
    doc["_id"] = ins.inserted_id
    return envelope(serialize_doc(doc), "Task created successfully")


@router.put("/{task_id}")
async def update_task(task_id: str, payload: TaskUpdate, db=Depends(get_db), _user=Depends(editor_required)):
    task = await get_or_404(db.tasks, task_id, "Task")

    fields = _refs_to_oid(payload.model_dump(by_alias=True, exclude_unset=True))
    fields["updatedAt"] = now_utc()

    await db.tasks.update_one({"_id": task["_id"]}, {"$set": fields})
    task.update(fields)
    return envelope(serialize_doc(task), "Task updated successfully")


@router.delete("/{task_id}")
async def delete_task(task_id: str, db=Depends(get_db), _user=Depends(editor_required)):
    task = await get_or_404(db.tasks, task_id, "Task")
    await db.tasks.delete_one({"_id": task["_id"]})
    return envelope(message="Task deleted")
