# sustainability_dashboard/api/comments.py

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from sustainability_dashboard.api.auth import get_current_user
from sustainability_dashboard.core.database import get_db
from sustainability_dashboard.models.collaboration import CommentCreate, CommentUpdate
from sustainability_dashboard.models.common import envelope, now_utc, serialize_doc, to_object_id
from sustainability_dashboard.models.enums import MetricType, UserRole
from sustainability_dashboard.services.pagination import get_or_404, paginate, parse_id

router = APIRouter()

PIN_ROLES = {UserRole.ADMIN.value, UserRole.HEAD_OF_SUSTAINABILITY.value}


def _check_pin_allowed(user: dict) -> None:
    if user.get("role") not in PIN_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User role is not authorized to pin comments",
        )


def _check_owner(comment: dict, user: dict) -> None:
    if comment.get("authorId") != user["_id"] and user.get("role") != UserRole.ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the author can modify this comment",
        )


@router.get("")
async def list_comments(
    related_kpi: Optional[MetricType] = Query(None, alias="relatedKPI"),
    related_alert: Optional[str] = Query(None, alias="relatedAlert"),
    related_task: Optional[str] = Query(None, alias="relatedTask"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db=Depends(get_db),
    _user=Depends(get_current_user),
):
    query = {}
    if related_kpi:
        query["relatedKPI"] = related_kpi.value
    if related_alert:
        query["relatedAlert"] = parse_id(related_alert, "Alert")
    if related_task:
        query["relatedTask"] = parse_id(related_task, "Task")
    return await paginate(db.comments, query, page, limit)


@router.post("", status_code=201)
async def create_comment(payload: CommentCreate, db=Depends(get_db), user=Depends(get_current_user)):
    if payload.is_pinned:
        _check_pin_allowed(user)

    now = now_utc()
    doc = {
        "content": payload.content.strip(),
        "authorId": user["_id"],
        "authorName": user.get("name"),
        "relatedKPI": payload.related_kpi,
        "relatedAlert": to_object_id(payload.related_alert) if payload.related_alert else None,
        "relatedTask": to_object_id(payload.related_task) if payload.related_task else None,
        "isPinned": payload.is_pinned,
        "createdAt": now,
        "updatedAt": now,
    }
    ins = await db.comments.insert_one(doc)
    doc["_id"] = ins.inserted_id
    return envelope(serialize_doc(doc), "Comment added")


@router.put("/{comment_id}")
async def update_comment(
    comment_id: str,
    payload: CommentUpdate,
    db=Depends(get_db),
    user=Depends(get_current_user),
):
    comment = await get_or_404(db.comments, comment_id, "Comment")

    fields = {}
    if payload.content is not None:
        _check_owner(comment, user)
        fields["content"] = payload.content.strip()
    if payload.is_pinned is not None:
        _check_pin_allowed(user)
        fields["isPinned"] = payload.is_pinned

    if fields:
        fields["updatedAt"] = now_utc()
        await db.comments.update_one({"_id": comment["_id"]}, {"$set": fields})
        comment.update(fields)
    return envelope(serialize_doc(comment), "Comment updated")


@router.delete("/{comment_id}")
async def delete_comment(comment_id: str, db=Depends(get_db), user=Depends(get_current_user)):
    comment = await get_or_404(db.comments, comment_id, "Comment")
    _check_owner(comment, user)
    await db.comments.delete_one({"_id": comment["_id"]})
    return envelope(message="Comment deleted")
