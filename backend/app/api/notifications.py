from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from app.api.deps import get_notifier
from app.api.schemas import AuthorSummary
from app.db.database import get_db
from app.db.models import Notification
from app.core.security import get_current_user
from app.services.notification_emitter import NotificationEmitter
from app.services.notifications import NotificationService

router = APIRouter()


class PostSummary(BaseModel):
    id: int
    title: Optional[str] = None


class NotificationResponse(BaseModel):
    id: int
    type: str
    actor_id: int
    actor: Optional[AuthorSummary] = None
    post_id: Optional[int] = None
    post: Optional[PostSummary] = None
    is_read: bool = Field(serialization_alias="read")
    created_at: Optional[datetime] = None


class NotificationCountResponse(BaseModel):
    unread: int
    total: int


def transform_notification_to_response(n: Notification, include_relations: bool = True) -> NotificationResponse:
    n_type = n.type.value if hasattr(n.type, 'value') else n.type
    actor = None
    post = None
    if include_relations:
        actor = AuthorSummary.model_validate(n.actor) if n.actor else None
        post = PostSummary(id=n.post.id, title=n.post.title) if n.post else None
    return NotificationResponse(
        id=n.id,
        type=n_type,
        actor_id=n.actor_id,
        actor=actor,
        post_id=n.post_id,
        post=post,
        is_read=n.is_read,
        created_at=n.created_at,
    )


@router.get("/", response_model=List[NotificationResponse])
async def list_notifications(
    limit: int = 100,
    unread_only: bool = False,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get notifications for the current user"""
    limit = min(max(limit, 1), 100)
    notifications = await NotificationService(db).list_notifications(
        current_user["user_id"], unread_only=unread_only, limit=limit
    )
    return [transform_notification_to_response(n) for n in notifications]


@router.get("/count", response_model=NotificationCountResponse)
async def get_notification_count(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get unread and total notification count"""
    counts = await NotificationService(db).get_counts(current_user["user_id"])
    return NotificationCountResponse(**counts)


@router.post("/read-all")
async def mark_all_notifications_read(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationEmitter = Depends(get_notifier),
):
    """Mark all notifications as read"""
    updated = await NotificationService(db).mark_all_as_read(current_user["user_id"])
    await notifier.all_notifications_read(current_user["user_id"])
    return {"success": True, "updated": updated}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationEmitter = Depends(get_notifier),
):
    """Mark a notification as read"""
    notification = await NotificationService(db).mark_as_read(notification_id, current_user["user_id"])
    if not notification:
        raise HTTPException(status_code=404, detail="Not found")

    await notifier.notification_read(current_user["user_id"], notification.id)
    return transform_notification_to_response(notification, include_relations=False)
