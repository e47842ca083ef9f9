from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_, or_
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from app.api.deps import get_notifier
from app.api.schemas import clamp_page, page_count
from app.db.database import get_db
from app.db.models import Message, User
from app.core.logging import api_logger
from app.core.security import get_current_user
from app.services.notification_emitter import NotificationEmitter

router = APIRouter()


class MessageCreateRequest(BaseModel):
    content: str = Field(min_length=1)


class MessageResponse(BaseModel):
    id: int
    sender_id: int
    recipient_id: int
    content: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MessagePage(BaseModel):
    data: List[MessageResponse]
    total: int
    page: int
    pages: int


@router.get("/{user_id}", response_model=MessagePage)
async def get_conversation(
    user_id: int,
    page: int = 1,
    limit: int = 20,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Messages between the caller and user_id, oldest first"""
    page, limit, offset = clamp_page(page, limit, default_limit=20, max_limit=100)
    me = current_user["user_id"]

    condition = or_(
        and_(Message.sender_id == me, Message.recipient_id == user_id),
        and_(Message.sender_id == user_id, Message.recipient_id == me),
    )
    total = (await db.execute(select(func.count(Message.id)).where(condition))).scalar() or 0
    result = await db.execute(
        select(Message)
        .where(condition)
        .order_by(Message.created_at.asc(), Message.id.asc())
        .offset(offset)
        .limit(limit)
    )
    messages = result.scalars().all()

    return MessagePage(
        data=[MessageResponse.model_validate(m) for m in messages],
        total=total,
        page=page,
        pages=page_count(total, limit),
    )


@router.post("/{user_id}", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    user_id: int,
    request: MessageCreateRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationEmitter = Depends(get_notifier),
):
    result = await db.execute(select(User.id).where(User.id == user_id))
    if result.scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail="User not found")

    message = await notifier.send_direct_message(db, current_user["user_id"], user_id, request.content)
    api_logger.debug("Direct message sent", message_id=message.id)
    return message
