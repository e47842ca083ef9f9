from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.db.database import get_db
from app.db.models import User
from app.core.security import get_current_user as jwt_get_current_user
from app.realtime.server import RealtimeHub
from app.services.notification_emitter import NotificationEmitter


async def get_current_user(
    current_user_data: dict = Depends(jwt_get_current_user),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve JWT-authenticated actor into DB User instance.

    Route handlers that need more than the user id can type
    `User = Depends(get_current_user)`.
    """
    result = await db.execute(select(User).where(User.id == current_user_data["user_id"]))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=401, detail="Could not validate credentials")
    return user


def get_realtime(request: Request) -> RealtimeHub:
    return request.app.state.realtime


def get_notifier(hub: RealtimeHub = Depends(get_realtime)) -> NotificationEmitter:
    return hub.notifier
