"""
Notification service layer.
Handles notification persistence and read-state management.
"""
from typing import Optional, List
from sqlalchemy import select, update, func, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.db.models import Notification
from app.db.enums import NotificationType


class NotificationService:
    """Service for managing notifications"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_notification(
        self,
        user_id: int,
        notification_type: NotificationType,
        actor_id: int,
        post_id: Optional[int] = None,
    ) -> Notification:
        """Create a new unread notification"""
        notification = Notification(
            user_id=user_id,
            type=notification_type,
            actor_id=actor_id,
            post_id=post_id,
            is_read=False,
        )
        self.db.add(notification)
        await self.db.commit()
        await self.db.refresh(notification)
        return notification

    async def get_notification(self, notification_id: int) -> Optional[Notification]:
        result = await self.db.execute(
            select(Notification).where(Notification.id == notification_id)
        )
        return result.scalar_one_or_none()

    async def list_notifications(
        self,
        user_id: int,
        unread_only: bool = False,
        limit: int = 100,
    ) -> List[Notification]:
        """List notifications for a user, newest first, with actor and post loaded"""
        query = (
            select(Notification)
            .where(Notification.user_id == user_id)
            .options(selectinload(Notification.actor), selectinload(Notification.post))
        )

        if unread_only:
            query = query.where(Notification.is_read == False)

        query = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_counts(self, user_id: int) -> dict:
        """Get unread and total notification counts"""
        unread_result = await self.db.execute(
            select(func.count(Notification.id)).where(
                and_(
                    Notification.user_id == user_id,
                    Notification.is_read == False,
                )
            )
        )
        total_result = await self.db.execute(
            select(func.count(Notification.id)).where(Notification.user_id == user_id)
        )
        return {
            "unread": unread_result.scalar() or 0,
            "total": total_result.scalar() or 0,
        }

    async def mark_as_read(self, notification_id: int, user_id: int) -> Optional[Notification]:
        """Flip the read flag on one of the user's notifications"""
        notification = await self.get_notification(notification_id)
        if not notification or notification.user_id != user_id:
            return None

        notification.is_read = True
        await self.db.commit()
        await self.db.refresh(notification)
        return notification

    async def mark_all_as_read(self, user_id: int) -> int:
        """Mark all unread notifications as read, returns the number updated"""
        result = await self.db.execute(
            update(Notification)
            .where(
                and_(
                    Notification.user_id == user_id,
                    Notification.is_read == False,
                )
            )
            .values(is_read=True)
        )
        await self.db.commit()
        return result.rowcount
