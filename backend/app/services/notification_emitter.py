"""
Notification emitter.
Persists notification records and pushes live events to connected sessions.

Events (server -> client):
- notification          {id, type, post?} to user:{target}
- dm:new                full message record to dm:{low}:{high}
- notification:read     {id} to user:{owner}
- notification:all_read {} to user:{owner}
"""
from typing import Any, Optional, Union
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import realtime_logger
from app.db.enums import NotificationType
from app.db.models import Message, Notification
from app.realtime.rooms import RoomRouter, dm_room_key, personal_room_key
from app.services.notifications import NotificationService


def notification_payload(notification: Notification) -> dict:
    n_type = notification.type.value if hasattr(notification.type, "value") else notification.type
    payload = {"id": notification.id, "type": n_type}
    if notification.post_id is not None:
        payload["post"] = notification.post_id
    return payload


def message_payload(message: Message) -> dict:
    return {
        "id": message.id,
        "from": message.sender_id,
        "to": message.recipient_id,
        "content": message.content,
        "created_at": message.created_at.isoformat() if message.created_at else None,
    }


class NotificationEmitter:
    """
    The notify capability handed to CRUD handlers.

    Notifications are best-effort: a failure here is logged and never undoes
    the caller's own, already committed, write.
    """

    def __init__(self, router: RoomRouter):
        self.router = router

    async def _emit(self, room: str, event: str, payload: Any) -> bool:
        try:
            await self.router.emit(room, event, payload)
        except Exception as e:
            realtime_logger.error(f"Emit of {event} to {room} failed", error=e)
            return False
        return True

    async def notify(
        self,
        db: AsyncSession,
        target_user_id: int,
        actor_user_id: int,
        notification_type: Union[NotificationType, str],
        post_id: Optional[int] = None,
    ) -> Optional[Notification]:
        """
        Persist a notification for target_user_id and push it to their sessions.
        Returns None when nothing was recorded (self-action or storage failure).
        """
        if str(target_user_id) == str(actor_user_id):
            return None

        notification_type = NotificationType(notification_type)
        try:
            notification = await NotificationService(db).create_notification(
                user_id=target_user_id,
                notification_type=notification_type,
                actor_id=actor_user_id,
                post_id=post_id,
            )
        except SQLAlchemyError as e:
            await db.rollback()
            realtime_logger.error(
                "Notification persistence failed",
                error=e,
                target_user_id=target_user_id,
                type=notification_type.value,
            )
            return None

        await self._emit(
            personal_room_key(target_user_id),
            "notification",
            notification_payload(notification),
        )
        return notification

    async def send_direct_message(
        self,
        db: AsyncSession,
        sender_id: int,
        recipient_id: int,
        content: str,
    ) -> Message:
        """
        Store a direct message, deliver it to the conversation room and notify
        the recipient. Storage errors propagate to the caller.
        """
        message = Message(sender_id=sender_id, recipient_id=recipient_id, content=content)
        db.add(message)
        await db.commit()
        await db.refresh(message)

        await self._emit(dm_room_key(sender_id, recipient_id), "dm:new", message_payload(message))
        await self.notify(db, recipient_id, sender_id, NotificationType.message)
        # A failed notification rolls the session back and expires the message
        await db.refresh(message)
        return message

    async def notification_read(self, user_id: int, notification_id: int) -> None:
        await self._emit(personal_room_key(user_id), "notification:read", {"id": notification_id})

    async def all_notifications_read(self, user_id: int) -> None:
        await self._emit(personal_room_key(user_id), "notification:all_read", {})
