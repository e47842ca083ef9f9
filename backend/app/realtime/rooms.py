"""
Room keys and fan-out.

Rooms:
- user:{user_id} - all sessions of one user (personal notifications)
- dm:{low}:{high} - all sessions taking part in a two-party conversation
"""
import logging
from typing import Any, Union

logger = logging.getLogger(__name__)

UserId = Union[int, str]


def personal_room_key(user_id: UserId) -> str:
    return f"user:{user_id}"


def dm_room_key(user_a: UserId, user_b: UserId) -> str:
    """
    Room shared by both sides of a direct conversation.
    The ids are compared as strings so either participant derives the same key.
    """
    pair = sorted([str(user_a), str(user_b)])
    return "dm:" + ":".join(pair)


class RoomRouter:
    """
    Thin layer over the socket server's room manager.

    The server only needs enter_room/emit, which keeps the router usable with
    both python-socketio's AsyncServer and the in-memory fake used in tests.
    """

    def __init__(self, server):
        self.server = server

    async def join(self, sid: str, room: str) -> None:
        await self.server.enter_room(sid, room)
        logger.debug(f"Socket {sid} joined room: {room}")

    async def join_dm(self, sid: str, me: UserId, other: UserId) -> str:
        room = dm_room_key(me, other)
        await self.join(sid, room)
        return room

    async def emit(self, room: str, event: str, payload: Any) -> None:
        await self.server.emit(event, payload, room=room)
        logger.debug(f"Emitted {event} to {room}")
