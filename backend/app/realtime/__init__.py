"""
Real-time module for Socket.IO based notifications and direct messages.
The hub lives in app.realtime.server.
"""
from app.realtime.rooms import RoomRouter, dm_room_key, personal_room_key

__all__ = ["RoomRouter", "dm_room_key", "personal_room_key"]
