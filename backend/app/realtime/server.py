"""
Socket.IO server wiring.

The RealtimeHub is created once per application and owns the socket server,
room router, session registry, connection protocol and notification emitter.
It is shared with HTTP handlers through app.state instead of module globals.
"""
import logging
from typing import Any, Optional

import socketio

from app.core.config import settings
from app.realtime.protocol import PresenceProtocol
from app.realtime.rooms import RoomRouter, dm_room_key, personal_room_key
from app.realtime.sessions import SessionRegistry
from app.services.notification_emitter import NotificationEmitter

logger = logging.getLogger(__name__)


def create_socket_server() -> socketio.AsyncServer:
    """
    async_mode="asgi" for FastAPI/Starlette compatibility.
    Socket.IO traffic bypasses the FastAPI middleware stack, so CORS is set here.
    """
    origins = settings.cors_origins
    client_manager = None
    if settings.SOCKETIO_REDIS_URL:
        client_manager = socketio.AsyncRedisManager(settings.SOCKETIO_REDIS_URL)
        logger.info("Socket.IO rooms shared through Redis")

    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins="*" if origins == ["*"] else origins,
        client_manager=client_manager,
        logger=False,
        engineio_logger=False,
    )


class RealtimeHub:
    def __init__(self, server: Optional[Any] = None, trust_client_identity: Optional[bool] = None):
        if trust_client_identity is None:
            trust_client_identity = settings.REALTIME_TRUST_CLIENT_IDENTITY

        self.sio = server if server is not None else create_socket_server()
        self.router = RoomRouter(self.sio)
        self.registry = SessionRegistry(self.router)
        self.protocol = PresenceProtocol(
            self.registry,
            self.router,
            trust_client_identity=trust_client_identity,
        )
        self.protocol.register(self.sio)
        self.notifier = NotificationEmitter(self.router)

    # Reusable broadcast surface for HTTP features
    personal_room_key = staticmethod(personal_room_key)
    dm_room_key = staticmethod(dm_room_key)

    async def emit(self, room: str, event: str, payload: Any) -> None:
        await self.router.emit(room, event, payload)

    def asgi_app(self, other_asgi_app) -> socketio.ASGIApp:
        """Serve /socket.io and forward everything else to the HTTP app."""
        return socketio.ASGIApp(self.sio, other_asgi_app=other_asgi_app, socketio_path="socket.io")

    async def shutdown(self) -> None:
        online = len(self.registry.online_user_ids())
        self.registry.clear()
        logger.info(f"Realtime hub stopped ({online} users were online)")
