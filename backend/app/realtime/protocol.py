"""
Connection lifecycle handlers for the real-time channel.

Events (client -> server):
- join      userId            subscribe to the personal room user:{userId}
- dm:join   {me, other}       subscribe to the DM room for the pair
- disconnect                  terminal, the transport leaves all rooms

A connection may send join and dm:join any number of times and in any order.
Malformed frames are logged and dropped; the connection stays usable.
"""
import logging
from typing import Any, Optional

from app.realtime.auth import authenticate_socket
from app.realtime.rooms import RoomRouter
from app.realtime.sessions import SessionRegistry, SessionBindingError

logger = logging.getLogger(__name__)


def _coerce_user_id(value: Any) -> Optional[str]:
    """Accept non-empty strings and integers; anything else is malformed."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value
    return None


class PresenceProtocol:
    """Binds socket events to the session registry and room router."""

    def __init__(
        self,
        registry: SessionRegistry,
        router: RoomRouter,
        trust_client_identity: bool = True,
        authenticate=authenticate_socket,
    ):
        self.registry = registry
        self.router = router
        self.trust_client_identity = trust_client_identity
        self.authenticate = authenticate

    def register(self, server) -> None:
        server.on("connect", self.on_connect)
        server.on("join", self.on_join)
        server.on("dm:join", self.on_dm_join)
        server.on("disconnect", self.on_disconnect)

    async def on_connect(self, sid: str, environ: dict, auth: dict = None):
        accepted, user_data = await self.authenticate(auth, environ)
        if not accepted:
            logger.warning(f"Socket connection rejected: {sid}")
            return False

        self.registry.open(sid)
        if user_data:
            await self.registry.attach_user(sid, user_data["user_id"])
            logger.info(f"Socket connected: {sid} (user: {user_data['username']})")
        else:
            logger.info(f"Socket connected: {sid} (anonymous)")
        return True

    async def on_join(self, sid: str, data: Any = None):
        if not self.registry.is_open(sid):
            logger.debug(f"Ignoring join from closed socket {sid}")
            return

        user_id = _coerce_user_id(data)
        if user_id is None:
            logger.warning(f"Dropping malformed join from {sid}: {data!r}")
            return

        try:
            await self.registry.attach_user(sid, user_id)
        except SessionBindingError as e:
            logger.warning(str(e))

    async def on_dm_join(self, sid: str, data: Any = None):
        if not self.registry.is_open(sid):
            logger.debug(f"Ignoring dm:join from closed socket {sid}")
            return

        if not isinstance(data, dict):
            logger.warning(f"Dropping malformed dm:join from {sid}: {data!r}")
            return

        me = _coerce_user_id(data.get("me"))
        other = _coerce_user_id(data.get("other"))
        if me is None or other is None:
            logger.warning(f"Dropping malformed dm:join from {sid}: {data!r}")
            return

        bound = self.registry.user_for(sid)
        if bound is not None and bound != me:
            logger.warning(f"Rejecting dm:join from {sid}: claimed {me}, bound to {bound}")
            return
        if bound is None and not self.trust_client_identity:
            logger.warning(f"Rejecting dm:join from {sid}: connection has not joined")
            return

        room = await self.router.join_dm(sid, me, other)
        logger.info(f"Socket {sid} joined DM room: {room}")

    async def on_disconnect(self, sid: str, *args):
        info = self.registry.detach(sid)
        if info:
            logger.info(f"Socket disconnected: {sid} (user: {info['user_id']})")
        else:
            logger.info(f"Socket disconnected: {sid} (anonymous)")
