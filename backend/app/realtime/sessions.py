"""
Session registry for live socket connections.

Tracks which connections belong to which user, supporting multiple
browser tabs/devices per user (multiple socket IDs). State is in-memory
only; after a restart clients re-issue "join".
"""
import logging
from typing import Dict, Set, List, Optional
from dataclasses import dataclass, field

from app.realtime.rooms import RoomRouter, UserId, personal_room_key

logger = logging.getLogger(__name__)


class SessionBindingError(Exception):
    """Raised when a connection already bound to one user is claimed for another."""

    def __init__(self, sid: str, bound_user_id: str, requested_user_id: str):
        self.sid = sid
        self.bound_user_id = bound_user_id
        self.requested_user_id = requested_user_id
        super().__init__(
            f"Socket {sid} is bound to user {bound_user_id}, cannot join as {requested_user_id}"
        )


@dataclass
class SessionRegistry:
    """
    In-memory session tracking.

    Structure:
    - sessions[socket_id] = user_id, or None until the connection joins
    - user_sessions[user_id] = set(socket_ids)
    """
    router: RoomRouter

    # socket_id -> user_id (None while anonymous)
    sessions: Dict[str, Optional[str]] = field(default_factory=dict)

    # user_id -> set(socket_ids)
    user_sessions: Dict[str, Set[str]] = field(default_factory=dict)

    def open(self, sid: str) -> None:
        """Register a new, not yet attached connection."""
        self.sessions.setdefault(sid, None)

    def is_open(self, sid: str) -> bool:
        return sid in self.sessions

    async def attach_user(self, sid: str, user_id: UserId) -> bool:
        """
        Subscribe the connection to the user's personal room.

        Idempotent for the same user. Returns True if this is the user's
        first live connection (they came online).
        """
        user_id = str(user_id)
        bound = self.sessions.get(sid)
        if bound is not None and bound != user_id:
            raise SessionBindingError(sid, bound, user_id)

        await self.router.join(sid, personal_room_key(user_id))

        sids = self.user_sessions.setdefault(user_id, set())
        came_online = len(sids) == 0
        sids.add(sid)
        self.sessions[sid] = user_id

        if came_online:
            logger.info(f"User {user_id} came online (socket: {sid})")
        elif bound is None:
            logger.debug(f"User {user_id} added socket {sid} (now {len(sids)} connections)")
        return came_online

    def detach(self, sid: str) -> Optional[Dict]:
        """
        Forget a disconnected socket. Room membership is dropped by the transport.

        Returns {user_id, went_offline} if the socket was attached to a user.
        """
        if sid not in self.sessions:
            return None

        user_id = self.sessions.pop(sid)
        if user_id is None:
            return None

        sids = self.user_sessions.get(user_id, set())
        sids.discard(sid)
        went_offline = len(sids) == 0
        if went_offline:
            self.user_sessions.pop(user_id, None)
            logger.info(f"User {user_id} went offline")
        else:
            logger.debug(f"User {user_id} closed socket {sid} ({len(sids)} remaining)")

        return {"user_id": user_id, "went_offline": went_offline}

    def user_for(self, sid: str) -> Optional[str]:
        return self.sessions.get(sid)

    def sessions_for(self, user_id: UserId) -> Set[str]:
        return set(self.user_sessions.get(str(user_id), set()))

    def is_online(self, user_id: UserId) -> bool:
        return len(self.user_sessions.get(str(user_id), set())) > 0

    def online_user_ids(self) -> List[str]:
        return [uid for uid, sids in self.user_sessions.items() if sids]

    def clear(self):
        """Drop all session data (shutdown and tests)."""
        self.sessions.clear()
        self.user_sessions.clear()
