"""
Socket.IO authentication module.
Validates optional JWT tokens for socket connections.
"""
from typing import Optional, Tuple
from jose import JWTError, jwt
from sqlalchemy import select

from app.core.config import settings
from app.db.database import async_session
from app.db.models import User
import logging

logger = logging.getLogger(__name__)


def extract_token(auth: dict = None, environ: dict = None) -> Optional[str]:
    """
    Extracts token from:
    1. auth.token (preferred - sent in Socket.IO auth object)
    2. Authorization header (fallback)
    """
    token = None

    if auth and isinstance(auth, dict):
        token = auth.get("token")

    if not token and environ:
        header = environ.get("HTTP_AUTHORIZATION", "")
        if header.startswith("Bearer "):
            token = header[7:]

    return token or None


async def authenticate_socket(
    auth: dict = None,
    environ: dict = None,
    session_factory=async_session,
) -> Tuple[bool, Optional[dict]]:
    """
    Authenticate a Socket.IO connection.

    Returns:
        Tuple of (accepted, user_data)
        - no token: (True, None), the connection stays anonymous until "join"
        - invalid token or unknown user: (False, None)
        - valid token: (True, {user_id, username})
    """
    token = extract_token(auth, environ)
    if not token:
        return True, None

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError as e:
        logger.warning(f"Socket connection rejected: Invalid JWT - {e}")
        return False, None

    user_id = payload.get("sub")
    if not user_id:
        logger.warning("Socket connection rejected: No user_id in token")
        return False, None

    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        logger.warning(f"Socket connection rejected: Malformed user_id {user_id!r}")
        return False, None

    async with session_factory() as db:
        result = await db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()

    if not user:
        logger.warning(f"Socket connection rejected: User {user_id} not found")
        return False, None

    logger.info(f"Socket authenticated for user {user.username} (ID: {user_id})")
    return True, {"user_id": user_id, "username": user.username}
