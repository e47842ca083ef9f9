"""
Tests for Socket.IO authentication.
"""
import pytest
from jose import jwt
from datetime import datetime, timedelta

from app.core.config import settings
from app.core.security import get_password_hash
from app.db.models import User
from app.realtime.auth import authenticate_socket, extract_token


def create_test_token(user_id, expires_delta: timedelta = None) -> str:
    """Create a test JWT token."""
    if expires_delta is None:
        expires_delta = timedelta(hours=1)

    payload = {
        "sub": str(user_id),
        "exp": datetime.utcnow() + expires_delta,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
async def alice(test_session):
    user = User(username="alice", email="alice@example.com", hashed_password=get_password_hash("secret1"))
    test_session.add(user)
    await test_session.commit()
    await test_session.refresh(user)
    return user


class TestExtractToken:

    def test_prefers_auth_object(self):
        environ = {"HTTP_AUTHORIZATION": "Bearer from-header"}
        assert extract_token({"token": "from-auth"}, environ) == "from-auth"

    def test_falls_back_to_header(self):
        assert extract_token({}, {"HTTP_AUTHORIZATION": "Bearer from-header"}) == "from-header"

    def test_missing(self):
        assert extract_token(None, None) is None
        assert extract_token({"token": ""}, {"HTTP_AUTHORIZATION": "Basic abc"}) is None


class TestAuthenticateSocket:

    @pytest.mark.anyio
    async def test_no_token_is_anonymous(self):
        accepted, user_data = await authenticate_socket(auth=None, environ=None)

        assert accepted is True
        assert user_data is None

    @pytest.mark.anyio
    async def test_reject_invalid_token(self):
        accepted, user_data = await authenticate_socket(auth={"token": "invalid-token"}, environ={})

        assert accepted is False
        assert user_data is None

    @pytest.mark.anyio
    async def test_reject_expired_token(self, alice):
        token = create_test_token(alice.id, timedelta(hours=-1))

        accepted, _ = await authenticate_socket(auth={"token": token}, environ={})

        assert accepted is False

    @pytest.mark.anyio
    async def test_reject_wrong_secret(self, alice):
        token = jwt.encode(
            {"sub": str(alice.id), "exp": datetime.utcnow() + timedelta(hours=1)},
            "wrong-secret",
            algorithm=settings.JWT_ALGORITHM,
        )

        accepted, _ = await authenticate_socket(auth={"token": token}, environ={})

        assert accepted is False

    @pytest.mark.anyio
    async def test_reject_unknown_user(self):
        accepted, _ = await authenticate_socket(auth={"token": create_test_token(999999)}, environ={})

        assert accepted is False

    @pytest.mark.anyio
    async def test_accept_valid_token_from_auth(self, alice):
        accepted, user_data = await authenticate_socket(
            auth={"token": create_test_token(alice.id)},
            environ={},
        )

        assert accepted is True
        assert user_data == {"user_id": alice.id, "username": "alice"}

    @pytest.mark.anyio
    async def test_accept_valid_token_from_header(self, alice):
        environ = {"HTTP_AUTHORIZATION": f"Bearer {create_test_token(alice.id)}"}

        accepted, user_data = await authenticate_socket(auth=None, environ=environ)

        assert accepted is True
        assert user_data["user_id"] == alice.id

    @pytest.mark.anyio
    async def test_connect_with_token_joins_personal_room(self, alice, realtime, socket_server):
        accepted = await socket_server.connect("s1", auth={"token": create_test_token(alice.id)})

        assert accepted is True
        assert socket_server.rooms("s1") == [f"user:{alice.id}"]
