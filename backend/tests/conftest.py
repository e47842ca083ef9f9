import os
import pytest
from collections import defaultdict
from httpx import AsyncClient, ASGITransport

# Point the app at a throwaway SQLite file before any app module is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_socialblog.db"
os.environ["TESTING"] = "true"
os.environ.setdefault("JWT_SECRET", "test-secret")

from app.main import create_app
from app.db.database import Base, async_engine, async_session
from app.realtime.server import RealtimeHub


class FakeSocketServer:
    """
    In-memory stand-in for socketio.AsyncServer.

    Implements the room manager calls the hub uses (on, enter_room, leave_room,
    emit, rooms) plus helpers to drive client events from tests.
    """

    def __init__(self):
        self.handlers = {}
        self.room_members = defaultdict(set)
        self.emitted = []
        self.received = defaultdict(list)

    def on(self, event, handler=None, namespace=None):
        self.handlers[event] = handler

    async def enter_room(self, sid, room, namespace=None):
        self.room_members[room].add(sid)

    async def leave_room(self, sid, room, namespace=None):
        self.room_members[room].discard(sid)

    def rooms(self, sid, namespace=None):
        return sorted(room for room, members in self.room_members.items() if sid in members)

    async def emit(self, event, data=None, room=None, skip_sid=None, namespace=None):
        self.emitted.append((event, data, room))
        for sid in sorted(self.room_members.get(room, set())):
            if sid != skip_sid:
                self.received[sid].append((event, data))

    # Client-side simulation

    async def connect(self, sid, auth=None, environ=None):
        return await self.handlers["connect"](sid, environ or {}, auth)

    async def send(self, sid, event, data=None):
        return await self.handlers[event](sid, data)

    async def disconnect(self, sid):
        for members in self.room_members.values():
            members.discard(sid)
        await self.handlers["disconnect"](sid)

    def events(self, sid, event):
        return [data for name, data in self.received[sid] if name == event]

    def emitted_events(self, event):
        return [(data, room) for name, data, room in self.emitted if name == event]


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture(scope="session")
async def test_engine(anyio_backend):
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_engine

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await async_engine.dispose()


@pytest.fixture
async def test_session(anyio_backend, test_engine):
    async with async_session() as session:
        yield session


@pytest.fixture(autouse=True)
async def clean_tables(anyio_backend, test_engine):
    """Ensure DB is empty before each test by deleting from all tables (keep schema intact)."""
    async with test_engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            await conn.execute(table.delete())
    yield


@pytest.fixture
def socket_server():
    return FakeSocketServer()


@pytest.fixture
def realtime(socket_server):
    hub = RealtimeHub(server=socket_server, trust_client_identity=True)
    yield hub
    hub.registry.clear()


@pytest.fixture
def app(realtime):
    return create_app(realtime)


@pytest.fixture
async def client(anyio_backend, app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def register_user(client: AsyncClient, username: str, password: str = "Password123!"):
    """Register a user and return (user_id, auth headers)."""
    response = await client.post(
        "/api/auth/register",
        json={"username": username, "email": f"{username}@example.com", "password": password},
    )
    assert response.status_code == 201, response.text
    data = response.json()
    return data["user"]["id"], {"Authorization": f"Bearer {data['access_token']}"}


@pytest.fixture
def register(client):
    return lambda username, password="Password123!": register_user(client, username, password)
