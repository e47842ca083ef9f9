"""
Notification emitter and notification API tests.
"""
import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import OperationalError

from app.core.security import get_password_hash
from app.db.enums import NotificationType
from app.db.models import Notification, Post, User
from app.services.notifications import NotificationService


async def _create_user(session, username):
    user = User(username=username, email=f"{username}@example.com", hashed_password=get_password_hash("secret1"))
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


@pytest.fixture
async def users(test_session):
    author = await _create_user(test_session, "author")
    fan = await _create_user(test_session, "fan")
    return {"author": author, "fan": fan}


@pytest.fixture
async def post(test_session, users):
    post = Post(author_id=users["author"].id, title="Hello", content="First post")
    test_session.add(post)
    await test_session.commit()
    await test_session.refresh(post)
    return post


async def _notification_count(session) -> int:
    result = await session.execute(select(func.count(Notification.id)))
    return result.scalar()


class TestNotify:

    @pytest.mark.anyio
    async def test_self_notification_is_skipped(self, test_session, realtime, socket_server, users, post):
        author = users["author"]

        result = await realtime.notifier.notify(test_session, author.id, author.id, "like", post_id=post.id)

        assert result is None
        assert await _notification_count(test_session) == 0
        assert socket_server.emitted == []

    @pytest.mark.anyio
    async def test_like_persists_unread_and_emits_once(self, test_session, realtime, socket_server, users, post):
        author, fan = users["author"], users["fan"]

        notification = await realtime.notifier.notify(
            test_session, author.id, fan.id, NotificationType.like, post_id=post.id
        )

        assert notification is not None
        assert notification.is_read is False
        assert notification.actor_id == fan.id
        assert await _notification_count(test_session) == 1

        assert socket_server.emitted == [
            ("notification", {"id": notification.id, "type": "like", "post": post.id}, f"user:{author.id}")
        ]

    @pytest.mark.anyio
    async def test_payload_omits_post_when_absent(self, test_session, realtime, socket_server, users):
        author, fan = users["author"], users["fan"]

        notification = await realtime.notifier.notify(test_session, author.id, fan.id, "message")

        payload, room = socket_server.emitted_events("notification")[0]
        assert payload == {"id": notification.id, "type": "message"}
        assert room == f"user:{author.id}"

    @pytest.mark.anyio
    async def test_connected_sessions_receive_the_push(self, test_session, realtime, socket_server, users, post):
        author, fan = users["author"], users["fan"]
        await socket_server.connect("phone")
        await socket_server.connect("laptop")
        await socket_server.send("phone", "join", str(author.id))
        await socket_server.send("laptop", "join", author.id)

        await realtime.notifier.notify(test_session, author.id, fan.id, "comment", post_id=post.id)

        assert len(socket_server.events("phone", "notification")) == 1
        assert len(socket_server.events("laptop", "notification")) == 1

    @pytest.mark.anyio
    async def test_unknown_type_is_rejected(self, test_session, realtime, users):
        with pytest.raises(ValueError):
            await realtime.notifier.notify(test_session, users["author"].id, users["fan"].id, "follow")

    @pytest.mark.anyio
    async def test_persistence_failure_emits_nothing(self, realtime, socket_server):
        class FailingSession:
            rolled_back = False

            def add(self, obj):
                pass

            async def commit(self):
                raise OperationalError("INSERT INTO notifications", {}, Exception("database is down"))

            async def rollback(self):
                self.rolled_back = True

        session = FailingSession()

        result = await realtime.notifier.notify(session, 1, 2, "like", post_id=3)

        assert result is None
        assert session.rolled_back is True
        assert socket_server.emitted == []


class TestNotificationService:

    @pytest.mark.anyio
    async def test_mark_as_read_only_for_owner(self, test_session, users):
        author, fan = users["author"], users["fan"]
        service = NotificationService(test_session)
        notification = await service.create_notification(author.id, NotificationType.comment, fan.id)

        assert await service.mark_as_read(notification.id, fan.id) is None
        updated = await service.mark_as_read(notification.id, author.id)

        assert updated.is_read is True
        assert await service.get_counts(author.id) == {"unread": 0, "total": 1}


class TestNotificationAPI:

    @pytest.mark.anyio
    async def test_like_and_comment_show_up_in_listing(self, client, register, socket_server):
        author_id, author_headers = await register("writer")
        fan_id, fan_headers = await register("reader")

        created = await client.post("/api/posts/", json={"title": "T", "content": "C"}, headers=author_headers)
        post_id = created.json()["id"]

        await client.post(f"/api/posts/{post_id}/like", headers=fan_headers)
        await client.post(f"/api/comments/post/{post_id}", json={"content": "nice"}, headers=fan_headers)

        response = await client.get("/api/notifications/", headers=author_headers)
        assert response.status_code == 200
        data = response.json()
        assert [n["type"] for n in data] == ["comment", "like"]
        assert all(n["read"] is False for n in data)
        assert data[0]["actor"]["username"] == "reader"
        assert data[0]["post"] == {"id": post_id, "title": "T"}

        count = await client.get("/api/notifications/count", headers=author_headers)
        assert count.json() == {"unread": 2, "total": 2}

        # The fan has none
        empty = await client.get("/api/notifications/", headers=fan_headers)
        assert empty.json() == []

    @pytest.mark.anyio
    async def test_mark_read_and_read_all(self, client, register, socket_server):
        author_id, author_headers = await register("writer")
        fan_id, fan_headers = await register("reader")
        created = await client.post("/api/posts/", json={"title": "T"}, headers=author_headers)
        post_id = created.json()["id"]
        await client.post(f"/api/posts/{post_id}/like", headers=fan_headers)
        await client.post(f"/api/comments/post/{post_id}", json={"content": "hi"}, headers=fan_headers)

        listing = (await client.get("/api/notifications/", headers=author_headers)).json()
        first_id = listing[0]["id"]

        # Someone else's notification is not found
        forbidden = await client.post(f"/api/notifications/{first_id}/read", headers=fan_headers)
        assert forbidden.status_code == 404

        marked = await client.post(f"/api/notifications/{first_id}/read", headers=author_headers)
        assert marked.status_code == 200
        assert marked.json()["read"] is True
        assert ({"id": first_id}, f"user:{author_id}") in socket_server.emitted_events("notification:read")

        read_all = await client.post("/api/notifications/read-all", headers=author_headers)
        assert read_all.json() == {"success": True, "updated": 1}
        assert socket_server.emitted_events("notification:all_read") == [({}, f"user:{author_id}")]

        count = await client.get("/api/notifications/count", headers=author_headers)
        assert count.json() == {"unread": 0, "total": 2}

    @pytest.mark.anyio
    async def test_requires_auth(self, client):
        response = await client.get("/api/notifications/")
        assert response.status_code in (401, 403)
