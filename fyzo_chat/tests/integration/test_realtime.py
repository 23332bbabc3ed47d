import json
from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError

from fyzo_chat.api.realtime import RealtimeSession, extract_token, resolve_identity
from fyzo_chat.infrastructure import schemas

pytestmark = pytest.mark.asyncio


class FakeWebSocket:
    def __init__(self, frames=(), headers=None):
        self.sent = []
        self.incoming = list(frames)
        self.headers = headers or {}

    async def send_json(self, data):
        self.sent.append(data)

    async def receive(self):
        if not self.incoming:
            return {"type": "websocket.disconnect", "code": 1000}
        frame = self.incoming.pop(0)
        if isinstance(frame, bytes):
            return {"type": "websocket.receive", "bytes": frame}
        if not isinstance(frame, str):
            frame = json.dumps(frame)
        return {"type": "websocket.receive", "text": frame}

    def received(self, event):
        return [frame["data"] for frame in self.sent if frame["event"] == event]


@pytest.fixture
def connect(application):
    async def _connect(user, connection_id):
        websocket = FakeWebSocket()
        session = RealtimeSession(
            websocket,
            schemas.Identity(user_id=user.id, role=user.role),
            application.connection_registry,
            application.database,
            application.event_dispatcher,
            application.logger,
            connection_id=connection_id,
        )
        await session.open()
        return session, websocket

    return _connect


def frame(event, **data):
    return json.dumps({"event": event, "data": data})


async def test_connection_ready_and_presence(connect, test_chat, alice, bob):
    alice_session, alice_ws = await connect(alice, "a1")
    ready = alice_ws.received("connection:ready")[0]
    assert ready == {
        "connection_id": "a1",
        "user_id": alice.id,
        "chat_ids": [test_chat["id"]],
        "online_user_ids": [],
    }

    bob_session, bob_ws = await connect(bob, "b1")
    assert bob_ws.received("connection:ready")[0]["online_user_ids"] == [alice.id]
    assert alice_ws.received("user:online") == [{"user_id": bob.id}]
    assert bob_ws.received("user:online") == []

    await bob_session.close()
    assert alice_ws.received("user:offline") == [{"user_id": bob.id}]


async def test_presence_only_on_first_and_last_connection(connect, test_chat, alice, bob):
    _, bob_ws = await connect(bob, "b1")
    first, _ = await connect(alice, "a1")
    second, _ = await connect(alice, "a2")
    assert bob_ws.received("user:online") == [{"user_id": alice.id}]

    await first.close()
    assert bob_ws.received("user:offline") == []
    await second.close()
    assert bob_ws.received("user:offline") == [{"user_id": alice.id}]


async def test_send_over_socket(connect, application, test_chat, alice, bob):
    alice_session, alice_ws = await connect(alice, "a1")
    _, alice_other_ws = await connect(alice, "a2")
    _, bob_ws = await connect(bob, "b1")

    await alice_session.handle(frame("message:send", chat_id=test_chat["id"], content="hi"))

    sent = alice_ws.received("message:sent")
    assert len(sent) == 1
    assert sent[0]["content"] == "hi"
    assert alice_ws.received("message:new") == []
    assert [m["id"] for m in alice_other_ws.received("message:new")] == [sent[0]["id"]]
    assert [m["id"] for m in bob_ws.received("message:new")] == [sent[0]["id"]]


async def test_relay_persisted_message(
    connect, client, test_chat, alice, bob, alice_header
):
    alice_session, alice_ws = await connect(alice, "a1")
    _, bob_ws = await connect(bob, "b1")

    response = await client.post(
        f"/api/v1/chats/{test_chat['id']}/messages",
        headers={**alice_header, "X-Connection-Id": "a1"},
        json={"content": "via rest"},
    )
    message_id = response.json()["data"]["id"]
    assert [m["id"] for m in bob_ws.received("message:new")] == [message_id]

    await alice_session.handle(
        frame("message:send", chat_id=test_chat["id"], message_id=message_id)
    )
    assert alice_ws.received("message:sent")[0]["id"] == message_id
    assert [m["id"] for m in bob_ws.received("message:new")] == [message_id, message_id]


async def test_read_over_socket(connect, client, test_chat, alice, bob, alice_header):
    _, alice_ws = await connect(alice, "a1")
    bob_session, bob_ws = await connect(bob, "b1")

    response = await client.post(
        f"/api/v1/chats/{test_chat['id']}/messages",
        headers=alice_header,
        json={"content": "hi"},
    )
    message_id = response.json()["data"]["id"]
    assert alice_ws.received("message:new") == []

    await bob_session.handle(
        frame("message:read", chat_id=test_chat["id"], message_ids=[message_id])
    )

    read = alice_ws.received("message:read")
    assert len(read) == 1
    assert read[0]["user_id"] == bob.id
    assert read[0]["message_ids"] == [message_id]
    assert bob_ws.received("message:read") == []


async def test_delete_over_socket(connect, test_chat, alice, bob):
    alice_session, alice_ws = await connect(alice, "a1")
    bob_session, bob_ws = await connect(bob, "b1")
    await alice_session.handle(frame("message:send", chat_id=test_chat["id"], content="hi"))
    message_id = alice_ws.received("message:sent")[0]["id"]

    await bob_session.handle(
        frame("message:delete", chat_id=test_chat["id"], message_id=message_id, for_everyone=True)
    )
    assert bob_ws.received("error")[0]["status"] == 403

    await alice_session.handle(
        frame("message:delete", chat_id=test_chat["id"], message_id=message_id, for_everyone=True)
    )
    deleted = bob_ws.received("message:delete")
    assert deleted[0]["content"] == "This message was deleted"
    assert deleted[0]["for_everyone"] is True


async def test_typing(connect, client, test_chat, alice, bob, bob_header):
    alice_session, alice_ws = await connect(alice, "a1")
    _, bob_ws = await connect(bob, "b1")

    await alice_session.handle(frame("typing:start", chat_id=test_chat["id"]))
    await alice_session.handle(frame("typing:stop", chat_id=test_chat["id"]))
    assert bob_ws.received("typing:start") == [{"chat_id": test_chat["id"], "user_id": alice.id}]
    assert len(bob_ws.received("typing:stop")) == 1
    assert alice_ws.received("typing:start") == []

    await client.put(f"/api/v1/chats/{test_chat['id']}/block", headers=bob_header)
    await alice_session.handle(frame("typing:start", chat_id=test_chat["id"]))
    assert len(bob_ws.received("typing:start")) == 1


async def test_typing_requires_subscription(connect, test_chat, alice, bob):
    alice_session, _ = await connect(alice, "a1")
    _, bob_ws = await connect(bob, "b1")

    await alice_session.handle(frame("chat:leave", chat_id=test_chat["id"]))
    await alice_session.handle(frame("typing:start", chat_id=test_chat["id"]))
    assert bob_ws.received("typing:start") == []


async def test_join_and_leave(connect, application, test_chat, alice, carol):
    registry = application.connection_registry
    alice_session, alice_ws = await connect(alice, "a1")

    await alice_session.handle(frame("chat:leave", chat_id=test_chat["id"]))
    assert alice_ws.received("chat:left") == [{"chat_id": test_chat["id"]}]
    assert not registry.is_subscribed("a1", test_chat["id"])

    await alice_session.handle(frame("chat:join", chat_id=test_chat["id"]))
    assert alice_ws.received("chat:joined") == [{"chat_id": test_chat["id"]}]
    assert registry.is_subscribed("a1", test_chat["id"])

    await alice_session.handle(frame("chat:leave", chat_id=test_chat["id"]))
    await alice_session.handle(frame("user:join"))
    assert alice_ws.received("user:joined") == [{"chat_ids": [test_chat["id"]]}]
    assert registry.is_subscribed("a1", test_chat["id"])

    carol_session, carol_ws = await connect(carol, "c1")
    await carol_session.handle(frame("chat:join", chat_id=test_chat["id"]))
    assert carol_ws.received("error") == [
        {"event": "chat:join", "status": 403, "message": "Access denied"}
    ]
    assert not registry.is_subscribed("c1", test_chat["id"])

    await carol_session.handle(frame("chat:join", chat_id=9999))
    assert carol_ws.received("error")[-1]["status"] == 404


async def test_bad_frames_keep_connection_open(connect, test_chat, alice):
    session, websocket = await connect(alice, "a1")

    await session.handle("not json")
    await session.handle(frame("chat:dance"))
    await session.handle(frame("message:send", content="no chat id"))
    await session.handle(frame("message:send", chat_id=test_chat["id"], type="image"))

    errors = websocket.received("error")
    assert [e["status"] for e in errors] == [400, 400, 400, 400]
    assert errors[0]["event"] is None
    assert errors[1]["event"] == "chat:dance"


async def test_receive_loop_cleans_up(application, test_chat, alice):
    websocket = FakeWebSocket(
        frames=[{"event": "message:send", "data": {"chat_id": test_chat["id"], "content": "hi"}}]
    )
    session = RealtimeSession(
        websocket,
        schemas.Identity(user_id=alice.id, role=alice.role),
        application.connection_registry,
        application.database,
        application.event_dispatcher,
        application.logger,
    )

    await session.run()

    assert [f["event"] for f in websocket.sent] == ["connection:ready", "message:sent"]
    assert not application.connection_registry.is_online(alice.id)
    assert application.connection_registry.rooms == {}


async def test_receive_loop_accepts_binary_frames(application, test_chat, alice):
    websocket = FakeWebSocket(
        frames=[
            json.dumps({"event": "user:join", "data": {}}).encode(),
            b"\xff\xfe",
        ]
    )
    session = RealtimeSession(
        websocket,
        schemas.Identity(user_id=alice.id, role=alice.role),
        application.connection_registry,
        application.database,
        application.event_dispatcher,
        application.logger,
    )

    await session.run()

    assert websocket.received("user:joined") == [{"chat_ids": [test_chat["id"]]}]
    assert websocket.received("error") == [
        {"event": None, "status": 400, "message": "Malformed frame"}
    ]


async def test_failed_open_releases_connection(application, alice):
    registry = application.connection_registry
    database = Mock()
    database.session.side_effect = OperationalError(
        "SELECT 1", {}, Exception("database is locked")
    )
    session = RealtimeSession(
        FakeWebSocket(),
        schemas.Identity(user_id=alice.id, role=alice.role),
        registry,
        database,
        application.event_dispatcher,
        application.logger,
        connection_id="a1",
    )

    with pytest.raises(OperationalError):
        await session.run()

    assert not registry.is_online(alice.id)
    assert registry.connections == {}
    assert registry.rooms == {}


async def test_resolve_identity(application, alice, alice_token):
    identity = await resolve_identity(
        application.database, application.security_service, alice_token
    )
    assert identity == schemas.Identity(user_id=alice.id, role="user")

    assert (
        await resolve_identity(application.database, application.security_service, "bogus")
        is None
    )
    assert await resolve_identity(application.database, application.security_service, None) is None


async def test_extract_token():
    assert extract_token(FakeWebSocket(), "abc") == "abc"
    assert extract_token(FakeWebSocket(headers={"authorization": "Bearer xyz"}), None) == "xyz"
    assert extract_token(FakeWebSocket(headers={"authorization": "Basic xyz"}), None) is None
    assert extract_token(FakeWebSocket(), None) is None
