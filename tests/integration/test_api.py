"""Integration tests for the HTTP and websocket surfaces (in-memory store via dependency override)."""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from chat_relay.api.deps import get_registry, get_store, get_typing_relay
from chat_relay.app import create_app
from chat_relay.application.exceptions import TransportError
from chat_relay.infrastructure.ws.registry import SessionRegistry
from chat_relay.services.presence_service import TypingRelay
from tests.conftest import FakeMessageStore, make_message


@pytest.fixture
def app_with_store():
    app = create_app()
    store = FakeMessageStore()
    registry = SessionRegistry()
    relay = TypingRelay(registry)

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_typing_relay] = lambda: relay
    return app, store, registry


@pytest.fixture
def client(app_with_store):
    app, _, _ = app_with_store
    # one portal for every request and socket, so sessions share an event loop
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture
def store(app_with_store):
    _, store, _ = app_with_store
    return store


@pytest.fixture
def registry(app_with_store):
    _, _, registry = app_with_store
    return registry


def chat(text: str | None, ack_id: str, username: str = "alice") -> dict:
    return {"type": "chat message", "data": {"username": username, "text": text}, "ack_id": ack_id}


# -- HTTP ---------------------------------------------------------------------


def test_health_healthy(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["services"]["database"] == "connected"
    assert body["services"]["websocket"] == {"status": "active", "connections": 0}


def test_health_degraded_when_store_down(client, store):
    store.fail = True

    resp = client.get("/health")

    assert resp.status_code == 503
    assert resp.json()["status"] == "degraded"
    assert resp.json()["services"]["database"] == "disconnected"


def test_list_messages_oldest_first(client, store):
    store.records.append(make_message(text="hi"))

    resp = client.get("/api/messages")

    assert resp.status_code == 200
    [row] = resp.json()
    assert row["text"] == "hi"
    assert row["username"] == "alice"
    assert "createdAt" in row
    assert resp.headers["X-Request-ID"]


def test_list_messages_limit_bounds(client):
    assert client.get("/api/messages", params={"limit": 0}).status_code == 422
    assert client.get("/api/messages", params={"limit": 201}).status_code == 422


def test_post_message(client, store):
    resp = client.post("/api/messages", json={"username": "bob", "text": " hey "})

    assert resp.status_code == 201
    assert resp.json()["text"] == "hey"
    assert len(store.records) == 1


def test_post_blank_message_is_422(client, store):
    resp = client.post("/api/messages", json={"username": "bob", "text": "  "})

    assert resp.status_code == 422
    assert resp.json() == {"detail": "Message text cannot be empty", "code": "VALIDATION_ERROR"}
    assert store.records == []


def test_post_unstorable_message_is_422(client, store):
    resp = client.post("/api/messages", json={"username": "x" * 256, "text": "hey"})

    assert resp.status_code == 422
    assert resp.json()["code"] == "VALIDATION_ERROR"
    assert store.records == []


def test_post_with_store_down_is_500(client, store):
    store.fail = True

    resp = client.post("/api/messages", json={"username": "bob", "text": "hey"})

    assert resp.status_code == 500
    assert resp.json()["code"] == "PERSISTENCE_ERROR"


def test_post_broadcasts_to_sockets(client):
    with client.websocket_connect("/ws") as ws:
        client.post("/api/messages", json={"username": "bob", "text": "from rest"})

        frame = ws.receive_json()
        assert frame["type"] == "chat message"
        assert frame["data"]["text"] == "from rest"
        assert "isOwnMessage" not in frame["data"]


# -- WebSocket ----------------------------------------------------------------


def test_chat_message_acked_and_broadcast(client, store):
    with client.websocket_connect("/ws") as a, client.websocket_connect("/ws") as b:
        a.send_json(chat("hello", "temp-1#1"))

        own = a.receive_json()
        assert own["type"] == "chat message"
        assert own["data"]["isOwnMessage"] is True

        ack = a.receive_json()
        assert ack["type"] == "ack"
        assert ack["ack_id"] == "temp-1#1"
        assert ack["data"]["status"] == "success"
        assert ack["data"]["code"] == "MESSAGE_SENT"
        assert ack["data"]["messageId"] == str(store.records[0].id)
        assert "serverTime" in ack["data"]

        public = b.receive_json()
        assert public["type"] == "chat message"
        assert public["data"]["id"] == ack["data"]["messageId"]
        assert public["data"]["isBroadcast"] is True
        assert "isOwnMessage" not in public["data"]


def test_blank_message_rejected_without_broadcast(client, store):
    with client.websocket_connect("/ws") as a, client.websocket_connect("/ws") as b:
        a.send_json(chat("   ", "temp-1#1"))

        ack = a.receive_json()
        assert ack["type"] == "ack"
        assert ack["data"] == {
            "status": "error",
            "message": "Message text cannot be empty",
            "code": "VALIDATION_ERROR",
        }
        assert store.records == []

        a.send_json(chat("real one", "temp-2#1"))
        # the first frame b sees is the valid message
        assert b.receive_json()["data"]["text"] == "real one"


def test_persistence_failure_then_retry(client, store):
    with client.websocket_connect("/ws") as a, client.websocket_connect("/ws") as b:
        store.fail = True
        a.send_json(chat("hello", "temp-1#1"))

        ack = a.receive_json()
        assert ack["ack_id"] == "temp-1#1"
        assert ack["data"]["code"] == "PERSISTENCE_ERROR"

        store.fail = False
        a.send_json(chat("hello", "temp-1#2"))

        assert a.receive_json()["data"]["isOwnMessage"] is True
        ack = a.receive_json()
        assert ack["ack_id"] == "temp-1#2"
        assert ack["data"]["status"] == "success"

        assert b.receive_json()["data"]["text"] == "hello"
        assert len(store.records) == 1


def test_typing_relay_and_disconnect_clears(client):
    with client.websocket_connect("/ws") as b:
        with client.websocket_connect("/ws") as a:
            a.send_json({"type": "typing", "data": {"username": "alice"}})
            frame = b.receive_json()
            assert frame == {"type": "user_typing", "data": {"user": "alice", "isTyping": True}}

        # alice dropped mid-burst
        frame = b.receive_json()
        assert frame == {"type": "user_typing", "data": {"user": "alice", "isTyping": False}}


def test_ping_and_bad_frames(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "ping"})
        assert ws.receive_json()["type"] == "pong"

        ws.send_text("not json")
        assert ws.receive_json() == {"type": "error", "data": {"code": "invalid_payload"}}

        ws.send_json({"type": "dance"})
        frame = ws.receive_json()
        assert frame["type"] == "error"
        assert frame["data"] == {"code": "unknown_type", "type": "dance"}


def test_reconnect_leaves_a_single_session(client, registry):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "ping"})
        assert ws.receive_json()["type"] == "pong"
        assert registry.count() == 1

    assert registry.count() == 0

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "ping"})
        assert ws.receive_json()["type"] == "pong"

        assert registry.count() == 1
        health = client.get("/health").json()
        assert health["services"]["websocket"]["connections"] == 1


def test_nul_in_text_is_rejected_over_socket(client, store):
    with client.websocket_connect("/ws") as ws:
        ws.send_json(chat("bad\x00byte", "temp-1#1"))

        ack = ws.receive_json()
        assert ack["data"]["code"] == "VALIDATION_ERROR"
        assert store.records == []


def test_other_app_errors_fall_back_to_500(app_with_store):
    app, _, _ = app_with_store

    @app.get("/boom")
    async def boom():
        raise TransportError("peer went away")

    assert TransportError not in app.exception_handlers
    with TestClient(app, raise_server_exceptions=False) as c:
        resp = c.get("/boom")

    assert resp.status_code == 500
    assert resp.json() == {"detail": "peer went away", "code": "TRANSPORT_ERROR"}
