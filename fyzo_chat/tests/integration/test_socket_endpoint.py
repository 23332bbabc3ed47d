import json

import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

WS_URL = "/api/v1/ws"


@pytest.fixture
def ws_client(app):
    # no context manager: the lifespan would try to reach a real Redis
    return TestClient(app)


def test_socket_rejects_bad_token(ws_client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with ws_client.websocket_connect(f"{WS_URL}?token=bogus"):
            pass
    assert exc_info.value.code == 1008


def test_socket_rejects_missing_token(ws_client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with ws_client.websocket_connect(WS_URL):
            pass
    assert exc_info.value.code == 1008


def test_socket_accepts_query_token(ws_client, test_chat, alice, alice_token):
    with ws_client.websocket_connect(f"{WS_URL}?token={alice_token}") as websocket:
        ready = websocket.receive_json()

    assert ready["event"] == "connection:ready"
    assert ready["data"]["user_id"] == alice.id
    assert ready["data"]["chat_ids"] == [test_chat["id"]]
    assert ready["data"]["online_user_ids"] == []


def test_socket_accepts_bearer_header(ws_client, test_chat, alice, alice_token):
    with ws_client.websocket_connect(
        WS_URL, headers={"Authorization": f"Bearer {alice_token}"}
    ) as websocket:
        assert websocket.receive_json()["event"] == "connection:ready"

        websocket.send_bytes(json.dumps({"event": "user:join", "data": {}}).encode())
        joined = websocket.receive_json()
        assert joined == {"event": "user:joined", "data": {"chat_ids": [test_chat["id"]]}}

        websocket.send_text("not json")
        error = websocket.receive_json()
        assert error["event"] == "error"
        assert error["data"]["status"] == 400
