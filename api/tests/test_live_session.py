from __future__ import annotations

import pytest
from starlette.websockets import WebSocketDisconnect

EMPLOYER_ID = 101
WORKER_ID = 202


def test_live_session_receives_pushed_messages(api_client, auth_headers, registry) -> None:
    with api_client.websocket_connect("/ws?token=worker-token") as websocket:
        assert registry.get(WORKER_ID) is not None

        response = api_client.post(
            "/messages",
            json={"receiver_id": WORKER_ID, "payload": {"text": "Site opens at 7."}},
            headers=auth_headers("employer-token"),
        )
        assert response.status_code == 201

        event = websocket.receive_json()
        assert event["event"] == "message_received"
        assert event["data"]["payload"]["text"] == "Site opens at 7."
        assert event["data"]["sender_id"] == EMPLOYER_ID

    assert registry.get(WORKER_ID) is None


def test_live_session_answers_ping(api_client) -> None:
    with api_client.websocket_connect("/ws?token=employer-token") as websocket:
        websocket.send_text("ping")
        assert websocket.receive_json() == {"event": "pong", "data": {}}


def test_newer_session_replaces_older_one(api_client, registry) -> None:
    with api_client.websocket_connect("/ws?token=worker-token"):
        first = registry.get(WORKER_ID)
        with api_client.websocket_connect("/ws?token=worker-token"):
            second = registry.get(WORKER_ID)
            assert second is not first
        assert registry.get(WORKER_ID) is None
    assert len(registry) == 0


@pytest.mark.parametrize("path", ["/ws", "/ws?token=bogus", "/ws?token=unlinked-token"])
def test_live_session_rejects_unauthenticated(api_client, registry, path: str) -> None:
    with pytest.raises(WebSocketDisconnect) as excinfo:
        with api_client.websocket_connect(path) as websocket:
            websocket.receive_text()
    assert excinfo.value.code == 1008
    assert len(registry) == 0
