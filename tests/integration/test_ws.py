"""WebSocket protocol through TestClient."""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from pawperfect_mcp.app import create_app
from pawperfect_mcp.config import settings
from tests.conftest import make_booking_data


@pytest.fixture
def client():
    return TestClient(create_app())


def _connect(ws) -> str:
    hello = ws.receive_json()
    assert hello["type"] == "connected"
    return hello["data"]["connectionId"]


def _request(ws, operation: str, data: dict, request_id: str) -> tuple[dict, list[dict]]:
    """Send one request; return its response and any pushes that arrived first."""
    ws.send_json({"type": "mcp_request", "data": {"operation": operation, "data": data, "requestId": request_id}})
    pushes = []
    while True:
        frame = ws.receive_json()
        if frame["type"] == "mcp_response":
            return frame["data"], pushes
        pushes.append(frame)


def test_connected_and_ping(client):
    with client.websocket_connect("/ws/mcp") as ws:
        assert _connect(ws)
        ws.send_json({"type": "ping"})
        assert ws.receive_json()["type"] == "pong"


def test_authenticate_success_and_failure(client):
    with client.websocket_connect("/ws/mcp") as ws:
        _connect(ws)

        ws.send_json({"type": "authenticate", "data": {"adminKey": "wrong"}})
        failure = ws.receive_json()
        assert failure == {"type": "auth_error", "data": {"message": "Invalid admin key"}}

        ws.send_json({"type": "authenticate", "data": {"ownerId": 4}})
        success = ws.receive_json()
        assert success["type"] == "auth_success"
        assert success["data"]["role"] == "customer"
        assert success["data"]["ownerId"] == 4
        assert success["data"]["token"]


def test_request_response_envelope(client):
    with client.websocket_connect("/ws/mcp") as ws:
        _connect(ws)

        response, _ = _request(ws, "get_service", {"serviceId": "grooming-basic"}, "r-1")

        assert response["type"] == "response"
        assert response["requestId"] == "r-1"
        assert response["payload"]["success"] is True
        assert response["payload"]["data"]["service"]["name"] == "Basic Grooming"


def test_request_failure_is_reported_not_raised(client):
    with client.websocket_connect("/ws/mcp") as ws:
        _connect(ws)

        denied, _ = _request(ws, "get_all_owners", {}, "r-1")
        unknown, _ = _request(ws, "do_magic", {}, "r-2")

        assert denied["payload"] == {"success": False, "error": "Permission denied: Admin access required"}
        assert unknown["requestId"] == "r-2"
        assert unknown["payload"]["error"] == "Unsupported operation: do_magic"


def test_admin_sees_booking_push_before_response(client):
    with client.websocket_connect("/ws/mcp") as ws:
        _connect(ws)
        ws.send_json({"type": "authenticate", "data": {"adminKey": settings.MCP_ADMIN_KEY}})
        assert ws.receive_json()["type"] == "auth_success"

        response, pushes = _request(ws, "create_booking", make_booking_data(4, 5), "r-1")

        booking = response["payload"]["data"]["booking"]
        assert [p["data"]["type"] for p in pushes] == ["booking_update"]
        assert pushes[0]["data"]["payload"]["bookingId"] == booking["bookingId"]
        assert pushes[0]["data"]["payload"]["action"] == "created"


def test_customer_sees_status_push_for_own_pet(client):
    with client.websocket_connect("/ws/mcp") as ws:
        _connect(ws)
        ws.send_json({"type": "authenticate", "data": {"ownerId": 4}})
        assert ws.receive_json()["type"] == "auth_success"

        response, pushes = _request(ws, "update_pet", {"petId": 5, "name": "Rex"}, "r-1")

        assert response["payload"]["data"]["pet"]["name"] == "Rex"
        [push] = pushes
        assert push["data"]["type"] == "status_update"
        assert push["data"]["payload"]["action"] == "pet_updated"
        assert push["data"]["payload"]["pet"]["name"] == "Rex"


def test_subscribe_permissions(client):
    with client.websocket_connect("/ws/mcp") as ws:
        _connect(ws)

        ws.send_json({"type": "subscribe_booking_updates", "data": {"ownerId": 4}})
        denied = ws.receive_json()
        assert denied["type"] == "error"
        assert denied["data"]["code"] == "permission_denied"

        ws.send_json({"type": "authenticate", "data": {"ownerId": 4}})
        ws.receive_json()
        ws.send_json({"type": "subscribe_booking_updates", "data": {"ownerId": 4}})
        ws.send_json({"type": "ping"})
        # No error frame in between: the subscription was accepted.
        assert ws.receive_json()["type"] == "pong"


def test_invalid_and_unknown_frames(client):
    with client.websocket_connect("/ws/mcp") as ws:
        _connect(ws)

        ws.send_text("not json")
        assert ws.receive_json()["data"]["code"] == "invalid_payload"

        ws.send_json({"type": "mcp_request", "data": {"operation": "get_services"}})
        assert ws.receive_json()["data"]["code"] == "invalid_payload"

        ws.send_json({"type": "teleport"})
        unknown = ws.receive_json()
        assert unknown["data"] == {"code": "unknown_type", "type": "teleport"}
