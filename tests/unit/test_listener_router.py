from __future__ import annotations

from pawperfect_mcp.client.router import ListenerRegistry, NotificationRouter
from pawperfect_mcp.domain.value_objects.enums import MessageType
from pawperfect_mcp.protocol.messages import McpMessage


def test_listeners_run_in_registration_order():
    registry = ListenerRegistry()
    calls = []
    registry.on("notification", lambda p: calls.append(("first", p)))
    registry.on("notification", lambda p: calls.append(("second", p)))

    assert registry.emit("notification", "hi") == 2
    assert calls == [("first", "hi"), ("second", "hi")]


def test_raising_listener_does_not_stop_the_others():
    registry = ListenerRegistry()
    calls = []

    def broken(_payload):
        raise RuntimeError("listener bug")

    registry.on("notification", broken)
    registry.on("notification", calls.append)

    assert registry.emit("notification", "x") == 1
    assert calls == ["x"]


def test_off_removes_only_that_registration():
    registry = ListenerRegistry()
    calls = []
    first = registry.on("booking_update", calls.append)
    registry.on("booking_update", calls.append)

    assert registry.off(first) is True
    assert registry.off(first) is False
    registry.emit("booking_update", 1)

    assert calls == [1]
    assert registry.count("booking_update") == 1


def test_listener_may_unregister_itself_while_dispatching():
    registry = ListenerRegistry()
    calls = []
    token = None

    def once(payload):
        calls.append(payload)
        registry.off(token)

    token = registry.on("notification", once)
    registry.emit("notification", 1)
    registry.emit("notification", 2)

    assert calls == [1]


def test_router_dispatches_payload_by_message_type():
    router = NotificationRouter()
    updates = []
    notes = []
    router.on(MessageType.BOOKING_UPDATE, updates.append)
    router.on("notification", notes.append)

    router.dispatch(McpMessage(type=MessageType.BOOKING_UPDATE, payload={"bookingId": "PP-1"}))

    assert updates == [{"bookingId": "PP-1"}]
    assert notes == []
    assert router.dispatch(McpMessage(type=MessageType.STATUS_UPDATE, payload={})) == 0
