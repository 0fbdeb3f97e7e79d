"""WebSocket envelope and MCP message models shared by server and client."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from pawperfect_mcp.domain.value_objects.enums import MessageType


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class WsInbound(BaseModel):
    """Client → Server."""

    type: str  # authenticate | mcp_request | subscribe_booking_updates | ping
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Server → Client."""

    type: str  # connected | auth_success | auth_error | mcp_message | mcp_response | pong | error
    data: dict[str, Any] = {}


class McpMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: MessageType
    payload: dict[str, Any] = {}
    timestamp: str = Field(default_factory=_now_iso)
    request_id: str | None = Field(default=None, alias="requestId")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class McpRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    operation: str
    data: dict[str, Any] = {}
    request_id: str = Field(alias="requestId")


def push_message(message_type: MessageType, payload: dict[str, Any]) -> WsOutbound:
    msg = McpMessage(type=message_type, payload=payload)
    return WsOutbound(type="mcp_message", data=msg.to_wire())


def success_response(request_id: str, data: Any) -> WsOutbound:
    msg = McpMessage(
        type=MessageType.RESPONSE,
        payload={"success": True, "data": data},
        request_id=request_id,
    )
    return WsOutbound(type="mcp_response", data=msg.to_wire())


def error_response(request_id: str, error: str) -> WsOutbound:
    msg = McpMessage(
        type=MessageType.RESPONSE,
        payload={"success": False, "error": error},
        request_id=request_id,
    )
    return WsOutbound(type="mcp_response", data=msg.to_wire())
