from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from pawperfect_mcp.application.dto.principal import Principal
from pawperfect_mcp.application.exceptions import AppError
from pawperfect_mcp.config import settings
from pawperfect_mcp.domain.entities.session import Session
from pawperfect_mcp.domain.value_objects.enums import ClientRole
from pawperfect_mcp.infrastructure.ws.manager import ConnectionManager
from pawperfect_mcp.protocol.messages import (
    McpRequest,
    WsInbound,
    WsOutbound,
    error_response,
    success_response,
)
from pawperfect_mcp.services import auth_service, operation_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


@router.websocket("/ws/mcp")
async def ws_mcp(websocket: WebSocket) -> None:
    manager: ConnectionManager = websocket.app.state.manager
    session = await manager.connect(websocket)
    cid = session.connection_id
    await manager.send(cid, WsOutbound(type="connected", data={"connectionId": cid}))

    heartbeat_task = asyncio.create_task(
        _heartbeat(websocket), name=f"ws-heartbeat-{cid}",
    )
    try:
        await _read_loop(websocket, manager, session)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for %s", cid)
    finally:
        heartbeat_task.cancel()
        manager.disconnect(cid)


async def _heartbeat(ws: WebSocket) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    try:
        while True:
            await asyncio.sleep(interval)
            await ws.send_text(WsOutbound(type="pong", data={}).model_dump_json())
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.debug("Heartbeat stopped", exc_info=True)


async def _read_loop(ws: WebSocket, manager: ConnectionManager, session: Session) -> None:
    cid = session.connection_id
    while True:
        raw = await ws.receive_text()
        try:
            msg = WsInbound.model_validate_json(raw)
        except PydanticValidationError:
            await manager.send(cid, WsOutbound(type="error", data={"code": "invalid_payload"}))
            continue

        if msg.type == "ping":
            await manager.send(cid, WsOutbound(type="pong", data={}))

        elif msg.type == "authenticate":
            await _handle_authenticate(ws, manager, session, msg.data)

        elif msg.type == "mcp_request":
            await _handle_request(ws, manager, session, msg.data)

        elif msg.type == "subscribe_booking_updates":
            await _handle_subscribe(manager, session, msg.data)

        else:
            await manager.send(cid, WsOutbound(type="error", data={"code": "unknown_type", "type": msg.type}))


async def _handle_authenticate(
    ws: WebSocket, manager: ConnectionManager, session: Session, data: dict[str, Any],
) -> None:
    state = ws.app.state
    result = await auth_service.authenticate(session, data, state.credentials, state.tokens)
    if result.success:
        payload = {"role": result.role, "token": result.token, "ownerId": result.owner_id}
        await manager.send(session.connection_id, WsOutbound(type="auth_success", data=payload))
    else:
        await manager.send(
            session.connection_id, WsOutbound(type="auth_error", data={"message": result.error or "Authentication failed"}),
        )


async def _handle_request(
    ws: WebSocket, manager: ConnectionManager, session: Session, data: dict[str, Any],
) -> None:
    cid = session.connection_id
    try:
        request = McpRequest.model_validate(data)
    except PydanticValidationError:
        await manager.send(cid, WsOutbound(type="error", data={"code": "invalid_payload"}))
        return

    logger.info("MCP request received from %s: %s", cid, request.operation)
    principal = Principal(role=session.role, owner_id=session.owner_id)
    state = ws.app.state
    try:
        envelope = await operation_service.execute(
            request.operation, request.data, principal, state.backend, state.forwarder,
        )
    except AppError as exc:
        await manager.send(cid, error_response(request.request_id, exc.detail))
        return
    except Exception as exc:
        logger.exception("MCP operation %s failed for %s", request.operation, cid)
        await manager.send(cid, error_response(request.request_id, f"Failed to {request.operation}: {exc}"))
        return
    await manager.send(cid, success_response(request.request_id, envelope))


async def _handle_subscribe(manager: ConnectionManager, session: Session, data: dict[str, Any]) -> None:
    owner_id = data.get("ownerId")
    allowed = session.role == ClientRole.ADMIN or (
        session.role == ClientRole.CUSTOMER and owner_id is not None and str(owner_id) == str(session.owner_id)
    )
    if not allowed:
        await manager.send(
            session.connection_id,
            WsOutbound(type="error", data={"code": "permission_denied", "message": "Permission denied"}),
        )
        return
    if data.get("bookingId"):
        room = f"booking:{data['bookingId']}"
    elif owner_id is not None:
        room = f"owner:{owner_id}"
    else:
        return
    manager.join(session.connection_id, room)
    logger.info("Client %s subscribed to %s", session.connection_id, room)
