"""In-process WebSocket connection manager."""
from __future__ import annotations

import logging
import uuid
from typing import Callable

from fastapi import WebSocket

from pawperfect_mcp.domain.entities.session import Session
from pawperfect_mcp.domain.value_objects.enums import ConnectionState
from pawperfect_mcp.protocol.messages import WsOutbound

logger = logging.getLogger(__name__)

SessionFilter = Callable[[Session], bool]


class ConnectionManager:
    """Tracks one Session per WebSocket connection and its room memberships."""

    def __init__(self) -> None:
        self._connections: dict[str, WebSocket] = {}
        self._sessions: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    async def connect(self, ws: WebSocket) -> Session:
        await ws.accept()
        session = Session(connection_id=uuid.uuid4().hex)
        self._connections[session.connection_id] = ws
        self._sessions[session.connection_id] = session
        logger.info("New client connected: %s (total=%d)", session.connection_id, len(self._sessions))
        return session

    def disconnect(self, connection_id: str) -> None:
        self._connections.pop(connection_id, None)
        session = self._sessions.pop(connection_id, None)
        if session is not None:
            session.reset()
            session.state = ConnectionState.DISCONNECTED
            logger.info("Client disconnected: %s", connection_id)

    def get(self, connection_id: str) -> Session | None:
        return self._sessions.get(connection_id)

    def sessions(self) -> list[Session]:
        return list(self._sessions.values())

    def join(self, connection_id: str, room: str) -> None:
        session = self._sessions.get(connection_id)
        if session is not None:
            session.rooms.add(room)

    async def send(self, connection_id: str, payload: WsOutbound) -> None:
        ws = self._connections.get(connection_id)
        if ws is None:
            return
        try:
            await ws.send_text(payload.model_dump_json())
        except Exception:
            logger.debug("Send to %s failed, dropping connection", connection_id, exc_info=True)
            self.disconnect(connection_id)

    async def broadcast(self, payload: WsOutbound, accept: SessionFilter) -> int:
        """Send to every session the filter accepts. Returns the delivery count."""
        raw = payload.model_dump_json()
        dead: list[str] = []
        delivered = 0
        for connection_id, session in list(self._sessions.items()):
            if not accept(session):
                continue
            ws = self._connections.get(connection_id)
            if ws is None:
                continue
            try:
                await ws.send_text(raw)
                delivered += 1
            except Exception:
                dead.append(connection_id)
        for connection_id in dead:
            self.disconnect(connection_id)
        return delivered
