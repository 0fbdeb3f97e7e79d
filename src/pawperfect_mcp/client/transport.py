"""Persistent bidirectional channel used by ``McpClient``."""
from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Protocol

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from pawperfect_mcp.application.exceptions import TransportError

logger = logging.getLogger(__name__)


class PersistentTransport(Protocol):
    """Frames are JSON objects ``{"type", "data"}``.

    ``recv`` raises TransportError once the channel is gone.
    """

    async def send(self, frame: dict[str, Any]) -> None: ...

    async def recv(self) -> str: ...

    async def close(self) -> None: ...


TransportFactory = Callable[[], Awaitable[PersistentTransport]]


class WebSocketTransport:
    def __init__(self, ws: Any) -> None:
        self._ws = ws

    @classmethod
    async def open(
        cls, url: str, *, ping_interval: float | None = 30, ping_timeout: float | None = 10,
    ) -> "WebSocketTransport":
        try:
            ws = await websockets.connect(url, ping_interval=ping_interval, ping_timeout=ping_timeout)
        except (OSError, WebSocketException) as exc:
            raise TransportError(f"Could not connect to {url}: {exc}") from exc
        logger.info("WebSocket connected to %s", url)
        return cls(ws)

    async def send(self, frame: dict[str, Any]) -> None:
        try:
            await self._ws.send(json.dumps(frame, default=str))
        except ConnectionClosed as exc:
            raise TransportError("WebSocket closed") from exc

    async def recv(self) -> str:
        try:
            raw = await self._ws.recv()
        except ConnectionClosed as exc:
            raise TransportError("WebSocket closed") from exc
        return raw.decode() if isinstance(raw, bytes) else raw

    async def close(self) -> None:
        await self._ws.close()


def websocket_factory(url: str) -> TransportFactory:
    async def factory() -> PersistentTransport:
        return await WebSocketTransport.open(url)
    return factory
