"""Client side of the MCP protocol."""
from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from pawperfect_mcp.application.dto.events import AuthResult
from pawperfect_mcp.application.exceptions import TransportError, ValidationError
from pawperfect_mcp.client.correlator import RequestCorrelator
from pawperfect_mcp.client.fallback import HttpFallback
from pawperfect_mcp.client.router import AUTHENTICATION, CONNECTION, Listener, ListenerToken, NotificationRouter
from pawperfect_mcp.client.session import ClientSession
from pawperfect_mcp.client.transport import PersistentTransport, TransportFactory, websocket_factory
from pawperfect_mcp.config import settings
from pawperfect_mcp.domain.value_objects.enums import ClientRole, ConnectionState, OperationType
from pawperfect_mcp.protocol.catalog import entry_for
from pawperfect_mcp.protocol.messages import McpMessage

logger = logging.getLogger(__name__)


def _ws_url(base_url: str) -> str:
    if base_url.startswith("https://"):
        return "wss://" + base_url[len("https://"):].rstrip("/") + "/ws/mcp"
    if base_url.startswith("http://"):
        return "ws://" + base_url[len("http://"):].rstrip("/") + "/ws/mcp"
    return base_url.rstrip("/") + "/ws/mcp"


class McpClient:
    """Issues operations, authenticates, and fans out pushed messages.

    Operations go over the persistent connection while it is up and over
    one-shot HTTP calls otherwise; both paths resolve to the same envelope.

    Usage::

        async with McpClient("http://localhost:8000") as client:
            await client.connect()
            await client.authenticate(owner_id=1)
            services = await client.invoke("get_services")
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        http: httpx.AsyncClient | None = None,
        transport_factory: TransportFactory | None = None,
        request_timeout: float = settings.MCP_REQUEST_TIMEOUT,
        auth_timeout: float = 10.0,
    ) -> None:
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(base_url=base_url)
        self._transport_factory = transport_factory or websocket_factory(_ws_url(base_url))
        self._auth_timeout = auth_timeout

        self.session = ClientSession()
        self.router = NotificationRouter()
        self._correlator = RequestCorrelator(timeout=request_timeout)
        self._fallback = HttpFallback(self._http, self.session, self._reauthenticate, timeout=request_timeout)

        self._transport: PersistentTransport | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._auth_lock = asyncio.Lock()
        self._auth_waiter: asyncio.Future[AuthResult] | None = None

    async def __aenter__(self) -> "McpClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # State

    @property
    def connected(self) -> bool:
        return self._transport is not None and self.session.state == ConnectionState.CONNECTED

    @property
    def role(self) -> ClientRole:
        return self.session.role

    @property
    def pending(self) -> int:
        return len(self._correlator)

    def on(self, kind: str, listener: Listener) -> ListenerToken:
        return self.router.on(kind, listener)

    def off(self, token: ListenerToken) -> bool:
        return self.router.off(token)

    # Lifecycle

    async def connect(self) -> bool:
        """Open the persistent connection.

        Returns False when it cannot be opened; operations then use the
        one-shot path.
        """
        if self._transport is not None:
            return True
        self.session.begin_connect()
        try:
            transport = await self._transport_factory()
        except TransportError as exc:
            logger.warning("Persistent connection unavailable, using HTTP fallback: %s", exc)
            self.session.failed()
            self.router.emit(CONNECTION, ConnectionState.ERROR)
            return False
        self._transport = transport
        self.session.opened()
        self._reader_task = asyncio.create_task(self._read_loop(transport), name="mcp-client-reader")
        self.router.emit(CONNECTION, ConnectionState.CONNECTED)
        return True

    async def disconnect(self) -> None:
        transport, self._transport = self._transport, None
        reader, self._reader_task = self._reader_task, None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader
        if transport is not None:
            with contextlib.suppress(Exception):
                await transport.close()
        self._settle_auth_waiter(AuthResult(False, ClientRole.GUEST, error="Disconnected"))
        was_open = self.session.state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED)
        self.session.closed()
        if was_open:
            self.router.emit(CONNECTION, ConnectionState.DISCONNECTED)

    async def aclose(self) -> None:
        await self.disconnect()
        self._correlator.reject_all(TransportError("Client closed"))
        if self._owns_http:
            await self._http.aclose()

    # Operations

    async def invoke(self, operation: OperationType | str, data: dict[str, Any] | None = None) -> dict[str, Any]:
        entry = entry_for(operation)
        data = dict(data or {})
        # Same parameter checks on both paths.
        entry.fallback_request(data)

        transport = self._transport
        if transport is not None and self.connected:
            pending = self._correlator.register(entry.operation)
            frame = {
                "type": "mcp_request",
                "data": {"operation": entry.operation.value, "data": data, "requestId": pending.request_id},
            }
            try:
                await transport.send(frame)
            except TransportError as exc:
                logger.info("Send failed for %s: %s", entry.operation, exc)
                self._correlator.reject(pending.request_id, exc)
            return await pending.future
        # One-shot path only while no persistent connection is established.
        return await self._fallback.call(entry.operation, data)

    async def authenticate(self, *, admin_key: str | None = None, owner_id: int | None = None) -> AuthResult:
        if (admin_key is None) == (owner_id is None):
            raise ValidationError("Provide exactly one of admin_key or owner_id")
        credential: dict[str, Any] = {"adminKey": admin_key} if admin_key is not None else {"ownerId": owner_id}
        async with self._auth_lock:
            self.session.credential = credential
            result = await self._authenticate(credential)
            self.session.apply(result)
        self.router.emit(AUTHENTICATION, result)
        return result

    async def subscribe_booking_updates(
        self, *, booking_id: str | None = None, owner_id: int | None = None,
    ) -> bool:
        transport = self._transport
        if transport is None or not self.connected:
            logger.info("No persistent connection; booking updates are fetched on demand")
            return False
        data: dict[str, Any] = {}
        if booking_id is not None:
            data["bookingId"] = booking_id
        if owner_id is not None:
            data["ownerId"] = owner_id
        await transport.send({"type": "subscribe_booking_updates", "data": data})
        return True

    async def _authenticate(self, credential: dict[str, Any]) -> AuthResult:
        transport = self._transport
        if transport is None or not self.connected:
            try:
                return await self._fallback.authenticate(credential)
            except TransportError as exc:
                return AuthResult(False, self.session.role, self.session.owner_id, error=str(exc))

        waiter: asyncio.Future[AuthResult] = asyncio.get_running_loop().create_future()
        self._auth_waiter = waiter
        try:
            await transport.send({"type": "authenticate", "data": credential})
            return await asyncio.wait_for(waiter, self._auth_timeout)
        except asyncio.TimeoutError:
            return AuthResult(False, self.session.role, self.session.owner_id, error="Authentication timed out")
        except TransportError as exc:
            return AuthResult(False, self.session.role, self.session.owner_id, error=str(exc))
        finally:
            self._auth_waiter = None

    async def _reauthenticate(self) -> bool:
        credential = self.session.credential
        if credential is None:
            return False
        result = await self._fallback.authenticate(credential)
        self.session.apply(result)
        self.router.emit(AUTHENTICATION, result)
        return result.success

    def _settle_auth_waiter(self, result: AuthResult) -> None:
        waiter = self._auth_waiter
        if waiter is not None and not waiter.done():
            waiter.set_result(result)

    # Inbound

    async def _read_loop(self, transport: PersistentTransport) -> None:
        try:
            while True:
                raw = await transport.recv()
                self._handle_frame(raw)
        except TransportError as exc:
            logger.info("Persistent connection lost: %s", exc)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("MCP client reader crashed")
        if self._transport is transport:
            self._reader_task = None
            await self.disconnect()

    def _handle_frame(self, raw: str) -> None:
        try:
            frame = json.loads(raw)
            kind = frame["type"]
            data = frame.get("data") or {}
        except (ValueError, KeyError, TypeError, AttributeError):
            logger.warning("Dropping malformed frame: %.200s", raw)
            return

        if kind in ("mcp_response", "mcp_message"):
            try:
                message = McpMessage.model_validate(data)
            except PydanticValidationError:
                logger.warning("Dropping malformed %s: %.200s", kind, raw)
                return
            if kind == "mcp_response":
                self._correlator.resolve(message.request_id, message.payload)
            else:
                self.router.dispatch(message)
        elif kind == "auth_success":
            owner_id = data.get("ownerId")
            try:
                role = ClientRole(data.get("role", ClientRole.GUEST))
            except ValueError:
                logger.warning("Dropping auth_success with unknown role: %.200s", raw)
                return
            self._settle_auth_waiter(AuthResult(
                success=True,
                role=role,
                owner_id=int(owner_id) if owner_id is not None else None,
                token=data.get("token"),
            ))
        elif kind == "auth_error":
            self._settle_auth_waiter(AuthResult(
                False, self.session.role, self.session.owner_id, error=data.get("message", "Authentication failed"),
            ))
        elif kind == "connected":
            self.session.connection_id = data.get("connectionId")
        elif kind == "error":
            self.router.emit("error", data)
        elif kind != "pong":
            logger.debug("Ignoring frame of type %s", kind)
