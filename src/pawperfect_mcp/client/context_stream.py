"""Client for the ``text/event-stream`` context endpoint."""
from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence

import httpx

from pawperfect_mcp.application.exceptions import (
    OperationError,
    ProtocolError,
    RequestTimeoutError,
    TransportError,
)
from pawperfect_mcp.client.router import Listener, ListenerRegistry, ListenerToken
from pawperfect_mcp.config import settings
from pawperfect_mcp.domain.value_objects.enums import FrameKind, StreamState
from pawperfect_mcp.protocol.sse import ChunkDecoder, ContextFrame, LineDecoder, decode_event

logger = logging.getLogger(__name__)

STREAM_PATH = "/api/mcp/context-stream"
CONTEXT_PATH = "/api/mcp/context"

CONNECTED = "connected"
DISCONNECTED = "disconnected"

Emit = Callable[[str, Any], None]


@dataclass(frozen=True, slots=True)
class StreamIntent:
    """What a stream asked for. Replayed unchanged on every reconnect."""

    contexts: tuple[str, ...]
    parameters_json: str

    @classmethod
    def of(cls, contexts: Sequence[str], parameters: Mapping[str, Any] | None = None) -> "StreamIntent":
        return cls(tuple(contexts), json.dumps(dict(parameters or {}), default=str))

    @property
    def parameters(self) -> dict[str, Any]:
        return json.loads(self.parameters_json)

    def query(self, api_key: str | None = None) -> dict[str, str]:
        params = {"contexts": ",".join(self.contexts), "parameters": self.parameters_json}
        if api_key:
            params["apiKey"] = api_key
        return params


class _Stream:
    """One logical stream: connect, read frames, reconnect on failure."""

    def __init__(self, owner: "ContextStreamClient", intent: StreamIntent, emit: Emit) -> None:
        self._owner = owner
        self.intent = intent
        self._emit = emit
        self.state = StreamState.IDLE
        self.reconnects = 0
        self._task: asyncio.Task[None] | None = None

    def start(self) -> None:
        self.state = StreamState.CONNECTING
        self._task = asyncio.create_task(self._run(), name=f"context-stream-{','.join(self.intent.contexts)}")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self.state = StreamState.IDLE

    async def wait(self) -> None:
        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await asyncio.shield(self._task)

    async def _run(self) -> None:
        owner = self._owner
        while True:
            self.state = StreamState.CONNECTING
            try:
                completed = await self._consume()
            except (httpx.HTTPError, TransportError) as exc:
                if self.reconnects < owner.max_reconnects:
                    self.reconnects += 1
                    logger.warning(
                        "Context stream error (%s); reconnecting in %.1fs (attempt %d/%d)",
                        exc, owner.reconnect_delay, self.reconnects, owner.max_reconnects,
                    )
                    await asyncio.sleep(owner.reconnect_delay)
                    continue
                logger.error("Context stream: max reconnection attempts reached")
                self._finish(f"gave up after {self.reconnects} reconnects: {exc}")
                return
            if completed:
                self.state = StreamState.IDLE
                return
            self._finish("stream ended without complete")
            return

    def _finish(self, reason: str) -> None:
        self.state = StreamState.IDLE
        self._emit(DISCONNECTED, reason)

    async def _consume(self) -> bool:
        """Read one connection. True once a ``complete`` frame arrived."""
        owner = self._owner
        chunked = bool(owner.headers)
        headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}
        if chunked:
            headers.update(owner.headers)
            if owner.api_key:
                headers["apiKey"] = owner.api_key
            params = self.intent.query()
        else:
            params = self.intent.query(owner.api_key)

        async with owner.http.stream(
            "GET", STREAM_PATH, params=params, headers=headers, timeout=httpx.Timeout(10.0, read=None),
        ) as response:
            if response.status_code != 200:
                raise TransportError(f"Context stream HTTP {response.status_code}")
            self.reconnects = 0
            self.state = StreamState.STREAMING
            self._emit(CONNECTED, self.intent)

            if chunked:
                decoder = ChunkDecoder()
                async for chunk in response.aiter_bytes():
                    for event, data in decoder.feed(chunk):
                        if self._deliver(event, data):
                            return True
            else:
                lines = LineDecoder()
                async for line in response.aiter_lines():
                    parsed = lines.feed(line)
                    if parsed is not None and self._deliver(*parsed):
                        return True
                # A final event without its trailing blank line.
                parsed = lines.feed("")
                if parsed is not None and self._deliver(*parsed):
                    return True
        return False

    def _deliver(self, event: str, data: str) -> bool:
        try:
            frame = decode_event(event, data)
        except ProtocolError as exc:
            logger.warning("Dropping malformed context frame: %s", exc.detail)
            return False
        if frame is None:
            return False
        self._emit(frame.kind, frame)
        return frame.kind == FrameKind.COMPLETE


class ContextStreamClient:
    """Streams named contexts and fetches single ones.

    Without custom headers the stream is read line by line and the API key
    travels in the query string. With custom headers the key and headers go
    in the request headers and the body is split into events by hand.

    Listeners: ``info``, ``context``, ``error``, ``complete`` receive a
    ``ContextFrame``; ``connected`` receives the ``StreamIntent``;
    ``disconnected`` receives a reason string.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        http: httpx.AsyncClient | None = None,
        api_key: str | None = None,
        headers: Mapping[str, str] | None = None,
        reconnect_delay: float = settings.STREAM_RECONNECT_DELAY,
        max_reconnects: int = settings.STREAM_MAX_RECONNECTS,
        fetch_timeout: float = settings.CONTEXT_FETCH_TIMEOUT,
    ) -> None:
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(base_url=base_url)
        self.api_key = api_key
        self.headers = dict(headers or {})
        self.reconnect_delay = reconnect_delay
        self.max_reconnects = max_reconnects
        self.fetch_timeout = fetch_timeout
        self._listeners = ListenerRegistry()
        self._stream: _Stream | None = None

    async def __aenter__(self) -> "ContextStreamClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    @property
    def state(self) -> StreamState:
        return self._stream.state if self._stream is not None else StreamState.IDLE

    @property
    def intent(self) -> StreamIntent | None:
        return self._stream.intent if self._stream is not None else None

    def set_headers(self, headers: Mapping[str, str]) -> None:
        """Applies from the next (re)connect."""
        self.headers = dict(headers)

    def on(self, kind: str, listener: Listener) -> ListenerToken:
        return self._listeners.on(kind, listener)

    def off(self, token: ListenerToken) -> bool:
        return self._listeners.off(token)

    async def connect(self, contexts: Sequence[str], parameters: Mapping[str, Any] | None = None) -> StreamIntent:
        await self.disconnect()
        stream = _Stream(self, StreamIntent.of(contexts, parameters), self._listeners.emit)
        self._stream = stream
        stream.start()
        logger.info("Connecting context stream for %s", ",".join(stream.intent.contexts))
        return stream.intent

    async def disconnect(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        was_active = stream.state != StreamState.IDLE
        await stream.stop()
        if was_active:
            self._listeners.emit(DISCONNECTED, "closed by client")

    async def wait(self) -> None:
        """Return once the main stream has gone back to idle."""
        if self._stream is not None:
            await self._stream.wait()

    async def aclose(self) -> None:
        await self.disconnect()
        if self._owns_http:
            await self.http.aclose()

    async def fetch_context(
        self, name: str, parameters: Mapping[str, Any] | None = None, timeout: float | None = None,
    ) -> Any:
        """Fetch one context value.

        Tries the one-shot endpoint first, then a private stream limited to
        ``name``. The private stream never touches the one ``connect`` opened
        and is closed however the fetch ends.
        """
        value = await self._fetch_once(name, parameters)
        if value is not None:
            return value

        result: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

        def settle(kind: str, arg: Any) -> None:
            if result.done():
                return
            if kind == FrameKind.CONTEXT and isinstance(arg, ContextFrame) and arg.context_name == name:
                result.set_result(arg.data)
            elif kind == FrameKind.ERROR and isinstance(arg, ContextFrame) and arg.context_name in (None, name):
                result.set_exception(OperationError(arg.error))
            elif kind == FrameKind.COMPLETE:
                result.set_exception(OperationError(f"Context {name} was not delivered"))
            elif kind == DISCONNECTED:
                result.set_exception(TransportError(f"Context stream closed before {name} arrived: {arg}"))

        stream = _Stream(self, StreamIntent.of([name], parameters), settle)
        stream.start()
        try:
            return await asyncio.wait_for(result, timeout if timeout is not None else self.fetch_timeout)
        except asyncio.TimeoutError as exc:
            raise RequestTimeoutError(f"Timed out fetching context {name}") from exc
        finally:
            await stream.stop()

    async def _fetch_once(self, name: str, parameters: Mapping[str, Any] | None) -> Any:
        headers = dict(self.headers)
        if self.api_key:
            headers["apiKey"] = self.api_key
        try:
            response = await self.http.post(
                CONTEXT_PATH,
                json={"contexts": [name], "parameters": dict(parameters or {})},
                headers=headers,
                timeout=self.fetch_timeout,
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.info("One-shot context fetch for %s failed, streaming instead: %s", name, exc)
            return None
        value = body.get(name) if isinstance(body, dict) else None
        if value is None or (isinstance(value, dict) and value.get("type") == "error"):
            logger.info("One-shot context fetch for %s returned no value, streaming instead", name)
            return None
        return value
