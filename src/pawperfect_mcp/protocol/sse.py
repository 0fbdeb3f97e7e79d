"""Context stream framing (``text/event-stream``)."""
from __future__ import annotations

import codecs
import json
from dataclasses import dataclass, field
from typing import Any

from pawperfect_mcp.application.exceptions import ProtocolError
from pawperfect_mcp.domain.value_objects.enums import FrameKind


@dataclass(frozen=True, slots=True)
class ContextFrame:
    kind: FrameKind
    payload: dict[str, Any]
    context_name: str | None = None

    @property
    def data(self) -> Any:
        return self.payload.get("data")

    @property
    def error(self) -> str:
        return str(self.payload.get("error") or "Unknown error")

    @property
    def message(self) -> str | None:
        return self.payload.get("message")


def encode_frame(kind: FrameKind | str, data: dict[str, Any]) -> str:
    return f"event: {kind}\ndata: {json.dumps(data, default=str)}\n\n"


def decode_event(event: str, data: str) -> ContextFrame | None:
    """Build a frame from one SSE event. Unknown event names (``ping``) yield None."""
    try:
        kind = FrameKind(event)
    except ValueError:
        return None
    if not data:
        return None
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as exc:
        raise ProtocolError(f"Unparseable {event} frame: {data[:200]}") from exc
    if not isinstance(payload, dict):
        raise ProtocolError(f"{event} frame is not an object")
    name = payload.get("contextName")
    return ContextFrame(kind=kind, payload=payload, context_name=str(name) if name else None)


@dataclass
class LineDecoder:
    """Feeds already-split lines (``aiter_lines``) and yields complete events."""

    _event: str = "message"
    _data: list[str] = field(default_factory=list)

    def feed(self, line: str) -> tuple[str, str] | None:
        line = line.rstrip("\r")
        if not line:
            if not self._data:
                self._event = "message"
                return None
            event, data = self._event, "\n".join(self._data)
            self._event, self._data = "message", []
            return event, data
        if line.startswith(":"):
            return None
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "event":
            self._event = value.strip()
        elif name == "data":
            self._data.append(value)
        return None


class ChunkDecoder:
    """Splits a raw byte stream into events on blank-line boundaries."""

    def __init__(self) -> None:
        self._text = codecs.getincrementaldecoder("utf-8")()
        self._buffer = ""

    def feed(self, chunk: bytes) -> list[tuple[str, str]]:
        # Normalise after joining: a CRLF may straddle two chunks.
        self._buffer = (self._buffer + self._text.decode(chunk)).replace("\r\n", "\n")
        *blocks, self._buffer = self._buffer.split("\n\n")
        events: list[tuple[str, str]] = []
        for block in blocks:
            if not block.strip():
                continue
            event, data = "message", []
            for line in block.split("\n"):
                if line.startswith("event:"):
                    event = line[6:].strip()
                elif line.startswith("data:"):
                    data.append(line[5:].strip())
            events.append((event, "\n".join(data)))
        return events
