"""Listener fan-out for pushed messages and local signals."""
from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Any, Callable

from pawperfect_mcp.protocol.messages import McpMessage

logger = logging.getLogger(__name__)

CONNECTION = "connection"
AUTHENTICATION = "authentication"

Listener = Callable[[Any], None]


@dataclass(frozen=True, slots=True)
class ListenerToken:
    kind: str
    serial: int


class ListenerRegistry:
    """Ordered listeners per kind, each owned by the token ``on`` returned.

    ``emit`` calls listeners synchronously in registration order. A listener
    that raises is logged and skipped; the rest still run.
    """

    def __init__(self) -> None:
        self._serials = itertools.count(1)
        self._listeners: dict[str, dict[int, Listener]] = {}

    def on(self, kind: str, listener: Listener) -> ListenerToken:
        token = ListenerToken(str(kind), next(self._serials))
        self._listeners.setdefault(token.kind, {})[token.serial] = listener
        return token

    def off(self, token: ListenerToken) -> bool:
        return self._listeners.get(token.kind, {}).pop(token.serial, None) is not None

    def count(self, kind: str) -> int:
        return len(self._listeners.get(str(kind), {}))

    def emit(self, kind: str, arg: Any = None) -> int:
        delivered = 0
        # Snapshot so listeners may (un)register while we iterate.
        for serial, listener in list(self._listeners.get(str(kind), {}).items()):
            try:
                listener(arg)
                delivered += 1
            except Exception:
                logger.exception("Listener %s for %s raised", serial, kind)
        return delivered


class NotificationRouter(ListenerRegistry):
    """Routes pushed MCP messages to listeners registered for their type.

    Listeners receive the message payload. Local signals (``connection``,
    ``authentication``) go through ``emit`` directly.
    """

    def dispatch(self, message: McpMessage) -> int:
        delivered = self.emit(message.type, message.payload)
        if not delivered:
            logger.debug("No listeners for %s message", message.type)
        return delivered
