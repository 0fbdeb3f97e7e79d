from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pawperfect_mcp.application.dto.events import AuthResult
from pawperfect_mcp.domain.value_objects.enums import ClientRole, ConnectionState


@dataclass(slots=True)
class ClientSession:
    """Client-side view of the session: connection state and granted role.

    ``credential`` is the last credential presented, kept so a one-shot call
    rejected with 401/403 can reauthenticate once.
    """

    state: ConnectionState = ConnectionState.DISCONNECTED
    role: ClientRole = ClientRole.GUEST
    owner_id: int | None = None
    connection_id: str | None = None
    token: str | None = None
    credential: dict[str, Any] | None = None

    def begin_connect(self) -> None:
        self.state = ConnectionState.CONNECTING
        self._drop_grant()

    def opened(self) -> None:
        self.state = ConnectionState.CONNECTED

    def failed(self) -> None:
        self.state = ConnectionState.ERROR
        self.connection_id = None
        self._drop_grant()

    def closed(self) -> None:
        self.state = ConnectionState.DISCONNECTED
        self.connection_id = None
        self._drop_grant()

    def apply(self, result: AuthResult) -> None:
        if not result.success:
            return
        self.role = result.role
        self.owner_id = result.owner_id
        if result.token:
            self.token = result.token

    def _drop_grant(self) -> None:
        self.role = ClientRole.GUEST
        self.owner_id = None
        self.token = None
