from __future__ import annotations

from dataclasses import dataclass, field

from pawperfect_mcp.domain.value_objects.enums import ClientRole, ConnectionState


@dataclass(slots=True)
class Session:
    """Server-side view of one persistent connection."""

    connection_id: str
    role: ClientRole = ClientRole.GUEST
    owner_id: int | None = None
    state: ConnectionState = ConnectionState.CONNECTED
    rooms: set[str] = field(default_factory=set)

    def grant(self, role: ClientRole, owner_id: int | None = None) -> None:
        self.role = role
        self.owner_id = owner_id

    def reset(self) -> None:
        self.role = ClientRole.GUEST
        self.owner_id = None
        self.rooms.clear()
