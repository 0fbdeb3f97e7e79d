from __future__ import annotations

from dataclasses import dataclass

from pawperfect_mcp.domain.value_objects.enums import ClientRole


@dataclass(frozen=True, slots=True)
class Principal:
    """Caller identity extracted from a bearer token (REST) or a session (WS)."""

    role: ClientRole
    owner_id: int | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ClientRole.ADMIN

    @property
    def is_customer(self) -> bool:
        return self.role == ClientRole.CUSTOMER


GUEST = Principal(role=ClientRole.GUEST)
