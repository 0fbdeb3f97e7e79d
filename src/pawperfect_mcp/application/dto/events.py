from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pawperfect_mcp.domain.value_objects.enums import ClientRole


@dataclass(frozen=True, slots=True)
class DomainEventDTO:
    """Event emitted by the booking collaborator, e.g. ``booking.created``."""

    event_type: str
    payload: dict[str, Any]


@dataclass(frozen=True, slots=True)
class AuthResult:
    success: bool
    role: ClientRole
    owner_id: int | None = None
    error: str | None = None
    token: str | None = None
