from __future__ import annotations

from typing import Any

from pawperfect_mcp.application.dto.principal import Principal
from pawperfect_mcp.application.exceptions import ForbiddenError, NotFoundError


def assert_admin(principal: Principal) -> None:
    if not principal.is_admin:
        raise ForbiddenError("Permission denied: Admin access required")


def assert_owner_access(principal: Principal, owner_id: Any, denied: str) -> None:
    """Customers bound to an owner may only touch that owner's records."""
    if not principal.is_customer or principal.owner_id is None:
        return
    try:
        matches = int(owner_id) == principal.owner_id
    except (TypeError, ValueError):
        matches = False
    if not matches:
        raise ForbiddenError(f"Permission denied: Cannot {denied}")


def assert_found(record: dict[str, Any] | None, what: str, key: Any) -> dict[str, Any]:
    if record is None:
        raise NotFoundError(f"{what} not found: {key}")
    return record
