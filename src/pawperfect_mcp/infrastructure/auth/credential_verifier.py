from __future__ import annotations

import hmac
import logging

from pawperfect_mcp.application.dto.principal import Principal
from pawperfect_mcp.application.ports.backend import BookingBackend
from pawperfect_mcp.domain.value_objects.enums import ClientRole

logger = logging.getLogger(__name__)


class SharedKeyCredentialVerifier:
    """Admin via a configured shared key, customer via a known owner id."""

    def __init__(self, admin_key: str, backend: BookingBackend) -> None:
        self._admin_key = admin_key
        self._backend = backend

    async def verify_admin_key(self, admin_key: str) -> Principal | None:
        if not self._admin_key:
            return None
        if hmac.compare_digest(admin_key.encode(), self._admin_key.encode()):
            return Principal(role=ClientRole.ADMIN)
        return None

    async def verify_owner(self, owner_id: int) -> Principal | None:
        owner = await self._backend.get_owner(owner_id)
        if owner is None:
            logger.debug("Unknown owner id %s", owner_id)
            return None
        return Principal(role=ClientRole.CUSTOMER, owner_id=int(owner["id"]))
