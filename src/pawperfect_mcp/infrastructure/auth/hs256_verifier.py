from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt

from pawperfect_mcp.application.dto.principal import Principal
from pawperfect_mcp.domain.value_objects.enums import ClientRole


class HS256Verifier:
    """Issue and verify session tokens signed with a shared HS256 secret.

    Tokens carry the role granted by MCP authentication so one-shot fallback
    calls are authorized the same way as the persistent session.
    """

    def __init__(self, secret: str, algorithm: str = "HS256", ttl_seconds: int = 3600) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._ttl = timedelta(seconds=ttl_seconds)

    def issue(self, principal: Principal) -> str:
        now = datetime.now(timezone.utc)
        claims: dict[str, object] = {
            "sub": str(principal.owner_id) if principal.owner_id is not None else principal.role.value,
            "role": principal.role.value,
            "iat": now,
            "exp": now + self._ttl,
        }
        if principal.owner_id is not None:
            claims["owner_id"] = principal.owner_id
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    async def verify(self, token: str) -> Principal:
        payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        role_raw = payload.get("role", ClientRole.GUEST)
        role = ClientRole(role_raw) if role_raw in ClientRole.__members__.values() else ClientRole.GUEST
        owner_id = payload.get("owner_id")
        return Principal(role=role, owner_id=int(owner_id) if owner_id is not None else None)
