from __future__ import annotations

from typing import Protocol

from pawperfect_mcp.application.dto.principal import Principal


class TokenVerifier(Protocol):
    async def verify(self, token: str) -> Principal: ...


class TokenIssuer(Protocol):
    def issue(self, principal: Principal) -> str: ...


class CredentialVerifier(Protocol):
    """Turns an ``adminKey`` / ``ownerId`` credential into a principal.

    Returns ``None`` when the credential is not recognized.
    """

    async def verify_admin_key(self, admin_key: str) -> Principal | None: ...

    async def verify_owner(self, owner_id: int) -> Principal | None: ...


class TokenService(TokenVerifier, TokenIssuer, Protocol):
    """Issues the bearer tokens handed out by authentication and checks them."""
