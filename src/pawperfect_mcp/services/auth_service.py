from __future__ import annotations

import logging
from typing import Any

from pawperfect_mcp.application.dto.events import AuthResult
from pawperfect_mcp.application.dto.principal import Principal
from pawperfect_mcp.application.exceptions import AuthorizationError, ValidationError
from pawperfect_mcp.application.ports.auth import CredentialVerifier, TokenIssuer
from pawperfect_mcp.domain.entities.session import Session

logger = logging.getLogger(__name__)


async def resolve_credential(credential: dict[str, Any], verifier: CredentialVerifier) -> Principal:
    """Map an ``adminKey`` or ``ownerId`` credential to a principal.

    Exactly one of the two keys must be present.
    """
    admin_key = credential.get("adminKey")
    owner_id = credential.get("ownerId")
    if (admin_key is None) == (owner_id is None):
        raise ValidationError("Invalid authentication data")

    if admin_key is not None:
        principal = await verifier.verify_admin_key(str(admin_key))
        if principal is None:
            raise AuthorizationError("Invalid admin key")
        return principal

    try:
        owner = int(owner_id)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Invalid owner ID") from exc
    principal = await verifier.verify_owner(owner)
    if principal is None:
        raise AuthorizationError("Invalid owner ID")
    return principal


async def authenticate(
    session: Session,
    credential: dict[str, Any],
    verifier: CredentialVerifier,
    issuer: TokenIssuer | None = None,
) -> AuthResult:
    """Upgrade a session's role. On failure the role is left untouched."""
    try:
        principal = await resolve_credential(credential, verifier)
    except (ValidationError, AuthorizationError) as exc:
        logger.info("Client %s authentication failed: %s", session.connection_id, exc.detail)
        return AuthResult(success=False, role=session.role, owner_id=session.owner_id, error=exc.detail)

    session.grant(principal.role, principal.owner_id)
    logger.info(
        "Client %s authenticated as %s%s",
        session.connection_id,
        principal.role,
        f" for owner {principal.owner_id}" if principal.owner_id is not None else "",
    )
    token = issuer.issue(principal) if issuer is not None else None
    return AuthResult(success=True, role=principal.role, owner_id=principal.owner_id, token=token)
