"""FastAPI dependency injection helpers."""
from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from pawperfect_mcp.application.dto.principal import GUEST, Principal
from pawperfect_mcp.application.ports.auth import CredentialVerifier, TokenService
from pawperfect_mcp.application.ports.backend import BookingBackend
from pawperfect_mcp.infrastructure.ws.manager import ConnectionManager
from pawperfect_mcp.services.event_forwarder import EventForwarder
from pawperfect_mcp.services.webhook_service import WebhookDispatcher

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


def get_backend(request: Request) -> BookingBackend:
    return request.app.state.backend


def get_dispatcher(request: Request) -> WebhookDispatcher:
    return request.app.state.dispatcher


def get_forwarder(request: Request) -> EventForwarder:
    return request.app.state.forwarder


def get_manager(request: Request) -> ConnectionManager:
    return request.app.state.manager


def get_credentials(request: Request) -> CredentialVerifier:
    return request.app.state.credentials


def get_tokens(request: Request) -> TokenService:
    return request.app.state.tokens


BackendDep = Annotated[BookingBackend, Depends(get_backend)]
DispatcherDep = Annotated[WebhookDispatcher, Depends(get_dispatcher)]
ForwarderDep = Annotated[EventForwarder, Depends(get_forwarder)]
CredentialsDep = Annotated[CredentialVerifier, Depends(get_credentials)]
TokensDep = Annotated[TokenService, Depends(get_tokens)]


async def get_optional_principal(
    tokens: TokensDep,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
) -> Principal:
    """Anonymous callers are guests; a bad token is still a 401."""
    if credentials is None:
        return GUEST
    try:
        return await tokens.verify(credentials.credentials)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_optional_principal)]


async def get_current_admin(
    principal: CurrentPrincipal,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)],
) -> Principal:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    if not principal.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return principal


CurrentAdmin = Annotated[Principal, Depends(get_current_admin)]
