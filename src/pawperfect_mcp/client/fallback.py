"""One-shot HTTP path for operations when no persistent connection exists."""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

import httpx

from pawperfect_mcp.application.dto.events import AuthResult
from pawperfect_mcp.application.exceptions import (
    AuthorizationError,
    OperationError,
    TransportError,
)
from pawperfect_mcp.client.session import ClientSession
from pawperfect_mcp.domain.value_objects.enums import ClientRole, OperationType
from pawperfect_mcp.protocol.catalog import FallbackRequest, UnknownResult, entry_for

logger = logging.getLogger(__name__)

AUTHENTICATE_PATH = "/api/mcp/authenticate"
_AUTH_STATUSES = (401, 403)

Reauthenticator = Callable[[], Awaitable[bool]]


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, dict):
        detail = detail.get("message")
    return str(detail or response.reason_phrase)


class HttpFallback:
    """Maps operations onto their fixed HTTP equivalents.

    Results are reshaped into the same envelope the persistent path yields.
    When the server cannot be reached, or answers with a 5xx or an
    unreadable body, a read returns an ``UnknownResult`` and a write raises
    ``TransportError``.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        session: ClientSession,
        reauthenticate: Reauthenticator | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._http = http
        self._session = session
        self._reauthenticate = reauthenticate
        self._timeout = timeout

    async def call(self, operation: OperationType | str, data: dict[str, Any] | None = None) -> dict[str, Any]:
        entry = entry_for(operation)
        request = entry.fallback_request(data or {})
        logger.debug("HTTP fallback request: %s %s", request.method, request.path)
        try:
            response = await self._send(request)
            if response.status_code in _AUTH_STATUSES:
                response = await self._retry_after_reauth(request, response)
            if response.status_code >= 500:
                raise TransportError(f"HTTP {response.status_code} from {request.path}")
            if response.is_error:
                raise OperationError(_detail(response))
            raw = response.json()
        except (httpx.HTTPError, TransportError, ValueError) as exc:
            if entry.mutating:
                if isinstance(exc, TransportError):
                    raise
                raise TransportError(f"HTTP fallback failed for {entry.operation}: {exc}") from exc
            logger.warning("HTTP fallback failed for %s, returning unknown result: %s", entry.operation, exc)
            return UnknownResult(entry.default(), cause=exc)
        return entry.reshape(raw)

    async def authenticate(self, credential: dict[str, Any]) -> AuthResult:
        try:
            response = await self._http.post(AUTHENTICATE_PATH, json=credential, timeout=self._timeout)
        except httpx.HTTPError as exc:
            raise TransportError(f"Authentication request failed: {exc}") from exc
        if response.is_success:
            body = response.json()
            owner_id = body.get("ownerId")
            return AuthResult(
                success=True,
                role=ClientRole(body["role"]),
                owner_id=int(owner_id) if owner_id is not None else None,
                token=body.get("token"),
            )
        if response.status_code >= 500:
            raise TransportError(f"Authentication request failed: HTTP {response.status_code}")
        return AuthResult(
            success=False, role=self._session.role, owner_id=self._session.owner_id, error=_detail(response),
        )

    async def _send(self, request: FallbackRequest) -> httpx.Response:
        headers = {"Accept": "application/json"}
        if self._session.token:
            headers["Authorization"] = f"Bearer {self._session.token}"
        return await self._http.request(
            request.method,
            request.path,
            params=request.params,
            json=request.json,
            headers=headers,
            timeout=self._timeout,
        )

    async def _retry_after_reauth(self, request: FallbackRequest, response: httpx.Response) -> httpx.Response:
        logger.info("HTTP %s on %s, reauthenticating once", response.status_code, request.path)
        if self._reauthenticate is None or not await self._reauthenticate():
            raise AuthorizationError(_detail(response))
        retried = await self._send(request)
        if retried.status_code in _AUTH_STATUSES:
            raise AuthorizationError(_detail(retried))
        return retried
