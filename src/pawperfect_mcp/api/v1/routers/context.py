"""Context endpoints: streamed (``text/event-stream``) and one-shot."""
from __future__ import annotations

import hmac
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, AsyncIterator

from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse

from pawperfect_mcp.api.deps import BackendDep
from pawperfect_mcp.api.v1.schemas.mcp import ContextRequest
from pawperfect_mcp.application.exceptions import AppError
from pawperfect_mcp.application.ports.backend import BookingBackend
from pawperfect_mcp.domain.value_objects.enums import FrameKind
from pawperfect_mcp.protocol.sse import encode_frame
from pawperfect_mcp.services import context_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/mcp", tags=["context"])

_API_KEY_HEADERS = ("apikey", "api-key", "x-api-key")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _presented_key(request: Request) -> str | None:
    key = request.query_params.get("apiKey")
    if key:
        return key
    for header in _API_KEY_HEADERS:
        if request.headers.get(header):
            return request.headers[header]
    auth = request.headers.get("authorization", "")
    if auth.startswith("Bearer "):
        return auth[7:]
    return None


def _check_api_key(request: Request) -> None:
    expected: str | None = request.app.state.api_key
    if not expected:
        return
    presented = _presented_key(request) or ""
    if not hmac.compare_digest(presented.encode(), expected.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


def _parse_parameters(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Ignoring unparseable context parameters: %s", raw[:200])
        return {}
    return parsed if isinstance(parsed, dict) else {}


async def _frames(
    names: list[str], parameters: dict[str, Any], backend: BookingBackend,
) -> AsyncIterator[str]:
    connection_id = uuid.uuid4().hex[:8]
    logger.info("Context stream %s opened for %s", connection_id, ",".join(names))
    yield encode_frame(FrameKind.INFO, {
        "message": "MCP SSE Connection Established",
        "connectionId": connection_id,
        "timestamp": _now(),
        "contextsRequested": names,
    })
    for name in names:
        try:
            value = await context_service.resolve(name, parameters, backend)
        except AppError as exc:
            yield encode_frame(FrameKind.ERROR, {
                "contextName": name, "error": exc.detail, "code": 400, "timestamp": _now(),
            })
            continue
        except Exception as exc:
            logger.exception("Context stream %s failed on %s", connection_id, name)
            yield encode_frame(FrameKind.ERROR, {
                "contextName": name, "error": str(exc), "code": 500, "timestamp": _now(), "recoverable": True,
            })
            continue
        yield encode_frame(FrameKind.CONTEXT, {"contextName": name, "data": value, "timestamp": _now()})
    yield encode_frame(FrameKind.COMPLETE, {
        "message": "All requested contexts have been streamed",
        "contextsProcessed": names,
        "totalContextsProcessed": len(names),
        "connectionId": connection_id,
        "timestamp": _now(),
    })
    logger.info("Context stream %s complete", connection_id)


@router.get("/context-stream")
async def context_stream(
    request: Request,
    backend: BackendDep,
    contexts: str = Query(""),
    parameters: str | None = Query(None),
) -> StreamingResponse:
    _check_api_key(request)
    names = [c.strip() for c in contexts.split(",") if c.strip()] or list(context_service.PROVIDERS)
    return StreamingResponse(
        _frames(names, _parse_parameters(parameters), backend),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/context")
async def get_context(request: Request, body: ContextRequest, backend: BackendDep) -> dict[str, Any]:
    _check_api_key(request)
    return await context_service.get_context(body.contexts, body.parameters, backend)
