from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


async def _redis_problem(request: Request) -> str | None:
    redis = getattr(request.app.state, "redis", None)
    if redis is None:
        return "redis: not connected"
    try:
        await redis.ping()
    except Exception as exc:  # noqa: BLE001
        return f"redis: {exc}"
    subscriber = getattr(request.app.state, "pubsub_subscriber", None)
    if subscriber is not None and not subscriber.running:
        return "redis: event subscriber not running"
    return None


@router.get("/readyz")
async def readyz(request: Request) -> JSONResponse:
    """Ready once Redis answers and the event subscriber is alive."""
    state = request.app.state
    problem = await _redis_problem(request)
    if problem is not None:
        return JSONResponse(status_code=503, content={"status": "unavailable", "errors": [problem]})
    body: dict[str, Any] = {
        "status": "ready",
        "sessions": len(state.manager),
        "webhooks": len(state.dispatcher.list()),
    }
    return JSONResponse(content=body)
