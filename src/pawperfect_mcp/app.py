from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pawperfect_mcp.api.v1.routers import context, health, operations, webhooks, ws
from pawperfect_mcp.application.exceptions import (
    AuthorizationError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from pawperfect_mcp.application.ports.backend import BookingBackend
from pawperfect_mcp.config import settings
from pawperfect_mcp.infrastructure.auth.credential_verifier import SharedKeyCredentialVerifier
from pawperfect_mcp.infrastructure.auth.hs256_verifier import HS256Verifier
from pawperfect_mcp.infrastructure.backend.in_memory import InMemoryBookingBackend, seed_dev_data
from pawperfect_mcp.infrastructure.bus.redis_pubsub import RedisPubSubSubscriber
from pawperfect_mcp.infrastructure.ws.manager import ConnectionManager
from pawperfect_mcp.services.event_forwarder import EventForwarder
from pawperfect_mcp.services.webhook_service import WebhookDispatcher

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    app.state.redis = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    logger.info("Redis connection pool created")

    subscriber = RedisPubSubSubscriber(
        app.state.redis,
        settings.BOOKING_EVENTS_CHANNEL,
        app.state.forwarder.forward,
    )
    await subscriber.start()
    app.state.pubsub_subscriber = subscriber

    yield

    await subscriber.stop()
    await app.state.dispatcher.drain()
    await app.state.http.aclose()
    await app.state.redis.aclose()
    logger.info("Redis connection pool closed")


def create_app(
    backend: BookingBackend | None = None,
    http: httpx.AsyncClient | None = None,
) -> FastAPI:
    app = FastAPI(
        title="PawPerfect MCP Service",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if backend is None:
        backend = InMemoryBookingBackend()
        seed_dev_data(backend)
    _build_state(app, backend, http or httpx.AsyncClient())

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(operations.router)
    app.include_router(context.router)
    app.include_router(webhooks.router)
    app.include_router(ws.router)

    return app


def _build_state(app: FastAPI, backend: BookingBackend, http: httpx.AsyncClient) -> None:
    state = app.state
    state.backend = backend
    state.http = http
    state.api_key = settings.MCP_API_KEY
    state.manager = ConnectionManager()
    state.tokens = HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM, settings.JWT_TTL_SECONDS)
    state.credentials = SharedKeyCredentialVerifier(settings.MCP_ADMIN_KEY, backend)
    state.dispatcher = WebhookDispatcher(
        http,
        signature_header=settings.WEBHOOK_SIGNATURE_HEADER,
        timeout=settings.WEBHOOK_TIMEOUT,
    )
    state.forwarder = EventForwarder(state.manager, state.dispatcher)


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(ForbiddenError)
    async def _forbidden(_req: Request, exc: ForbiddenError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": exc.detail})

    @app.exception_handler(AuthorizationError)
    async def _unauthorized(_req: Request, exc: AuthorizationError) -> JSONResponse:
        return JSONResponse(status_code=401, content={"detail": exc.detail})

    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.detail})
