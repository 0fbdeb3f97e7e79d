from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "info"

    REDIS_URL: str = "redis://localhost:6379/0"
    BOOKING_EVENTS_CHANNEL: str = "booking.events"

    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    JWT_TTL_SECONDS: int = 3600

    # Shared secret for the admin role; the verifier is pluggable.
    MCP_ADMIN_KEY: str = "admin123"
    MCP_API_KEY: str | None = None

    CORS_ORIGINS: list[str] = ["*"]

    WS_HEARTBEAT_SECONDS: int = 30

    MCP_REQUEST_TIMEOUT: float = 30.0
    CONTEXT_FETCH_TIMEOUT: float = 10.0
    STREAM_RECONNECT_DELAY: float = 3.0
    STREAM_MAX_RECONNECTS: int = 5

    WEBHOOK_SIGNATURE_HEADER: str = "X-PawPerfect-Signature"
    WEBHOOK_TIMEOUT: float = 10.0

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
