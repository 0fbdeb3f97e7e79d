from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from pawperfect_mcp.domain.entities.webhook import WebhookSubscription


class WebhookCreateRequest(BaseModel):
    url: str
    events: list[str] = Field(default_factory=list)
    secret: str | None = None


class WebhookUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str | None = None
    events: list[str] | None = None
    secret: str | None = None
    is_active: bool | None = Field(default=None, alias="isActive")


class WebhookView(BaseModel):
    """A subscription as returned by the API. The secret is never included."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    url: str
    events: list[str]
    created_at: datetime = Field(alias="createdAt")
    is_active: bool = Field(alias="isActive")
    error_count: int = Field(alias="errorCount")
    last_triggered: datetime | None = Field(default=None, alias="lastTriggered")
    last_failure: datetime | None = Field(default=None, alias="lastFailure")

    @classmethod
    def of(cls, subscription: WebhookSubscription) -> "WebhookView":
        return cls(
            id=subscription.id,
            url=subscription.url,
            events=list(subscription.events),
            created_at=subscription.created_at,
            is_active=subscription.is_active,
            error_count=subscription.error_count,
            last_triggered=subscription.last_triggered,
            last_failure=subscription.last_failure,
        )


class WebhookResponse(BaseModel):
    webhook: WebhookView


class WebhookListResponse(BaseModel):
    webhooks: list[WebhookView]


class WebhookTestResponse(BaseModel):
    success: bool = True
    message: str = "Test webhook triggered"
