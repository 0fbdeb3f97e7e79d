from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Response, status

from pawperfect_mcp.api.deps import CurrentAdmin, DispatcherDep
from pawperfect_mcp.api.v1.schemas.webhook import (
    WebhookCreateRequest,
    WebhookListResponse,
    WebhookResponse,
    WebhookTestResponse,
    WebhookUpdateRequest,
    WebhookView,
)
from pawperfect_mcp.application.exceptions import NotFoundError, ValidationError

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"code": "webhook_not_found", "message": "Webhook subscription not found"},
    )


def _invalid(code: str, exc: ValidationError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail={"code": code, "message": exc.detail})


# Declared before /{webhook_id} so "events" is not taken for an id.
@router.get("/events/types")
async def list_event_types(_admin: CurrentAdmin, dispatcher: DispatcherDep) -> dict[str, Any]:
    return dispatcher.event_types()


@router.get("", response_model=WebhookListResponse)
async def list_webhooks(_admin: CurrentAdmin, dispatcher: DispatcherDep) -> WebhookListResponse:
    return WebhookListResponse(webhooks=[WebhookView.of(s) for s in dispatcher.list()])


@router.post("", response_model=WebhookResponse, status_code=status.HTTP_201_CREATED)
async def create_webhook(
    body: WebhookCreateRequest, _admin: CurrentAdmin, dispatcher: DispatcherDep,
) -> WebhookResponse:
    try:
        subscription = dispatcher.register(body.url, body.events, body.secret)
    except ValidationError as exc:
        raise _invalid("webhook_creation_failed", exc) from exc
    return WebhookResponse(webhook=WebhookView.of(subscription))


@router.get("/{webhook_id}", response_model=WebhookResponse)
async def get_webhook(webhook_id: str, _admin: CurrentAdmin, dispatcher: DispatcherDep) -> WebhookResponse:
    try:
        return WebhookResponse(webhook=WebhookView.of(dispatcher.get(webhook_id)))
    except NotFoundError as exc:
        raise _not_found() from exc


@router.patch("/{webhook_id}", response_model=WebhookResponse)
async def update_webhook(
    webhook_id: str, body: WebhookUpdateRequest, _admin: CurrentAdmin, dispatcher: DispatcherDep,
) -> WebhookResponse:
    changes = {name: getattr(body, name) for name in body.model_fields_set}
    try:
        subscription = dispatcher.update(webhook_id, **changes)
    except NotFoundError as exc:
        raise _not_found() from exc
    except ValidationError as exc:
        raise _invalid("webhook_update_failed", exc) from exc
    return WebhookResponse(webhook=WebhookView.of(subscription))


@router.delete("/{webhook_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_webhook(webhook_id: str, _admin: CurrentAdmin, dispatcher: DispatcherDep) -> Response:
    try:
        dispatcher.delete(webhook_id)
    except NotFoundError as exc:
        raise _not_found() from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{webhook_id}/test", response_model=WebhookTestResponse)
async def test_webhook(webhook_id: str, _admin: CurrentAdmin, dispatcher: DispatcherDep) -> WebhookTestResponse:
    try:
        dispatcher.test(webhook_id)
    except NotFoundError as exc:
        raise _not_found() from exc
    except ValidationError as exc:
        raise _invalid("webhook_test_failed", exc) from exc
    return WebhookTestResponse()
