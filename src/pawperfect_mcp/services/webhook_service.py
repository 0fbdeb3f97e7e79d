"""Signed, best-effort webhook fan-out of domain events."""
from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import logging
import uuid
from typing import Any, Iterable
from urllib.parse import urlsplit

import httpx

from pawperfect_mcp.application.exceptions import DeliveryError, NotFoundError, ValidationError
from pawperfect_mcp.application.ports.clock import Clock, SystemClock, isoformat_z
from pawperfect_mcp.domain.entities.webhook import WebhookSubscription
from pawperfect_mcp.domain.value_objects.enums import WebhookEventType

logger = logging.getLogger(__name__)

EVENT_CATEGORIES: dict[str, list[WebhookEventType]] = {
    "booking": [
        WebhookEventType.BOOKING_CREATED,
        WebhookEventType.BOOKING_UPDATED,
        WebhookEventType.BOOKING_CANCELLED,
        WebhookEventType.BOOKING_COMPLETED,
    ],
    "pet": [WebhookEventType.PET_CREATED, WebhookEventType.PET_UPDATED],
    "owner": [WebhookEventType.OWNER_CREATED, WebhookEventType.OWNER_UPDATED],
    "system": [WebhookEventType.AVAILABILITY_UPDATED, WebhookEventType.SERVICE_UPDATED],
}

_UNSET: Any = object()


def _validate_url(url: Any) -> str:
    if not isinstance(url, str):
        raise ValidationError("Invalid webhook URL")
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ValidationError("Invalid webhook URL")
    return url


def _validate_events(events: Any) -> list[str]:
    if not isinstance(events, (list, tuple)) or not events:
        raise ValidationError("url and events array are required")
    known = {e.value for e in WebhookEventType}
    for event in events:
        if event not in known:
            raise ValidationError(f"Invalid event type: {event}")
    return [str(e) for e in events]


def sign(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class WebhookDispatcher:
    """Registry of subscriptions plus fire-and-forget delivery.

    ``trigger`` only schedules work; each delivery runs as its own task so a
    slow or failing subscriber never holds up the event producer or its
    siblings.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        clock: Clock | None = None,
        signature_header: str = "X-PawPerfect-Signature",
        timeout: float = 10.0,
    ) -> None:
        self._http = http
        self._clock = clock or SystemClock()
        self._signature_header = signature_header
        self._timeout = timeout
        self._subscriptions: dict[str, WebhookSubscription] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    # Registry

    def register(self, url: str, events: Iterable[str], secret: str | None = None) -> WebhookSubscription:
        subscription = WebhookSubscription(
            id=str(uuid.uuid4()),
            url=_validate_url(url),
            events=_validate_events(list(events) if events is not None else None),
            secret=secret or None,
            created_at=self._clock.now(),
        )
        self._subscriptions[subscription.id] = subscription
        logger.info("Created webhook subscription %s for %s", subscription.id, subscription.url)
        return subscription

    def list(self) -> list[WebhookSubscription]:
        return list(self._subscriptions.values())

    def get(self, subscription_id: str) -> WebhookSubscription:
        subscription = self._subscriptions.get(subscription_id)
        if subscription is None:
            raise NotFoundError("Webhook subscription not found")
        return subscription

    def update(
        self,
        subscription_id: str,
        *,
        url: str = _UNSET,
        events: list[str] = _UNSET,
        secret: str | None = _UNSET,
        is_active: bool = _UNSET,
    ) -> WebhookSubscription:
        subscription = self.get(subscription_id)
        # Validate everything before touching the record.
        new_url = _validate_url(url) if url is not _UNSET else subscription.url
        new_events = _validate_events(events) if events is not _UNSET else subscription.events
        subscription.url = new_url
        subscription.events = new_events
        if secret is not _UNSET:
            subscription.secret = secret or None
        if is_active is not _UNSET:
            subscription.is_active = bool(is_active)
        logger.info("Updated webhook subscription %s", subscription_id)
        return subscription

    def delete(self, subscription_id: str) -> None:
        if self._subscriptions.pop(subscription_id, None) is None:
            raise NotFoundError("Webhook subscription not found")
        logger.info("Deleted webhook subscription %s", subscription_id)

    @staticmethod
    def event_types() -> dict[str, Any]:
        return {
            "events": [e.value for e in WebhookEventType],
            "categories": {name: [e.value for e in events] for name, events in EVENT_CATEGORIES.items()},
        }

    # Delivery

    def trigger(self, event_type: str, payload: dict[str, Any]) -> list[str]:
        """Schedule delivery to every active subscriber of ``event_type``.

        Returns the ids scheduled. Must be called from a running event loop.
        """
        matching = self._matching(event_type)
        if not matching:
            logger.debug("No active webhooks for event %s", event_type)
            return []
        logger.info("Triggering %d webhook(s) for event %s", len(matching), event_type)
        body = self._encode(event_type, payload)
        for subscription in matching:
            self._schedule(subscription, body)
        return [s.id for s in matching]

    def test(self, subscription_id: str) -> str:
        """Deliver a diagnostic ``booking.created`` event to one subscription.

        The subscription must be active and subscribed to ``booking.created``.
        """
        subscription = self.get(subscription_id)
        event_type = WebhookEventType.BOOKING_CREATED
        if not self._matching(event_type, only=subscription.id):
            if not subscription.is_active:
                raise ValidationError("Webhook subscription is inactive")
            raise ValidationError(f"Webhook subscription is not subscribed to {event_type}")
        body = self._encode(
            event_type, {"test": True, "message": "This is a test webhook event", "webhookId": subscription.id},
        )
        self._schedule(subscription, body)
        return subscription.id

    async def drain(self) -> None:
        """Wait until every scheduled delivery has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _matching(self, event_type: str, only: str | None = None) -> list[WebhookSubscription]:
        return [
            s for s in self._subscriptions.values()
            if (only is None or s.id == only) and s.subscribed_to(event_type)
        ]

    def _encode(self, event_type: str, payload: dict[str, Any]) -> bytes:
        envelope = {
            "event": str(event_type),
            "timestamp": isoformat_z(self._clock.now()),
            "data": payload,
        }
        return json.dumps(envelope, separators=(",", ":"), default=str).encode()

    def _schedule(self, subscription: WebhookSubscription, body: bytes) -> None:
        task = asyncio.get_running_loop().create_task(
            self._deliver(subscription, body), name=f"webhook-{subscription.id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _post(self, subscription: WebhookSubscription, body: bytes) -> None:
        headers = {"Content-Type": "application/json"}
        if subscription.secret:
            headers[self._signature_header] = sign(subscription.secret, body)
        try:
            response = await self._http.post(subscription.url, content=body, headers=headers, timeout=self._timeout)
        except httpx.HTTPError as exc:
            raise DeliveryError(f"request error: {exc}") from exc
        if not response.is_success:
            raise DeliveryError(f"{response.status_code} {response.reason_phrase}")

    async def _deliver(self, subscription: WebhookSubscription, body: bytes) -> None:
        try:
            await self._post(subscription, body)
        except DeliveryError as exc:
            self._record(subscription, failed=True)
            logger.warning("Webhook %s request failed: %s", subscription.id, exc.detail)
            return
        self._record(subscription, failed=False)
        logger.info("Webhook %s triggered successfully", subscription.id)

    def _record(self, subscription: WebhookSubscription, *, failed: bool) -> None:
        now = self._clock.now()
        subscription.last_triggered = now
        if failed:
            subscription.last_failure = now
            subscription.error_count += 1
