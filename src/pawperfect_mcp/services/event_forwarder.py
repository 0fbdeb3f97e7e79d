"""Turns domain events into MCP pushes and webhook deliveries."""
from __future__ import annotations

import logging
from typing import Any

from pawperfect_mcp.application.dto.events import DomainEventDTO
from pawperfect_mcp.domain.entities.session import Session
from pawperfect_mcp.domain.value_objects.enums import (
    ROLE_LEVEL,
    ClientRole,
    MessageType,
    WebhookEventType,
)
from pawperfect_mcp.infrastructure.ws.manager import ConnectionManager
from pawperfect_mcp.protocol.messages import push_message
from pawperfect_mcp.services.webhook_service import WebhookDispatcher

logger = logging.getLogger(__name__)

NOTIFICATION_EVENT = "notification"


def _to_everyone(_session: Session) -> bool:
    return True


def _booking_audience(booking_id: str, owner_id: Any):
    rooms = {f"booking:{booking_id}", f"owner:{owner_id}"}

    def accept(session: Session) -> bool:
        return ROLE_LEVEL[session.role] >= ROLE_LEVEL[ClientRole.CUSTOMER] or bool(session.rooms & rooms)
    return accept


def _owner_audience(owner_id: Any):
    room = f"owner:{owner_id}"

    def accept(session: Session) -> bool:
        if session.role == ClientRole.ADMIN or room in session.rooms:
            return True
        return session.role == ClientRole.CUSTOMER and session.owner_id is not None and str(session.owner_id) == str(owner_id)
    return accept


class EventForwarder:
    """Entry point for every domain event the server learns about.

    Events come from the operation handlers and from the Redis Pub/Sub
    channel the booking collaborator publishes to.
    """

    def __init__(self, manager: ConnectionManager, dispatcher: WebhookDispatcher) -> None:
        self._manager = manager
        self._dispatcher = dispatcher

    async def forward(self, event: DomainEventDTO) -> None:
        if event.event_type in WebhookEventType.__members__.values():
            self._dispatcher.trigger(event.event_type, event.payload)
        delivered = await self._push(event)
        logger.info("Event %s pushed to %d session(s)", event.event_type, delivered)

    async def notify(self, message: str) -> int:
        return await self._manager.broadcast(
            push_message(MessageType.NOTIFICATION, {"message": message}), _to_everyone,
        )

    async def _push(self, event: DomainEventDTO) -> int:
        kind, _, action = event.event_type.partition(".")
        data = event.payload

        if event.event_type == NOTIFICATION_EVENT:
            return await self.notify(str(data.get("message", "")))

        if kind == "booking":
            booking_id = str(data.get("bookingId") or data.get("id") or "")
            payload = {"bookingId": booking_id, "action": action, "status": data.get("status"), "id": booking_id}
            return await self._manager.broadcast(
                push_message(MessageType.BOOKING_UPDATE, payload),
                _booking_audience(booking_id, data.get("ownerId")),
            )

        if kind == "availability":
            payload = dict(data)
            payload.setdefault("serviceId", None)
            payload.setdefault("date", None)
            return await self._manager.broadcast(
                push_message(MessageType.AVAILABILITY_UPDATE, payload), _to_everyone,
            )

        if kind in ("owner", "pet"):
            owner_id = data.get("id") if kind == "owner" else data.get("ownerId")
            payload = {"ownerId": owner_id, "action": f"{kind}_{action}", kind: data}
            return await self._manager.broadcast(
                push_message(MessageType.STATUS_UPDATE, payload), _owner_audience(owner_id),
            )

        if kind == "service":
            name = data.get("name") or data.get("serviceId") or "a service"
            return await self.notify(f"Service updated: {name}")

        logger.debug("No push mapping for event %s", event.event_type)
        return 0
