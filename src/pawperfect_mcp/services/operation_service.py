"""Server-side execution of MCP operations.

Each handler returns the envelope the operation catalog declares for it
(``{"booking": {...}}``, ``{"pets": [...]}``), so the WebSocket path and the
REST fallback answer with identical shapes.
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Protocol

from pawperfect_mcp.application.dto.events import DomainEventDTO
from pawperfect_mcp.application.dto.principal import Principal
from pawperfect_mcp.application.exceptions import ForbiddenError, ValidationError
from pawperfect_mcp.application.policies.permissions import (
    assert_admin,
    assert_found,
    assert_owner_access,
)
from pawperfect_mcp.application.ports.backend import BookingBackend, Record
from pawperfect_mcp.domain.value_objects.enums import OperationType, WebhookEventType
from pawperfect_mcp.protocol.catalog import entry_for

logger = logging.getLogger(__name__)

OWNER_FIELDS = ("firstName", "lastName", "email", "phone", "address")


class EventSink(Protocol):
    async def forward(self, event: DomainEventDTO) -> None: ...


Handler = Callable[[dict[str, Any], Principal, BookingBackend], Awaitable[tuple[Any, DomainEventDTO | None]]]


def _required(data: dict[str, Any], key: str) -> Any:
    value = data.get(key)
    if value is None or value == "":
        raise ValidationError(f"Missing {key} parameter")
    return value


def _int(data: dict[str, Any], key: str) -> int:
    value = _required(data, key)
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid {key} parameter") from exc


def _changes(data: dict[str, Any], id_key: str, nested_key: str) -> Record:
    """Accept both ``{id, nested: {...}}`` and flat ``{id, field: ...}`` payloads."""
    nested = data.get(nested_key)
    if isinstance(nested, dict):
        return dict(nested)
    return {k: v for k, v in data.items() if k != id_key}


# Services / availability


async def _get_services(data, principal, backend):
    return await backend.get_services(), None


async def _get_service(data, principal, backend):
    service_id = str(_required(data, "serviceId"))
    service = assert_found(await backend.get_service(service_id), "Service", service_id)
    return service, None


async def _get_availability(data, principal, backend):
    service_id = str(_required(data, "serviceId"))
    start_date = str(_required(data, "startDate"))
    end_date = data.get("endDate")
    try:
        slots = await backend.get_availability(service_id, start_date, str(end_date) if end_date else None)
    except ValueError as exc:
        raise ValidationError(f"Invalid date range: {exc}") from exc
    return slots, None


# Bookings


async def _create_booking(data, principal, backend):
    assert_owner_access(principal, data.get("ownerId"), "create booking for another owner")
    booking = await backend.create_booking(dict(data))
    return booking, DomainEventDTO(WebhookEventType.BOOKING_CREATED, booking)


async def _get_booking(data, principal, backend):
    booking_id = str(_required(data, "bookingId"))
    booking = assert_found(await backend.get_booking(booking_id), "Booking", booking_id)
    assert_owner_access(principal, booking.get("ownerId"), "access booking of another owner")
    return booking, None


async def _get_all_bookings(data, principal, backend):
    assert_admin(principal)
    return await backend.get_bookings(), None


_STATUS_EVENTS = {
    "cancelled": WebhookEventType.BOOKING_CANCELLED,
    "completed": WebhookEventType.BOOKING_COMPLETED,
}


async def _update_booking_status(data, principal, backend):
    booking_id = str(_required(data, "bookingId"))
    status = str(_required(data, "status"))
    current = assert_found(await backend.get_booking(booking_id), "Booking", booking_id)
    assert_owner_access(principal, current.get("ownerId"), "update booking of another owner")
    booking = assert_found(await backend.update_booking_status(booking_id, status), "Booking", booking_id)
    event_type = _STATUS_EVENTS.get(status, WebhookEventType.BOOKING_UPDATED)
    return booking, DomainEventDTO(event_type, booking)


async def _get_bookings_by_owner(data, principal, backend):
    owner_id = _int(data, "ownerId")
    assert_owner_access(principal, owner_id, "access bookings of another owner")
    return await backend.get_bookings_by_owner(owner_id), None


async def _get_bookings_by_pet(data, principal, backend):
    pet_id = _int(data, "petId")
    pet = assert_found(await backend.get_pet(pet_id), "Pet", pet_id)
    assert_owner_access(principal, pet.get("ownerId"), "access bookings of a pet owned by another owner")
    return await backend.get_bookings_by_pet(pet_id), None


# Pets


async def _create_pet(data, principal, backend):
    assert_owner_access(principal, data.get("ownerId"), "create pet for another owner")
    pet = await backend.create_pet(dict(data))
    return pet, DomainEventDTO(WebhookEventType.PET_CREATED, pet)


async def _get_pet(data, principal, backend):
    pet_id = _int(data, "petId")
    pet = assert_found(await backend.get_pet(pet_id), "Pet", pet_id)
    assert_owner_access(principal, pet.get("ownerId"), "access pet of another owner")
    return pet, None


async def _update_pet(data, principal, backend):
    pet_id = _int(data, "petId")
    current = assert_found(await backend.get_pet(pet_id), "Pet", pet_id)
    assert_owner_access(principal, current.get("ownerId"), "update pet of another owner")
    changes = _changes(data, "petId", "petData")
    if "ownerId" in changes:
        assert_owner_access(principal, changes["ownerId"], "move pet to another owner")
    pet = assert_found(await backend.update_pet(pet_id, changes), "Pet", pet_id)
    return pet, DomainEventDTO(WebhookEventType.PET_UPDATED, pet)


async def _get_pets_by_owner(data, principal, backend):
    owner_id = _int(data, "ownerId")
    assert_owner_access(principal, owner_id, "access pets of another owner")
    return await backend.get_pets_by_owner(owner_id), None


async def _get_all_pets(data, principal, backend):
    assert_admin(principal)
    return await backend.get_all_pets(), None


# Owners


async def _create_owner(data, principal, backend):
    if principal.is_customer and principal.owner_id is not None:
        raise ForbiddenError("Permission denied: Customers cannot create new owners")
    owner = await backend.create_owner(dict(data))
    return owner, DomainEventDTO(WebhookEventType.OWNER_CREATED, owner)


async def _get_owner(data, principal, backend):
    owner_id = _int(data, "ownerId")
    owner = assert_found(await backend.get_owner(owner_id), "Owner", owner_id)
    assert_owner_access(principal, owner.get("id", owner_id), "access another owner")
    return owner, None


async def _get_all_owners(data, principal, backend):
    assert_admin(principal)
    return await backend.get_all_owners(), None


async def _update_owner(data, principal, backend):
    owner_id = _int(data, "ownerId")
    assert_owner_access(principal, owner_id, "update another owner")
    changes = _changes(data, "ownerId", "ownerData")
    # Only the stored contact fields are writable.
    changes = {k: v for k, v in changes.items() if k in OWNER_FIELDS}
    owner = assert_found(await backend.update_owner(owner_id, changes), "Owner", owner_id)
    return owner, DomainEventDTO(WebhookEventType.OWNER_UPDATED, owner)


HANDLERS: dict[OperationType, Handler] = {
    OperationType.GET_SERVICES: _get_services,
    OperationType.GET_SERVICE: _get_service,
    OperationType.GET_AVAILABILITY: _get_availability,
    OperationType.CREATE_BOOKING: _create_booking,
    OperationType.GET_BOOKING: _get_booking,
    OperationType.GET_ALL_BOOKINGS: _get_all_bookings,
    OperationType.UPDATE_BOOKING_STATUS: _update_booking_status,
    OperationType.CREATE_PET: _create_pet,
    OperationType.GET_PET: _get_pet,
    OperationType.UPDATE_PET: _update_pet,
    OperationType.GET_PETS_BY_OWNER: _get_pets_by_owner,
    OperationType.GET_ALL_PETS: _get_all_pets,
    OperationType.CREATE_OWNER: _create_owner,
    OperationType.GET_OWNER: _get_owner,
    OperationType.GET_ALL_OWNERS: _get_all_owners,
    OperationType.UPDATE_OWNER: _update_owner,
    OperationType.GET_BOOKINGS_BY_OWNER: _get_bookings_by_owner,
    OperationType.GET_BOOKINGS_BY_PET: _get_bookings_by_pet,
}


async def execute(
    operation: OperationType | str,
    data: dict[str, Any] | None,
    principal: Principal,
    backend: BookingBackend,
    events: EventSink | None = None,
) -> dict[str, Any]:
    """Run one operation on behalf of ``principal`` and return its envelope.

    Raises ValidationError, NotFoundError or ForbiddenError; the caller turns
    them into an ``mcp_response`` failure or an HTTP status.
    """
    entry = entry_for(operation)
    handler = HANDLERS[entry.operation]
    value, event = await handler(data or {}, principal, backend)
    if event is not None and events is not None:
        await events.forward(event)
    return entry.envelope(value)
