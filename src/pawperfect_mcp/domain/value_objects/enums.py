from __future__ import annotations

from enum import StrEnum


class MessageType(StrEnum):
    NOTIFICATION = "notification"
    BOOKING_UPDATE = "booking_update"
    AVAILABILITY_UPDATE = "availability_update"
    STATUS_UPDATE = "status_update"
    ERROR = "error"
    REQUEST = "request"
    RESPONSE = "response"


class ClientRole(StrEnum):
    GUEST = "guest"
    CUSTOMER = "customer"
    ADMIN = "admin"


ROLE_LEVEL: dict[ClientRole, int] = {
    ClientRole.GUEST: 0,
    ClientRole.CUSTOMER: 1,
    ClientRole.ADMIN: 2,
}


class ConnectionState(StrEnum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


class OperationType(StrEnum):
    GET_SERVICES = "get_services"
    GET_SERVICE = "get_service"
    GET_AVAILABILITY = "get_availability"
    CREATE_BOOKING = "create_booking"
    GET_BOOKING = "get_booking"
    GET_ALL_BOOKINGS = "get_all_bookings"
    UPDATE_BOOKING_STATUS = "update_booking_status"
    CREATE_PET = "create_pet"
    GET_PET = "get_pet"
    UPDATE_PET = "update_pet"
    GET_PETS_BY_OWNER = "get_pets_by_owner"
    GET_ALL_PETS = "get_all_pets"
    CREATE_OWNER = "create_owner"
    GET_OWNER = "get_owner"
    GET_ALL_OWNERS = "get_all_owners"
    UPDATE_OWNER = "update_owner"
    GET_BOOKINGS_BY_OWNER = "get_bookings_by_owner"
    GET_BOOKINGS_BY_PET = "get_bookings_by_pet"


class WebhookEventType(StrEnum):
    BOOKING_CREATED = "booking.created"
    BOOKING_UPDATED = "booking.updated"
    BOOKING_CANCELLED = "booking.cancelled"
    BOOKING_COMPLETED = "booking.completed"
    PET_CREATED = "pet.created"
    PET_UPDATED = "pet.updated"
    OWNER_CREATED = "owner.created"
    OWNER_UPDATED = "owner.updated"
    AVAILABILITY_UPDATED = "availability.updated"
    SERVICE_UPDATED = "service.updated"


class FrameKind(StrEnum):
    INFO = "info"
    CONTEXT = "context"
    ERROR = "error"
    COMPLETE = "complete"


class StreamState(StrEnum):
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
