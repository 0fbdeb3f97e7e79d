"""Typed convenience wrapper over ``McpClient.invoke``."""
from __future__ import annotations

from typing import Any

from pawperfect_mcp.application.exceptions import TransportError
from pawperfect_mcp.client.client import McpClient
from pawperfect_mcp.domain.value_objects.enums import OperationType
from pawperfect_mcp.protocol.catalog import UnknownResult, entry_for

Record = dict[str, Any]


class McpAPI:
    """One method per operation, each returning the unwrapped record or list.

    With ``strict=True`` a degraded (unknown) result raises TransportError
    instead of returning the empty default.
    """

    def __init__(self, client: McpClient, *, strict: bool = False) -> None:
        self._client = client
        self._strict = strict

    async def _call(self, operation: OperationType, data: Record | None = None) -> Any:
        result = await self._client.invoke(operation, data)
        if isinstance(result, UnknownResult) and self._strict:
            raise TransportError(f"{operation} unavailable: {result.cause}")
        return result.get(entry_for(operation).key)

    async def get_services(self) -> list[Record]:
        return await self._call(OperationType.GET_SERVICES)

    async def get_service(self, service_id: str) -> Record | None:
        return await self._call(OperationType.GET_SERVICE, {"serviceId": service_id})

    async def get_service_availability(
        self, service_id: str, start_date: str, end_date: str | None = None,
    ) -> list[Record]:
        data: Record = {"serviceId": service_id, "startDate": start_date}
        if end_date:
            data["endDate"] = end_date
        return await self._call(OperationType.GET_AVAILABILITY, data)

    async def create_booking(self, booking: Record) -> Record:
        return await self._call(OperationType.CREATE_BOOKING, booking)

    async def get_booking(self, booking_id: str) -> Record | None:
        return await self._call(OperationType.GET_BOOKING, {"bookingId": booking_id})

    async def get_all_bookings(self) -> list[Record]:
        return await self._call(OperationType.GET_ALL_BOOKINGS)

    async def update_booking_status(self, booking_id: str, status: str) -> Record:
        return await self._call(OperationType.UPDATE_BOOKING_STATUS, {"bookingId": booking_id, "status": status})

    async def create_pet(self, pet: Record) -> Record:
        return await self._call(OperationType.CREATE_PET, pet)

    async def get_pet(self, pet_id: int) -> Record | None:
        return await self._call(OperationType.GET_PET, {"petId": pet_id})

    async def update_pet(self, pet_id: int, changes: Record) -> Record:
        return await self._call(OperationType.UPDATE_PET, {**changes, "petId": pet_id})

    async def get_pets_by_owner(self, owner_id: int) -> list[Record]:
        return await self._call(OperationType.GET_PETS_BY_OWNER, {"ownerId": owner_id})

    async def get_all_pets(self) -> list[Record]:
        return await self._call(OperationType.GET_ALL_PETS)

    async def create_owner(self, owner: Record) -> Record:
        return await self._call(OperationType.CREATE_OWNER, owner)

    async def get_owner(self, owner_id: int) -> Record | None:
        return await self._call(OperationType.GET_OWNER, {"ownerId": owner_id})

    async def get_all_owners(self) -> list[Record]:
        return await self._call(OperationType.GET_ALL_OWNERS)

    async def update_owner(self, owner_id: int, changes: Record) -> Record:
        return await self._call(OperationType.UPDATE_OWNER, {**changes, "ownerId": owner_id})

    async def get_bookings_by_owner(self, owner_id: int) -> list[Record]:
        return await self._call(OperationType.GET_BOOKINGS_BY_OWNER, {"ownerId": owner_id})

    async def get_bookings_by_pet(self, pet_id: int) -> list[Record]:
        return await self._call(OperationType.GET_BOOKINGS_BY_PET, {"petId": pet_id})
