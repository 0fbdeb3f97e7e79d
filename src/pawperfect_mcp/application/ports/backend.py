from __future__ import annotations

from typing import Any, Protocol

Record = dict[str, Any]


class BookingBackend(Protocol):
    """Booking domain collaborator.

    Records are plain JSON-compatible dicts; the protocol layer never looks
    inside them beyond the ``id`` / ``ownerId`` / ``petId`` keys it needs for
    permission checks.
    """

    async def get_services(self) -> list[Record]: ...

    async def get_service(self, service_id: str) -> Record | None: ...

    async def get_availability(
        self, service_id: str, start_date: str, end_date: str | None,
    ) -> list[Record]: ...

    async def create_booking(self, data: Record) -> Record: ...

    async def get_booking(self, booking_id: str) -> Record | None: ...

    async def get_bookings(self) -> list[Record]: ...

    async def update_booking_status(self, booking_id: str, status: str) -> Record | None: ...

    async def get_bookings_by_owner(self, owner_id: int) -> list[Record]: ...

    async def get_bookings_by_pet(self, pet_id: int) -> list[Record]: ...

    async def create_pet(self, data: Record) -> Record: ...

    async def get_pet(self, pet_id: int) -> Record | None: ...

    async def update_pet(self, pet_id: int, data: Record) -> Record | None: ...

    async def get_pets_by_owner(self, owner_id: int) -> list[Record]: ...

    async def get_all_pets(self) -> list[Record]: ...

    async def create_owner(self, data: Record) -> Record: ...

    async def get_owner(self, owner_id: int) -> Record | None: ...

    async def get_all_owners(self) -> list[Record]: ...

    async def update_owner(self, owner_id: int, data: Record) -> Record | None: ...
