"""Dict-backed booking backend for local runs and tests.

It implements the ``BookingBackend`` port with no pricing, scheduling or
conflict rules.
"""
from __future__ import annotations

import copy
import uuid
from datetime import date, timedelta
from itertools import count
from typing import Any

from pawperfect_mcp.application.ports.backend import Record

DEFAULT_CAPACITY = 10


class InMemoryBookingBackend:
    def __init__(self) -> None:
        self.services: dict[str, Record] = {}
        self.owners: dict[int, Record] = {}
        self.pets: dict[int, Record] = {}
        self.bookings: dict[str, Record] = {}
        self._ids = count(1)

    def _next_id(self) -> int:
        return next(self._ids)

    # Services

    async def get_services(self) -> list[Record]:
        return [copy.deepcopy(s) for s in self.services.values()]

    async def get_service(self, service_id: str) -> Record | None:
        return copy.deepcopy(self.services.get(service_id))

    async def get_availability(
        self, service_id: str, start_date: str, end_date: str | None,
    ) -> list[Record]:
        start = date.fromisoformat(start_date[:10])
        end = date.fromisoformat(end_date[:10]) if end_date else start
        capacity = int(self.services.get(service_id, {}).get("capacity", DEFAULT_CAPACITY))
        result: list[Record] = []
        day = start
        while day <= end:
            booked = sum(
                1 for b in self.bookings.values()
                if b.get("serviceId") == service_id
                and str(b.get("startDate", ""))[:10] == day.isoformat()
                and b.get("status") != "cancelled"
            )
            result.append({
                "serviceId": service_id,
                "date": day.isoformat(),
                "totalCapacity": capacity,
                "bookedCount": booked,
                "remainingCapacity": max(capacity - booked, 0),
                "available": booked < capacity,
            })
            day += timedelta(days=1)
        return result

    # Bookings

    async def create_booking(self, data: Record) -> Record:
        booking = {**data, "id": self._next_id(), "bookingId": f"PP-{uuid.uuid4().hex[:8].upper()}"}
        booking.setdefault("status", "pending")
        self.bookings[booking["bookingId"]] = booking
        return copy.deepcopy(booking)

    async def get_booking(self, booking_id: str) -> Record | None:
        return copy.deepcopy(self.bookings.get(booking_id))

    async def get_bookings(self) -> list[Record]:
        return [copy.deepcopy(b) for b in self.bookings.values()]

    async def update_booking_status(self, booking_id: str, status: str) -> Record | None:
        booking = self.bookings.get(booking_id)
        if booking is None:
            return None
        booking["status"] = status
        return copy.deepcopy(booking)

    async def get_bookings_by_owner(self, owner_id: int) -> list[Record]:
        return [copy.deepcopy(b) for b in self.bookings.values() if b.get("ownerId") == owner_id]

    async def get_bookings_by_pet(self, pet_id: int) -> list[Record]:
        return [copy.deepcopy(b) for b in self.bookings.values() if b.get("petId") == pet_id]

    # Pets

    async def create_pet(self, data: Record) -> Record:
        pet = {**data, "id": self._next_id()}
        self.pets[pet["id"]] = pet
        return copy.deepcopy(pet)

    async def get_pet(self, pet_id: int) -> Record | None:
        return copy.deepcopy(self.pets.get(pet_id))

    async def update_pet(self, pet_id: int, data: Record) -> Record | None:
        return self._patch(self.pets, pet_id, data)

    async def get_pets_by_owner(self, owner_id: int) -> list[Record]:
        return [copy.deepcopy(p) for p in self.pets.values() if p.get("ownerId") == owner_id]

    async def get_all_pets(self) -> list[Record]:
        return [copy.deepcopy(p) for p in self.pets.values()]

    # Owners

    async def create_owner(self, data: Record) -> Record:
        owner = {**data, "id": self._next_id()}
        self.owners[owner["id"]] = owner
        return copy.deepcopy(owner)

    async def get_owner(self, owner_id: int) -> Record | None:
        return copy.deepcopy(self.owners.get(owner_id))

    async def get_all_owners(self) -> list[Record]:
        return [copy.deepcopy(o) for o in self.owners.values()]

    async def update_owner(self, owner_id: int, data: Record) -> Record | None:
        return self._patch(self.owners, owner_id, data)

    @staticmethod
    def _patch(store: dict[Any, Record], key: Any, data: Record) -> Record | None:
        record = store.get(key)
        if record is None:
            return None
        record.update({k: v for k, v in data.items() if k != "id"})
        return copy.deepcopy(record)


def seed_dev_data(backend: InMemoryBookingBackend) -> None:
    """Populate a handful of records for local development."""
    for service_id, name, price in (
        ("grooming-basic", "Basic Grooming", 45),
        ("daycare-full", "Full Day Daycare", 35),
        ("boarding-night", "Overnight Boarding", 60),
    ):
        backend.services[service_id] = {
            "id": backend._next_id(),
            "serviceId": service_id,
            "name": name,
            "price": price,
            "capacity": DEFAULT_CAPACITY,
        }
    owner_id = backend._next_id()
    backend.owners[owner_id] = {
        "id": owner_id,
        "firstName": "Sam",
        "lastName": "Rivera",
        "email": "sam@example.com",
        "phone": "555-0100",
        "address": "1 Main St",
    }
    pet_id = backend._next_id()
    backend.pets[pet_id] = {"id": pet_id, "ownerId": owner_id, "name": "Biscuit", "breed": "Beagle"}
