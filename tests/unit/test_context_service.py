from __future__ import annotations

import pytest

from pawperfect_mcp.application.exceptions import ValidationError
from pawperfect_mcp.services.context_service import get_context, is_error_value, resolve


@pytest.fixture
def bookings(backend, owner, pet):
    backend.bookings.update({
        "PP-A": {"bookingId": "PP-A", "ownerId": owner["id"], "petId": pet["id"], "status": "pending",
                 "startDate": "2030-01-05"},
        "PP-B": {"bookingId": "PP-B", "ownerId": owner["id"], "petId": pet["id"], "status": "completed",
                 "startDate": "2030-02-10"},
        "PP-C": {"bookingId": "PP-C", "ownerId": 77, "petId": 78, "status": "pending",
                 "startDate": "2030-03-01"},
    })
    return backend


@pytest.mark.asyncio
async def test_services_context(backend):
    value = await resolve("services", {}, backend)
    assert value["type"] == "services"
    assert len(value["value"]["services"]) == 3


@pytest.mark.asyncio
async def test_bookings_filters(bookings, owner):
    by_status = await resolve("bookings", {"status": "pending"}, bookings)
    by_owner = await resolve("bookings", {"ownerId": str(owner["id"])}, bookings)
    by_range = await resolve("bookings", {"startDate": "2030-02-01", "endDate": "2030-02-28"}, bookings)

    assert {b["bookingId"] for b in by_status["value"]["bookings"]} == {"PP-A", "PP-C"}
    assert {b["bookingId"] for b in by_owner["value"]["bookings"]} == {"PP-A", "PP-B"}
    assert [b["bookingId"] for b in by_range["value"]["bookings"]] == ["PP-B"]


@pytest.mark.asyncio
async def test_pets_vaccination_filter(backend, pet):
    backend.pets[pet["id"]]["isVaccinated"] = True

    vaccinated = await resolve("pets", {"isVaccinated": "true"}, backend)
    unvaccinated = await resolve("pets", {"isVaccinated": False}, backend)

    assert [p["name"] for p in vaccinated["value"]["pets"]] == ["Biscuit"]
    assert unvaccinated["value"]["pets"] == []


@pytest.mark.asyncio
async def test_owners_by_email(backend):
    value = await resolve("owners", {"email": "sam@example.com"}, backend)
    assert [o["firstName"] for o in value["value"]["owners"]] == ["Sam"]

    missing = await resolve("owners", {"ownerId": 12345}, backend)
    assert missing["value"]["owners"] == []


@pytest.mark.asyncio
async def test_availability_context_shape(backend):
    value = await resolve(
        "availability", {"serviceId": "daycare-full", "startDate": "2030-01-01", "endDate": "2030-01-02"}, backend,
    )
    assert value["type"] == "availability"
    assert value["value"]["serviceId"] == "daycare-full"
    assert len(value["value"]["availabilityInfo"]) == 2


@pytest.mark.asyncio
async def test_availability_requires_range(backend):
    with pytest.raises(ValidationError, match="Missing required parameters"):
        await resolve("availability", {"serviceId": "daycare-full"}, backend)


@pytest.mark.asyncio
async def test_unknown_context_name(backend):
    with pytest.raises(ValidationError, match="Unknown context type: weather"):
        await resolve("weather", {}, backend)


@pytest.mark.asyncio
async def test_get_context_folds_errors_per_name(backend):
    result = await get_context(["services", "weather", "availability"], {}, backend)

    assert result["services"]["type"] == "services"
    assert is_error_value(result["weather"])
    assert result["weather"]["value"] == {"message": "Unknown context type: weather", "code": 400}
    assert result["availability"]["value"]["code"] == 400


@pytest.mark.asyncio
async def test_get_context_defaults_to_every_provider(backend):
    result = await get_context(None, {"serviceId": "daycare-full", "startDate": "2030-01-01",
                                      "endDate": "2030-01-01"}, backend)
    assert set(result) == {"services", "bookings", "pets", "owners", "availability"}
    assert not any(is_error_value(v) for v in result.values())
