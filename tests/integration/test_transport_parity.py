"""Both transports resolve every operation to the same envelope."""
from __future__ import annotations

import httpx
import pytest

from pawperfect_mcp.app import create_app
from pawperfect_mcp.application.dto.principal import Principal
from pawperfect_mcp.application.exceptions import AuthorizationError, ForbiddenError
from pawperfect_mcp.client.client import McpClient
from pawperfect_mcp.client.context_stream import ContextStreamClient
from pawperfect_mcp.client.fallback import HttpFallback
from pawperfect_mcp.client.session import ClientSession
from pawperfect_mcp.config import settings
from pawperfect_mcp.domain.value_objects.enums import ClientRole
from pawperfect_mcp.infrastructure.backend.in_memory import InMemoryBookingBackend, seed_dev_data
from pawperfect_mcp.services.operation_service import execute
from tests.conftest import failing_factory, make_booking_data

ADMIN = Principal(role=ClientRole.ADMIN)


@pytest.fixture
def backend() -> InMemoryBookingBackend:
    b = InMemoryBookingBackend()
    seed_dev_data(b)
    return b


@pytest.fixture
def http(backend):
    app = create_app(backend=backend)
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://mcp.test")


async def _admin_fallback(http: httpx.AsyncClient) -> HttpFallback:
    session = ClientSession()
    fallback = HttpFallback(http, session)
    session.apply(await fallback.authenticate({"adminKey": settings.MCP_ADMIN_KEY}))
    assert session.role == ClientRole.ADMIN
    return fallback


READS = [
    ("get_services", {}),
    ("get_service", {"serviceId": "daycare-full"}),
    ("get_availability", {"serviceId": "daycare-full", "startDate": "2030-01-01", "endDate": "2030-01-03"}),
    ("get_all_bookings", {}),
    ("get_pet", {"petId": 5}),
    ("get_pets_by_owner", {"ownerId": 4}),
    ("get_all_pets", {}),
    ("get_owner", {"ownerId": 4}),
    ("get_all_owners", {}),
    ("get_bookings_by_owner", {"ownerId": 4}),
    ("get_bookings_by_pet", {"petId": 5}),
]


@pytest.mark.asyncio
async def test_reads_match(http, backend):
    fallback = await _admin_fallback(http)
    await execute("create_booking", make_booking_data(4, 5), ADMIN, backend)

    for operation, data in READS:
        assert await fallback.call(operation, data) == await execute(operation, data, ADMIN, backend), operation


@pytest.mark.asyncio
async def test_writes_match(http, backend):
    fallback = await _admin_fallback(http)

    booking = await fallback.call("create_booking", make_booking_data(4, 5))
    booking_id = booking["booking"]["bookingId"]
    assert booking == await execute("get_booking", {"bookingId": booking_id}, ADMIN, backend)

    status = await fallback.call("update_booking_status", {"bookingId": booking_id, "status": "completed"})
    assert status == await execute("get_booking", {"bookingId": booking_id}, ADMIN, backend)

    pet = await fallback.call("create_pet", {"ownerId": 4, "name": "Pip"})
    assert pet == await execute("get_pet", {"petId": pet["pet"]["id"]}, ADMIN, backend)

    renamed = await fallback.call("update_pet", {"petId": pet["pet"]["id"], "name": "Pipkin"})
    assert renamed == await execute("get_pet", {"petId": pet["pet"]["id"]}, ADMIN, backend)

    owner = await fallback.call("create_owner", {"firstName": "Alex", "lastName": "Kim"})
    assert owner == await execute("get_owner", {"ownerId": owner["owner"]["id"]}, ADMIN, backend)

    updated = await fallback.call("update_owner", {"ownerId": owner["owner"]["id"], "phone": "555-0123"})
    assert updated == await execute("get_owner", {"ownerId": owner["owner"]["id"]}, ADMIN, backend)


@pytest.mark.asyncio
async def test_denials_carry_the_same_message(http, backend):
    fallback = HttpFallback(http, ClientSession())

    with pytest.raises(ForbiddenError) as direct:
        await execute("get_all_pets", {}, Principal(role=ClientRole.GUEST), backend)
    with pytest.raises(AuthorizationError) as over_http:
        await fallback.call("get_all_pets")

    assert over_http.value.detail == direct.value.detail


@pytest.mark.asyncio
async def test_client_without_persistent_connection(http):
    async with McpClient(http=http, transport_factory=failing_factory()) as client:
        assert await client.connect() is False

        result = await client.authenticate(owner_id=4)
        pets = await client.invoke("get_pets_by_owner", {"ownerId": 4})

    assert result.success and result.role == ClientRole.CUSTOMER
    assert [p["name"] for p in pets["pets"]] == ["Biscuit"]


@pytest.mark.asyncio
async def test_context_stream_against_server(http):
    client = ContextStreamClient(http=http, reconnect_delay=0)
    names = []
    client.on("context", lambda frame: names.append(frame.context_name))

    await client.connect(["services", "owners"])
    await client.wait()
    value = await client.fetch_context("pets", {"ownerId": 4}, timeout=2)

    assert names == ["services", "owners"]
    assert value["value"]["pets"][0]["name"] == "Biscuit"
    await client.aclose()
