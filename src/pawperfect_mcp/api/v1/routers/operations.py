"""One-shot HTTP equivalents of every MCP operation.

Clients fall back to these when no persistent connection is available. The
paths mirror the operation catalog; each route answers with the bare record
or list, which the client reshapes into the operation's envelope.
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Query, status

from pawperfect_mcp.api.deps import (
    BackendDep,
    CredentialsDep,
    CurrentPrincipal,
    ForwarderDep,
    TokensDep,
)
from pawperfect_mcp.api.v1.schemas.mcp import (
    AuthenticateRequest,
    AuthenticateResponse,
    BookingStatusRequest,
)
from pawperfect_mcp.application.dto.principal import Principal
from pawperfect_mcp.application.ports.backend import BookingBackend
from pawperfect_mcp.domain.value_objects.enums import OperationType
from pawperfect_mcp.protocol.catalog import entry_for
from pawperfect_mcp.services import auth_service, operation_service
from pawperfect_mcp.services.event_forwarder import EventForwarder

router = APIRouter(prefix="/api", tags=["operations"])


async def _run(
    operation: OperationType,
    data: dict[str, Any],
    principal: Principal,
    backend: BookingBackend,
    forwarder: EventForwarder | None = None,
) -> Any:
    envelope = await operation_service.execute(operation, data, principal, backend, forwarder)
    return envelope[entry_for(operation).key]


@router.post("/mcp/authenticate", response_model=AuthenticateResponse)
async def authenticate(
    body: AuthenticateRequest, credentials: CredentialsDep, tokens: TokensDep,
) -> AuthenticateResponse:
    principal = await auth_service.resolve_credential(body.credential(), credentials)
    return AuthenticateResponse(role=principal.role, token=tokens.issue(principal), owner_id=principal.owner_id)


# Services / availability


@router.get("/services")
async def get_services(principal: CurrentPrincipal, backend: BackendDep) -> Any:
    return await _run(OperationType.GET_SERVICES, {}, principal, backend)


@router.get("/services/{service_id}")
async def get_service(service_id: str, principal: CurrentPrincipal, backend: BackendDep) -> Any:
    return await _run(OperationType.GET_SERVICE, {"serviceId": service_id}, principal, backend)


@router.get("/availability")
async def get_availability(
    principal: CurrentPrincipal,
    backend: BackendDep,
    service_id: str = Query(..., alias="serviceId"),
    start_date: str = Query(..., alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
) -> Any:
    data = {"serviceId": service_id, "startDate": start_date, "endDate": end_date}
    return await _run(OperationType.GET_AVAILABILITY, data, principal, backend)


# Bookings


@router.post("/bookings", status_code=status.HTTP_201_CREATED)
async def create_booking(
    principal: CurrentPrincipal, backend: BackendDep, forwarder: ForwarderDep,
    body: dict[str, Any] = Body(...),
) -> Any:
    return await _run(OperationType.CREATE_BOOKING, body, principal, backend, forwarder)


@router.get("/bookings/{booking_id}")
async def get_booking(booking_id: str, principal: CurrentPrincipal, backend: BackendDep) -> Any:
    return await _run(OperationType.GET_BOOKING, {"bookingId": booking_id}, principal, backend)


@router.patch("/bookings/{booking_id}/status")
async def update_booking_status(
    booking_id: str, body: BookingStatusRequest,
    principal: CurrentPrincipal, backend: BackendDep, forwarder: ForwarderDep,
) -> Any:
    data = {"bookingId": booking_id, "status": body.status}
    return await _run(OperationType.UPDATE_BOOKING_STATUS, data, principal, backend, forwarder)


@router.get("/admin/bookings")
async def get_all_bookings(principal: CurrentPrincipal, backend: BackendDep) -> Any:
    return await _run(OperationType.GET_ALL_BOOKINGS, {}, principal, backend)


# Pets


@router.post("/pets", status_code=status.HTTP_201_CREATED)
async def create_pet(
    principal: CurrentPrincipal, backend: BackendDep, forwarder: ForwarderDep,
    body: dict[str, Any] = Body(...),
) -> Any:
    return await _run(OperationType.CREATE_PET, body, principal, backend, forwarder)


@router.get("/pets/{pet_id}")
async def get_pet(pet_id: int, principal: CurrentPrincipal, backend: BackendDep) -> Any:
    return await _run(OperationType.GET_PET, {"petId": pet_id}, principal, backend)


@router.patch("/pets/{pet_id}")
async def update_pet(
    pet_id: int, principal: CurrentPrincipal, backend: BackendDep, forwarder: ForwarderDep,
    body: dict[str, Any] = Body(...),
) -> Any:
    return await _run(OperationType.UPDATE_PET, {**body, "petId": pet_id}, principal, backend, forwarder)


@router.get("/pets/{pet_id}/bookings")
async def get_bookings_by_pet(pet_id: int, principal: CurrentPrincipal, backend: BackendDep) -> Any:
    return await _run(OperationType.GET_BOOKINGS_BY_PET, {"petId": pet_id}, principal, backend)


@router.get("/admin/pets")
async def get_all_pets(principal: CurrentPrincipal, backend: BackendDep) -> Any:
    return await _run(OperationType.GET_ALL_PETS, {}, principal, backend)


# Owners


@router.post("/owners", status_code=status.HTTP_201_CREATED)
async def create_owner(
    principal: CurrentPrincipal, backend: BackendDep, forwarder: ForwarderDep,
    body: dict[str, Any] = Body(...),
) -> Any:
    return await _run(OperationType.CREATE_OWNER, body, principal, backend, forwarder)


@router.get("/owners/{owner_id}")
async def get_owner(owner_id: int, principal: CurrentPrincipal, backend: BackendDep) -> Any:
    return await _run(OperationType.GET_OWNER, {"ownerId": owner_id}, principal, backend)


@router.patch("/owners/{owner_id}")
async def update_owner(
    owner_id: int, principal: CurrentPrincipal, backend: BackendDep, forwarder: ForwarderDep,
    body: dict[str, Any] = Body(...),
) -> Any:
    return await _run(OperationType.UPDATE_OWNER, {**body, "ownerId": owner_id}, principal, backend, forwarder)


@router.get("/owners/{owner_id}/pets")
async def get_pets_by_owner(owner_id: int, principal: CurrentPrincipal, backend: BackendDep) -> Any:
    return await _run(OperationType.GET_PETS_BY_OWNER, {"ownerId": owner_id}, principal, backend)


@router.get("/owners/{owner_id}/bookings")
async def get_bookings_by_owner(owner_id: int, principal: CurrentPrincipal, backend: BackendDep) -> Any:
    return await _run(OperationType.GET_BOOKINGS_BY_OWNER, {"ownerId": owner_id}, principal, backend)


@router.get("/admin/owners")
async def get_all_owners(principal: CurrentPrincipal, backend: BackendDep) -> Any:
    return await _run(OperationType.GET_ALL_OWNERS, {}, principal, backend)
