"""Named context providers served by the streaming and one-shot endpoints.

Every provider returns a context value ``{"type": <name>, "value": {...}}``.
Failures are reported per context as ``{"type": "error", "value":
{"message", "code"}}`` so one bad context never hides the others.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable

from pawperfect_mcp.application.exceptions import AppError, ValidationError
from pawperfect_mcp.application.ports.backend import BookingBackend, Record

logger = logging.getLogger(__name__)

Params = dict[str, Any]
Provider = Callable[[Params, BookingBackend], Awaitable[dict[str, Any]]]


def _parse_date(raw: Any) -> datetime:
    try:
        return datetime.fromisoformat(str(raw).replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError as exc:
        raise ValidationError(f"Invalid date: {raw}") from exc


def _record_date(record: Record, key: str) -> datetime | None:
    raw = record.get(key)
    if not raw:
        return None
    try:
        return _parse_date(raw)
    except ValidationError:
        return None


def _truthy(value: Any) -> bool:
    return value is True or value == "true"


async def _services(params: Params, backend: BookingBackend) -> dict[str, Any]:
    services = await backend.get_services()
    if params.get("category"):
        services = [s for s in services if s.get("category") == params["category"]]
    return {"type": "services", "value": {"services": services}}


async def _bookings(params: Params, backend: BookingBackend) -> dict[str, Any]:
    bookings = await backend.get_bookings()
    if params.get("status"):
        bookings = [b for b in bookings if b.get("status") == params["status"]]
    if params.get("ownerId"):
        bookings = [b for b in bookings if b.get("ownerId") == int(params["ownerId"])]
    if params.get("petId"):
        bookings = [b for b in bookings if b.get("petId") == int(params["petId"])]
    if params.get("startDate"):
        start = _parse_date(params["startDate"])
        bookings = [b for b in bookings if (d := _record_date(b, "startDate")) is not None and d >= start]
    if params.get("endDate"):
        end = _parse_date(params["endDate"])
        bookings = [
            b for b in bookings
            if (d := _record_date(b, "endDate") or _record_date(b, "startDate")) is not None and d <= end
        ]
    return {"type": "bookings", "value": {"bookings": bookings}}


async def _pets(params: Params, backend: BookingBackend) -> dict[str, Any]:
    if params.get("ownerId"):
        pets = await backend.get_pets_by_owner(int(params["ownerId"]))
    else:
        pets = await backend.get_all_pets()
    if params.get("isVaccinated") is not None:
        wanted = _truthy(params["isVaccinated"])
        pets = [p for p in pets if bool(p.get("isVaccinated")) == wanted]
    return {"type": "pets", "value": {"pets": pets}}


async def _owners(params: Params, backend: BookingBackend) -> dict[str, Any]:
    if params.get("ownerId"):
        owner = await backend.get_owner(int(params["ownerId"]))
        owners = [owner] if owner else []
    elif params.get("email"):
        owners = [o for o in await backend.get_all_owners() if o.get("email") == params["email"]]
    else:
        owners = await backend.get_all_owners()
    return {"type": "owners", "value": {"owners": owners}}


async def _availability(params: Params, backend: BookingBackend) -> dict[str, Any]:
    service_id, start, end = params.get("serviceId"), params.get("startDate"), params.get("endDate")
    if not service_id or not start or not end:
        raise ValidationError("Missing required parameters: serviceId, startDate, endDate")
    try:
        slots = await backend.get_availability(str(service_id), str(start), str(end))
    except ValueError as exc:
        raise ValidationError(f"Invalid date range: {exc}") from exc
    return {
        "type": "availability",
        "value": {"serviceId": service_id, "startDate": start, "endDate": end, "availabilityInfo": slots},
    }


PROVIDERS: dict[str, Provider] = {
    "services": _services,
    "bookings": _bookings,
    "pets": _pets,
    "owners": _owners,
    "availability": _availability,
}


def error_value(message: str, code: int) -> dict[str, Any]:
    return {"type": "error", "value": {"message": message, "code": code}}


def is_error_value(value: Any) -> bool:
    return isinstance(value, dict) and value.get("type") == "error"


async def resolve(name: str, parameters: Params | None, backend: BookingBackend) -> dict[str, Any]:
    """Resolve one context, raising on unknown names or bad parameters."""
    provider = PROVIDERS.get(name)
    if provider is None:
        raise ValidationError(f"Unknown context type: {name}")
    try:
        return await provider(parameters or {}, backend)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid parameters for {name}: {exc}") from exc


async def get_context(
    names: list[str] | None, parameters: Params | None, backend: BookingBackend,
) -> dict[str, dict[str, Any]]:
    """Resolve several contexts; each failure is folded into an error value."""
    result: dict[str, dict[str, Any]] = {}
    for name in names or list(PROVIDERS):
        try:
            result[name] = await resolve(name, parameters, backend)
        except ValidationError as exc:
            result[name] = error_value(exc.detail, 400)
        except AppError as exc:
            result[name] = error_value(f"Error retrieving {name} context: {exc.detail}", 500)
        except Exception as exc:
            logger.exception("Context provider %s failed", name)
            result[name] = error_value(f"Error retrieving {name} context: {exc}", 500)
    return result
