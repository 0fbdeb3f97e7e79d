"""Operation catalog.

Every MCP operation has a fixed one-shot HTTP equivalent. The catalog holds
that mapping plus the envelope each operation resolves to, so both transports
hand callers the same shape.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import quote

from pawperfect_mcp.application.exceptions import ValidationError
from pawperfect_mcp.domain.value_objects.enums import OperationType

Data = dict[str, Any]


@dataclass(frozen=True, slots=True)
class FallbackRequest:
    method: str
    path: str
    params: dict[str, str] | None = None
    json: Data | None = None


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    operation: OperationType
    method: str
    path: Callable[[Data], str]
    key: str
    collection: bool = False
    mutating: bool = False
    query: Callable[[Data], dict[str, str]] | None = None
    body: Callable[[Data], Data] | None = None

    def fallback_request(self, data: Data) -> FallbackRequest:
        return FallbackRequest(
            method=self.method,
            path=self.path(data),
            params=self.query(data) if self.query else None,
            json=self.body(data) if self.body else None,
        )

    def envelope(self, value: Any) -> Data:
        return {self.key: value}

    def reshape(self, raw: Any) -> Data:
        """Wrap a raw one-shot result into the persistent-path envelope."""
        if self.collection:
            if isinstance(raw, list):
                return {self.key: raw}
            if isinstance(raw, dict):
                return {self.key: raw.get(self.key) or []}
            return {self.key: []}
        if isinstance(raw, dict) and set(raw) == {self.key}:
            return {self.key: raw[self.key]}
        return {self.key: raw}

    def default(self) -> Data:
        return {self.key: [] if self.collection else None}


class UnknownResult(dict):
    """Default envelope returned when no transport could answer.

    Shaped exactly like a real result, but ``unknown`` is set: an empty list
    here means "could not find out", not "confirmed empty".
    """

    unknown = True

    def __init__(self, envelope: Data, cause: BaseException | None = None) -> None:
        super().__init__(envelope)
        self.cause = cause


def _seg(data: Data, key: str) -> str:
    value = data.get(key)
    if value is None or value == "":
        raise ValidationError(f"Missing {key} parameter")
    return quote(str(value), safe="")


def _without(key: str) -> Callable[[Data], Data]:
    def body(data: Data) -> Data:
        return {k: v for k, v in data.items() if k != key}
    return body


def _availability_query(data: Data) -> dict[str, str]:
    _seg(data, "serviceId")
    _seg(data, "startDate")
    query = {"serviceId": str(data["serviceId"]), "startDate": str(data["startDate"])}
    if data.get("endDate"):
        query["endDate"] = str(data["endDate"])
    return query


def _all(data: Data) -> Data:
    return dict(data)


_ENTRIES = [
    CatalogEntry(OperationType.GET_SERVICES, "GET", lambda d: "/api/services", "services", collection=True),
    CatalogEntry(OperationType.GET_SERVICE, "GET", lambda d: f"/api/services/{_seg(d, 'serviceId')}", "service"),
    CatalogEntry(
        OperationType.GET_AVAILABILITY, "GET", lambda d: "/api/availability", "availability",
        collection=True, query=_availability_query,
    ),
    CatalogEntry(OperationType.CREATE_BOOKING, "POST", lambda d: "/api/bookings", "booking", mutating=True, body=_all),
    CatalogEntry(OperationType.GET_BOOKING, "GET", lambda d: f"/api/bookings/{_seg(d, 'bookingId')}", "booking"),
    CatalogEntry(OperationType.GET_ALL_BOOKINGS, "GET", lambda d: "/api/admin/bookings", "bookings", collection=True),
    CatalogEntry(
        OperationType.UPDATE_BOOKING_STATUS, "PATCH",
        lambda d: f"/api/bookings/{_seg(d, 'bookingId')}/status", "booking",
        mutating=True, body=lambda d: {"status": d.get("status")},
    ),
    CatalogEntry(OperationType.CREATE_PET, "POST", lambda d: "/api/pets", "pet", mutating=True, body=_all),
    CatalogEntry(OperationType.GET_PET, "GET", lambda d: f"/api/pets/{_seg(d, 'petId')}", "pet"),
    CatalogEntry(
        OperationType.UPDATE_PET, "PATCH", lambda d: f"/api/pets/{_seg(d, 'petId')}", "pet",
        mutating=True, body=_without("petId"),
    ),
    CatalogEntry(
        OperationType.GET_PETS_BY_OWNER, "GET", lambda d: f"/api/owners/{_seg(d, 'ownerId')}/pets", "pets",
        collection=True,
    ),
    CatalogEntry(OperationType.GET_ALL_PETS, "GET", lambda d: "/api/admin/pets", "pets", collection=True),
    CatalogEntry(OperationType.CREATE_OWNER, "POST", lambda d: "/api/owners", "owner", mutating=True, body=_all),
    CatalogEntry(OperationType.GET_OWNER, "GET", lambda d: f"/api/owners/{_seg(d, 'ownerId')}", "owner"),
    CatalogEntry(OperationType.GET_ALL_OWNERS, "GET", lambda d: "/api/admin/owners", "owners", collection=True),
    CatalogEntry(
        OperationType.UPDATE_OWNER, "PATCH", lambda d: f"/api/owners/{_seg(d, 'ownerId')}", "owner",
        mutating=True, body=_without("ownerId"),
    ),
    CatalogEntry(
        OperationType.GET_BOOKINGS_BY_OWNER, "GET", lambda d: f"/api/owners/{_seg(d, 'ownerId')}/bookings",
        "bookings", collection=True,
    ),
    CatalogEntry(
        OperationType.GET_BOOKINGS_BY_PET, "GET", lambda d: f"/api/pets/{_seg(d, 'petId')}/bookings",
        "bookings", collection=True,
    ),
]

CATALOG: dict[OperationType, CatalogEntry] = {e.operation: e for e in _ENTRIES}


def entry_for(operation: OperationType | str) -> CatalogEntry:
    try:
        return CATALOG[OperationType(operation)]
    except ValueError as exc:
        raise ValidationError(f"Unsupported operation: {operation}") from exc
