"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Callable

import pytest

from pawperfect_mcp.application.dto.events import DomainEventDTO
from pawperfect_mcp.application.dto.principal import GUEST, Principal
from pawperfect_mcp.application.exceptions import TransportError
from pawperfect_mcp.domain.value_objects.enums import ClientRole
from pawperfect_mcp.infrastructure.backend.in_memory import InMemoryBookingBackend, seed_dev_data
from pawperfect_mcp.protocol.messages import error_response, success_response


@pytest.fixture
def backend() -> InMemoryBookingBackend:
    b = InMemoryBookingBackend()
    seed_dev_data(b)
    return b


@pytest.fixture
def owner(backend) -> dict[str, Any]:
    return next(iter(backend.owners.values()))


@pytest.fixture
def pet(backend) -> dict[str, Any]:
    return next(iter(backend.pets.values()))


@pytest.fixture
def admin_principal() -> Principal:
    return Principal(role=ClientRole.ADMIN)


@pytest.fixture
def customer_principal(owner) -> Principal:
    return Principal(role=ClientRole.CUSTOMER, owner_id=owner["id"])


@pytest.fixture
def guest_principal() -> Principal:
    return GUEST


def make_booking_data(owner_id: int, pet_id: int, **overrides: Any) -> dict[str, Any]:
    data = {
        "serviceId": "grooming-basic",
        "ownerId": owner_id,
        "petId": pet_id,
        "startDate": "2030-05-01",
        "startTime": "09:00",
    }
    data.update(overrides)
    return data


@dataclass
class FakeEventSink:
    events: list[DomainEventDTO] = field(default_factory=list)

    async def forward(self, event: DomainEventDTO) -> None:
        self.events.append(event)


@dataclass
class FakeWebSocket:
    """Stands in for a FastAPI WebSocket inside ConnectionManager."""

    fail: bool = False
    accepted: bool = False
    sent: list[dict[str, Any]] = field(default_factory=list)

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, raw: str) -> None:
        if self.fail:
            raise RuntimeError("socket gone")
        self.sent.append(json.loads(raw))


class FakePersistentTransport:
    """In-memory PersistentTransport.

    ``responder`` sees every sent frame and returns the frames the "server"
    answers with.
    """

    def __init__(self, responder: Callable[[dict[str, Any]], list[dict[str, Any]]] | None = None) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self.responder = responder
        self._inbox: asyncio.Queue[str | None] = asyncio.Queue()

    async def send(self, frame: dict[str, Any]) -> None:
        if self.closed:
            raise TransportError("closed")
        self.sent.append(frame)
        if self.responder is not None:
            for reply in self.responder(frame) or []:
                self.push(reply)

    def push(self, frame: dict[str, Any] | str) -> None:
        self._inbox.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    def drop(self) -> None:
        """Simulate the server going away."""
        self._inbox.put_nowait(None)

    async def recv(self) -> str:
        item = await self._inbox.get()
        if item is None:
            self.closed = True
            raise TransportError("closed")
        return item

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._inbox.put_nowait(None)

    def requests(self, kind: str = "mcp_request") -> list[dict[str, Any]]:
        return [f["data"] for f in self.sent if f["type"] == kind]


def factory_for(transport: FakePersistentTransport):
    async def factory() -> FakePersistentTransport:
        return transport
    return factory


def failing_factory():
    async def factory():
        raise TransportError("connection refused")
    return factory


def ok_frame(request_id: str, data: Any) -> dict[str, Any]:
    return success_response(request_id, data).model_dump()


def error_frame(request_id: str, error: str) -> dict[str, Any]:
    return error_response(request_id, error).model_dump()
