"""Wire format of domain events on the booking events channel.

One JSON object per message: ``{"event": "booking.created", "data": {...}}``.
"""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from pawperfect_mcp.application.dto.events import DomainEventDTO
from pawperfect_mcp.application.exceptions import ProtocolError
from pawperfect_mcp.application.ports.clock import isoformat_z


def _default(o: object) -> Any:
    if isinstance(o, datetime):
        return isoformat_z(o) if o.tzinfo else o.isoformat()
    return str(o)


def event_to_wire(event: DomainEventDTO) -> str:
    return json.dumps({"event": str(event.event_type), "data": event.payload}, default=_default)


def event_from_wire(raw: str | bytes) -> DomainEventDTO:
    try:
        body = json.loads(raw)
    except ValueError as exc:
        raise ProtocolError(f"Undecodable event: {str(raw)[:200]}") from exc
    if not isinstance(body, dict) or not isinstance(body.get("event"), str) or not body["event"]:
        raise ProtocolError("Event without a type")
    data = body.get("data")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ProtocolError(f"{body['event']} data is not an object")
    return DomainEventDTO(body["event"], data)
