from __future__ import annotations

from typing import Protocol

from pawperfect_mcp.application.dto.events import DomainEventDTO


class EventPublisher(Protocol):
    async def publish(self, event: DomainEventDTO) -> int:
        """Returns the number of subscribers that received it."""
        ...
