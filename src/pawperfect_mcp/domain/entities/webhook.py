from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class WebhookSubscription:
    id: str
    url: str
    events: list[str]
    created_at: datetime
    secret: str | None = None
    is_active: bool = True
    error_count: int = 0
    last_triggered: datetime | None = None
    last_failure: datetime | None = None

    def subscribed_to(self, event_type: str) -> bool:
        return self.is_active and event_type in self.events
