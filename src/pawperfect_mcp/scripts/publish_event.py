"""Publish one domain event to the booking events channel.

Usage: python -m pawperfect_mcp.scripts.publish_event booking.updated '{"bookingId": "PP-1", "status": "confirmed"}'
"""
from __future__ import annotations

import asyncio
import json
import logging
import sys

import redis.asyncio as aioredis

from pawperfect_mcp.application.dto.events import DomainEventDTO
from pawperfect_mcp.application.ports.bus import EventPublisher
from pawperfect_mcp.config import settings
from pawperfect_mcp.infrastructure.bus.redis_pubsub import RedisPubSubPublisher

logger = logging.getLogger(__name__)


async def publish(publisher: EventPublisher, event: DomainEventDTO) -> int:
    receivers = await publisher.publish(event)
    logger.info("Published %s to %d subscriber(s)", event.event_type, receivers)
    return receivers


async def _main(event: DomainEventDTO) -> None:
    r = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    try:
        await publish(RedisPubSubPublisher(r, settings.BOOKING_EVENTS_CHANNEL), event)
    finally:
        await r.aclose()


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    if len(sys.argv) < 2:
        sys.exit(__doc__)
    data = json.loads(sys.argv[2]) if len(sys.argv) > 2 else {}
    asyncio.run(_main(DomainEventDTO(sys.argv[1], data)))


if __name__ == "__main__":
    main()
