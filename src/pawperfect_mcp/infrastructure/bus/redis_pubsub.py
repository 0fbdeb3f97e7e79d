"""Domain events over Redis Pub/Sub.

The booking collaborator publishes to one channel; the server subscribes and
hands every decoded event to the event forwarder.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Awaitable, Callable

import redis.asyncio as aioredis

from pawperfect_mcp.application.dto.events import DomainEventDTO
from pawperfect_mcp.application.exceptions import ProtocolError
from pawperfect_mcp.infrastructure.bus.serializer import event_from_wire, event_to_wire

logger = logging.getLogger(__name__)

EventHandler = Callable[[DomainEventDTO], Awaitable[None]]


class RedisPubSubPublisher:
    """Implements application.ports.bus.EventPublisher for one channel."""

    def __init__(self, redis: aioredis.Redis, channel: str) -> None:
        self._redis = redis
        self._channel = channel

    async def publish(self, event: DomainEventDTO) -> int:
        receivers = await self._redis.publish(self._channel, event_to_wire(event))
        logger.debug("Published %s to %s (%d receiver(s))", event.event_type, self._channel, receivers)
        return int(receivers)


class RedisPubSubSubscriber:
    """Feeds events published on ``channel`` into ``handler``.

    Runs as a background task between ``start`` and ``stop``. Messages that
    do not decode are logged and skipped; a failing handler never stops the
    loop. A lost Redis connection is logged and the channel is resubscribed
    with capped exponential backoff.
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        handler: EventHandler,
        poll_timeout: float = 1.0,
        retry_delay: float = 1.0,
        max_retry_delay: float = 30.0,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._handler = handler
        self._poll_timeout = poll_timeout
        self._retry_delay = retry_delay
        self._max_retry_delay = max_retry_delay
        self._failures = 0
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=f"pubsub-{self._channel}")
        logger.info("Listening for domain events on %s", self._channel)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Stopped listening on %s", self._channel)

    async def _run(self) -> None:
        while True:
            try:
                await self._listen()
            except Exception:
                self._failures += 1
                delay = min(self._retry_delay * 2 ** (self._failures - 1), self._max_retry_delay)
                logger.exception("Subscription to %s failed, resubscribing in %.1fs", self._channel, delay)
                await asyncio.sleep(delay)

    async def _listen(self) -> None:
        async with self._redis.pubsub(ignore_subscribe_messages=True) as pubsub:
            await pubsub.subscribe(self._channel)
            if self._failures:
                logger.info("Resubscribed to %s after %d failure(s)", self._channel, self._failures)
                self._failures = 0
            while True:
                message = await pubsub.get_message(timeout=self._poll_timeout)
                if message is not None:
                    await self.dispatch(message["data"])

    async def dispatch(self, raw: Any) -> bool:
        """Decode one message and run the handler. False when it was skipped."""
        try:
            event = event_from_wire(raw)
        except ProtocolError as exc:
            logger.warning("Skipping message on %s: %s", self._channel, exc.detail)
            return False
        try:
            await self._handler(event)
        except Exception:
            logger.exception("Handler failed for %s", event.event_type)
            return False
        return True
