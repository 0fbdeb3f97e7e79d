"""Matches ``mcp_response`` frames to the request that caused them."""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable

from pawperfect_mcp.application.exceptions import OperationError, RequestTimeoutError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PendingRequest:
    request_id: str
    operation: str
    issued_at: float
    deadline: float
    future: asyncio.Future[Any]
    timer: asyncio.TimerHandle | None = None


class RequestCorrelator:
    """Table of outstanding requests keyed by correlation id.

    An entry leaves the table exactly once: on its response, on its deadline,
    or on an explicit reject. Whichever comes first settles the future; the
    others find nothing to do.
    """

    def __init__(self, timeout: float = 30.0, id_factory: Callable[[], str] | None = None) -> None:
        self._timeout = timeout
        self._new_id = id_factory or (lambda: uuid.uuid4().hex)
        self._pending: dict[str, PendingRequest] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending

    def register(self, operation: str) -> PendingRequest:
        loop = asyncio.get_running_loop()
        request_id = self._new_id()
        while request_id in self._pending:
            request_id = self._new_id()
        now = time.monotonic()
        pending = PendingRequest(
            request_id=request_id,
            operation=operation,
            issued_at=now,
            deadline=now + self._timeout,
            future=loop.create_future(),
        )
        pending.timer = loop.call_later(self._timeout, self._expire, request_id)
        # A caller that stops waiting frees its slot immediately.
        pending.future.add_done_callback(lambda f, rid=request_id: self._forget_cancelled(rid, f))
        self._pending[request_id] = pending
        return pending

    def resolve(self, request_id: str | None, payload: dict[str, Any]) -> bool:
        pending = self._take(request_id)
        if pending is None:
            logger.warning("Received response for unknown request %s", request_id)
            return False
        if payload.get("success"):
            pending.future.set_result(payload.get("data"))
        else:
            pending.future.set_exception(OperationError(str(payload.get("error") or "Unknown error")))
        return True

    def reject(self, request_id: str, exc: BaseException) -> bool:
        pending = self._take(request_id)
        if pending is None:
            return False
        pending.future.set_exception(exc)
        return True

    def reject_all(self, exc: BaseException) -> int:
        ids = list(self._pending)
        for request_id in ids:
            self.reject(request_id, exc)
        return len(ids)

    def _expire(self, request_id: str) -> None:
        pending = self._take(request_id)
        if pending is None:
            return
        logger.warning("Request %s (%s) timed out", request_id, pending.operation)
        pending.future.set_exception(RequestTimeoutError(f"Request timed out: {pending.operation}"))

    def _take(self, request_id: str | None) -> PendingRequest | None:
        if request_id is None:
            return None
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return None
        if pending.timer is not None:
            pending.timer.cancel()
        if pending.future.done():
            return None
        return pending

    def _forget_cancelled(self, request_id: str, future: asyncio.Future[Any]) -> None:
        if future.cancelled():
            self._take(request_id)
