from __future__ import annotations

import asyncio
from itertools import cycle

import pytest

from pawperfect_mcp.application.exceptions import OperationError, RequestTimeoutError, TransportError
from pawperfect_mcp.client.correlator import RequestCorrelator


@pytest.mark.asyncio
async def test_resolve_success_returns_data():
    correlator = RequestCorrelator(timeout=5)
    pending = correlator.register("get_services")

    assert correlator.resolve(pending.request_id, {"success": True, "data": {"services": []}}) is True
    assert await pending.future == {"services": []}
    assert len(correlator) == 0


@pytest.mark.asyncio
async def test_resolve_failure_raises_operation_error():
    correlator = RequestCorrelator(timeout=5)
    pending = correlator.register("get_pet")

    correlator.resolve(pending.request_id, {"success": False, "error": "Pet not found: 9"})

    with pytest.raises(OperationError, match="Pet not found: 9"):
        await pending.future


@pytest.mark.asyncio
async def test_response_for_unknown_request_is_dropped():
    correlator = RequestCorrelator(timeout=5)
    pending = correlator.register("get_services")

    assert correlator.resolve("nope", {"success": True, "data": {}}) is False
    assert correlator.resolve(None, {"success": True, "data": {}}) is False
    assert pending.request_id in correlator
    correlator.reject_all(TransportError("done"))
    with pytest.raises(TransportError):
        await pending.future


@pytest.mark.asyncio
async def test_timeout_removes_entry_and_rejects():
    correlator = RequestCorrelator(timeout=0.01)
    pending = correlator.register("get_services")

    with pytest.raises(RequestTimeoutError, match="get_services"):
        await pending.future
    assert pending.request_id not in correlator


@pytest.mark.asyncio
async def test_settles_exactly_once():
    correlator = RequestCorrelator(timeout=0.01)
    pending = correlator.register("get_services")
    with pytest.raises(RequestTimeoutError):
        await pending.future

    # A late response finds nothing to settle.
    assert correlator.resolve(pending.request_id, {"success": True, "data": {}}) is False
    assert correlator.reject(pending.request_id, TransportError("late")) is False


@pytest.mark.asyncio
async def test_response_cancels_timer():
    correlator = RequestCorrelator(timeout=0.05)
    pending = correlator.register("get_services")
    correlator.resolve(pending.request_id, {"success": True, "data": {"services": [1]}})

    await asyncio.sleep(0.1)
    assert await pending.future == {"services": [1]}


@pytest.mark.asyncio
async def test_cancelled_waiter_frees_its_slot():
    correlator = RequestCorrelator(timeout=5)
    pending = correlator.register("get_services")

    pending.future.cancel()
    await asyncio.sleep(0)

    assert len(correlator) == 0


@pytest.mark.asyncio
async def test_ids_are_unique_among_outstanding_requests():
    ids = cycle(["a", "a", "b"])
    correlator = RequestCorrelator(timeout=5, id_factory=lambda: next(ids))

    first = correlator.register("x")
    second = correlator.register("y")

    assert first.request_id == "a"
    assert second.request_id == "b"
    correlator.reject_all(TransportError("done"))
    for p in (first, second):
        with pytest.raises(TransportError):
            await p.future
