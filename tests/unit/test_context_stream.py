from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from pawperfect_mcp.application.exceptions import OperationError, RequestTimeoutError
from pawperfect_mcp.client.context_stream import CONNECTED, DISCONNECTED, ContextStreamClient, StreamIntent
from pawperfect_mcp.domain.value_objects.enums import FrameKind, StreamState
from pawperfect_mcp.protocol.sse import encode_frame


def sse(*frames: tuple[str, dict]) -> bytes:
    return "".join(encode_frame(kind, data) for kind, data in frames).encode()


PETS_STREAM = sse(
    ("info", {"message": "Starting context stream"}),
    ("context", {"contextName": "pets", "data": {"type": "pets", "value": {"pets": [{"id": 5}]}}}),
    ("context", {"contextName": "owners", "data": {"type": "owners", "value": {"owners": []}}}),
    ("complete", {"message": "Context stream completed"}),
)


class BrokenStream(httpx.AsyncByteStream):
    async def __aiter__(self):
        yield sse(("info", {"message": "Starting context stream"}))
        raise httpx.ReadError("connection reset")


class HangingStream(httpx.AsyncByteStream):
    async def __aiter__(self):
        yield sse(("info", {"message": "Starting context stream"}))
        await asyncio.Event().wait()
        yield b""


def make_client(handler, **kwargs) -> tuple[ContextStreamClient, list[tuple[str, object]]]:
    http = httpx.AsyncClient(base_url="http://mcp.test", transport=httpx.MockTransport(handler))
    kwargs.setdefault("reconnect_delay", 0)
    client = ContextStreamClient(http=http, **kwargs)
    events: list[tuple[str, object]] = []
    for kind in ("info", "context", "error", "complete", CONNECTED, DISCONNECTED):
        client.on(kind, lambda arg, kind=kind: events.append((kind, arg)))
    return client, events


def kinds(events) -> list[str]:
    return [kind for kind, _ in events]


@pytest.mark.asyncio
async def test_native_stream_delivers_frames_in_order():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=PETS_STREAM, headers={"Content-Type": "text/event-stream"})

    client, events = make_client(handler, api_key="k")

    intent = await client.connect(["pets", "owners"], {"ownerId": 4})
    await client.wait()

    assert kinds(events) == [CONNECTED, "info", "context", "context", "complete"]
    assert events[0][1] == intent
    pets = events[2][1]
    assert pets.context_name == "pets"
    assert pets.data["value"]["pets"] == [{"id": 5}]
    params = seen[0].url.params
    assert params["apiKey"] == "k"
    assert params["contexts"] == "pets,owners"
    assert json.loads(params["parameters"]) == {"ownerId": 4}
    assert client.state == StreamState.IDLE
    await client.aclose()


@pytest.mark.asyncio
async def test_custom_headers_use_chunked_path():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        body = sse(("info", {"message": "hi"})) + b"event: context\ndata: {broken\n\n" + sse(
            ("context", {"contextName": "services", "data": {"type": "services"}}),
            ("complete", {"message": "done"}),
        )
        return httpx.Response(200, content=body)

    client, events = make_client(handler, api_key="k", headers={"X-Clinic": "north"})

    await client.connect(["services"])
    await client.wait()

    assert kinds(events) == [CONNECTED, "info", "context", "complete"]
    request = seen[0]
    assert request.headers["X-Clinic"] == "north"
    assert request.headers["apiKey"] == "k"
    assert "apiKey" not in request.url.params
    await client.aclose()


@pytest.mark.asyncio
async def test_gives_up_after_five_reconnects():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return httpx.Response(503)

    client, events = make_client(handler)

    await client.connect(["pets"])
    await client.wait()

    assert len(attempts) == 6
    assert kinds(events) == [DISCONNECTED]
    await client.aclose()
    # Already idle, so closing does not signal again.
    assert kinds(events) == [DISCONNECTED]


@pytest.mark.asyncio
async def test_successful_open_resets_reconnect_count():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        if len(attempts) == 6:
            return httpx.Response(200, stream=BrokenStream())
        return httpx.Response(503)

    client, events = make_client(handler)

    await client.connect(["pets"])
    await client.wait()

    assert len(attempts) == 11
    assert kinds(events) == [CONNECTED, "info", DISCONNECTED]
    await client.aclose()


@pytest.mark.asyncio
async def test_reconnect_replays_same_intent():
    attempts: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        if len(attempts) == 1:
            return httpx.Response(502)
        return httpx.Response(200, content=PETS_STREAM)

    client, events = make_client(handler)

    await client.connect(["pets", "owners"], {"isVaccinated": True})
    await client.wait()

    assert attempts[0].url.params == attempts[1].url.params
    assert kinds(events)[-1] == "complete"
    await client.aclose()


@pytest.mark.asyncio
async def test_stream_ending_without_complete_signals_disconnect():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=sse(("info", {"message": "hi"})))

    client, events = make_client(handler)

    await client.connect(["pets"])
    await client.wait()

    assert kinds(events) == [CONNECTED, "info", DISCONNECTED]
    assert events[-1][1] == "stream ended without complete"
    await client.aclose()


@pytest.mark.asyncio
async def test_disconnect_closes_active_stream():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, stream=HangingStream())

    client, events = make_client(handler)
    await client.connect(["pets"])
    for _ in range(20):
        await asyncio.sleep(0)
        if "info" in kinds(events):
            break

    await client.disconnect()
    await client.disconnect()

    assert kinds(events) == [CONNECTED, "info", DISCONNECTED]
    assert events[-1][1] == "closed by client"
    assert client.state == StreamState.IDLE
    await client.aclose()


@pytest.mark.asyncio
async def test_fetch_context_prefers_one_shot_endpoint():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert json.loads(request.content) == {"contexts": ["pets"], "parameters": {"ownerId": 4}}
        return httpx.Response(200, json={"pets": {"type": "pets", "value": {"pets": []}}})

    client, _ = make_client(handler)

    value = await client.fetch_context("pets", {"ownerId": 4}, timeout=1)

    assert value == {"type": "pets", "value": {"pets": []}}
    await client.aclose()


@pytest.mark.asyncio
async def test_fetch_context_falls_back_to_private_stream():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(500)
        return httpx.Response(200, content=PETS_STREAM)

    client, events = make_client(handler)

    value = await client.fetch_context("owners", timeout=1)

    assert value == {"type": "owners", "value": {"owners": []}}
    # The private stream reports to nobody but the fetch.
    assert events == []
    await client.aclose()


@pytest.mark.asyncio
async def test_fetch_context_error_frame_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(200, json={"availability": {"type": "error", "value": {"message": "x", "code": 400}}})
        return httpx.Response(200, content=sse(
            ("error", {"contextName": "availability", "error": "Missing required parameters"}),
            ("complete", {"message": "done"}),
        ))

    client, _ = make_client(handler)

    with pytest.raises(OperationError, match="Missing required parameters"):
        await client.fetch_context("availability", timeout=1)
    await client.aclose()


@pytest.mark.asyncio
async def test_fetch_context_times_out():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            raise httpx.ConnectError("refused")
        return httpx.Response(200, stream=HangingStream())

    client, _ = make_client(handler)

    with pytest.raises(RequestTimeoutError):
        await client.fetch_context("pets", timeout=0.05)
    await client.aclose()


def test_intent_query_round_trip():
    intent = StreamIntent.of(["pets"], {"ownerId": 4})
    assert intent.parameters == {"ownerId": 4}
    assert intent.query() == {"contexts": "pets", "parameters": '{"ownerId": 4}'}
    assert intent.query("k")["apiKey"] == "k"
    assert FrameKind.CONTEXT == "context"


@pytest.mark.asyncio
async def test_concurrent_fetches_alongside_main_stream():
    body = sse(
        ("info", {"message": "Starting context stream"}),
        ("context", {"contextName": "services", "data": {"type": "services", "value": {"services": [1]}}}),
        ("error", {"contextName": "pets", "error": "boom"}),
        ("complete", {"message": "done"}),
    )

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(404)
        return httpx.Response(200, content=body)

    client, events = make_client(handler)
    await client.connect(["services", "pets"])

    pets, services = await asyncio.gather(
        client.fetch_context("pets", timeout=1),
        client.fetch_context("services", timeout=1),
        return_exceptions=True,
    )
    await client.wait()

    assert isinstance(pets, OperationError)
    assert pets.detail == "boom"
    assert services == {"type": "services", "value": {"services": [1]}}
    assert kinds(events) == [CONNECTED, "info", "context", "error", "complete"]
    await client.aclose()
