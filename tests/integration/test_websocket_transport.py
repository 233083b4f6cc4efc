"""Integration tests for the WebSocket transport.

Runs a real websockets server on localhost that answers requests out of
order and pushes work, and drives it through TaskfireClient.
"""

from __future__ import annotations

import asyncio
import json

import pytest
import pytest_asyncio
from websockets.asyncio.server import ServerConnection, serve

from taskfire import ClientConfig, TaskfireClient
from taskfire.client import basic_auth_header
from taskfire.connection import ConnectionState
from taskfire.errors import ConnectionFailedError, RequestError
from taskfire.transport import WebSocketTransport
from taskfire.work import QueueWorkSink

# =============================================================================
# Test server
# =============================================================================


class TaskQueueServer:
    """Minimal task-queue server.

    Holds requests until `batch` of them have arrived, then answers them in
    reverse order. A request with action "work.push" is answered and also
    followed by a WORK envelope.
    """

    def __init__(self, batch: int = 1) -> None:
        self.batch = batch
        self.url = ""
        self.auth_headers: list[str | None] = []
        self.paths: list[str] = []
        self.received: list[dict] = []

    async def handler(self, ws: ServerConnection) -> None:
        self.auth_headers.append(ws.request.headers.get("Authorization"))
        self.paths.append(ws.request.path)
        held: list[dict] = []

        async for message in ws:
            request = json.loads(message)
            self.received.append(request)
            held.append(request)
            if len(held) < self.batch:
                continue

            for item in reversed(held):
                status = 404 if item.get("action") == "missing" else 200
                await ws.send(
                    json.dumps(
                        {
                            "kind": "RESPONSE",
                            "requestId": item["requestId"],
                            "status": status,
                            "payload": {"action": item.get("action")},
                        }
                    )
                )
                if item.get("action") == "work.push":
                    await ws.send(json.dumps({"kind": "WORK", "payload": {"task": "t_1"}}))
            held.clear()


@pytest_asyncio.fixture
async def server():
    queue_server = TaskQueueServer()
    async with serve(queue_server.handler, "127.0.0.1", 0) as ws_server:
        port = ws_server.sockets[0].getsockname()[1]
        queue_server.url = f"ws://127.0.0.1:{port}/ws"
        yield queue_server


def make_client(url: str, **options) -> TaskfireClient:
    return TaskfireClient("secret", ClientConfig(url=url, open_timeout=5.0), **options)


# =============================================================================
# Tests
# =============================================================================


@pytest.mark.asyncio
async def test_round_trip_with_auth_and_project(server) -> None:
    async with make_client(server.url, project_id="p_1") as client:
        envelope = await client.request({"action": "queue.create", "name": "jobs"})

    assert envelope.status == 200
    assert envelope.payload == {"action": "queue.create"}
    assert server.auth_headers == [basic_auth_header("secret")]
    assert server.paths == ["/ws?projectId=p_1"]
    assert server.received == [{"action": "queue.create", "name": "jobs", "requestId": 1}]


@pytest.mark.asyncio
async def test_out_of_order_responses(server) -> None:
    """Replies arriving in reverse order reach the right callers."""
    server.batch = 3

    async with make_client(server.url) as client:
        results = await asyncio.gather(
            *(client.request({"action": f"job.{n}"}) for n in range(3))
        )

    assert [r.payload["action"] for r in results] == ["job.0", "job.1", "job.2"]
    assert [r.request_id for r in results] == [1, 2, 3]


@pytest.mark.asyncio
async def test_error_status(server) -> None:
    async with make_client(server.url) as client:
        with pytest.raises(RequestError) as exc_info:
            await client.request({"action": "missing"})

    assert exc_info.value.status == 404


@pytest.mark.asyncio
async def test_pushed_work(server) -> None:
    sink = QueueWorkSink()

    async with make_client(server.url, sink=sink) as client:
        await client.request({"action": "work.push"})
        envelope = await asyncio.wait_for(sink.get(), 5)

    assert envelope.payload == {"task": "t_1"}


@pytest.mark.asyncio
async def test_requests_before_open_are_delivered(server) -> None:
    client = make_client(server.url)
    await client.connect(wait=False)

    envelope = await client.request({"action": "early"})
    await client.close()

    assert envelope.payload == {"action": "early"}
    assert client.state == ConnectionState.CLOSED


@pytest.mark.asyncio
async def test_close_handshake(server) -> None:
    client = make_client(server.url)
    await client.connect()

    await client.close()

    assert client.state == ConnectionState.CLOSED
    assert client.connection.close_code == 1000


@pytest.mark.asyncio
async def test_connection_refused() -> None:
    async with serve(TaskQueueServer().handler, "127.0.0.1", 0) as ws_server:
        port = ws_server.sockets[0].getsockname()[1]
    client = make_client(f"ws://127.0.0.1:{port}/ws")
    errors = []
    client.add_error_listener(errors.append)

    with pytest.raises(ConnectionFailedError):
        await client.connect()

    assert client.state == ConnectionState.FAILED
    assert errors
    await client.close()


@pytest.mark.asyncio
async def test_frame_handler_error_keeps_socket_open(server) -> None:
    """An exception while handling one frame does not close the socket."""
    opened = asyncio.Event()
    received: list[dict] = []
    events: list[object] = []

    class Listener:
        def on_open(self) -> None:
            opened.set()

        def on_message(self, raw) -> None:
            received.append(json.loads(raw))
            if len(received) == 1:
                raise RuntimeError("handler bug")

        def on_error(self, error: BaseException) -> None:
            events.append(error)

        def on_close(self, code, reason: str) -> None:
            events.append(code)

    transport = WebSocketTransport(server.url)
    await transport.connect(Listener())
    await asyncio.wait_for(opened.wait(), 5)

    await transport.send(json.dumps({"action": "a", "requestId": 1}))
    await transport.send(json.dumps({"action": "b", "requestId": 2}))
    for _ in range(200):
        if len(received) == 2:
            break
        await asyncio.sleep(0.01)

    assert [message["requestId"] for message in received] == [1, 2]
    assert events == []

    await transport.close()
    assert events == [1000]
