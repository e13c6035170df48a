"""Pytest configuration and fixtures for devrouter tests."""

from typing import AsyncIterator, Callable, List, Optional, Sequence, Tuple

import httpx
import pytest
from fastapi import Request, WebSocket
from fastapi.responses import PlainTextResponse
from fastapi.testclient import TestClient

from devrouter.core.forwarder import UpstreamForwarder
from devrouter.core.frontend import create_app
from devrouter.core.router import Router


class FakeBuildServer:
    """Build server double recording what it was asked to handle."""

    def __init__(self):
        self.requests: List[str] = []
        self.upgrades: List[str] = []

    async def handle_request(self, request: Request):
        self.requests.append(request.url.path)
        return PlainTextResponse("from build server", headers={"x-build-server": "1"})

    async def handle_upgrade(self, websocket: WebSocket):
        self.upgrades.append(websocket.url.path)
        await websocket.accept()
        await websocket.send_text("hello from build server")
        await websocket.close()


class BodyStream(httpx.AsyncByteStream):
    """Upstream body delivered in chunks, like a response read off the network."""

    def __init__(self, *chunks: bytes):
        self.chunks = chunks
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


def upstream_response(
    status_code: int,
    headers: Optional[Sequence[Tuple[str, str]]] = None,
    body: bytes = b"",
) -> httpx.Response:
    """Build an unread upstream response with a content-length, as a server sends it."""
    headers = list(headers or [])
    headers.append(("content-length", str(len(body))))
    half = len(body) // 2
    return httpx.Response(status_code, headers=headers, stream=BodyStream(body[:half], body[half:]))


class FakeUpstream:
    """Records outbound requests and answers them with a configurable handler."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.handler: Callable[[httpx.Request], httpx.Response] = lambda request: upstream_response(
            200, body=b"upstream body"
        )

    def respond(self, status_code: int, headers=None, body: bytes = b"") -> None:
        self.handler = lambda request: upstream_response(status_code, headers, body)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


@pytest.fixture
def build_server() -> FakeBuildServer:
    return FakeBuildServer()


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def forwarder(upstream) -> UpstreamForwarder:
    return UpstreamForwarder(transport=httpx.MockTransport(upstream))


@pytest.fixture
def client(build_server, forwarder) -> TestClient:
    app = create_app(build_server, Router(forwarder=forwarder))
    return TestClient(app)
