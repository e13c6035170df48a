"""Tests for the prefix router."""

from unittest.mock import AsyncMock

import pytest
from fastapi import Request
from fastapi.responses import PlainTextResponse

from devrouter.core.router import Router


def make_request(path: str, query: bytes = b"") -> Request:
    return Request({
        "type": "http",
        "method": "GET",
        "path": path,
        "raw_path": path.encode(),
        "query_string": query,
        "headers": [],
    })


@pytest.fixture
def forwarder():
    forwarder = AsyncMock()
    forwarder.forward = AsyncMock(return_value=PlainTextResponse("upstream"))
    return forwarder


@pytest.fixture
def fallback():
    return AsyncMock(return_value=PlainTextResponse("fallback"))


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/it", "/it/routes", "/services/timetables/42"])
async def test_matching_paths_go_upstream(forwarder, fallback, path):
    """Test that matching paths are forwarded and never reach the fallback."""
    request = make_request(path)

    response = await Router(forwarder=forwarder).route(request, fallback)

    assert response.body == b"upstream"
    forwarder.forward.assert_awaited_once_with(request)
    fallback.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/", "/app.js", "/services/other", "/It"])
async def test_other_paths_go_to_fallback(forwarder, fallback, path):
    """Test that other paths reach the fallback and never the forwarder."""
    request = make_request(path)

    response = await Router(forwarder=forwarder).route(request, fallback)

    assert response.body == b"fallback"
    fallback.assert_awaited_once_with(request)
    forwarder.forward.assert_not_awaited()


@pytest.mark.asyncio
async def test_prefix_in_query_does_not_match(forwarder, fallback):
    request = make_request("/app.js", query=b"next=/it")

    await Router(forwarder=forwarder).route(request, fallback)

    forwarder.forward.assert_not_awaited()
    fallback.assert_awaited_once()


def test_should_forward_includes_query(forwarder):
    router = Router(forwarder=forwarder)

    assert router.should_forward(make_request("/it", query=b"x=1")) is True
    assert router.should_forward(make_request("/index.html")) is False
