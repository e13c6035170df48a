#!/usr/bin/env python3
"""Upstream forwarder that relays a single request to the fixed upstream over TLS."""
import logging
import time
import traceback
from typing import AsyncIterator, List, Optional, Tuple

import httpx
from fastapi import Request
from fastapi.responses import PlainTextResponse, Response, StreamingResponse
from starlette.types import Receive, Scope, Send

from ..config.settings import DEFAULT_UPSTREAM, UPSTREAM_TIMEOUT, UpstreamTarget

logger = logging.getLogger('devrouter.forwarder')

RawHeaders = List[Tuple[bytes, bytes]]


def request_target(request: Request) -> bytes:
    """Return the undecoded request target (path plus query string)."""
    scope = request.scope
    raw_path = scope.get('raw_path') or scope['path'].encode('utf-8')
    query = scope.get('query_string', b'')
    if query:
        return raw_path + b'?' + query
    return raw_path


def has_body(request: Request) -> bool:
    """Whether the inbound request frames a body (content-length or chunked)."""
    headers = request.headers
    return 'transfer-encoding' in headers or 'content-length' in headers


class ProxiedExchange:
    """One inbound request paired with its own outbound connection.

    Each exchange owns a dedicated client so nothing is pooled or shared
    between concurrent requests.
    """

    def __init__(
        self,
        target: UpstreamTarget,
        timeout: httpx.Timeout,
        verify=True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.target = target
        self.client = httpx.AsyncClient(
            timeout=timeout,
            verify=verify,
            transport=transport,
            follow_redirects=False,
        )
        self.upstream: Optional[httpx.Response] = None
        self.closed = False

    def build_request(self, request: Request) -> httpx.Request:
        """Copy method, target, headers and body stream onto an outbound request."""
        headers: RawHeaders = [
            (name, value) for name, value in request.headers.raw if name.lower() != b'host'
        ]
        headers.append((b'host', self.target.host_header.encode('latin-1')))

        # httpx.Request is built directly so client default headers are not merged in
        return httpx.Request(
            method=request.method,
            url=self.target.url(request_target(request)),
            headers=headers,
            content=request.stream() if has_body(request) else None,
        )

    async def open(self, request: Request) -> httpx.Response:
        outbound = self.build_request(request)
        self.upstream = await self.client.send(outbound, stream=True)
        return self.upstream

    async def aclose(self):
        if self.closed:
            return
        self.closed = True
        try:
            if self.upstream is not None:
                await self.upstream.aclose()
        finally:
            await self.client.aclose()


class UpstreamResponse(StreamingResponse):
    """Streaming response that relays upstream status, headers and body verbatim."""

    def __init__(self, exchange: ProxiedExchange, started: float):
        upstream = exchange.upstream
        self.exchange = exchange
        self.started = started
        self.relayed_bytes = 0
        super().__init__(self._relay(upstream), status_code=upstream.status_code)
        # Raw list keeps duplicates such as set-cookie; ASGI wants lowercase names
        self.raw_headers = [(name.lower(), value) for name, value in upstream.headers.raw]

    async def _relay(self, upstream: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in upstream.aiter_raw():
                if not chunk:
                    continue
                self.relayed_bytes += len(chunk)
                yield chunk
        except httpx.HTTPError as exc:
            # Status and headers are already on the wire; abort instead of rewriting
            logger.warning(
                "Upstream %s failed after %d bytes: %s",
                self.exchange.target.hostname, self.relayed_bytes, exc,
            )
            raise

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.exchange.aclose()
            duration_ms = int((time.time() - self.started) * 1000)
            logger.info(
                "%s %s -> %d (%d bytes, %dms)",
                scope.get('method'), scope.get('path'), self.status_code,
                self.relayed_bytes, duration_ms,
            )


class UpstreamForwarder:
    """Forward requests to a single fixed upstream target."""

    def __init__(
        self,
        target: UpstreamTarget = DEFAULT_UPSTREAM,
        timeout: httpx.Timeout = UPSTREAM_TIMEOUT,
        verify=True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialise the forwarder.

        Args:
            target: Upstream host, port and scheme
            timeout: httpx timeout applied to every exchange
            verify: TLS verification flag or SSL context
            transport: Optional httpx transport (used to fake the upstream)
        """
        self.target = target
        self.timeout = timeout
        self.verify = verify
        self.transport = transport

    def open_exchange(self) -> ProxiedExchange:
        return ProxiedExchange(
            self.target,
            timeout=self.timeout,
            verify=self.verify,
            transport=self.transport,
        )

    def failure_response(self, exc: Exception) -> Response:
        """Build the 503 reported when the upstream cannot be reached."""
        detail = ''.join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return PlainTextResponse(
            f"Failed to proxy to {self.target.hostname}.\n\n{detail}",
            status_code=503,
        )

    async def forward(self, request: Request) -> Response:
        """Relay the request upstream and return the response to write back."""
        start_time = time.time()
        exchange = self.open_exchange()

        try:
            await exchange.open(request)
        except Exception as exc:
            # Nothing has been written yet, so any failure becomes a 503
            await exchange.aclose()

            if isinstance(exc, httpx.TimeoutException):
                error_msg = "Timed out"
            elif isinstance(exc, httpx.ConnectError):
                error_msg = "Connection error"
            elif isinstance(exc, httpx.HTTPError):
                error_msg = "Request failed"
            else:
                error_msg = "Unexpected error"

            logger.error(
                "%s %s -> 503 (%s: %s)",
                request.method, request.url.path, error_msg, exc,
            )
            return self.failure_response(exc)
        except BaseException:
            await exchange.aclose()
            raise

        return UpstreamResponse(exchange, started=start_time)
