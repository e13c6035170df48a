#!/usr/bin/env python3
"""Prefix router deciding between the upstream forwarder and the build server."""
import logging
from typing import Awaitable, Callable, Optional

from fastapi import Request
from fastapi.responses import Response

from ..config.settings import DEFAULT_RULE, ForwardingRule
from .forwarder import UpstreamForwarder, request_target

logger = logging.getLogger('devrouter.router')

RequestHandler = Callable[[Request], Awaitable[Response]]


class Router:
    """Send matching paths upstream and everything else to the fallback handler."""

    def __init__(
        self,
        rule: ForwardingRule = DEFAULT_RULE,
        forwarder: Optional[UpstreamForwarder] = None,
    ):
        self.rule = rule
        self.forwarder = forwarder or UpstreamForwarder()

    def should_forward(self, request: Request) -> bool:
        return self.rule.matches(request_target(request))

    async def route(self, request: Request, fallback: RequestHandler) -> Response:
        if self.should_forward(request):
            logger.debug("Forwarding %s %s upstream", request.method, request.url.path)
            return await self.forwarder.forward(request)

        # The fallback owns the response from here on
        return await fallback(request)
