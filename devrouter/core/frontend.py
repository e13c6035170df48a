#!/usr/bin/env python3
"""Server frontend wiring the router and the build server into one ASGI app."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, WebSocket
from starlette.routing import Route
from starlette.types import Receive, Scope, Send

from .build_server import BuildServer
from .router import Router


def configure_logging(level: str = 'info') -> logging.Logger:
    """Attach a stream handler to the package logger once."""
    logger = logging.getLogger('devrouter')
    logger.setLevel(level.upper())

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.propagate = False
    return logger


class RequestDispatcher:
    """ASGI endpoint handing every HTTP request to the router, whatever its method."""

    def __init__(self, router: Router, build_server: BuildServer):
        self.router = router
        self.build_server = build_server

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive, send)
        response = await self.router.route(request, self.build_server.handle_request)
        await response(scope, receive, send)


def create_app(build_server: BuildServer, router: Optional[Router] = None) -> FastAPI:
    """Build the dev server application.

    Plain requests go through the router; upgrades always go to the build server.
    """
    router = router or Router()
    logger = logging.getLogger('devrouter.frontend')

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        logger.info("Dev server stopped")

    # An ASGI endpoint with methods=None accepts any method. No docs routes:
    # every path belongs to the router or the build server
    app = FastAPI(
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
        routes=[Route("/{path:path}", RequestDispatcher(router, build_server), methods=None)],
    )

    @app.websocket("/{path:path}")
    async def upgrade(websocket: WebSocket, path: str):
        await build_server.handle_upgrade(websocket)

    app.state.router = router
    app.state.build_server = build_server
    return app
