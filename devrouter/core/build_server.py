#!/usr/bin/env python3
"""Local build-server collaborators the frontend delegates to."""
import asyncio
import logging
from pathlib import Path
from typing import Optional, Protocol, Union

from fastapi import Request, WebSocket, WebSocketDisconnect
from fastapi.responses import Response
from fastapi.staticfiles import StaticFiles
from uvicorn.importer import import_from_string

logger = logging.getLogger('devrouter.build_server')


class BuildServer(Protocol):
    """Anything exposing a request handler and an upgrade handler."""

    async def handle_request(self, request: Request) -> Response:
        ...

    async def handle_upgrade(self, websocket: WebSocket) -> None:
        ...


class StaticBuildServer:
    """Serve a build output directory and keep live-reload sockets open."""

    def __init__(self, root: Union[str, Path], ping_interval: float = 30.0):
        self.root = Path(root)
        self.ping_interval = ping_interval
        # Raises RuntimeError when the directory does not exist
        self.static = StaticFiles(directory=str(self.root), html=True)

    async def handle_request(self, request: Request) -> Response:
        path = self.static.get_path(request.scope)
        return await self.static.get_response(path, request.scope)

    async def handle_upgrade(self, websocket: WebSocket) -> None:
        await websocket.accept()
        logger.info("Live-reload client connected on %s", websocket.url.path)
        try:
            # Keep the channel alive until the client goes away
            while True:
                try:
                    await asyncio.wait_for(websocket.receive_text(), timeout=self.ping_interval)
                except asyncio.TimeoutError:
                    await websocket.send_text('{"type":"ping"}')
        except WebSocketDisconnect:
            logger.info("Live-reload client disconnected from %s", websocket.url.path)


def load_build_server(import_str: Optional[str], root: Union[str, Path]) -> BuildServer:
    """Resolve a ``module:attribute`` build server, or serve ``root`` statically.

    The attribute may be a ready object or a factory taking the root directory.
    """
    if not import_str:
        return StaticBuildServer(root)

    target = import_from_string(import_str)
    if isinstance(target, type) or not hasattr(target, 'handle_request'):
        if not callable(target):
            raise TypeError(f"Build server {import_str!r} is neither a server nor a factory")
        target = target(root)

    for name in ('handle_request', 'handle_upgrade'):
        if not callable(getattr(target, name, None)):
            raise TypeError(f"Build server {import_str!r} does not provide {name}()")
    return target
