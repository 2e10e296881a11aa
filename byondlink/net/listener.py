from __future__ import annotations

import asyncio
import inspect
import logging
import socket
from typing import Any, Awaitable, Callable, Optional, Union
from urllib.parse import unquote

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.routing import Route

from ..config import ListenerConfig

log = logging.getLogger(__name__)

SUCCESS_BODY = "Success"

Handler = Callable[[Request], Union[Response, Awaitable[Response], None]]
TopicCallback = Callable[[str], Any]


def topic_of(request: Request) -> str:
    """The URL-decoded text after the first '?' of the request target."""
    return unquote(request.url.query)


def open_socket(host: str, port: int) -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
    except OSError:
        sock.close()
        raise
    return sock


class TopicListener:
    """Accepts HTTP requests from a world's outgoing exports.

    With a ``handler`` the handler gets the starlette request and returns the
    response itself. Otherwise the query part of the URL goes to
    ``on_topic`` and the caller receives ``Success``.
    """

    def __init__(
        self,
        config: Optional[ListenerConfig] = None,
        handler: Optional[Handler] = None,
        on_topic: Optional[TopicCallback] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config or ListenerConfig()
        self.handler = handler
        self.on_topic = on_topic
        self.log = logger or log
        self.app = Starlette(
            debug=False,
            routes=[Route("/{path:path}", endpoint=self._endpoint, methods=["GET", "POST"])],
        )
        self._server: Optional[uvicorn.Server] = None
        self._task: Optional[asyncio.Task] = None
        self._port = self.config.port

    @property
    def serving(self) -> bool:
        return self._server is not None and self._server.started and not self._server.should_exit

    @property
    def port(self) -> int:
        return self._port

    async def start(self) -> None:
        if self._server is not None:
            raise RuntimeError("listener already started")
        sock = open_socket(self.config.host, self.config.port)
        self._port = sock.getsockname()[1]
        config = uvicorn.Config(
            self.app,
            host=self.config.host,
            port=self._port,
            log_config=None,
            access_log=False,
            lifespan="off",
        )
        self._server = uvicorn.Server(config)
        self._task = asyncio.create_task(self._server.serve(sockets=[sock]))
        while not self._server.started:
            if self._task.done():
                self._server = None
                await self._task
                raise OSError(f"listener on {self.config.host}:{self._port} exited during startup")
            await asyncio.sleep(0.01)
        self.log.info("listening for topics on %s:%s", self.config.host, self._port)

    async def stop(self) -> None:
        # in-flight requests finish; new connections are refused
        if self._server is None:
            return
        self._server.should_exit = True
        task, self._task = self._task, None
        await task
        self._server = None
        self.log.info("topic listener stopped")

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        await self._task

    async def __aenter__(self) -> "TopicListener":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def _endpoint(self, request: Request) -> Response:
        if self.handler is not None:
            result = self.handler(request)
            if inspect.isawaitable(result):
                result = await result
            return result if result is not None else Response()
        topic = topic_of(request)
        self.log.info("topic received: %r", topic)
        if self.on_topic is not None:
            result = self.on_topic(topic)
            if inspect.isawaitable(result):
                await result
        return PlainTextResponse(SUCCESS_BODY)
