from __future__ import annotations

import asyncio
import logging
import struct
from typing import Callable, Optional, Union

from ..errors import ProtocolError
from .protocol import HEADER_SIZE, MAGIC, Reply, ReplyType, encode_reply, parse_topic

log = logging.getLogger(__name__)

Responder = Callable[[str], Reply]


async def read_topic(reader: asyncio.StreamReader) -> str:
    header = await reader.readexactly(HEADER_SIZE)
    if header[:2] != MAGIC:
        raise ProtocolError(f"bad magic {header[:2]!r}")
    (length,) = struct.unpack("!H", header[2:])
    rest = await reader.readexactly(length)
    return parse_topic(header + rest)


class FakeWorld:
    """Stands in for a world server: answers every topic with one reply.

    ``reply`` is either a fixed :class:`Reply` or a function of the query.
    Useful for local development and the test suite.
    """

    def __init__(self, reply: Union[Reply, Responder], bind: str = "127.0.0.1", port: int = 0) -> None:
        self.reply = reply
        self.bind = bind
        self.requested_port = port
        self.topics: list[str] = []
        self._server: Optional[asyncio.AbstractServer] = None

    @property
    def port(self) -> int:
        if self._server is None or not self._server.sockets:
            return self.requested_port
        return self._server.sockets[0].getsockname()[1]

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle, self.bind, self.requested_port)
        log.info("fake world on %s:%s", self.bind, self.port)

    async def stop(self) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        await self._server.serve_forever()

    async def __aenter__(self) -> "FakeWorld":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    def answer(self, topic: str) -> Reply:
        if isinstance(self.reply, Reply):
            return self.reply
        return self.reply(topic)

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            topic = await read_topic(reader)
            self.topics.append(topic)
            log.debug("fake world got %r", topic)
            writer.write(encode_reply(self.answer(topic)))
            await writer.drain()
        except (asyncio.IncompleteReadError, ProtocolError, ConnectionError) as exc:
            log.warning("fake world dropped a request: %s", exc)
        finally:
            writer.close()


def text_reply(value: str) -> Reply:
    return Reply(ReplyType.TEXT, value)
