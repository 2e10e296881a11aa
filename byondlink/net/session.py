from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from ..config import ClientConfig
from ..errors import ConnectionClosed, TopicError, TopicTimeout, TransportError
from .protocol import DecoderState, Reply, ReplyDecoder, Value, encode_topic, normalize_query

log = logging.getLogger(__name__)

READ_SIZE = 4096

T = TypeVar("T")
EventHook = Callable[[str], Any]


class SessionState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    AWAITING_HEADER = "awaiting_header"
    AWAITING_BODY = "awaiting_body"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass(frozen=True)
class Outcome:
    """Result of one topic call: a reply or an error, never both."""

    reply: Optional[Reply] = None
    error: Optional[TopicError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def value(self) -> Value:
        return None if self.reply is None else self.reply.value

    def unwrap(self) -> Value:
        if self.error is not None:
            raise self.error
        return self.value


class Exchange:
    """One connection, one request frame, one reply.

    Owns the socket and the reply buffer for a single call. ``close`` is
    idempotent so every exit path can call it.

    ``on_event`` is called with ``"connect"`` once the connection is up,
    before the frame is written, and with ``"end"`` once the connection is
    finished with. It may return an awaitable.
    """

    def __init__(
        self,
        host: str,
        port: int,
        frame: bytes,
        timeout: float,
        on_event: Optional[EventHook] = None,
    ) -> None:
        self.host = host
        self.port = port
        self.frame = frame
        self.timeout = timeout
        self.on_event = on_event
        self.state = SessionState.IDLE
        self.closed_count = 0
        self._decoder = ReplyDecoder()
        self._writer: Optional[asyncio.StreamWriter] = None
        self._closed = False

    async def _notify(self, event: str) -> None:
        if self.on_event is None:
            return
        result = self.on_event(event)
        if inspect.isawaitable(result):
            await result

    async def __aenter__(self) -> "Exchange":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _timed(self, aw: Awaitable[T], what: str) -> T:
        try:
            return await asyncio.wait_for(aw, self.timeout)
        except asyncio.TimeoutError as exc:
            raise TopicTimeout(f"timed out {what} {self.host}:{self.port}") from exc
        except OSError as exc:
            raise TransportError(f"{what} {self.host}:{self.port} failed: {exc}") from exc

    async def run(self) -> Reply:
        try:
            reply = await self._run()
        except TopicError:
            self.state = SessionState.FAILED
            raise
        self.state = SessionState.COMPLETE
        return reply

    async def _run(self) -> Reply:
        self.state = SessionState.CONNECTING
        reader, self._writer = await self._timed(
            asyncio.open_connection(self.host, self.port), "connecting to"
        )
        await self._notify("connect")
        self._writer.write(self.frame)
        await self._timed(self._writer.drain(), "writing to")
        self.state = SessionState.AWAITING_HEADER

        while True:
            chunk = await self._timed(reader.read(READ_SIZE), "reading from")
            if not chunk:
                raise ConnectionClosed("end without a value")
            reply = self._decoder.feed(chunk)
            if reply is not None:
                return reply
            if self._decoder.state is DecoderState.AWAITING_BODY:
                self.state = SessionState.AWAITING_BODY

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._writer is None:
            return
        self.closed_count += 1
        self._writer.close()
        # the peer may already be gone; nothing left to report at this point
        with contextlib.suppress(OSError):
            await self._writer.wait_closed()
        await self._notify("end")


class TopicSession:
    """Sends topic queries to one world.

    Only configuration lives here; every ``send`` opens its own connection
    and buffer, so concurrent calls on one session do not interfere.
    """

    def __init__(self, config: Optional[ClientConfig] = None, logger: Optional[logging.Logger] = None) -> None:
        self.config = config or ClientConfig()
        self.log = logger or log

    def frame_for(self, query: str, use_suffix: bool = True) -> bytes:
        suffix = self.config.suffix if use_suffix else None
        return encode_topic(normalize_query(query, suffix))

    async def send(self, query: str, use_suffix: bool = True, on_event: Optional[EventHook] = None) -> Outcome:
        try:
            frame = self.frame_for(query, use_suffix)
            exchange = Exchange(self.config.host, self.config.port, frame, self.config.timeout, on_event)
            async with exchange:
                reply = await exchange.run()
        except TopicError as exc:
            self.log.warning("topic %r to %s:%s failed: %s", query, self.config.host, self.config.port, exc)
            return Outcome(error=exc)
        self.log.debug("topic %r -> %r", query, reply.value)
        return Outcome(reply=reply)

    async def query(self, query: str, use_suffix: bool = True) -> Value:
        outcome = await self.send(query, use_suffix)
        return outcome.unwrap()
