from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional, Union

from ..errors import EncodeError, IncompleteReply, ProtocolError, ProtocolMismatch, UnknownReplyType

# Topic packets exchanged with a world over TCP
# Request (client -> world):
#   [2B magic 0x00 0x83][2B length BE = len(payload) + 6][5B zero][payload][0x00]
#   payload is the query string, '?'-prefixed, one byte per character
# Reply (world -> client):
#   [2B magic 0x00 0x83][2B length BE][1B type][value]
#   type 0x00: null, no value bytes
#   type 0x06: text, (length - 1) bytes ending in a 0x00 terminator
#   type 0x2a: float, 4 bytes little-endian IEEE-754

MAGIC = b"\x00\x83"
HEADER_SIZE = 4
PADDING_SIZE = 5
LENGTH_OVERHEAD = 6
MAX_LENGTH = 0xFFFF

QUERY_MARKER = "?"

Value = Union[None, str, float]


class ReplyType(IntEnum):
    NULL = 0x00
    TEXT = 0x06
    NUMBER = 0x2A


class DecoderState(Enum):
    AWAITING_HEADER = "awaiting_header"
    AWAITING_BODY = "awaiting_body"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass(frozen=True)
class Reply:
    type: ReplyType
    value: Value = None


# --------------------------- Requests ---------------------------

def normalize_query(query: str, suffix: Optional[str] = None) -> str:
    if not query.startswith(QUERY_MARKER):
        query = QUERY_MARKER + query
    if suffix:
        query += suffix
    return query


def encode_topic(query: str) -> bytes:
    """Build the request frame for ``query``.

    The query is '?'-prefixed here if the caller has not done it, so
    ``"hello"`` and ``"?hello"`` produce the same bytes. Characters outside
    latin-1 have no single-byte form on this protocol and are rejected.
    """
    query = normalize_query(query)
    try:
        payload = query.encode("latin-1")
    except UnicodeEncodeError as exc:
        raise EncodeError(f"query has a character above U+00FF at index {exc.start}") from exc
    length = len(payload) + LENGTH_OVERHEAD
    if length > MAX_LENGTH:
        raise EncodeError(f"query too long: {len(payload)} bytes")
    header = MAGIC + struct.pack("!H", length)
    return header + bytes(PADDING_SIZE) + payload + b"\x00"


# --------------------------- Replies ---------------------------

def encode_reply(reply: Reply) -> bytes:
    """Build a reply frame the way a world answers a topic."""
    if reply.type is ReplyType.NULL:
        body = bytes([ReplyType.NULL])
    elif reply.type is ReplyType.TEXT:
        text = "" if reply.value is None else str(reply.value)
        try:
            body = bytes([ReplyType.TEXT]) + text.encode("latin-1") + b"\x00"
        except UnicodeEncodeError as exc:
            raise EncodeError(f"reply text has a character above U+00FF at index {exc.start}") from exc
    else:
        body = bytes([ReplyType.NUMBER]) + struct.pack("<f", float(reply.value or 0.0))
    return MAGIC + struct.pack("!H", len(body)) + body


class ReplyDecoder:
    """Accumulates reply bytes for one request and decodes them once complete.

    ``feed`` returns ``None`` while more data is needed and the decoded
    :class:`Reply` once the declared length has arrived. A stream that does
    not start with the magic raises :class:`ProtocolMismatch` and stays failed.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._state = DecoderState.AWAITING_HEADER

    @property
    def state(self) -> DecoderState:
        return self._state

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def feed(self, chunk: bytes) -> Optional[Reply]:
        if self._state is DecoderState.COMPLETE:
            raise ProtocolError("reply already decoded")
        if self._state is DecoderState.FAILED:
            raise ProtocolError("stream already failed to decode")
        self._buffer += chunk
        try:
            reply = self._try_decode()
        except ProtocolError:
            self._fail()
            raise
        if reply is not None:
            self._state = DecoderState.COMPLETE
            self._buffer.clear()
        return reply

    def _fail(self) -> None:
        self._state = DecoderState.FAILED
        self._buffer.clear()

    def _try_decode(self) -> Optional[Reply]:
        if len(self._buffer) < HEADER_SIZE:
            return None
        if bytes(self._buffer[:2]) != MAGIC:
            raise ProtocolMismatch(f"bad magic {bytes(self._buffer[:2])!r}")
        (declared,) = struct.unpack_from("!H", self._buffer, 2)
        self._state = DecoderState.AWAITING_BODY
        # the type tag is always present, even when a world declares zero
        if len(self._buffer) < HEADER_SIZE + max(declared, 1):
            return None
        body = bytes(self._buffer[HEADER_SIZE:HEADER_SIZE + max(declared, 1)])
        return _decode_body(body)


def _decode_body(body: bytes) -> Reply:
    tag = body[0]
    if tag == ReplyType.NULL:
        return Reply(ReplyType.NULL, None)
    if tag == ReplyType.TEXT:
        raw = body[1:]
        if raw.endswith(b"\x00"):
            raw = raw[:-1]
        return Reply(ReplyType.TEXT, raw.decode("latin-1"))
    if tag == ReplyType.NUMBER:
        if len(body) < 5:
            raise ProtocolError(f"float reply needs 4 value bytes, got {len(body) - 1}")
        (number,) = struct.unpack_from("<f", body, 1)
        return Reply(ReplyType.NUMBER, number)
    raise UnknownReplyType(tag)


def decode_reply(data: bytes) -> Reply:
    """Decode a reply that is already fully buffered."""
    reply = ReplyDecoder().feed(data)
    if reply is None:
        raise IncompleteReply(f"{len(data)} bytes do not hold a complete reply")
    return reply


def parse_topic(frame: bytes) -> str:
    """Recover the query string from a complete request frame."""
    if len(frame) < HEADER_SIZE or frame[:2] != MAGIC:
        raise ProtocolMismatch("not a topic request")
    (length,) = struct.unpack_from("!H", frame, 2)
    if len(frame) < HEADER_SIZE + length:
        raise IncompleteReply(f"request declares {length} bytes, got {len(frame) - HEADER_SIZE}")
    payload = frame[HEADER_SIZE + PADDING_SIZE:HEADER_SIZE + length - 1]
    return payload.decode("latin-1")
