from __future__ import annotations


class TopicError(Exception):
    """Base class for everything a topic exchange can fail with."""


class EncodeError(TopicError, ValueError):
    pass


class TransportError(TopicError):
    pass


class TopicTimeout(TransportError):
    pass


class ConnectionClosed(TransportError):
    pass


class ProtocolError(TopicError):
    pass


class ProtocolMismatch(ProtocolError):
    pass


class UnknownReplyType(ProtocolError):
    def __init__(self, tag: int) -> None:
        super().__init__(f"unknown reply type 0x{tag:02x}")
        self.tag = tag


class IncompleteReply(ProtocolError):
    pass
