"""Client and listener for the BYOND world Topic protocol."""

__version__ = "0.1.0"

from .config import ClientConfig, ListenerConfig
from .errors import (
    ConnectionClosed,
    EncodeError,
    IncompleteReply,
    ProtocolError,
    ProtocolMismatch,
    TopicError,
    TopicTimeout,
    TransportError,
    UnknownReplyType,
)
from .link import ByondLink
from .net import Outcome, Reply, ReplyDecoder, ReplyType, TopicListener, TopicSession, decode_reply, encode_topic

__all__ = [
    "ByondLink",
    "ClientConfig",
    "ConnectionClosed",
    "EncodeError",
    "IncompleteReply",
    "ListenerConfig",
    "Outcome",
    "ProtocolError",
    "ProtocolMismatch",
    "Reply",
    "ReplyDecoder",
    "ReplyType",
    "TopicError",
    "TopicListener",
    "TopicSession",
    "TopicTimeout",
    "TransportError",
    "UnknownReplyType",
    "decode_reply",
    "encode_topic",
]
