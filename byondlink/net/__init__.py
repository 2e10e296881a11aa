from .listener import TopicListener, topic_of
from .protocol import Reply, ReplyDecoder, ReplyType, decode_reply, encode_reply, encode_topic, normalize_query
from .session import Exchange, Outcome, SessionState, TopicSession

__all__ = [
    "Exchange",
    "Outcome",
    "Reply",
    "ReplyDecoder",
    "ReplyType",
    "SessionState",
    "TopicListener",
    "TopicSession",
    "decode_reply",
    "encode_reply",
    "encode_topic",
    "normalize_query",
    "topic_of",
]
