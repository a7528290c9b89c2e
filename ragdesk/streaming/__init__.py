"""Streaming answer protocol: wire framing, sessions, producer and consumer."""

from ragdesk.streaming.client import ChatStreamClient
from ragdesk.streaming.consumer import StreamConsumer
from ragdesk.streaming.framing import DONE_SENTINEL, MEDIA_TYPE, encode_event, parse_frame
from ragdesk.streaming.producer import StreamProducer
from ragdesk.streaming.session import StreamSession

__all__ = [
    "ChatStreamClient",
    "DONE_SENTINEL",
    "MEDIA_TYPE",
    "StreamConsumer",
    "StreamProducer",
    "StreamSession",
    "encode_event",
    "parse_frame",
]
