"""Anonymous, rate-limited mail ingestion over datagrams."""

from .gateway import (
    AnonymousIngestGateway,
    AnonymousMessage,
    IngestResult,
    IngestStatus,
    anonymous_sender,
    parse_datagram,
)
from .quota import DailyQuota
from .server import IngestProtocol, IngestServer

__all__ = [
    "AnonymousIngestGateway",
    "AnonymousMessage",
    "DailyQuota",
    "IngestProtocol",
    "IngestResult",
    "IngestServer",
    "IngestStatus",
    "anonymous_sender",
    "parse_datagram",
]
