"""Message Pipeline: scan, decide, deliver, with lifecycle state and dedup."""

from hideout.pipeline.models import (
    Advisory,
    Message,
    MessageRecord,
    MessageState,
    ScanAnnotation,
)
from hideout.pipeline.pipeline import MessagePipeline
from hideout.pipeline.transport import InMemoryTransport, Transport

__all__ = [
    "Advisory",
    "Message",
    "MessageRecord",
    "MessageState",
    "ScanAnnotation",
    "MessagePipeline",
    "InMemoryTransport",
    "Transport",
]
