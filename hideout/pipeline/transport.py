"""Transport boundary consumed by the pipeline."""

from __future__ import annotations

from typing import Protocol

from hideout.errors import TransportError
from hideout.pipeline.models import Message, ScanAnnotation


class Transport(Protocol):
    """Fan-out side of the chat transport."""

    async def deliver(self, message: Message, annotation: ScanAnnotation) -> None:
        """Send *message* to the other participants of its room."""

    async def reject(self, message_id: str, reason: str) -> None:
        """Tell the author that *message_id* was not delivered."""


class InMemoryTransport:
    """Records deliveries and rejections; can be told to fail."""

    def __init__(self) -> None:
        self.delivered: list[tuple[Message, ScanAnnotation]] = []
        self.rejected: list[tuple[str, str]] = []
        self.fail_deliveries = False

    async def deliver(self, message: Message, annotation: ScanAnnotation) -> None:
        if self.fail_deliveries:
            raise TransportError(f"delivery of {message.id} failed")
        self.delivered.append((message, annotation))

    async def reject(self, message_id: str, reason: str) -> None:
        self.rejected.append((message_id, reason))

    def delivered_ids(self) -> list[str]:
        return [message.id for message, _ in self.delivered]
