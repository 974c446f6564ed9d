"""Bounded set of processed message ids."""

from __future__ import annotations

from typing import Iterable


class ProcessedIds:
    """Ids already surfaced once.

    Grows until it holds more than ``limit`` ids; the owner then prunes it
    back to the ids still visible in conversation state.
    """

    def __init__(self, limit: int = 1000) -> None:
        self.limit = limit
        self._ids: set[str] = set()

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def add(self, message_id: str) -> None:
        self._ids.add(message_id)

    @property
    def over_limit(self) -> bool:
        return len(self._ids) > self.limit

    def prune_to(self, visible: Iterable[str]) -> int:
        """Keep exactly the *visible* ids; return how many were dropped."""
        before = len(self._ids)
        self._ids = set(visible)
        return before - len(self._ids)
