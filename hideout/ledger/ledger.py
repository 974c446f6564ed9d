"""In-memory security ledger with FIFO eviction."""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from hideout.ledger.models import LedgerEntry, LedgerQuery
from hideout.stats import SecurityStats

logger = logging.getLogger(__name__)


class SecurityLedger:
    """Append-only log of scan outcomes, bounded to ``max_entries``.

    Entries are only ever appended, evicted oldest-first, or cleared as a
    whole. Snapshots for persistence come from :meth:`entries`.
    """

    def __init__(
        self,
        max_entries: int = 1000,
        entries: Iterable[LedgerEntry] = (),
        stats: Optional[SecurityStats] = None,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._max_entries = max_entries
        self._entries: list[LedgerEntry] = list(entries)
        self._lock = threading.Lock()
        self.stats = stats if stats is not None else SecurityStats()
        self._trim()

    def _trim(self) -> None:
        overflow = len(self._entries) - self._max_entries
        if overflow > 0:
            del self._entries[:overflow]

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def record(self, entry: LedgerEntry) -> LedgerEntry:
        with self._lock:
            self._entries.append(entry)
            self._trim()
        return entry

    def resize(self, max_entries: int) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        with self._lock:
            self._max_entries = max_entries
            self._trim()

    def get(self, entry_id: str) -> Optional[LedgerEntry]:
        with self._lock:
            for entry in self._entries:
                if entry.id == entry_id:
                    return entry
        return None

    def entries(self) -> list[LedgerEntry]:
        """Snapshot in insertion order."""
        with self._lock:
            return list(self._entries)

    def query(self, query: Optional[LedgerQuery] = None) -> list[LedgerEntry]:
        """Return matching entries, newest first unless ``query.ascending``."""
        query = query or LedgerQuery()
        selected = [e for e in self.entries() if query.accepts(e)]
        selected.sort(key=lambda e: e.timestamp, reverse=not query.ascending)
        if query.limit is not None:
            selected = selected[: query.limit]
        return selected

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.info("Security ledger cleared")

    def report_false_positive(self, entry_id: str) -> bool:
        """Mark *entry_id* as a false positive; the entry itself is kept."""
        with self._lock:
            for entry in self._entries:
                if entry.id == entry_id:
                    entry.false_positive = True
                    self.stats.record_false_positive()
                    logger.info("False positive reported for ledger entry %s", entry_id)
                    return True
        return False

    def export_json(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        extra: Optional[dict[str, Any]] = None,
    ) -> str:
        """Serialise entries within ``[start, end]`` with export metadata."""
        selected = self.query(LedgerQuery(start=start, end=end, ascending=True))
        data: dict[str, Any] = {
            "export_info": {
                "exported_at": datetime.now(timezone.utc).isoformat(),
                "total_logs": len(selected),
                "start_date": start.isoformat() if start else None,
                "end_date": end.isoformat() if end else None,
            },
        }
        data.update(extra or {})
        data["logs"] = [e.to_dict() for e in selected]
        return json.dumps(data, indent=2, ensure_ascii=False)
