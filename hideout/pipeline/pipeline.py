"""Message pipeline: every outgoing message is screened before fan-out.

All conversation state (room message lists, processed ids) is owned by a
single task that consumes an event queue. Scans run in their own tasks and
post a completion event back, so a slow reputation lookup never stalls the
room and state is never touched from two places at once.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Optional

from hideout.detection.models import ScanResult, ThreatLevel, ThreatType
from hideout.detection.scanner import MessageScanner
from hideout.ledger.ledger import SecurityLedger
from hideout.ledger.models import LedgerEntry
from hideout.pipeline.dedup import ProcessedIds
from hideout.pipeline.models import (
    MAX_CONTENT_LENGTH,
    Advisory,
    Message,
    MessageRecord,
    MessageState,
    ScanAnnotation,
    new_message_id,
)
from hideout.pipeline.transport import Transport
from hideout.policy.decision import SecurityAction, SecurityPolicy
from hideout.stats import SecurityStats

logger = logging.getLogger(__name__)

BACKLOG_PACE_SECONDS = 0.05


# ---------------------------------------------------------------------------
# Events handled by the owner task
# ---------------------------------------------------------------------------


@dataclass
class _Event:
    future: asyncio.Future = field(repr=False)


@dataclass
class _Submit(_Event):
    message: Message = None  # type: ignore[assignment]
    scan: bool = True


@dataclass
class _ScanCompleted(_Event):
    record: MessageRecord = None  # type: ignore[assignment]
    annotation: ScanAnnotation = None  # type: ignore[assignment]
    deliver: bool = True


@dataclass
class _Retry(_Event):
    message_id: str = ""
    content: Optional[str] = None
    new_id: Optional[str] = None


@dataclass
class _CloseRoom(_Event):
    room_id: str = ""


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class MessagePipeline:
    """Scan, decide, then deliver or reject each submitted message.

    Use as an async context manager, or call :meth:`start` and :meth:`stop`.
    """

    def __init__(
        self,
        scanner: MessageScanner,
        policy: SecurityPolicy,
        ledger: SecurityLedger,
        transport: Transport,
        stats: Optional[SecurityStats] = None,
        dedup_limit: int = 1000,
    ) -> None:
        self.scanner = scanner
        self.policy = policy
        self.ledger = ledger
        self.transport = transport
        self.stats = stats if stats is not None else ledger.stats

        self._rooms: dict[str, list[MessageRecord]] = {}
        self._records: dict[str, MessageRecord] = {}
        self._processed = ProcessedIds(dedup_limit)

        self._events: asyncio.Queue[_Event] = asyncio.Queue()
        self._owner: Optional[asyncio.Task] = None
        self._scans: set[asyncio.Task] = set()
        self._waiting: set[asyncio.Future] = set()

    # -- lifecycle -----------------------------------------------------------

    async def __aenter__(self) -> MessagePipeline:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    @property
    def running(self) -> bool:
        return self._owner is not None and not self._owner.done()

    async def start(self) -> None:
        if self.running:
            return
        self._owner = asyncio.create_task(self._run(), name="message-pipeline")

    async def stop(self) -> None:
        scans = list(self._scans)
        for task in scans:
            task.cancel()
        await asyncio.gather(*scans, return_exceptions=True)

        if self._owner is not None:
            self._owner.cancel()
            await asyncio.gather(self._owner, return_exceptions=True)
            self._owner = None

        while not self._events.empty():
            self._events.get_nowait()
        for future in list(self._waiting):
            future.cancel()

    # -- public operations ---------------------------------------------------

    async def submit(self, message: Message) -> Optional[MessageRecord]:
        """Screen and dispatch *message*.

        Returns the settled record, or None when the id was already
        processed or the room was closed before the scan finished.
        """
        return await self._call(_Submit, message=message)

    async def retry(
        self,
        message_id: str,
        content: Optional[str] = None,
        new_id: Optional[str] = None,
    ) -> Optional[MessageRecord]:
        """Resubmit a BLOCKED or FAILED message under a fresh id.

        The old instance is removed from the room. Returns None when
        *message_id* is unknown or not retryable.
        """
        message = await self._call(_Retry, message_id=message_id, content=content, new_id=new_id)
        if message is None:
            return None
        return await self.submit(message)

    async def advise(self, text: str) -> Advisory:
        """Author-side pre-send check. Writes nothing and enforces nothing."""
        annotation = await self._screen(text)
        threshold = self.policy.config.threat_threshold
        should_warn = (
            annotation.action is not SecurityAction.ALLOW
            or annotation.result.confidence_score >= threshold
        )
        return Advisory(
            result=annotation.result,
            action=annotation.action,
            should_warn=should_warn,
        )

    async def load_backlog(
        self,
        room_id: str,
        messages: Iterable[Message],
        pace: float = BACKLOG_PACE_SECONDS,
    ) -> list[MessageRecord]:
        """Annotate already-delivered history for display.

        Scans are serialised with a pause between them so a long history
        does not flood the reputation service. Nothing is re-sent and
        nothing is written to the ledger.
        """
        settled: list[MessageRecord] = []
        pending = [
            m if m.room_id == room_id else replace(m, room_id=room_id) for m in messages
        ]
        for index, message in enumerate(pending):
            record = await self._call(_Submit, message=message, scan=False)
            if record is None:
                continue
            annotation = await self._screen(message.content)
            done = await self._call(
                _ScanCompleted, record=record, annotation=annotation, deliver=False
            )
            if done is not None:
                settled.append(done)
            if pace > 0 and index < len(pending) - 1:
                await asyncio.sleep(pace)
        return settled

    async def close_room(self, room_id: str) -> int:
        """Drop a room's state; scans still in flight for it are discarded."""
        return await self._call(_CloseRoom, room_id=room_id)

    def messages(self, room_id: str) -> list[MessageRecord]:
        return list(self._rooms.get(room_id, ()))

    def record(self, message_id: str) -> Optional[MessageRecord]:
        return self._records.get(message_id)

    # -- owner task ----------------------------------------------------------

    async def _call(self, event_type: type, **kwargs: Any) -> Any:
        if not self.running:
            raise RuntimeError("Message pipeline is not running")
        future = asyncio.get_running_loop().create_future()
        self._waiting.add(future)
        future.add_done_callback(self._waiting.discard)
        await self._events.put(event_type(future=future, **kwargs))
        return await future

    async def _run(self) -> None:
        while True:
            event = await self._events.get()
            try:
                await self._handle(event)
            except Exception as exc:
                logger.exception("Pipeline failed handling %s", type(event).__name__)
                if not event.future.done():
                    event.future.set_exception(exc)

    async def _handle(self, event: _Event) -> None:
        if isinstance(event, _Submit):
            await self._on_submit(event)
        elif isinstance(event, _ScanCompleted):
            event.future.set_result(await self._on_scan_completed(event))
        elif isinstance(event, _Retry):
            event.future.set_result(self._on_retry(event))
        elif isinstance(event, _CloseRoom):
            event.future.set_result(self._on_close_room(event.room_id))
        else:
            raise TypeError(f"Unknown pipeline event {event!r}")

    async def _on_submit(self, event: _Submit) -> None:
        message = event.message
        if message.id in self._processed:
            logger.debug("Dropping duplicate message %s", message.id)
            event.future.set_result(None)
            return

        self._processed.add(message.id)
        record = MessageRecord(message)
        self._rooms.setdefault(message.room_id, []).append(record)
        self._records[message.id] = record
        if self._processed.over_limit:
            dropped = self._processed.prune_to(self._records)
            logger.debug("Pruned %d processed message ids", dropped)

        if not event.scan:
            event.future.set_result(record)
        elif len(message.content) > MAX_CONTENT_LENGTH:
            await self._reject_oversized(record)
            event.future.set_result(record)
        else:
            task = asyncio.create_task(self._scan(record, event.future))
            self._scans.add(task)
            task.add_done_callback(self._scans.discard)

    async def _scan(self, record: MessageRecord, future: asyncio.Future) -> None:
        annotation = await self._screen(record.message.content)
        await self._events.put(
            _ScanCompleted(future=future, record=record, annotation=annotation)
        )

    async def _on_scan_completed(self, event: _ScanCompleted) -> Optional[MessageRecord]:
        record = event.record
        if self._records.get(record.id) is not record:
            logger.debug("Discarding scan result for closed message %s", record.id)
            return None

        annotation = event.annotation
        if not event.deliver:
            record.transition(_display_state(annotation.action), annotation)
            return record

        message = record.message
        if annotation.action.withholds:
            record.transition(MessageState.BLOCKED, annotation)
            logger.info(
                "Blocked message %s in room %s: %r",
                message.id,
                message.room_id,
                _preview(message.content),
            )
            await self._notify_rejected(message.id, annotation.result.reason)
        else:
            try:
                await self.transport.deliver(message, annotation)
            except Exception as exc:
                logger.warning("Delivery of message %s failed: %s", message.id, exc)
                record.transition(MessageState.FAILED, annotation, error=str(exc))
            else:
                record.transition(_display_state(annotation.action), annotation)

        self.stats.record_scan(annotation.result, annotation.action)
        if self.policy.config.log_all_messages or annotation.result.is_threat:
            self.ledger.record(
                LedgerEntry(
                    message=message.content,
                    result=annotation.result,
                    sender_id=message.sender_id,
                    room_id=message.room_id,
                )
            )
        return record

    def _on_retry(self, event: _Retry) -> Optional[Message]:
        record = self._records.get(event.message_id)
        if record is None or record.state not in (MessageState.BLOCKED, MessageState.FAILED):
            return None

        self._forget(record)
        old = record.message
        return replace(
            old,
            id=event.new_id or new_message_id(),
            content=old.content if event.content is None else event.content,
        )

    def _on_close_room(self, room_id: str) -> int:
        records = self._rooms.pop(room_id, [])
        for record in records:
            self._records.pop(record.id, None)
        logger.debug("Closed room %s (%d messages)", room_id, len(records))
        return len(records)

    def _forget(self, record: MessageRecord) -> None:
        self._records.pop(record.id, None)
        room = self._rooms.get(record.message.room_id)
        if room is not None and record in room:
            room.remove(record)

    # -- helpers -------------------------------------------------------------

    async def _screen(self, text: str) -> ScanAnnotation:
        try:
            result = await self.scanner.scan(text)
            action = self.policy.decide(result)
        except Exception as exc:
            logger.exception("Scan failed; allowing message")
            result = ScanResult.safe(f"Scan failed ({type(exc).__name__}); message allowed.")
            action = SecurityAction.ALLOW
        return ScanAnnotation(result=result, action=action)

    async def _reject_oversized(self, record: MessageRecord) -> None:
        reason = f"Message is too long (limit {MAX_CONTENT_LENGTH} characters)."
        annotation = ScanAnnotation(
            result=ScanResult(
                is_threat=False,
                confidence_score=0.0,
                threat_type=ThreatType.SAFE,
                threat_level=ThreatLevel.SAFE,
                reason=reason,
            ),
            action=SecurityAction.BLOCK,
        )
        record.transition(MessageState.BLOCKED, annotation)
        await self._notify_rejected(record.id, reason)

    async def _notify_rejected(self, message_id: str, reason: str) -> None:
        try:
            await self.transport.reject(message_id, reason)
        except Exception as exc:
            logger.warning("Could not notify rejection of %s: %s", message_id, exc)


def _preview(content: str, limit: int = 50) -> str:
    return content if len(content) <= limit else content[:limit] + "..."


def _display_state(action: SecurityAction) -> MessageState:
    if action.withholds:
        return MessageState.BLOCKED
    if action is SecurityAction.WARN:
        return MessageState.WARNING
    return MessageState.SENT
