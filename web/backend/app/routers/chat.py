"""Chat room WebSocket: the fan-out boundary where messages are screened.

Clients connect to ``/ws/rooms/{room_id}?sender_id=...`` and exchange JSON
frames:

* ``{"type": "MESSAGE", "id", "content", "nickname"?}`` -- send a message
* ``{"type": "RETRY", "id", "content"?}`` -- resend a blocked/failed message
* ``{"type": "ADVISE", "content"}`` -- pre-send check, answered with ``ADVISORY``

The server pushes ``MESSAGE`` to the room, ``REJECTED`` to the author of a
withheld message and ``STATUS`` with the final state to the author.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from hideout.pipeline.models import Message, ScanAnnotation
from hideout.pipeline.pipeline import MessagePipeline

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


# ---------------------------------------------------------------------------
# Room membership and transport
# ---------------------------------------------------------------------------


class RoomHub:
    """Tracks which sockets are in which room."""

    def __init__(self) -> None:
        self.rooms: dict[str, set[WebSocket]] = {}

    def join(self, room_id: str, websocket: WebSocket) -> None:
        self.rooms.setdefault(room_id, set()).add(websocket)

    def leave(self, room_id: str, websocket: WebSocket) -> bool:
        """Remove *websocket*; return True when the room is now empty."""
        members = self.rooms.get(room_id)
        if members is None:
            return True
        members.discard(websocket)
        if not members:
            del self.rooms[room_id]
            return True
        return False

    def members(self, room_id: str) -> list[WebSocket]:
        return list(self.rooms.get(room_id, ()))


async def _send(websocket: WebSocket, payload: dict[str, Any]) -> None:
    await websocket.send_text(json.dumps(payload, ensure_ascii=False))


class WebSocketTransport:
    """Delivers screened messages to room members over their sockets."""

    def __init__(self, hub: RoomHub) -> None:
        self.hub = hub
        self._authors: dict[str, WebSocket] = {}

    def expect(self, message_id: str, author: WebSocket) -> bool:
        """Route rejections for *message_id* to *author*.

        Returns False when another socket already owns the id; that mapping
        is left alone.
        """
        if message_id in self._authors:
            return False
        self._authors[message_id] = author
        return True

    def forget(self, message_id: str, author: WebSocket) -> None:
        if self._authors.get(message_id) is author:
            del self._authors[message_id]

    async def deliver(self, message: Message, annotation: ScanAnnotation) -> None:
        payload = {
            "type": "MESSAGE",
            "message": message.to_dict(),
            "annotation": annotation.to_dict(),
            "warning": annotation.warning,
        }
        for member in self.hub.members(message.room_id):
            await _send(member, payload)

    async def reject(self, message_id: str, reason: str) -> None:
        author = self._authors.get(message_id)
        if author is not None:
            await _send(author, {"type": "REJECTED", "id": message_id, "reason": reason})


# ---------------------------------------------------------------------------
# WebSocket endpoint
# ---------------------------------------------------------------------------


async def _handle_frame(
    websocket: WebSocket,
    pipeline: MessagePipeline,
    transport: WebSocketTransport,
    room_id: str,
    sender_id: str,
    frame: dict[str, Any],
) -> None:
    kind = str(frame.get("type", "")).upper()

    if kind == "ADVISE":
        advisory = await pipeline.advise(str(frame.get("content", "")))
        await _send(
            websocket,
            {
                "type": "ADVISORY",
                "should_warn": advisory.should_warn,
                "action": advisory.action.value,
                "result": advisory.result.to_dict(),
            },
        )
        return

    if kind == "MESSAGE":
        message = Message(
            id=str(frame.get("id") or uuid.uuid4().hex),
            room_id=room_id,
            sender_id=sender_id,
            content=str(frame.get("content", "")),
            nickname=frame.get("nickname"),
        )
        registered = transport.expect(message.id, websocket)
        try:
            record = await pipeline.submit(message)
        finally:
            if registered:
                transport.forget(message.id, websocket)
    elif kind == "RETRY":
        old_id = str(frame.get("id", ""))
        new_id = uuid.uuid4().hex
        content = frame.get("content")
        transport.expect(new_id, websocket)
        try:
            record = await pipeline.retry(old_id, content=content, new_id=new_id)
        finally:
            transport.forget(new_id, websocket)
        if record is None:
            await _send(websocket, {"type": "ERROR", "why": f"cannot retry {old_id}"})
            return
    else:
        await _send(websocket, {"type": "ERROR", "why": "unknown type"})
        return

    if record is not None:
        await _send(websocket, {"type": "STATUS", **record.to_dict()})


@router.websocket("/ws/rooms/{room_id}")
async def room_socket(websocket: WebSocket, room_id: str):
    pipeline: MessagePipeline = websocket.app.state.pipeline
    transport: WebSocketTransport = websocket.app.state.transport
    hub = transport.hub

    await websocket.accept()
    sender_id = websocket.query_params.get("sender_id") or f"anon-{uuid.uuid4().hex[:8]}"
    hub.join(room_id, websocket)
    await _send(websocket, {"type": "JOINED", "room": room_id, "you": sender_id})

    try:
        while True:
            text = await websocket.receive_text()
            try:
                frame = json.loads(text)
            except ValueError:
                await _send(websocket, {"type": "ERROR", "why": "invalid json"})
                continue
            if not isinstance(frame, dict):
                await _send(websocket, {"type": "ERROR", "why": "expected an object"})
                continue
            await _handle_frame(websocket, pipeline, transport, room_id, sender_id, frame)
    except WebSocketDisconnect:
        logger.debug("%s left room %s", sender_id, room_id)
    finally:
        if hub.leave(room_id, websocket) and pipeline.running:
            await pipeline.close_room(room_id)
