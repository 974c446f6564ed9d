"""Tests for the FastAPI surface: security endpoints and room websockets."""

import asyncio
import json
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from hideout.detection import ThreatScanner
from hideout.ledger import SecurityLedger
from hideout.lexicon import LexiconStore
from hideout.pipeline import MessagePipeline
from hideout.policy import SecurityPolicy
from hideout.services import build_services
from web.backend.app.main import create_app
from web.backend.app.routers.chat import RoomHub, WebSocketTransport, _handle_frame

PHISHING_SAMPLE = "Your account has been suspended, click here now: http://bit.ly/xyz"
CRITICAL_SAMPLE = "'; drop table users; --"


@pytest.fixture
def client():
    with tempfile.TemporaryDirectory() as tmp:
        app = create_app(build_services(tmp))
        with TestClient(app) as test_client:
            yield test_client


def _receive_until(ws, kind):
    while True:
        frame = ws.receive_json()
        if frame["type"] == kind:
            return frame


# --- Meta Tests ---


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy", "pipeline": "running"}


def test_root(client):
    assert client.get("/").json()["name"] == "Hideout API"


# --- Config Tests ---


def test_get_config(client):
    data = client.get("/api/security/config").json()
    assert data["mode"] == "basic"
    assert data["threat_threshold"] == 0.3
    assert data["reputation"]["timeout_seconds"] == 10.0
    assert data["protection_level"] == "medium"


def test_update_config(client):
    resp = client.put(
        "/api/security/config",
        json={"auto_block_medium": True, "reputation": {"cache_capacity": 10}},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["auto_block_medium"] is True
    assert data["reputation"]["cache_capacity"] == 10
    assert data["block_high_risk"] is True


def test_update_config_validates(client):
    assert client.put("/api/security/config", json={"threat_threshold": 1.5}).status_code == 422
    assert client.put("/api/security/config", json={"mode": "loud"}).status_code == 422


# --- Scan and Ledger Tests ---


def test_advisory_scan_records_nothing(client):
    resp = client.post("/api/security/scan", json={"text": PHISHING_SAMPLE})
    assert resp.status_code == 200
    data = resp.json()
    assert data["should_warn"] is True
    assert data["action"] == "warn"
    assert data["result"]["threat_level"] == "medium"
    assert client.get("/api/security/ledger").json() == []
    assert client.get("/api/security/stats").json()["total_scanned"] == 0


def test_lexicon(client):
    data = client.get("/api/security/lexicon").json()
    assert data["version"] == "2024.06"
    assert data["empty"] is False
    assert data["lists"]["url.link_shorteners"] == 5


def test_false_positive_unknown_entry(client):
    assert client.post("/api/security/ledger/missing/false-positive").status_code == 404


# --- WebSocket Tests ---


def test_room_delivers_and_ledgers_threats(client):
    with client.websocket_connect("/ws/rooms/lobby?sender_id=alice") as alice, \
            client.websocket_connect("/ws/rooms/lobby?sender_id=bob") as bob:
        assert alice.receive_json()["type"] == "JOINED"
        assert bob.receive_json()["type"] == "JOINED"

        alice.send_json({"type": "MESSAGE", "id": "m1", "content": PHISHING_SAMPLE})
        delivered = _receive_until(bob, "MESSAGE")
        assert delivered["message"]["id"] == "m1"
        assert delivered["warning"] is True
        status = _receive_until(alice, "STATUS")
        assert status["state"] == "warning"

    ledger = client.get("/api/security/ledger").json()
    assert len(ledger) == 1
    assert ledger[0]["room_id"] == "lobby"
    assert ledger[0]["sender_id"] == "alice"

    resp = client.post(f"/api/security/ledger/{ledger[0]['id']}/false-positive")
    assert resp.status_code == 200
    assert resp.json()["false_positives"] == 1

    stats = client.get("/api/security/stats").json()
    assert stats["total_scanned"] == 1
    assert stats["warned"] == 1
    assert stats["false_positives"] == 1

    filtered = client.get("/api/security/ledger", params={"level": "high"}).json()
    assert filtered == []

    assert client.delete("/api/security/ledger").json() == {"cleared": 1}
    assert client.get("/api/security/ledger").json() == []


def test_blocked_message_and_retry(client):
    with client.websocket_connect("/ws/rooms/r1?sender_id=alice") as alice:
        alice.receive_json()
        alice.send_json({"type": "MESSAGE", "id": "bad", "content": CRITICAL_SAMPLE})
        rejected = _receive_until(alice, "REJECTED")
        assert rejected["id"] == "bad"
        status = _receive_until(alice, "STATUS")
        assert status["state"] == "blocked"

        alice.send_json({"type": "RETRY", "id": "bad", "content": "sorry, hello"})
        delivered = _receive_until(alice, "MESSAGE")
        assert delivered["message"]["content"] == "sorry, hello"
        status = _receive_until(alice, "STATUS")
        assert status["state"] == "sent"
        assert status["message"]["id"] != "bad"

        alice.send_json({"type": "RETRY", "id": "bad"})
        assert _receive_until(alice, "ERROR")["why"] == "cannot retry bad"


def test_duplicate_message_id_is_dropped(client):
    with client.websocket_connect("/ws/rooms/r2?sender_id=alice") as alice:
        alice.receive_json()
        alice.send_json({"type": "MESSAGE", "id": "dup", "content": "hello there"})
        _receive_until(alice, "STATUS")
        alice.send_json({"type": "MESSAGE", "id": "dup", "content": "hello there"})
        alice.send_json({"type": "ADVISE", "content": "hello there"})
        frame = alice.receive_json()
        assert frame["type"] == "ADVISORY"
        assert frame["should_warn"] is False


def test_invalid_frames(client):
    with client.websocket_connect("/ws/rooms/r3") as ws:
        assert ws.receive_json()["you"].startswith("anon-")
        ws.send_text("not json")
        assert ws.receive_json() == {"type": "ERROR", "why": "invalid json"}
        ws.send_json({"type": "DANCE"})
        assert ws.receive_json() == {"type": "ERROR", "why": "unknown type"}


class FakeSocket:
    def __init__(self):
        self.frames = []

    async def send_text(self, text):
        self.frames.append(json.loads(text))


class GatedScanner:
    def __init__(self):
        self.gate = asyncio.Event()
        self.engine = ThreatScanner(LexiconStore.load().lexicon)

    async def scan(self, text):
        await self.gate.wait()
        return self.engine.scan(text)


def test_duplicate_id_keeps_original_author():
    transport = WebSocketTransport(RoomHub())
    scanner = GatedScanner()
    pipeline = MessagePipeline(scanner, SecurityPolicy(), SecurityLedger(), transport)
    first, second = FakeSocket(), FakeSocket()

    async def run():
        async with pipeline:
            original = asyncio.create_task(
                _handle_frame(
                    first, pipeline, transport, "r4", "alice",
                    {"type": "MESSAGE", "id": "x", "content": CRITICAL_SAMPLE},
                )
            )
            await asyncio.sleep(0)
            await _handle_frame(
                second, pipeline, transport, "r4", "bob",
                {"type": "MESSAGE", "id": "x", "content": "hello"},
            )
            scanner.gate.set()
            await original

    asyncio.run(run())
    assert [f["type"] for f in first.frames] == ["REJECTED", "STATUS"]
    assert first.frames[1]["state"] == "blocked"
    assert second.frames == []
    assert transport._authors == {}


def test_ledger_accepts_naive_time_bounds(client):
    with client.websocket_connect("/ws/rooms/r5?sender_id=alice") as alice:
        alice.receive_json()
        alice.send_json({"type": "MESSAGE", "id": "t1", "content": CRITICAL_SAMPLE})
        _receive_until(alice, "STATUS")

    resp = client.get("/api/security/ledger", params={"start": "2020-01-01T00:00:00"})
    assert resp.status_code == 200
    assert [e["room_id"] for e in resp.json()] == ["r5"]
    resp = client.get("/api/security/ledger", params={"end": "2020-01-01T00:00:00"})
    assert resp.status_code == 200
    assert resp.json() == []


def test_lexicon_reload_rereads_source():
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / "custom.yaml"
        path.write_text('version: "custom-1"\ncategories:\n  scam:\n    lottery_prize_scams:\n      - "golden ticket"\n')
        services = build_services(tmp, lexicon_path=path)
        with TestClient(create_app(services)) as client:
            assert client.get("/api/security/lexicon").json()["version"] == "custom-1"
            path.write_text('version: "custom-2"\ncategories:\n  scam:\n    lottery_prize_scams:\n      - "golden ticket"\n      - "free cruise"\n')

            resp = client.post("/api/security/lexicon/reload")
            assert resp.status_code == 200
            assert resp.json()["version"] == "custom-2"
            assert resp.json()["lists"]["scam.lottery_prize_scams"] == 2

            scan = client.post("/api/security/scan", json={"text": "claim your free cruise"}).json()
            assert "free cruise" in scan["result"]["detected_indicators"]


def test_update_config_caps_lookup_timeout(client):
    resp = client.put("/api/security/config", json={"reputation": {"timeout_seconds": 30}})
    assert resp.status_code == 422
    assert client.get("/api/security/config").json()["reputation"]["timeout_seconds"] == 10.0
