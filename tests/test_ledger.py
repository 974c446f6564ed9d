"""Tests for the security ledger and statistics."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from hideout.detection.models import ScanResult, ThreatLevel, ThreatType
from hideout.ledger import LedgerEntry, LedgerQuery, SecurityLedger
from hideout.policy.decision import SecurityAction
from hideout.stats import SecurityStats

T0 = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _result(level=ThreatLevel.MEDIUM, threat_type=ThreatType.PHISHING, reason="Phishing keywords detected."):
    return ScanResult(
        is_threat=level is not ThreatLevel.SAFE,
        confidence_score=0.5,
        threat_type=threat_type,
        threat_level=level,
        detected_indicators=("verify your account",),
        reason=reason,
    )


def _entry(message="verify your account now", minutes=0, **kwargs):
    return LedgerEntry(
        message=message,
        result=_result(**kwargs),
        sender_id="alice",
        room_id="room-1",
        timestamp=T0 + timedelta(minutes=minutes),
    )


# --- Ledger Tests ---


def test_record_and_get():
    ledger = SecurityLedger()
    entry = ledger.record(_entry())
    assert len(ledger) == 1
    assert ledger.get(entry.id) is entry
    assert ledger.get("missing") is None


def test_fifo_eviction():
    ledger = SecurityLedger(max_entries=3)
    entries = [ledger.record(_entry(minutes=i)) for i in range(5)]
    assert [e.id for e in ledger.entries()] == [e.id for e in entries[2:]]


def test_resize_trims_oldest():
    ledger = SecurityLedger(max_entries=10, entries=[_entry(minutes=i) for i in range(6)])
    ledger.resize(2)
    assert len(ledger) == 2
    assert ledger.entries()[0].timestamp == T0 + timedelta(minutes=4)
    with pytest.raises(ValueError):
        ledger.resize(0)


def test_query_orders_newest_first_by_default():
    ledger = SecurityLedger(entries=[_entry(minutes=i) for i in range(3)])
    times = [e.timestamp for e in ledger.query()]
    assert times == sorted(times, reverse=True)
    asc = [e.timestamp for e in ledger.query(LedgerQuery(ascending=True))]
    assert asc == sorted(asc)


def test_query_filters():
    ledger = SecurityLedger(
        entries=[
            _entry("win the lottery", minutes=0, level=ThreatLevel.HIGH, threat_type=ThreatType.SCAM,
                   reason="Scam keywords detected."),
            _entry("verify your account", minutes=10),
            _entry("run setup.exe", minutes=20, level=ThreatLevel.CRITICAL,
                   threat_type=ThreatType.MALWARE, reason="Malicious patterns detected."),
        ]
    )
    assert [e.message for e in ledger.query(LedgerQuery(threat_level=ThreatLevel.HIGH))] == [
        "win the lottery"
    ]
    assert [e.message for e in ledger.query(LedgerQuery(threat_type=ThreatType.MALWARE))] == [
        "run setup.exe"
    ]
    window = LedgerQuery(start=T0 + timedelta(minutes=10), end=T0 + timedelta(minutes=20))
    assert len(ledger.query(window)) == 2
    assert len(ledger.query(LedgerQuery(limit=1))) == 1


def test_query_reads_naive_bounds_as_utc():
    ledger = SecurityLedger(entries=[_entry(minutes=i * 10) for i in range(3)])
    naive = LedgerQuery(start=datetime(2024, 6, 1, 12, 10), end=datetime(2024, 6, 1, 12, 20))
    assert naive.start == T0 + timedelta(minutes=10)
    assert len(ledger.query(naive)) == 2
    export = json.loads(ledger.export_json(start=datetime(2024, 6, 1, 12, 15)))
    assert export["export_info"]["total_logs"] == 1


def test_search_covers_message_reason_and_indicators():
    ledger = SecurityLedger(
        entries=[
            _entry("Win the LOTTERY", reason="Scam keywords detected."),
            _entry("hello", reason="Malicious patterns detected."),
        ]
    )
    assert [e.message for e in ledger.query(LedgerQuery(search="lottery"))] == ["Win the LOTTERY"]
    assert [e.message for e in ledger.query(LedgerQuery(search="MALICIOUS"))] == ["hello"]
    assert len(ledger.query(LedgerQuery(search="verify your"))) == 2
    assert ledger.query(LedgerQuery(search="nothing like this")) == []


def test_report_false_positive_keeps_entry():
    stats = SecurityStats()
    ledger = SecurityLedger(stats=stats)
    entry = ledger.record(_entry())
    assert ledger.report_false_positive(entry.id)
    assert ledger.get(entry.id).false_positive
    assert len(ledger) == 1
    assert stats.false_positives == 1
    assert not ledger.report_false_positive("missing")
    assert stats.false_positives == 1


def test_clear():
    ledger = SecurityLedger(entries=[_entry(), _entry()])
    ledger.clear()
    assert len(ledger) == 0
    assert ledger.query() == []


def test_export_json():
    ledger = SecurityLedger(entries=[_entry(minutes=i) for i in range(3)])
    data = json.loads(
        ledger.export_json(start=T0 + timedelta(minutes=1), extra={"stats": {"total_scanned": 3}})
    )
    assert data["export_info"]["total_logs"] == 2
    assert data["export_info"]["start_date"] == (T0 + timedelta(minutes=1)).isoformat()
    assert data["export_info"]["end_date"] is None
    assert data["stats"] == {"total_scanned": 3}
    assert [log["timestamp"] for log in data["logs"]] == sorted(log["timestamp"] for log in data["logs"])


def test_entry_dict_form():
    entry = _entry()
    entry.false_positive = True
    restored = LedgerEntry.from_dict(entry.to_dict())
    assert restored.id == entry.id
    assert restored.timestamp == entry.timestamp
    assert restored.result == entry.result
    assert restored.false_positive


# --- Stats Tests ---


def test_stats_record_scan():
    stats = SecurityStats()
    stats.record_scan(_result(), SecurityAction.WARN)
    stats.record_scan(_result(ThreatLevel.CRITICAL, ThreatType.MALWARE), SecurityAction.BLOCK)
    stats.record_scan(_result(ThreatLevel.MEDIUM), SecurityAction.QUARANTINE)
    stats.record_scan(ScanResult.safe(), SecurityAction.ALLOW)
    assert stats.total_scanned == 4
    assert stats.threats_detected == 3
    assert stats.blocked == 2
    assert stats.warned == 1
    assert stats.threat_types == {"phishing": 2, "malware": 1}
    assert stats.last_scan


def test_stats_dict_form_and_reset():
    stats = SecurityStats()
    stats.record_scan(_result(), SecurityAction.WARN)
    restored = SecurityStats.from_dict(stats.to_dict())
    assert restored.to_dict() == stats.to_dict()
    stats.reset()
    assert stats.to_dict()["total_scanned"] == 0
    assert stats.threat_types == {}
