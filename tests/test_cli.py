"""Tests for the hideout command line interface."""

import json
import tempfile
from pathlib import Path

import yaml
from click.testing import CliRunner

from hideout.cli import main

PHISHING_SAMPLE = "Your account has been suspended, click here now: http://bit.ly/xyz"


def _invoke(home, *args):
    return CliRunner().invoke(main, ["--home", home, *args])


def test_scan_json():
    with tempfile.TemporaryDirectory() as tmp:
        result = _invoke(tmp, "scan", PHISHING_SAMPLE, "--json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["action"] == "warn"
        assert data["threat_level"] == "medium"
        assert data["is_threat"] is True


def test_scan_table():
    with tempfile.TemporaryDirectory() as tmp:
        result = _invoke(tmp, "scan", "hey, want to grab coffee tomorrow?")
        assert result.exit_code == 0
        assert "ALLOW" in result.output


def test_config_set_and_show():
    with tempfile.TemporaryDirectory() as tmp:
        result = _invoke(tmp, "config", "set", "threat_threshold", "0.4")
        assert result.exit_code == 0, result.output
        saved = yaml.safe_load((Path(tmp) / "settings.yaml").read_text())
        assert saved["threat_threshold"] == 0.4

        result = _invoke(tmp, "config", "set", "reputation.api_key", "abc123")
        assert result.exit_code == 0, result.output

        result = _invoke(tmp, "config", "show")
        assert result.exit_code == 0
        assert "threat_threshold: 0.4" in result.output
        assert "abc123" in result.output


def test_config_set_rejects_bad_input():
    with tempfile.TemporaryDirectory() as tmp:
        assert _invoke(tmp, "config", "set", "volume", "11").exit_code == 2
        assert _invoke(tmp, "config", "set", "threat_threshold", "7").exit_code == 2
        assert not (Path(tmp) / "settings.yaml").exists()


def test_emergency_and_normal():
    with tempfile.TemporaryDirectory() as tmp:
        assert _invoke(tmp, "emergency").exit_code == 0
        saved = yaml.safe_load((Path(tmp) / "settings.yaml").read_text())
        assert saved["mode"] == "hybrid"
        assert saved["auto_block_medium"] is True

        assert _invoke(tmp, "normal").exit_code == 0
        saved = yaml.safe_load((Path(tmp) / "settings.yaml").read_text())
        assert saved["mode"] == "basic"


def test_ledger_commands_on_empty_ledger():
    with tempfile.TemporaryDirectory() as tmp:
        result = _invoke(tmp, "ledger")
        assert result.exit_code == 0
        assert "No ledger entries" in result.output

        result = _invoke(tmp, "false-positive", "missing")
        assert result.exit_code == 1

        result = _invoke(tmp, "ledger-clear", "--yes")
        assert result.exit_code == 0


def test_export_to_file():
    with tempfile.TemporaryDirectory() as tmp:
        out = Path(tmp) / "export.json"
        result = _invoke(tmp, "export", "-o", str(out))
        assert result.exit_code == 0, result.output
        data = json.loads(out.read_text())
        assert data["export_info"]["total_logs"] == 0
        assert data["config"]["mode"] == "basic"


def test_stats_and_lexicon():
    with tempfile.TemporaryDirectory() as tmp:
        result = _invoke(tmp, "stats")
        assert result.exit_code == 0, result.output
        assert "Protection level" in result.output

        result = _invoke(tmp, "lexicon")
        assert result.exit_code == 0
        assert "2024.06" in result.output
        assert "url.link_shorteners" in result.output
