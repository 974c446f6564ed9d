"""File-based persistence for configuration, ledger and statistics.

Everything lives under ``~/.hideout/`` (or ``$HIDEOUT_HOME``):

* ``settings.yaml`` -- the :class:`SecurityConfig`
* ``ledger.json`` -- ledger entries in insertion order
* ``stats.json`` -- :class:`SecurityStats` and :class:`ReputationStats`

Loading never fails: unreadable files fall back to defaults with a warning.
Saving raises :class:`StorageError`.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Iterable

import yaml

from hideout.errors import StorageError
from hideout.ledger.models import LedgerEntry
from hideout.policy.config import SecurityConfig
from hideout.reputation.checker import ReputationStats
from hideout.stats import SecurityStats

logger = logging.getLogger(__name__)

HOME_ENV = "HIDEOUT_HOME"
API_KEY_ENV = "PHISHTANK_API_KEY"


def default_base_dir() -> Path:
    override = os.environ.get(HOME_ENV)
    return Path(override) if override else Path.home() / ".hideout"


class SettingsStore:
    """Reads and writes the three persisted documents."""

    def __init__(self, base_dir: str | Path | None = None) -> None:
        self._base = Path(base_dir) if base_dir else default_base_dir()

    @property
    def base_dir(self) -> Path:
        return self._base

    # -- helpers -------------------------------------------------------------

    def _config_file(self) -> Path:
        return self._base / "settings.yaml"

    def _ledger_file(self) -> Path:
        return self._base / "ledger.json"

    def _stats_file(self) -> Path:
        return self._base / "stats.json"

    def _read_json(self, path: Path) -> Any:
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable %s: %s", path, exc)
            return None

    def _write(self, path: Path, text: str) -> None:
        try:
            self._base.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(path.suffix + ".tmp")
            tmp.write_text(text, encoding="utf-8")
            tmp.replace(path)
        except OSError as exc:
            raise StorageError(f"Could not write {path}: {exc}") from exc

    # -- config --------------------------------------------------------------

    def load_config(self) -> SecurityConfig:
        path = self._config_file()
        data: Any = None
        if path.exists():
            try:
                with open(path, encoding="utf-8") as f:
                    data = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as exc:
                logger.warning("Ignoring unreadable %s: %s", path, exc)
        if data is not None and not isinstance(data, dict):
            logger.warning("Ignoring %s: expected a mapping", path)
            data = None

        config = SecurityConfig.from_dict(data)
        api_key = os.environ.get(API_KEY_ENV)
        if api_key:
            config = config.merged({"reputation": {"api_key": api_key}})
        return config

    def save_config(self, config: SecurityConfig) -> None:
        text = yaml.safe_dump(config.to_dict(), default_flow_style=False, sort_keys=False)
        self._write(self._config_file(), text)

    # -- ledger --------------------------------------------------------------

    def load_ledger(self) -> list[LedgerEntry]:
        data = self._read_json(self._ledger_file())
        if not isinstance(data, list):
            return []
        entries: list[LedgerEntry] = []
        for item in data:
            try:
                entries.append(LedgerEntry.from_dict(item))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed ledger entry: %s", exc)
        return entries

    def save_ledger(self, entries: Iterable[LedgerEntry]) -> None:
        payload = [e.to_dict() for e in entries]
        self._write(self._ledger_file(), json.dumps(payload, indent=2, ensure_ascii=False))

    # -- stats ---------------------------------------------------------------

    def load_stats(self) -> tuple[SecurityStats, ReputationStats]:
        data = self._read_json(self._stats_file())
        if not isinstance(data, dict):
            return SecurityStats(), ReputationStats()
        try:
            return (
                SecurityStats.from_dict(data.get("security") or {}),
                ReputationStats.from_dict(data.get("reputation") or {}),
            )
        except (TypeError, ValueError) as exc:
            logger.warning("Ignoring malformed statistics: %s", exc)
            return SecurityStats(), ReputationStats()

    def save_stats(self, stats: SecurityStats, reputation: ReputationStats) -> None:
        payload = {"security": stats.to_dict(), "reputation": reputation.to_dict()}
        self._write(self._stats_file(), json.dumps(payload, indent=2))
