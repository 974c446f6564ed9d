"""Wiring of the screening components into one object graph."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional

import httpx

from hideout.detection.engine import ThreatScanner
from hideout.detection.scanner import MessageScanner
from hideout.ledger.ledger import SecurityLedger
from hideout.lexicon.store import LexiconStore
from hideout.pipeline.pipeline import MessagePipeline
from hideout.pipeline.transport import Transport
from hideout.policy.config import SecurityConfig
from hideout.policy.decision import SecurityPolicy
from hideout.reputation.cache import ReputationCache
from hideout.reputation.checker import ReputationChecker
from hideout.reputation.client import PhishTankClient
from hideout.settings import SettingsStore
from hideout.stats import SecurityStats

logger = logging.getLogger(__name__)


@dataclass
class SecurityServices:
    """Everything the CLI and the web app need, built once per process."""

    settings: SettingsStore
    lexicon: LexiconStore
    engine: ThreatScanner
    cache: ReputationCache
    client: PhishTankClient
    checker: ReputationChecker
    policy: SecurityPolicy
    stats: SecurityStats
    ledger: SecurityLedger
    scanner: MessageScanner

    @property
    def config(self) -> SecurityConfig:
        return self.policy.config

    def pipeline(self, transport: Transport) -> MessagePipeline:
        return MessagePipeline(
            scanner=self.scanner,
            policy=self.policy,
            ledger=self.ledger,
            transport=transport,
            stats=self.stats,
        )

    # -- configuration -------------------------------------------------------

    def update_config(self, config: SecurityConfig) -> SecurityConfig:
        """Install *config* and propagate it to the sized components."""
        self.policy.update(config)
        self._apply(config)
        return config

    def update_from_dict(self, changes: dict[str, Any]) -> SecurityConfig:
        return self.update_config(self.config.merged(changes))

    def emergency_mode(self) -> SecurityConfig:
        config = self.policy.emergency_mode()
        self._apply(config)
        return config

    def normal_mode(self) -> SecurityConfig:
        config = self.policy.normal_mode()
        self._apply(config)
        return config

    def _apply(self, config: SecurityConfig) -> None:
        self.ledger.resize(config.max_ledger_entries)
        self.checker.reconfigure(config.reputation)

    def reload_lexicon(self, path: str | Path | None = None) -> None:
        self.engine = ThreatScanner(self.lexicon.reload(path))
        self.scanner.engine = self.engine

    # -- ledger and statistics -----------------------------------------------

    def report_false_positive(self, entry_id: str) -> bool:
        return self.ledger.report_false_positive(entry_id)

    def clear_ledger(self) -> None:
        self.ledger.clear()

    def statistics(self) -> dict[str, Any]:
        """Merged snapshot of scan, reputation and cache counters."""
        stats = self.stats.to_dict()
        total = stats["total_scanned"]
        stats["threat_rate"] = round(stats["threats_detected"] / total, 4) if total else 0.0
        stats["ledger_entries"] = len(self.ledger)
        stats["reputation"] = self.checker.stats.to_dict()
        cache = self.cache.info()
        cache["hit_rate"] = round(self.cache.hit_rate, 4)
        stats["cache"] = cache
        stats["protection_level"] = self.policy.protection_level()
        return stats

    def export_ledger(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> str:
        return self.ledger.export_json(
            start,
            end,
            extra={"config": self.config.to_dict(), "stats": self.statistics()},
        )

    def save(self) -> None:
        """Persist config, ledger and statistics. Raises StorageError."""
        self.settings.save_config(self.config)
        self.settings.save_ledger(self.ledger.entries())
        self.settings.save_stats(self.stats, self.checker.stats)


def build_services(
    base_dir: str | Path | None = None,
    lexicon_path: str | Path | None = None,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SecurityServices:
    """Load persisted state and assemble the components.

    *http_transport* is handed to the reputation client's httpx client.
    """
    settings = SettingsStore(base_dir)
    config = settings.load_config()
    stats, reputation_stats = settings.load_stats()

    lexicon = LexiconStore.load(lexicon_path)
    engine = ThreatScanner(lexicon.lexicon)
    policy = SecurityPolicy(config)

    cache = ReputationCache(
        ttl=timedelta(hours=config.reputation.cache_ttl_hours),
        capacity=config.reputation.cache_capacity,
    )
    client = PhishTankClient(
        endpoint=config.reputation.endpoint,
        api_key=config.reputation.api_key,
        timeout=config.reputation.timeout_seconds,
        transport=http_transport,
    )
    checker = ReputationChecker(cache, client, settings=lambda: policy.config.reputation)
    checker.stats = reputation_stats

    ledger = SecurityLedger(
        max_entries=config.max_ledger_entries,
        entries=settings.load_ledger(),
        stats=stats,
    )
    scanner = MessageScanner(engine, checker, config=lambda: policy.config)
    logger.debug("Security services ready (base dir %s)", settings.base_dir)

    return SecurityServices(
        settings=settings,
        lexicon=lexicon,
        engine=engine,
        cache=cache,
        client=client,
        checker=checker,
        policy=policy,
        stats=stats,
        ledger=ledger,
        scanner=scanner,
    )
