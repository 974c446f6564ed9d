"""Cached, fail-open URL reputation checks."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import Any, Callable, Iterable, Optional

from hideout.detection.urls import normalize_url
from hideout.errors import ReputationLookupError
from hideout.policy.config import ReputationSettings
from hideout.reputation.cache import ReputationCache, utc_now
from hideout.reputation.client import PhishTankClient

logger = logging.getLogger(__name__)


@dataclass
class ReputationStats:
    """Counters for the statistics surface."""

    total_requests: int = 0
    lookups: int = 0
    phishing_detected: int = 0
    api_errors: int = 0
    last_request: str = ""

    @property
    def api_error_rate(self) -> float:
        return self.api_errors / self.lookups if self.lookups else 0.0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["api_error_rate"] = round(self.api_error_rate, 4)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReputationStats:
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


class ReputationChecker:
    """Resolves URL verdicts through the cache, falling back to the service.

    Lookups never raise: timeouts, non-2xx answers and malformed payloads are
    counted as API errors and reported as "not malicious". Only successful
    verdicts are cached.
    """

    def __init__(
        self,
        cache: ReputationCache,
        client: PhishTankClient,
        settings: Callable[[], ReputationSettings] = ReputationSettings,
    ) -> None:
        self.cache = cache
        self.client = client
        self._settings = settings
        self.stats = ReputationStats()

    def reconfigure(self, settings: ReputationSettings) -> None:
        self.client.endpoint = settings.endpoint
        self.client.timeout = settings.timeout_seconds
        self.cache.reconfigure(
            ttl=timedelta(hours=settings.cache_ttl_hours),
            capacity=settings.cache_capacity,
        )

    async def check_url(self, url: str) -> bool:
        """Return ``True`` if *url* is known to be malicious."""
        settings = self._settings()
        if not settings.enabled or not url.strip():
            return False

        key = normalize_url(url)
        self.stats.total_requests += 1
        self.stats.last_request = utc_now().isoformat()

        if settings.use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                if settings.log_requests:
                    logger.debug("Reputation cache hit: %s -> %s", key, cached)
                return cached

        self.stats.lookups += 1
        try:
            malicious = await asyncio.wait_for(
                self.client.lookup(url.strip(), api_key=settings.api_key),
                timeout=settings.timeout_seconds,
            )
        except asyncio.TimeoutError:
            self.stats.api_errors += 1
            logger.warning("Reputation lookup timed out for %s; treating as clean", key)
            return False
        except ReputationLookupError as exc:
            self.stats.api_errors += 1
            logger.warning("%s; treating as clean", exc)
            return False

        if settings.use_cache:
            self.cache.put(key, malicious)
        if malicious:
            self.stats.phishing_detected += 1
        if settings.log_requests:
            logger.info("Reputation verdict for %s: %s", key, "malicious" if malicious else "clean")
        return malicious

    async def check_urls(self, urls: Iterable[str]) -> Optional[str]:
        """Check *urls* concurrently; return the first malicious one.

        Remaining lookups are cancelled as soon as one URL is found malicious.
        """
        unique: dict[str, str] = {}
        for url in urls:
            if url.strip():
                unique.setdefault(normalize_url(url), url)
        if not unique:
            return None

        async def lookup_one(url: str) -> Optional[str]:
            return url if await self.check_url(url) else None

        tasks = [asyncio.ensure_future(lookup_one(url)) for url in unique.values()]
        try:
            for next_done in asyncio.as_completed(tasks):
                found = await next_done
                if found is not None:
                    return found
            return None
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def check_many(self, urls: Iterable[str]) -> dict[str, bool]:
        """Check every URL concurrently and return all verdicts."""
        targets = list(dict.fromkeys(u for u in urls if u.strip()))
        verdicts = await asyncio.gather(*(self.check_url(u) for u in targets))
        return dict(zip(targets, verdicts))

    def reset_stats(self) -> None:
        self.stats = ReputationStats()
