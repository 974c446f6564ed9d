"""URL reputation: a bounded TTL cache in front of an external lookup."""

from hideout.reputation.cache import ReputationCache, ReputationEntry
from hideout.reputation.checker import ReputationChecker, ReputationStats
from hideout.reputation.client import PhishTankClient

__all__ = [
    "ReputationCache",
    "ReputationEntry",
    "ReputationChecker",
    "ReputationStats",
    "PhishTankClient",
]
