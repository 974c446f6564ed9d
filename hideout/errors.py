"""Exception hierarchy for the screening core."""

from __future__ import annotations


class HideoutError(Exception):
    """Base class for all errors raised by hideout."""


class LexiconError(HideoutError):
    """The lexicon file could not be read or parsed."""


class ConfigError(HideoutError):
    """A configuration document is unusable as a whole."""


class ReputationLookupError(HideoutError):
    """The external reputation service gave no usable verdict."""

    def __init__(self, url: str, detail: str) -> None:
        super().__init__(f"Reputation lookup failed for {url}: {detail}")
        self.url = url
        self.detail = detail


class StorageError(HideoutError):
    """Persisting settings or ledger snapshots failed."""


class TransportError(HideoutError):
    """The transport could not deliver or reject a message."""
