"""Loading lexicon snapshots from YAML documents."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import yaml

from hideout.errors import LexiconError
from hideout.lexicon.models import Lexicon

logger = logging.getLogger(__name__)

DEFAULT_LEXICON_PATH = Path(__file__).resolve().parent / "data" / "default.yaml"


def read_lexicon(path: str | Path) -> Lexicon:
    """Parse a lexicon file, raising :class:`LexiconError` on failure."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise LexiconError(f"Cannot read lexicon {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise LexiconError(f"Lexicon {path} is not a mapping")
    return Lexicon.from_dict(data)


class LexiconStore:
    """Holds the lexicon snapshot loaded once at startup.

    The snapshot is never mutated; :meth:`reload` swaps in a new one.
    """

    def __init__(self, lexicon: Optional[Lexicon] = None) -> None:
        self._lexicon = lexicon or Lexicon()
        self.path: Optional[Path] = None

    @classmethod
    def load(cls, path: str | Path | None = None) -> LexiconStore:
        """Load from *path* (or the bundled default).

        A missing or broken file yields an empty lexicon: chat stays
        available with reduced filtering.
        """
        store = cls()
        store.reload(path)
        return store

    def reload(self, path: str | Path | None = None) -> Lexicon:
        """Swap in the lexicon at *path*, or re-read the current source."""
        target = Path(path) if path else (self.path or DEFAULT_LEXICON_PATH)
        self.path = target
        try:
            self._lexicon = read_lexicon(target)
            logger.info(
                "Loaded lexicon %s from %s (%d lists)",
                self._lexicon.version,
                target,
                len(self._lexicon.summary()),
            )
        except LexiconError as exc:
            logger.warning("%s; continuing with an empty lexicon", exc)
            self._lexicon = Lexicon()
        return self._lexicon

    @property
    def lexicon(self) -> Lexicon:
        return self._lexicon

    @property
    def version(self) -> str:
        return self._lexicon.version
