"""Immutable lexicon snapshot."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping


@dataclass(frozen=True)
class Lexicon:
    """A read-only, versioned mapping of ``group -> list name -> indicators``.

    Indicators are stored lower-cased so the engine can compare them against
    normalised text directly. Lookups of unknown groups or lists yield an
    empty tuple.
    """

    version: str = "empty"
    categories: Mapping[str, Mapping[str, tuple[str, ...]]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @classmethod
    def from_dict(cls, data: dict[str, Any], version: str | None = None) -> Lexicon:
        """Build a lexicon from a parsed document, skipping malformed lists."""
        groups: dict[str, Mapping[str, tuple[str, ...]]] = {}
        raw_groups = data.get("categories") or {}
        if not isinstance(raw_groups, dict):
            raw_groups = {}

        for group_name, lists in raw_groups.items():
            if not isinstance(lists, dict):
                continue
            frozen: dict[str, tuple[str, ...]] = {}
            for list_name, items in lists.items():
                if not isinstance(items, list):
                    continue
                cleaned = [str(item).lower() for item in items if str(item).strip()]
                # Keep first occurrence order, drop repeats
                frozen[str(list_name)] = tuple(dict.fromkeys(cleaned))
            groups[str(group_name)] = MappingProxyType(frozen)

        return cls(
            version=str(version or data.get("version") or "unversioned"),
            categories=MappingProxyType(groups),
        )

    def indicators(self, group: str, name: str) -> tuple[str, ...]:
        """Return the indicators of ``group.name`` or ``()`` if absent."""
        return self.categories.get(group, {}).get(name, ())

    @property
    def is_empty(self) -> bool:
        return not any(lists for lists in self.categories.values())

    def summary(self) -> dict[str, int]:
        """Per-list indicator counts, keyed ``group.name``."""
        return {
            f"{group}.{name}": len(items)
            for group, lists in sorted(self.categories.items())
            for name, items in sorted(lists.items())
        }
