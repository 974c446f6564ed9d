"""Typed security configuration with validated defaults.

Configuration arrives as loosely-typed documents (YAML settings files, JSON
request bodies). :meth:`SecurityConfig.from_dict` validates it once: unknown
keys are ignored, and missing or invalid values fall back to the documented
defaults with a warning.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Callable

from hideout.errors import ConfigError

logger = logging.getLogger(__name__)

PHISHTANK_ENDPOINT = "https://checkurl.phishtank.com/checkurl/"
MAX_LOOKUP_TIMEOUT = 10.0


class SecurityMode(Enum):
    """Which detectors feed a scan."""

    BASIC = "basic"  # Local lexicon only
    REPUTATION = "reputation"  # URL reputation first, lexicon as support
    HYBRID = "hybrid"  # Both, higher confidence wins


def _bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "yes", "on", "1"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "no", "off", "0"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _positive_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"not an integer: {value!r}")
    number = int(value)
    if number <= 0:
        raise ValueError(f"must be positive: {value!r}")
    return number


def _positive_float(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    number = float(value)
    if number <= 0:
        raise ValueError(f"must be positive: {value!r}")
    return number


def _lookup_timeout(value: Any) -> float:
    number = _positive_float(value)
    if number > MAX_LOOKUP_TIMEOUT:
        raise ValueError(f"must not exceed {MAX_LOOKUP_TIMEOUT:g}s: {value!r}")
    return number


def _open_unit(value: Any) -> float:
    number = _positive_float(value)
    if not 0.0 < number < 1.0:
        raise ValueError(f"must lie in (0, 1): {value!r}")
    return number


def _mode(value: Any) -> SecurityMode:
    if isinstance(value, SecurityMode):
        return value
    text = str(value).strip().lower()
    # Older settings files used the service name
    if text == "phishtank":
        text = "reputation"
    return SecurityMode(text)


def _parse_fields(
    cls: type, data: dict[str, Any], parsers: dict[str, Callable[[Any], Any]]
) -> dict[str, Any]:
    defaults = cls()
    values: dict[str, Any] = {}
    for name, parse in parsers.items():
        if name not in data or data[name] is None:
            continue
        try:
            values[name] = parse(data[name])
        except (TypeError, ValueError):
            logger.warning(
                "Invalid %s.%s=%r; using default %r",
                cls.__name__,
                name,
                data[name],
                getattr(defaults, name),
            )
    return values


@dataclass(frozen=True)
class ReputationSettings:
    """External URL reputation lookup settings."""

    enabled: bool = True
    api_key: str = ""
    use_cache: bool = True
    cache_ttl_hours: float = 24.0
    cache_capacity: int = 1000
    timeout_seconds: float = 10.0
    endpoint: str = PHISHTANK_ENDPOINT
    log_requests: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ReputationSettings:
        if not isinstance(data, dict):
            return cls()
        return cls(
            **_parse_fields(
                cls,
                data,
                {
                    "enabled": _bool,
                    "api_key": str,
                    "use_cache": _bool,
                    "cache_ttl_hours": _positive_float,
                    "cache_capacity": _positive_int,
                    "timeout_seconds": _lookup_timeout,
                    "endpoint": str,
                    "log_requests": _bool,
                },
            )
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SecurityConfig:
    """Policy configuration. Replaced as a whole, never edited in place."""

    enabled: bool = True
    mode: SecurityMode = SecurityMode.BASIC
    threat_threshold: float = 0.3
    block_high_risk: bool = True
    show_warnings: bool = True
    auto_block_medium: bool = False
    log_all_messages: bool = False
    max_ledger_entries: int = 1000
    reputation: ReputationSettings = field(default_factory=ReputationSettings)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SecurityConfig:
        if not isinstance(data, dict):
            return cls()
        values = _parse_fields(
            cls,
            data,
            {
                "enabled": _bool,
                "mode": _mode,
                "threat_threshold": _open_unit,
                "block_high_risk": _bool,
                "show_warnings": _bool,
                "auto_block_medium": _bool,
                "log_all_messages": _bool,
                "max_ledger_entries": _positive_int,
            },
        )
        values["reputation"] = ReputationSettings.from_dict(data.get("reputation"))
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["mode"] = self.mode.value
        data["reputation"] = self.reputation.to_dict()
        return data

    def merged(self, changes: dict[str, Any]) -> SecurityConfig:
        """Return a new config with *changes* applied over this one."""
        data = self.to_dict()
        reputation_changes = changes.get("reputation")
        data.update({k: v for k, v in changes.items() if k != "reputation"})
        if isinstance(reputation_changes, dict):
            data["reputation"] = {**data["reputation"], **reputation_changes}
        return SecurityConfig.from_dict(data)

    def with_setting(self, key: str, value: Any) -> SecurityConfig:
        """Return a copy with the dotted *key* set to *value*.

        Raises :class:`ConfigError` for unknown keys and for values the
        validators reject, rather than silently keeping the default.
        """
        path = key.split(".")
        current = self.to_dict()
        if len(path) == 1 and path[0] in current and path[0] != "reputation":
            changes: dict[str, Any] = {path[0]: value}
        elif len(path) == 2 and path[0] == "reputation" and path[1] in current["reputation"]:
            changes = {"reputation": {path[1]: value}}
        else:
            raise ConfigError(f"Unknown setting {key!r}")

        updated = self.merged(changes)
        applied: Any = updated.to_dict()
        for part in path:
            applied = applied[part]
        if applied != value and str(applied) != str(value):
            raise ConfigError(f"Invalid value {value!r} for {key}")
        return updated
