"""Tests for security configuration and the decision policy."""

import itertools
import logging

import pytest

from hideout.detection.models import ScanResult, ThreatLevel, ThreatType
from hideout.errors import ConfigError
from hideout.policy import (
    ReputationSettings,
    SecurityAction,
    SecurityConfig,
    SecurityMode,
    SecurityPolicy,
    decide,
)


def _result(level: ThreatLevel, is_threat: bool = True) -> ScanResult:
    return ScanResult(
        is_threat=is_threat,
        confidence_score=0.5,
        threat_type=ThreatType.PHISHING if is_threat else ThreatType.SAFE,
        threat_level=level,
    )


# --- Decision Tests ---


def test_non_threat_is_always_allowed():
    for level in ThreatLevel:
        assert decide(_result(level, is_threat=False), SecurityConfig()) is SecurityAction.ALLOW


def test_default_config_decisions():
    config = SecurityConfig()
    assert decide(_result(ThreatLevel.CRITICAL), config) is SecurityAction.BLOCK
    assert decide(_result(ThreatLevel.HIGH), config) is SecurityAction.BLOCK
    assert decide(_result(ThreatLevel.MEDIUM), config) is SecurityAction.WARN
    assert decide(_result(ThreatLevel.LOW), config) is SecurityAction.WARN
    assert decide(_result(ThreatLevel.SAFE), config) is SecurityAction.ALLOW


def test_flags_adjust_lower_levels():
    lenient = SecurityConfig(block_high_risk=False, show_warnings=False)
    assert decide(_result(ThreatLevel.HIGH), lenient) is SecurityAction.WARN
    assert decide(_result(ThreatLevel.LOW), lenient) is SecurityAction.ALLOW

    strict = SecurityConfig(auto_block_medium=True)
    assert decide(_result(ThreatLevel.MEDIUM), strict) is SecurityAction.QUARANTINE


def test_decide_is_total():
    for level, is_threat, high, medium, warnings in itertools.product(
        ThreatLevel, (True, False), (True, False), (True, False), (True, False)
    ):
        config = SecurityConfig(
            block_high_risk=high, auto_block_medium=medium, show_warnings=warnings
        )
        action = decide(_result(level, is_threat), config)
        assert isinstance(action, SecurityAction)
        if is_threat and level is ThreatLevel.CRITICAL:
            assert action is SecurityAction.BLOCK


def test_withholding_actions():
    assert SecurityAction.BLOCK.withholds
    assert SecurityAction.QUARANTINE.withholds
    assert not SecurityAction.WARN.withholds
    assert not SecurityAction.ALLOW.withholds


# --- Config Tests ---


def test_config_defaults():
    config = SecurityConfig.from_dict(None)
    assert config == SecurityConfig()
    assert config.mode is SecurityMode.BASIC
    assert config.threat_threshold == 0.3
    assert config.max_ledger_entries == 1000
    assert config.reputation.timeout_seconds == 10.0
    assert config.reputation.cache_ttl_hours == 24.0


def test_config_dict_form():
    config = SecurityConfig(mode=SecurityMode.HYBRID, threat_threshold=0.25)
    data = config.to_dict()
    assert data["mode"] == "hybrid"
    assert data["reputation"]["enabled"] is True
    assert SecurityConfig.from_dict(data) == config


def test_invalid_values_fall_back_with_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="hideout.policy.config"):
        config = SecurityConfig.from_dict(
            {
                "mode": "paranoid",
                "threat_threshold": 1.5,
                "max_ledger_entries": -3,
                "block_high_risk": "maybe",
                "unknown_key": 42,
                "reputation": {"timeout_seconds": 0, "cache_capacity": "many"},
            }
        )
    assert config == SecurityConfig()
    assert "threat_threshold" in caplog.text
    assert "mode" in caplog.text


def test_string_values_are_coerced():
    config = SecurityConfig.from_dict(
        {"enabled": "false", "threat_threshold": "0.4", "max_ledger_entries": "50"}
    )
    assert config.enabled is False
    assert config.threat_threshold == 0.4
    assert config.max_ledger_entries == 50


def test_legacy_mode_name():
    assert SecurityConfig.from_dict({"mode": "phishtank"}).mode is SecurityMode.REPUTATION


def test_merged_keeps_untouched_fields():
    config = SecurityConfig(reputation=ReputationSettings(api_key="k1"))
    merged = config.merged({"mode": "hybrid", "reputation": {"timeout_seconds": 5}})
    assert merged.mode is SecurityMode.HYBRID
    assert merged.reputation.api_key == "k1"
    assert merged.reputation.timeout_seconds == 5.0
    assert config.mode is SecurityMode.BASIC


def test_with_setting():
    config = SecurityConfig()
    assert config.with_setting("threat_threshold", 0.4).threat_threshold == 0.4
    assert config.with_setting("reputation.api_key", "abc").reputation.api_key == "abc"
    assert config.with_setting("mode", "hybrid").mode is SecurityMode.HYBRID


@pytest.mark.parametrize(
    "key,value",
    [
        ("nope", 1),
        ("reputation", {}),
        ("reputation.nope", 1),
        ("threat_threshold", 2),
        ("mode", "loud"),
    ],
)
def test_with_setting_rejects(key, value):
    with pytest.raises(ConfigError):
        SecurityConfig().with_setting(key, value)


# --- Policy Owner Tests ---


def test_update_replaces_whole_config():
    policy = SecurityPolicy()
    new = SecurityConfig(auto_block_medium=True)
    previous = policy.update(new)
    assert previous == SecurityConfig()
    assert policy.config is new
    assert policy.decide(_result(ThreatLevel.MEDIUM)) is SecurityAction.QUARANTINE


def test_emergency_and_normal_presets():
    policy = SecurityPolicy(SecurityConfig(reputation=ReputationSettings(api_key="k")))
    emergency = policy.emergency_mode()
    assert emergency.mode is SecurityMode.HYBRID
    assert emergency.threat_threshold == 0.2
    assert emergency.auto_block_medium
    assert emergency.log_all_messages
    assert policy.decide(_result(ThreatLevel.MEDIUM)) is SecurityAction.QUARANTINE

    normal = policy.normal_mode()
    assert normal.mode is SecurityMode.BASIC
    assert not normal.auto_block_medium
    assert normal.reputation.api_key == "k"


def test_protection_level_and_recommendations():
    policy = SecurityPolicy()
    assert policy.protection_score() == 65
    assert policy.protection_level() == "medium"
    tips = policy.recommendations()
    assert any("hybrid" in tip for tip in tips)

    policy.emergency_mode()
    assert policy.protection_level() == "high"
    assert not any("hybrid" in tip for tip in policy.recommendations())

    policy.update(SecurityConfig(enabled=False, reputation=ReputationSettings(enabled=False)))
    assert policy.protection_level() == "very_low"


def test_lookup_timeout_is_capped():
    config = SecurityConfig.from_dict({"reputation": {"timeout_seconds": 30}})
    assert config.reputation.timeout_seconds == 10.0
    assert SecurityConfig.from_dict({"reputation": {"timeout_seconds": 10}}).reputation.timeout_seconds == 10.0
    with pytest.raises(ConfigError):
        SecurityConfig().with_setting("reputation.timeout_seconds", 30)
    assert SecurityConfig().with_setting("reputation.timeout_seconds", 2.5).reputation.timeout_seconds == 2.5
