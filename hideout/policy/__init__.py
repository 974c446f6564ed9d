"""Security decision policy and its configuration."""

from hideout.policy.config import ReputationSettings, SecurityConfig, SecurityMode
from hideout.policy.decision import SecurityAction, SecurityPolicy, decide

__all__ = [
    "ReputationSettings",
    "SecurityConfig",
    "SecurityMode",
    "SecurityAction",
    "SecurityPolicy",
    "decide",
]
