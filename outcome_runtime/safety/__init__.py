"""Automatic safety controls."""

from .kill_switch import (
    AutoKillSwitch,
    KillCallback,
    KillDetails,
    KillSwitchConfig,
    KillSwitchResult,
    KillType,
    breaches_kill_threshold,
)

__all__ = [
    "AutoKillSwitch",
    "KillCallback",
    "KillDetails",
    "KillSwitchConfig",
    "KillSwitchResult",
    "KillType",
    "breaches_kill_threshold",
]
