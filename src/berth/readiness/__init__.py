"""Readiness module - startup checks and the wait-strategy slot.

Provides:
- StartupCheckStrategy and its built-in implementations
- WaitStrategy / WaitStrategyTarget interfaces for application-level probes
"""

from __future__ import annotations

from berth.readiness.base import (
    StartupCheckStrategy,
    StartupStatus,
    WaitStrategy,
    WaitStrategyTarget,
)
from berth.readiness.startup import (
    IsRunningStartupCheckStrategy,
    MinimumDurationRunningStartupCheckStrategy,
    OneShotStartupCheckStrategy,
)

__all__ = [
    "IsRunningStartupCheckStrategy",
    "MinimumDurationRunningStartupCheckStrategy",
    "OneShotStartupCheckStrategy",
    "StartupCheckStrategy",
    "StartupStatus",
    "WaitStrategy",
    "WaitStrategyTarget",
]
