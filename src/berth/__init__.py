"""berth - lifecycle management for ephemeral test containers."""

from __future__ import annotations

from berth.core.exceptions import (
    ContainerLaunchError,
    ContainerReadinessError,
    ReuseConfigurationError,
)
from berth.core.schemas import ContainerSpec, CopyToContainer
from berth.lifecycle.container import ManagedContainer
from berth.lifecycle.hooks import ContainerHooks
from berth.lifecycle.startables import Startable, deep_start
from berth.readiness.base import StartupCheckStrategy, WaitStrategy

__version__ = "0.1.0"

__all__ = [
    "ContainerHooks",
    "ContainerLaunchError",
    "ContainerReadinessError",
    "ContainerSpec",
    "CopyToContainer",
    "deep_start",
    "ManagedContainer",
    "ReuseConfigurationError",
    "Startable",
    "StartupCheckStrategy",
    "WaitStrategy",
    "__version__",
]
