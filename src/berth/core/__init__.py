"""Core module - configuration, schemas and errors."""

from __future__ import annotations

from berth.core.config import Settings, load_settings, load_spec
from berth.core.constants import (
    COPIED_FILES_HASH_LABEL,
    HASH_LABEL,
    MANAGED_LABEL,
    SESSION_ID,
    SESSION_ID_LABEL,
)
from berth.core.exceptions import (
    BerthError,
    ContainerLaunchError,
    ContainerNotFoundError,
    ContainerNotStartedError,
    ContainerReadinessError,
    FailureReason,
    ImageResolutionError,
    PortBindingTimeoutError,
    ReuseConfigurationError,
)
from berth.core.schemas import (
    BindMode,
    BindMount,
    ContainerInfo,
    ContainerSpec,
    ContainerState,
    ContainerSummary,
    CopyToContainer,
    CreateRequest,
    ExecResult,
    PortForwardingNetwork,
)

__all__ = [
    "BerthError",
    "BindMode",
    "BindMount",
    "ContainerInfo",
    "ContainerLaunchError",
    "ContainerNotFoundError",
    "ContainerNotStartedError",
    "ContainerReadinessError",
    "ContainerSpec",
    "ContainerState",
    "ContainerSummary",
    "COPIED_FILES_HASH_LABEL",
    "CopyToContainer",
    "CreateRequest",
    "ExecResult",
    "FailureReason",
    "HASH_LABEL",
    "ImageResolutionError",
    "load_settings",
    "load_spec",
    "MANAGED_LABEL",
    "PortBindingTimeoutError",
    "PortForwardingNetwork",
    "ReuseConfigurationError",
    "SESSION_ID",
    "SESSION_ID_LABEL",
    "Settings",
]
