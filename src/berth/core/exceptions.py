"""Exception hierarchy for berth."""

from __future__ import annotations

from enum import Enum


class BerthError(Exception):
    """Base exception for berth errors."""


class ReuseConfigurationError(BerthError):
    """Reuse was requested for a container that cannot be reused."""


class ImageResolutionError(BerthError):
    """A lazily supplied image reference could not be resolved."""


class ContainerNotFoundError(BerthError):
    """The engine has no container with the given id."""

    def __init__(self, container_id: str) -> None:
        super().__init__(f"No such container: {container_id}")
        self.container_id = container_id


class ContainerLaunchError(BerthError):
    """Creating or starting a container failed.

    Attributes:
        container_logs: Output captured from the failed container, if an id
            was obtained before the failure. Empty string means the container
            produced no output.
    """

    def __init__(self, message: str, container_logs: str | None = None) -> None:
        super().__init__(message)
        self.container_logs = container_logs


class PortBindingTimeoutError(ContainerLaunchError):
    """Exposed ports did not receive host bindings in time."""


class FailureReason(str, Enum):
    """Why a container failed to become ready, most actionable first."""

    REMOVED = "removed"
    DEAD = "dead"
    OOM_KILLED = "oom_killed"
    CRASHED = "crashed"
    EXITED = "exited"


class ContainerReadinessError(ContainerLaunchError):
    """A readiness failure classified from the container's engine state."""

    def __init__(self, reason: FailureReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason


class ContainerNotStartedError(BerthError):
    """An operation needs a started container, but none is held."""
