"""Lifecycle hooks.

Subclass ``ContainerHooks`` and override only the callbacks you need; every
callback is a no-op by default. Hooks run synchronously, in registration
order, on the thread calling ``start()``/``stop()``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from berth.core.schemas import ContainerInfo


class ContainerHooks:
    """Optional callbacks around a container's lifecycle.

    Attributes:
        customizes_creation: Set to True when ``container_is_created`` does
            real work. Reuse skips that callback entirely, so containers
            carrying such hooks refuse to be reused.
    """

    customizes_creation: bool = False

    def before_start(self) -> None:
        """Called at the beginning of every start attempt."""

    def container_is_created(self, container_id: str) -> None:
        """Called after creation, before start. Skipped for reused containers."""

    def container_is_starting(self, reused: bool) -> None:
        """Called right after the engine start call. Skipped for reused containers."""

    def container_is_started(self, container_info: ContainerInfo | None, reused: bool) -> None:
        """Called once the container passed every readiness stage."""

    def container_is_stopping(self, container_info: ContainerInfo | None) -> None:
        pass

    def container_is_stopped(self, container_info: ContainerInfo | None) -> None:
        pass
