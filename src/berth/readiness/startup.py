"""Built-in startup-check strategies."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from berth.readiness.base import StartupCheckStrategy, StartupStatus

if TYPE_CHECKING:
    from berth.core.schemas import ContainerState
    from berth.engine.base import EngineClient


def _exit_code_success(state: ContainerState) -> bool:
    return not state.exit_code


class IsRunningStartupCheckStrategy(StartupCheckStrategy):
    """Succeeds as soon as the container is running."""

    def check_startup_state(self, engine: EngineClient, container_id: str) -> StartupStatus:
        state = engine.inspect_container(container_id).state
        if state.running:
            return StartupStatus.SUCCESSFUL
        if not _exit_code_success(state):
            return StartupStatus.FAILED
        return StartupStatus.NOT_YET_KNOWN


class MinimumDurationRunningStartupCheckStrategy(StartupCheckStrategy):
    """Succeeds once the container has been running for a minimum duration.

    Catches processes that start, then crash shortly after.
    """

    def __init__(self, minimum_duration_seconds: float, **kwargs: float) -> None:
        super().__init__(**kwargs)
        self.minimum_duration = timedelta(seconds=minimum_duration_seconds)

    def check_startup_state(self, engine: EngineClient, container_id: str) -> StartupStatus:
        state = engine.inspect_container(container_id).state
        if state.running:
            started_at = state.started_at
            if started_at is not None and datetime.now(UTC) - started_at >= self.minimum_duration:
                return StartupStatus.SUCCESSFUL
            return StartupStatus.NOT_YET_KNOWN
        if not _exit_code_success(state):
            return StartupStatus.FAILED
        return StartupStatus.NOT_YET_KNOWN


class OneShotStartupCheckStrategy(StartupCheckStrategy):
    """Succeeds when the container has exited with code 0.

    For containers that run a task and stop, such as migrations.
    """

    def check_startup_state(self, engine: EngineClient, container_id: str) -> StartupStatus:
        state = engine.inspect_container(container_id).state
        if state.running or state.status in ("created", "restarting", "paused"):
            return StartupStatus.NOT_YET_KNOWN
        if _exit_code_success(state):
            return StartupStatus.SUCCESSFUL
        return StartupStatus.FAILED
