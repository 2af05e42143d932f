"""Readiness abstractions.

Readiness is checked in two stages:
- StartupCheckStrategy: engine-level, e.g. "the process is running"
- WaitStrategy: application-level, e.g. "the server accepts requests"

Both are pluggable. The orchestrator only owns the slots and the order.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING

from berth.core.constants import CONTAINER_RUNNING_TIMEOUT_SECONDS

if TYPE_CHECKING:
    from berth.core.schemas import ContainerInfo, ExecResult
    from berth.engine.base import EngineClient

logger = logging.getLogger(__name__)

DEFAULT_STARTUP_TIMEOUT_SECONDS = 60.0


class StartupStatus(str, Enum):
    """Outcome of a single startup-state check."""

    NOT_YET_KNOWN = "not_yet_known"
    SUCCESSFUL = "successful"
    FAILED = "failed"


class StartupCheckStrategy(ABC):
    """Abstract base class for engine-level startup checks.

    Subclasses only decide the state of one observation; polling and the
    timeout live here.

    Implementations:
    - IsRunningStartupCheckStrategy: the container is running (default)
    - MinimumDurationRunningStartupCheckStrategy: running for at least N seconds
    - OneShotStartupCheckStrategy: the container ran to completion successfully
    """

    def __init__(
        self,
        timeout_seconds: float = CONTAINER_RUNNING_TIMEOUT_SECONDS,
        poll_interval_seconds: float = 0.1,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.poll_interval_seconds = poll_interval_seconds

    def with_timeout(self, timeout_seconds: float) -> StartupCheckStrategy:
        self.timeout_seconds = timeout_seconds
        return self

    def wait_until_startup_successful(self, engine: EngineClient, container_id: str) -> bool:
        """Poll until the check succeeds, fails, or times out.

        Returns:
            True on success; False on failure or timeout
        """
        deadline = time.monotonic() + self.timeout_seconds
        while True:
            status = self.check_startup_state(engine, container_id)
            if status is StartupStatus.SUCCESSFUL:
                return True
            if status is StartupStatus.FAILED:
                return False
            if time.monotonic() >= deadline:
                logger.warning(
                    f"{type(self).__name__} timed out after {self.timeout_seconds}s "
                    f"for container {container_id[:12]}"
                )
                return False
            time.sleep(self.poll_interval_seconds)

    @abstractmethod
    def check_startup_state(self, engine: EngineClient, container_id: str) -> StartupStatus:
        """Inspect the container once and classify its startup state."""
        pass


class WaitStrategyTarget(ABC):
    """What a wait strategy may observe about a started container."""

    @property
    @abstractmethod
    def host(self) -> str:
        pass

    @abstractmethod
    def get_mapped_port(self, port: int | str) -> int:
        """Host port bound to a container port."""
        pass

    @property
    @abstractmethod
    def exposed_ports(self) -> list[str]:
        pass

    @property
    @abstractmethod
    def container_info(self) -> ContainerInfo | None:
        pass

    @abstractmethod
    def get_logs(self) -> str:
        pass

    @abstractmethod
    def exec_in_container(self, command: str | list[str]) -> ExecResult:
        pass

    @property
    def liveness_check_ports(self) -> set[int]:
        """Host ports a probe should consider when checking liveness."""
        return {self.get_mapped_port(port) for port in self.exposed_ports}


class WaitStrategy(ABC):
    """Abstract base class for application-level readiness probes.

    Concrete probes (log pattern, HTTP, open port, exec) plug in here. Each
    carries its own startup timeout, independent of the startup check.
    """

    def __init__(self, startup_timeout_seconds: float = DEFAULT_STARTUP_TIMEOUT_SECONDS) -> None:
        self.startup_timeout_seconds = startup_timeout_seconds

    def with_startup_timeout(self, startup_timeout_seconds: float) -> WaitStrategy:
        self.startup_timeout_seconds = startup_timeout_seconds
        return self

    @abstractmethod
    def wait_until_ready(self, target: WaitStrategyTarget) -> None:
        """Block until the target is ready.

        Raises:
            Exception: Any error; the orchestrator diagnoses it
        """
        pass
