"""Engine client abstract class.

The lifecycle core never talks to a container runtime directly; it drives an
``EngineClient``. This keeps the core testable against in-memory fakes and
lets the Docker SDK stay behind one seam.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator

from berth.core.schemas import (
    ContainerInfo,
    ContainerSummary,
    CopyToContainer,
    CreateRequest,
    ExecResult,
)


class EngineClient(ABC):
    """Abstract base class for container engine clients.

    Implementations:
    - DockerEngineClient: Docker/Podman via the ``docker`` SDK
    """

    @abstractmethod
    def create_container(self, request: CreateRequest) -> str:
        """Create (but do not start) a container.

        Returns:
            The engine-assigned container id
        """
        pass

    @abstractmethod
    def start_container(self, container_id: str) -> None:
        pass

    @abstractmethod
    def inspect_container(self, container_id: str) -> ContainerInfo:
        """Fetch a fresh inspection snapshot.

        Raises:
            ContainerNotFoundError: If the container no longer exists
        """
        pass

    @abstractmethod
    def list_containers(
        self,
        labels: dict[str, str] | None = None,
        status: list[str] | None = None,
        limit: int | None = None,
        show_all: bool = False,
    ) -> list[ContainerSummary]:
        """List containers, optionally filtered by labels and status."""
        pass

    @abstractmethod
    def connect_network(self, container_id: str, network_id: str) -> None:
        pass

    @abstractmethod
    def copy_to_container(self, container_id: str, item: CopyToContainer) -> None:
        """Stage a file, directory or payload at ``item.destination``."""
        pass

    @abstractmethod
    def get_logs(self, container_id: str) -> str:
        """Return combined stdout/stderr output of the container."""
        pass

    @abstractmethod
    def follow_logs(self, container_id: str) -> Iterator[str]:
        """Yield combined output as it is produced, until the container stops."""
        pass

    @abstractmethod
    def copy_from_container(self, container_id: str, path: str) -> bytes:
        """Return the content of the regular file at ``path``.

        Raises:
            ContainerNotFoundError: If the container or the path does not exist
            IsADirectoryError: If ``path`` is not a regular file
        """
        pass

    @abstractmethod
    def exec_in_container(self, container_id: str, command: list[str]) -> ExecResult:
        pass

    @abstractmethod
    def kill_container(self, container_id: str) -> None:
        """Kill a running container immediately."""
        pass

    @abstractmethod
    def remove_container(self, container_id: str) -> None:
        """Force-remove a container along with its anonymous volumes."""
        pass

    @property
    @abstractmethod
    def host(self) -> str:
        """Host address where mapped container ports are reachable."""
        pass
