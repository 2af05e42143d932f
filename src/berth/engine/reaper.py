"""Container reaper.

Stops and removes containers on request, and removes any container it was
told about but never asked to stop when the interpreter exits. Reusable
containers are never registered and outlive the process.
"""

from __future__ import annotations

import atexit
import functools
import logging
import threading
from abc import ABC, abstractmethod

from berth.core.exceptions import ContainerNotFoundError
from berth.engine.base import EngineClient

logger = logging.getLogger(__name__)


class Reaper(ABC):
    """Abstract base class for container reapers."""

    @abstractmethod
    def register(self, container_id: str) -> None:
        """Track a container for cleanup at exit."""
        pass

    @abstractmethod
    def stop_and_remove(self, container_id: str, image_name: str = "<unknown>") -> None:
        """Stop and remove a container.

        Args:
            container_id: Engine container id
            image_name: Display name, used for logging only
        """
        pass


class ResourceReaper(Reaper):
    """Reaper that talks to the engine directly from this process."""

    def __init__(self, engine: EngineClient, register_atexit: bool = True) -> None:
        self._engine = engine
        self._registered: set[str] = set()
        self._lock = threading.Lock()
        if register_atexit:
            atexit.register(self.cleanup)

    @property
    def registered(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._registered)

    def register(self, container_id: str) -> None:
        with self._lock:
            self._registered.add(container_id)

    def stop_and_remove(self, container_id: str, image_name: str = "<unknown>") -> None:
        with self._lock:
            self._registered.discard(container_id)

        short_id = container_id[:12]
        logger.debug(f"Stopping container: {image_name} ({short_id})")

        try:
            running = self._engine.inspect_container(container_id).state.running
        except ContainerNotFoundError:
            logger.debug(f"Container {short_id} was already removed")
            return

        try:
            if running:
                self._engine.kill_container(container_id)
            self._engine.remove_container(container_id)
        except ContainerNotFoundError:
            logger.debug(f"Container {short_id} disappeared during removal")
            return

        logger.info(f"Stopped and removed container: {image_name} ({short_id})")

    def cleanup(self) -> None:
        """Remove every registered container that is still tracked."""
        for container_id in self.registered:
            try:
                self.stop_and_remove(container_id)
            except Exception as e:
                logger.warning(f"Failed to clean up container {container_id[:12]}: {e}")


@functools.lru_cache(maxsize=None)
def reaper_for(engine: EngineClient) -> ResourceReaper:
    """Shared reaper for an engine client."""
    return ResourceReaper(engine)
