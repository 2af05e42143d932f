"""Following container output into log consumers."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator

from berth.engine.base import EngineClient

logger = logging.getLogger(__name__)

LogConsumer = Callable[[str], None]


class LogFollower:
    """Streams a container's output into one consumer on a daemon thread.

    The stream ends when the container stops. A consumer that raises is
    detached and the error logged; the container is not affected.
    """

    def __init__(self, engine: EngineClient, container_id: str, consumer: LogConsumer) -> None:
        self.engine = engine
        self.container_id = container_id
        self.consumer = consumer
        self._stream: Iterator[str] | None = None
        self._thread = threading.Thread(
            target=self._run,
            name=f"berth-logs-{container_id[:12]}",
            daemon=True,
        )

    def start(self) -> LogFollower:
        """Open the output stream, then consume it in the background."""
        self._stream = self.engine.follow_logs(self.container_id)
        self._thread.start()
        return self

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    def _run(self) -> None:
        try:
            for chunk in self._stream:
                self.consumer(chunk)
        except Exception as e:
            logger.warning(f"Stopped following output of {self.container_id[:12]}: {e}")
        else:
            logger.debug(f"Output of {self.container_id[:12]} ended")
