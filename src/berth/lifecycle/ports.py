"""Port-readiness polling.

The engine may report a container as running before it has finished
allocating host-side port mappings. Poll inspect until every exposed port has
a binding.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable

from berth.core.constants import PORT_WAIT_INTERVAL_SECONDS, PORT_WAIT_TIMEOUT_SECONDS
from berth.core.exceptions import PortBindingTimeoutError
from berth.core.schemas import ContainerInfo, normalize_port
from berth.engine.base import EngineClient

logger = logging.getLogger(__name__)


def wait_for_mapped_ports(
    engine: EngineClient,
    container_id: str,
    exposed_ports: Iterable[int | str],
    timeout: float = PORT_WAIT_TIMEOUT_SECONDS,
    interval: float = PORT_WAIT_INTERVAL_SECONDS,
    *,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> ContainerInfo:
    """Block until all exposed ports have host bindings.

    Args:
        engine: Engine client used for inspect calls
        container_id: Container to inspect
        exposed_ports: Ports that must be mapped
        timeout: Ceiling in seconds
        interval: Delay between polls in seconds
        sleep: Sleep function (injectable for tests)
        clock: Monotonic clock (injectable for tests)

    Returns:
        The first inspection snapshot that satisfied the condition

    Raises:
        PortBindingTimeoutError: If the ceiling elapses first
    """
    required = {normalize_port(p) for p in exposed_ports}
    deadline = clock() + timeout
    polls = 0

    while True:
        info = engine.inspect_container(container_id)
        polls += 1
        missing = required - info.mapped_ports()
        if not missing:
            logger.debug(f"All ports mapped for {container_id[:12]} after {polls} poll(s)")
            return info
        if clock() >= deadline:
            raise PortBindingTimeoutError(
                f"Timed out after {timeout}s ({polls} polls) waiting for port bindings "
                f"of container {container_id[:12]}: missing {sorted(missing)}"
            )
        sleep(interval)
