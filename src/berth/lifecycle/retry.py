"""Startup retry driver."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

from berth.core.exceptions import ContainerLaunchError, ReuseConfigurationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_until_success(
    attempts: int,
    work: Callable[[], T],
    *,
    description: str = "container",
    non_retryable: tuple[type[Exception], ...] = (ReuseConfigurationError,),
) -> T:
    """Run ``work`` up to ``attempts`` times, returning its first result.

    Each attempt runs from scratch; nothing is carried over from a failed one.

    Args:
        attempts: Maximum number of attempts (>= 1)
        work: One full attempt
        description: What is being started, for log messages
        non_retryable: Exception types that abort immediately

    Returns:
        The result of the first successful attempt

    Raises:
        ContainerLaunchError: After ``attempts`` consecutive failures, chained
            on the last one
    """
    if attempts < 1:
        raise ValueError(f"attempts must be >= 1, got {attempts}")

    last_error: Exception | None = None
    for attempt in range(1, attempts + 1):
        logger.debug(f"Trying to start {description} (attempt {attempt}/{attempts})")
        try:
            return work()
        except non_retryable:
            raise
        except Exception as e:
            last_error = e
            logger.warning(f"Start attempt {attempt}/{attempts} for {description} failed: {e}")

    raise ContainerLaunchError(
        f"Container startup failed for {description} after {attempts} attempt(s)",
        container_logs=getattr(last_error, "container_logs", None),
    ) from last_error
