"""Readiness failure diagnosis.

Several failure conditions can be true at once (a dead container also has a
non-zero exit code). They are checked in a fixed order so that the most
actionable one is reported.
"""

from __future__ import annotations

import logging
from typing import NoReturn

from berth.core.exceptions import ContainerNotFoundError, ContainerReadinessError, FailureReason
from berth.core.schemas import ContainerInfo
from berth.engine.base import EngineClient

logger = logging.getLogger(__name__)


def classify_state(info: ContainerInfo | None) -> tuple[FailureReason, str] | None:
    """Classify a container's state after a readiness failure.

    Args:
        info: Fresh inspection snapshot, or None if the container is gone

    Returns:
        (reason, message), or None when the container looks healthy and the
        probe's own error is the real cause
    """
    if info is None:
        return FailureReason.REMOVED, "Container is removed"

    state = info.state
    if state.dead:
        return FailureReason.DEAD, "Container is dead"
    if state.oom_killed:
        return FailureReason.OOM_KILLED, "Container crashed with out-of-memory (OOMKilled)"
    if state.error.strip():
        return FailureReason.CRASHED, f"Container crashed: {state.error}"
    if not state.running:
        return FailureReason.EXITED, f"Container exited with code {state.exit_code}"
    return None


def raise_diagnosed(engine: EngineClient, container_id: str, error: Exception) -> NoReturn:
    """Re-raise ``error``, replaced by a classified failure when one applies.

    Raises:
        ContainerReadinessError: If the container state explains the failure
        Exception: ``error`` itself, unchanged, otherwise
    """
    classified: tuple[FailureReason, str] | None = None
    try:
        info = engine.inspect_container(container_id)
    except ContainerNotFoundError:
        logger.debug(f"Container {container_id[:12]} not found")
        classified = classify_state(None)
    except Exception as e:
        logger.debug(f"Could not inspect container {container_id[:12]} for diagnosis: {e}")
    else:
        classified = classify_state(info)

    if classified is None:
        raise error

    reason, message = classified
    raise ContainerReadinessError(reason, message) from error
