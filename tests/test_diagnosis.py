"""Tests for readiness failure diagnosis."""

from unittest.mock import MagicMock

import pytest

from berth.core.exceptions import ContainerNotFoundError, ContainerReadinessError, FailureReason
from berth.core.schemas import ContainerInfo, ContainerState
from berth.lifecycle.diagnosis import classify_state, raise_diagnosed


def _info(**state) -> ContainerInfo:
    return ContainerInfo(id="abc", state=ContainerState(**state))


class TestClassifyState:
    """Tests for classify_state priority order."""

    def test_missing_container(self):
        """Test that a vanished container is reported as removed."""
        assert classify_state(None) == (FailureReason.REMOVED, "Container is removed")

    def test_dead_wins_over_exit_code(self):
        """Test that a dead container is not reported by its exit code."""
        reason, message = classify_state(_info(dead=True, exit_code=137))
        assert reason is FailureReason.DEAD
        assert message == "Container is dead"

    def test_oom_killed(self):
        """Test that OOM kills are reported before generic errors."""
        reason, message = classify_state(_info(oom_killed=True, error="killed", exit_code=137))
        assert reason is FailureReason.OOM_KILLED
        assert "out-of-memory" in message

    def test_engine_error(self):
        """Test that a non-empty engine error is reported as a crash."""
        reason, message = classify_state(_info(error="mount failed", exit_code=127))
        assert reason is FailureReason.CRASHED
        assert message == "Container crashed: mount failed"

    def test_blank_error_is_ignored(self):
        """Test that whitespace-only errors fall through to the exit code."""
        reason, message = classify_state(_info(error="  ", exit_code=1))
        assert reason is FailureReason.EXITED
        assert message == "Container exited with code 1"

    def test_running_container(self):
        """Test that a healthy container yields no classification."""
        assert classify_state(_info(running=True)) is None


class TestRaiseDiagnosed:
    """Tests for raise_diagnosed."""

    def test_removed_container(self):
        """Test that not-found during inspect is classified as removed."""
        engine = MagicMock()
        engine.inspect_container.side_effect = ContainerNotFoundError("abc")
        original = TimeoutError("probe")

        with pytest.raises(ContainerReadinessError) as exc_info:
            raise_diagnosed(engine, "abc", original)

        assert exc_info.value.reason is FailureReason.REMOVED
        assert exc_info.value.__cause__ is original

    def test_reraises_original_when_running(self):
        """Test that the original error surfaces for a running container."""
        engine = MagicMock()
        engine.inspect_container.return_value = _info(running=True)
        original = TimeoutError("probe")

        with pytest.raises(TimeoutError) as exc_info:
            raise_diagnosed(engine, "abc", original)

        assert exc_info.value is original

    def test_inspect_failure_keeps_original_error(self):
        """Test that an engine error during inspect does not replace the original error."""
        engine = MagicMock()
        engine.inspect_container.side_effect = ConnectionError("daemon unreachable")
        original = TimeoutError("probe")

        with pytest.raises(TimeoutError) as exc_info:
            raise_diagnosed(engine, "abc", original)

        assert exc_info.value is original
