"""Tests for startup-check strategies."""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

from berth.core.schemas import ContainerInfo, ContainerState
from berth.readiness.base import StartupStatus
from berth.readiness.startup import (
    IsRunningStartupCheckStrategy,
    MinimumDurationRunningStartupCheckStrategy,
    OneShotStartupCheckStrategy,
)


def _engine(**state) -> MagicMock:
    engine = MagicMock()
    engine.inspect_container.return_value = ContainerInfo(id="abc", state=ContainerState(**state))
    return engine


class TestIsRunning:
    """Tests for IsRunningStartupCheckStrategy."""

    def test_running(self):
        """Test that a running container succeeds."""
        strategy = IsRunningStartupCheckStrategy()
        engine = _engine(status="running", running=True)
        assert strategy.check_startup_state(engine, "abc") is StartupStatus.SUCCESSFUL
        assert strategy.wait_until_startup_successful(engine, "abc") is True

    def test_exited_with_error(self):
        """Test that a non-zero exit fails the check."""
        strategy = IsRunningStartupCheckStrategy()
        engine = _engine(status="exited", exit_code=1)
        assert strategy.check_startup_state(engine, "abc") is StartupStatus.FAILED
        assert strategy.wait_until_startup_successful(engine, "abc") is False

    def test_timeout(self):
        """Test that an undecided check gives up after its timeout."""
        strategy = IsRunningStartupCheckStrategy(timeout_seconds=0.05, poll_interval_seconds=0.01)
        engine = _engine(status="created", exit_code=0)
        assert strategy.wait_until_startup_successful(engine, "abc") is False
        assert engine.inspect_container.call_count >= 2

    def test_with_timeout(self):
        """Test the fluent timeout setter."""
        strategy = IsRunningStartupCheckStrategy().with_timeout(3)
        assert strategy.timeout_seconds == 3


class TestMinimumDuration:
    """Tests for MinimumDurationRunningStartupCheckStrategy."""

    def test_running_long_enough(self):
        """Test success once the minimum duration has passed."""
        strategy = MinimumDurationRunningStartupCheckStrategy(5)
        started_at = datetime.now(UTC) - timedelta(seconds=10)
        engine = _engine(status="running", running=True, started_at=started_at)
        assert strategy.check_startup_state(engine, "abc") is StartupStatus.SUCCESSFUL

    def test_just_started(self):
        """Test that a freshly started container is not yet known."""
        strategy = MinimumDurationRunningStartupCheckStrategy(5)
        engine = _engine(status="running", running=True, started_at=datetime.now(UTC))
        assert strategy.check_startup_state(engine, "abc") is StartupStatus.NOT_YET_KNOWN

    def test_crashed(self):
        """Test that a crash during the window fails."""
        strategy = MinimumDurationRunningStartupCheckStrategy(5, timeout_seconds=1)
        engine = _engine(status="exited", exit_code=2)
        assert strategy.check_startup_state(engine, "abc") is StartupStatus.FAILED
        assert strategy.timeout_seconds == 1


class TestOneShot:
    """Tests for OneShotStartupCheckStrategy."""

    def test_completed(self):
        """Test that a clean exit succeeds."""
        engine = _engine(status="exited", exit_code=0)
        assert OneShotStartupCheckStrategy().check_startup_state(engine, "abc") is StartupStatus.SUCCESSFUL

    def test_failed(self):
        """Test that a non-zero exit fails."""
        engine = _engine(status="exited", exit_code=2)
        assert OneShotStartupCheckStrategy().check_startup_state(engine, "abc") is StartupStatus.FAILED

    def test_still_running(self):
        """Test that a running task is not yet known."""
        engine = _engine(status="running", running=True)
        assert (
            OneShotStartupCheckStrategy().check_startup_state(engine, "abc")
            is StartupStatus.NOT_YET_KNOWN
        )
