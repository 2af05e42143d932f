"""Tests for the dependency starter."""

import threading
import time

import pytest

from berth.lifecycle.startables import Startable, deep_start


class Node(Startable):
    def __init__(self, name, log, deps=(), error=None, delay=0.0):
        self.name = name
        self.log = log
        self._deps = frozenset(deps)
        self.error = error
        self.delay = delay
        self.start_count = 0
        self.threads = []

    @property
    def dependencies(self):
        return self._deps

    def start(self):
        self.start_count += 1
        self.threads.append(threading.current_thread().name)
        time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.log.append(self.name)

    def stop(self):
        pass

    def __repr__(self):
        return f"Node({self.name})"


class TestDeepStart:
    """Tests for deep_start."""

    def test_diamond_starts_each_node_once(self):
        """Test that a shared dependency starts once, before its dependents."""
        log = []
        db = Node("db", log, delay=0.01)
        api = Node("api", log, deps=[db])
        worker = Node("worker", log, deps=[db])
        app = Node("app", log, deps=[api, worker])

        deep_start([app, worker])

        assert db.start_count == 1
        assert worker.start_count == 1
        assert app.start_count == 1
        assert log[0] == "db"
        assert log[-1] == "app"
        assert sorted(log) == ["api", "app", "db", "worker"]

    def test_runs_on_worker_threads(self):
        """Test that nodes start on the pool's threads."""
        node = Node("db", [])
        deep_start([node])
        assert node.threads[0].startswith("berth-deep-start")

    def test_failure_propagates(self):
        """Test that a failing dependency aborts its dependents."""
        log = []
        db = Node("db", log, error=RuntimeError("db failed"))
        app = Node("app", log, deps=[db])

        with pytest.raises(RuntimeError, match="db failed"):
            deep_start([app])

        assert app.start_count == 0
        assert log == []

    def test_empty(self):
        """Test that nothing to start is fine."""
        deep_start([])

    def test_context_manager_starts_and_stops(self):
        """Test the Startable context manager protocol."""
        events = []

        class Resource(Startable):
            def start(self):
                events.append("start")

            def stop(self):
                events.append("stop")

        with Resource():
            events.append("body")

        assert events == ["start", "body", "stop"]

    def test_start_after_dependencies_is_used(self):
        """Test that deep_start skips a node's own dependency startup."""
        log = []
        db = Node("db", log)

        class SelfStartingNode(Node):
            def start(self):
                for dependency in self.dependencies:
                    dependency.start()
                super().start()

            def start_after_dependencies(self):
                super().start()

        app = SelfStartingNode("app", log, deps=[db])

        deep_start([app])

        assert db.start_count == 1
        assert log == ["db", "app"]
