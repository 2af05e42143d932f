"""Startable resources and the dependency-graph starter."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

logger = logging.getLogger(__name__)


class Startable(ABC):
    """A resource with a start/stop lifecycle and optional dependencies.

    Example:
        ```python
        with ManagedContainer(spec) as container:
            port = container.get_mapped_port(6379)
        ```
    """

    @property
    def dependencies(self) -> frozenset[Startable]:
        """Startables that must be started before this one."""
        return frozenset()

    @abstractmethod
    def start(self) -> None:
        pass

    @abstractmethod
    def stop(self) -> None:
        pass

    def start_after_dependencies(self) -> None:
        """Start this node alone, its dependencies being already started.

        Called by ``deep_start``. Startables whose ``start()`` starts their own
        dependencies override this to skip that step.
        """
        self.start()

    def __enter__(self) -> Startable:
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()


def _collect(startables: Iterable[Startable]) -> list[Startable]:
    seen: dict[int, Startable] = {}
    pending = list(startables)
    while pending:
        node = pending.pop()
        if id(node) in seen:
            continue
        seen[id(node)] = node
        pending.extend(node.dependencies)
    return list(seen.values())


def deep_start(startables: Iterable[Startable]) -> None:
    """Start a set of startables and their transitive dependencies.

    Every node starts exactly once, and only after all of its dependencies
    have started. Independent subtrees start in parallel. Cyclic dependencies
    are not detected and deadlock.

    Raises:
        Exception: The first failure encountered, after the remaining started
            work has finished
    """
    roots = list(startables)
    nodes = _collect(roots)
    if not nodes:
        return

    futures: dict[int, Future[None]] = {}
    lock = threading.Lock()

    # One worker per node, so a node blocked on its dependencies never starves them
    with ThreadPoolExecutor(max_workers=len(nodes), thread_name_prefix="berth-deep-start") as pool:

        def submit(node: Startable) -> Future[None]:
            with lock:
                future = futures.get(id(node))
                if future is None:
                    future = pool.submit(run, node)
                    futures[id(node)] = future
                return future

        def run(node: Startable) -> None:
            for dependency in node.dependencies:
                submit(dependency).result()
            logger.debug(f"Starting {node!r}")
            node.start_after_dependencies()

        root_futures = [submit(node) for node in roots]
        for future in root_futures:
            future.result()
