"""Shared fixtures: an in-memory engine standing in for Docker."""

import os
from datetime import UTC, datetime

import pytest

from berth.core.config import Settings
from berth.core.exceptions import ContainerNotFoundError
from berth.core.schemas import (
    ContainerInfo,
    ContainerState,
    ContainerSummary,
    CreateRequest,
    ExecResult,
    NetworkAttachment,
    PortBinding,
)
from berth.engine.base import EngineClient
from berth.engine.reaper import ResourceReaper


class FakeEngine(EngineClient):
    """Engine that keeps containers in memory and records every call."""

    def __init__(self, map_ports_on_start: bool = True):
        self.map_ports_on_start = map_ports_on_start
        self.infos: dict[str, ContainerInfo] = {}
        self.requests: dict[str, CreateRequest] = {}
        self.logs: dict[str, str] = {}
        self.files: dict[tuple[str, str], bytes] = {}
        self.calls: list[tuple] = []
        self.start_errors: list[Exception] = []
        self._next_id = 0
        self._next_port = 32768

    @property
    def host(self) -> str:
        return "localhost"

    def calls_named(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]

    def add_running(self, name: str, networks=("bridge",), labels=None) -> str:
        """Register a container created outside berth."""
        container_id = self._new_id()
        self.infos[container_id] = ContainerInfo(
            id=container_id,
            name=name.lstrip("/"),
            image="external:latest",
            state=ContainerState(status="running", running=True, exit_code=0),
            networks={n: NetworkAttachment(network_id=f"{n}-id") for n in networks},
            labels=labels or {},
        )
        return container_id

    def _new_id(self) -> str:
        self._next_id += 1
        return f"{self._next_id:064x}"

    def _get(self, container_id: str) -> ContainerInfo:
        if container_id not in self.infos:
            raise ContainerNotFoundError(container_id)
        return self.infos[container_id]

    def create_container(self, request: CreateRequest) -> str:
        container_id = self._new_id()
        self.calls.append(("create", container_id))
        self.requests[container_id] = request.model_copy(deep=True)

        ports = list(dict.fromkeys([*request.exposed_ports, *request.port_bindings]))
        network = request.network_mode or "bridge"
        self.infos[container_id] = ContainerInfo(
            id=container_id,
            name=f"berth-{self._next_id}",
            image=request.image,
            state=ContainerState(status="created"),
            ports={p: None for p in ports},
            networks={network: NetworkAttachment(network_id=network)},
            labels=dict(request.labels),
        )
        return container_id

    def start_container(self, container_id: str) -> None:
        self.calls.append(("start", container_id))
        info = self._get(container_id)
        if self.start_errors:
            raise self.start_errors.pop(0)

        info.state = ContainerState(
            status="running", running=True, exit_code=0, started_at=datetime.now(UTC)
        )
        if self.map_ports_on_start:
            for port in info.ports:
                self._next_port += 1
                info.ports[port] = [PortBinding(host_ip="0.0.0.0", host_port=str(self._next_port))]

    def inspect_container(self, container_id: str) -> ContainerInfo:
        self.calls.append(("inspect", container_id))
        return self._get(container_id).model_copy(deep=True)

    def list_containers(self, labels=None, status=None, limit=None, show_all=False):
        self.calls.append(("list", dict(labels or {}), list(status or [])))
        summaries = []
        for container_id, info in self.infos.items():
            if status and info.state.status not in status:
                continue
            if not status and not show_all and not info.state.running:
                continue
            if labels and any(info.labels.get(k) != v for k, v in labels.items()):
                continue
            summaries.append(
                ContainerSummary(
                    id=container_id,
                    names=[f"/{info.name}"],
                    image=info.image,
                    state=info.state.status,
                    labels=dict(info.labels),
                    networks=list(info.networks),
                )
            )
        return summaries[:limit] if limit else summaries

    def connect_network(self, container_id: str, network_id: str) -> None:
        self.calls.append(("connect_network", container_id, network_id))
        self._get(container_id).networks[network_id] = NetworkAttachment(network_id=network_id)

    def copy_to_container(self, container_id, item) -> None:
        self.calls.append(("copy", container_id, item.destination))

    def get_logs(self, container_id: str) -> str:
        self.calls.append(("logs", container_id))
        self._get(container_id)
        return self.logs.get(container_id, "")

    def follow_logs(self, container_id: str):
        self.calls.append(("follow_logs", container_id))
        self._get(container_id)
        return iter(self.logs.get(container_id, "").splitlines(keepends=True))

    def copy_from_container(self, container_id: str, path: str) -> bytes:
        self.calls.append(("copy_from", container_id, path))
        self._get(container_id)
        if (container_id, path) not in self.files:
            raise ContainerNotFoundError(f"{container_id}:{path}")
        return self.files[(container_id, path)]

    def exec_in_container(self, container_id: str, command: list[str]) -> ExecResult:
        self.calls.append(("exec", container_id, tuple(command)))
        return ExecResult(exit_code=0, output="ok\n")

    def kill_container(self, container_id: str) -> None:
        self.calls.append(("kill", container_id))
        info = self._get(container_id)
        info.state = ContainerState(status="exited", running=False, exit_code=137)

    def remove_container(self, container_id: str) -> None:
        self.calls.append(("remove", container_id))
        self._get(container_id)
        del self.infos[container_id]


@pytest.fixture(autouse=True)
def clean_berth_env(monkeypatch):
    """Keep BERTH_* variables of the calling shell out of Settings."""
    for name in list(os.environ):
        if name.startswith("BERTH_"):
            monkeypatch.delenv(name)


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def reaper(engine):
    return ResourceReaper(engine, register_atexit=False)


@pytest.fixture
def settings():
    return Settings(port_wait_timeout_seconds=0.2, port_wait_interval_ms=1)


@pytest.fixture
def reuse_settings():
    return Settings(reuse_enable=True, port_wait_timeout_seconds=0.2, port_wait_interval_ms=1)
