"""Managed container lifecycle.

This module drives one container from a ``ContainerSpec`` to a ready,
serving container and back:
- Reuse resolution (adopt a running container with the same fingerprint)
- Creation, file staging and network attachment
- Start, port-binding wait, startup check and application wait
- Failure diagnosis and log capture
- Teardown through the reaper

One attempt walks ``LifecycleState`` from IDLE to READY or FAILED; the retry
driver restarts failed attempts from IDLE.
"""

from __future__ import annotations

import logging
import shlex
import time
from collections.abc import Iterable
from pathlib import Path
from dataclasses import dataclass
from enum import Enum

from berth.core.config import Settings, load_settings
from berth.core.constants import (
    INTERNAL_HOST_HOSTNAME,
    LOG_FOLLOWER_JOIN_SECONDS,
    MANAGED_LABEL,
    SESSION_ID,
    SESSION_ID_LABEL,
    SPECIAL_NETWORK_MODES,
)
from berth.core.exceptions import ContainerLaunchError, ContainerNotStartedError
from berth.core.schemas import (
    ContainerInfo,
    ContainerSpec,
    CreateRequest,
    ExecResult,
    PortForwardingNetwork,
    normalize_port,
)
from berth.engine.base import EngineClient
from berth.engine.docker_client import get_default_engine
from berth.engine.reaper import Reaper, reaper_for
from berth.lifecycle.diagnosis import raise_diagnosed
from berth.lifecycle.fingerprint import ReuseDecision, ReuseResolver
from berth.lifecycle.hooks import ContainerHooks
from berth.lifecycle.output import LogConsumer, LogFollower
from berth.lifecycle.ports import wait_for_mapped_ports
from berth.lifecycle.retry import retry_until_success
from berth.lifecycle.startables import Startable, deep_start
from berth.readiness.base import StartupCheckStrategy, WaitStrategy, WaitStrategyTarget
from berth.readiness.startup import IsRunningStartupCheckStrategy

logger = logging.getLogger(__name__)


class LifecycleState(str, Enum):
    """States of a single start attempt."""

    IDLE = "idle"
    RESOLVING = "resolving"
    CREATING = "creating"
    CREATED = "created"
    NETWORK_CONNECTING = "network_connecting"
    STARTING = "starting"
    PORT_WAITING = "port_waiting"
    STARTUP_CHECKING = "startup_checking"
    APPLICATION_WAITING = "application_waiting"
    READY = "ready"
    FAILED = "failed"


@dataclass
class RuntimeHandle:
    """Identity of the container behind a ``ManagedContainer``.

    Replaced on every attempt and cleared on stop.
    """

    container_id: str
    container_info: ContainerInfo | None = None
    reused: bool = False


class ManagedContainer(Startable, WaitStrategyTarget):
    """A container whose lifecycle is managed for the duration of a test.

    Example:
        ```python
        spec = ContainerSpec(image="redis:7").with_exposed_ports(6379)

        with ManagedContainer(spec, startup_attempts=3) as redis:
            client = Redis(host=redis.host, port=redis.get_mapped_port(6379))
            ...
        ```
    """

    def __init__(
        self,
        spec: ContainerSpec,
        *,
        engine: EngineClient | None = None,
        reaper: Reaper | None = None,
        settings: Settings | None = None,
        hooks: Iterable[ContainerHooks] = (),
        wait_strategy: WaitStrategy | None = None,
        startup_attempts: int = 1,
        reuse: bool = False,
        port_forwarding: PortForwardingNetwork | None = None,
        dependencies: Iterable[Startable] = (),
        log_consumers: Iterable[LogConsumer] = (),
    ) -> None:
        """Initialize the managed container.

        Args:
            spec: Desired state of the container
            engine: Engine client (defaults to the process-wide Docker client)
            reaper: Reaper used for teardown (defaults to one per engine)
            settings: Berth settings (defaults to ``load_settings()``)
            hooks: Lifecycle callbacks, run in order
            wait_strategy: Application-level readiness probe
            startup_attempts: Maximum number of full start attempts
            reuse: Adopt a running container with the same fingerprint
            port_forwarding: Helper network to attach for host access
            dependencies: Startables to start before this container
            log_consumers: Callables fed the container output as it is produced
        """
        if startup_attempts < 1:
            raise ValueError(f"startup_attempts must be >= 1, got {startup_attempts}")

        self.spec = spec
        self._engine = engine
        self._reaper = reaper
        self._settings = settings
        self._hooks: list[ContainerHooks] = list(hooks)
        self._wait_strategy = wait_strategy
        self._startup_timeout_seconds: float | None = None
        self._startup_attempts = startup_attempts
        self._reuse = reuse
        self._port_forwarding = port_forwarding
        self._dependencies: set[Startable] = set(dependencies)
        self._log_consumers: list[LogConsumer] = list(log_consumers)
        self._log_followers: list[LogFollower] = []

        self._handle: RuntimeHandle | None = None
        self._reusable = False
        self._state = LifecycleState.IDLE
        self._attempt = 0
        self._resolved_image: str | None = None

    def __repr__(self) -> str:
        return f"ManagedContainer(image={self.image_name!r})"

    def __enter__(self) -> ManagedContainer:
        self.start()
        return self

    # Collaborators

    @property
    def engine(self) -> EngineClient:
        if self._engine is None:
            self._engine = get_default_engine()
        return self._engine

    @property
    def reaper(self) -> Reaper:
        if self._reaper is None:
            self._reaper = reaper_for(self.engine)
        return self._reaper

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = load_settings()
        return self._settings

    @property
    def startup_check(self) -> StartupCheckStrategy:
        if self.spec.startup_check is not None:
            return self.spec.startup_check
        return IsRunningStartupCheckStrategy(
            timeout_seconds=self.settings.startup_check_timeout_seconds
        )

    @property
    def dependencies(self) -> frozenset[Startable]:
        return frozenset(self._dependencies)

    # Configuration

    def depends_on(self, *startables: Startable) -> ManagedContainer:
        self._dependencies.update(startables)
        return self

    def with_hooks(self, *hooks: ContainerHooks) -> ManagedContainer:
        self._hooks.extend(hooks)
        return self

    def waiting_for(self, wait_strategy: WaitStrategy) -> ManagedContainer:
        self._wait_strategy = wait_strategy
        if self._startup_timeout_seconds is not None:
            wait_strategy.with_startup_timeout(self._startup_timeout_seconds)
        return self

    def with_startup_timeout(self, seconds: float) -> ManagedContainer:
        """Set the wait strategy's startup timeout, now or once one is set."""
        self._startup_timeout_seconds = seconds
        if self._wait_strategy is not None:
            self._wait_strategy.with_startup_timeout(seconds)
        return self

    def with_startup_attempts(self, attempts: int) -> ManagedContainer:
        if attempts < 1:
            raise ValueError(f"attempts must be >= 1, got {attempts}")
        self._startup_attempts = attempts
        return self

    def with_reuse(self, reuse: bool = True) -> ManagedContainer:
        self._reuse = reuse
        return self

    def with_port_forwarding(self, network: PortForwardingNetwork | None) -> ManagedContainer:
        self._port_forwarding = network
        return self

    def with_log_consumer(self, consumer: LogConsumer) -> ManagedContainer:
        """Feed container output to ``consumer``, starting right after start."""
        self._log_consumers.append(consumer)
        return self

    # Lifecycle

    def start(self) -> None:
        """Start the container, its dependencies first.

        A no-op if the container is already running.

        Raises:
            ReuseConfigurationError: If reuse was requested but a hook
                customizes creation; raised before any engine call
            ContainerLaunchError: If every start attempt failed
        """
        if self._handle is not None and self._state is LifecycleState.READY:
            return

        reusable = ReuseResolver(self.engine, self.settings).check_allowed(self._reuse, self._hooks)

        if self._dependencies:
            deep_start(self._dependencies)
        self._start_attempts(reusable)

    def start_after_dependencies(self) -> None:
        """Start the container without starting its dependencies again."""
        if self._handle is not None and self._state is LifecycleState.READY:
            return

        reusable = ReuseResolver(self.engine, self.settings).check_allowed(self._reuse, self._hooks)
        self._start_attempts(reusable)

    def _start_attempts(self, reusable: bool) -> None:
        self._reusable = reusable
        started_at = time.monotonic()
        retry_until_success(
            self._startup_attempts,
            lambda: self._try_start(reusable),
            description=f"container for image {self.image_name}",
        )
        logger.info(f"Container {self.image_name} started in {time.monotonic() - started_at:.1f}s")

    def _try_start(self, reusable: bool) -> None:
        self._handle = None
        self._attempt += 1
        self._transition(LifecycleState.IDLE)

        try:
            for hook in self._hooks:
                hook.before_start()

            self._transition(LifecycleState.RESOLVING)
            request = self._build_request()

            decision = ReuseDecision(reusable=False)
            if reusable:
                decision = ReuseResolver(self.engine, self.settings).resolve(
                    request, self.spec.copy_files
                )
            else:
                request.labels[SESSION_ID_LABEL] = SESSION_ID

            if decision.reused:
                container_id = decision.container_id
                self._handle = RuntimeHandle(container_id=container_id, reused=True)
            else:
                self._transition(LifecycleState.CREATING)
                logger.info(f"Creating container for image: {request.image}")
                container_id = self.engine.create_container(request)
                self._handle = RuntimeHandle(container_id=container_id)
                if not reusable:
                    self.reaper.register(container_id)
                for item in self.spec.copy_files:
                    self.engine.copy_to_container(container_id, item)
                self._transition(LifecycleState.CREATED)

            self._transition(LifecycleState.NETWORK_CONNECTING)
            self._connect_to_port_forwarding_network(request.network_mode)

            if not decision.reused:
                self._transition(LifecycleState.STARTING)
                for hook in self._hooks:
                    hook.container_is_created(container_id)
                logger.info(f"Starting container with ID: {container_id[:12]}")
                self.engine.start_container(container_id)
                self._follow_output(container_id)
                for hook in self._hooks:
                    hook.container_is_starting(False)
            else:
                self._follow_output(container_id)

            self._await_readiness(container_id)

            for hook in self._hooks:
                hook.container_is_started(self._handle.container_info, decision.reused)
            self._transition(LifecycleState.READY)
        except Exception as e:
            self._transition(LifecycleState.FAILED)
            logger.error(f"Could not start container {self.image_name}: {e}")
            container_logs = self._capture_logs() if self._handle is not None else None
            raise ContainerLaunchError(
                f"Could not create/start container for image {self.image_name}",
                container_logs=container_logs,
            ) from e

    def _build_request(self) -> CreateRequest:
        self._resolved_image = self.spec.resolve_image()
        request = self.spec.to_create_request(image=self._resolved_image)

        self._resolve_links(request)

        if self._port_forwarding is not None:
            request.extra_hosts.append(
                f"{INTERNAL_HOST_HOSTNAME}:{self._port_forwarding.ip_address}"
            )

        for modifier in self.spec.create_modifiers:
            modifier(request)
        request.labels[MANAGED_LABEL] = "true"
        return request

    def _resolve_links(self, request: CreateRequest) -> None:
        """Point legacy links at running containers and adopt their network.

        Linked containers must share a network with this one, so the network
        mode follows theirs. Only one custom network can be joined this way.
        """
        if not self.spec.linked_containers:
            return

        running = self.engine.list_containers(status=["running"])
        networks: set[str] = set()
        for alias, name in sorted(self.spec.linked_containers.items()):
            matches = [c for c in running if any(n.endswith(name) for n in c.names)]
            if not matches:
                raise ContainerLaunchError(
                    f"Aborting attempt to link to container {name} as it is not running"
                )
            linked = matches[0]
            linked_name = next(n for n in linked.names if n.endswith(name)).lstrip("/")
            request.links[linked_name] = alias
            networks.update(n for n in linked.networks if n != "bridge")

        if len(networks) > 1:
            logger.warning(
                "Container needs to be on more than one custom network to link to other "
                f"containers - this is not currently supported. Required networks are: {sorted(networks)}"
            )
        if networks:
            request.network_mode = sorted(networks)[0]

    def _connect_to_port_forwarding_network(self, network_mode: str | None) -> None:
        network = self._port_forwarding
        if network is None or self._handle is None:
            return
        if network_mode in SPECIAL_NETWORK_MODES or network_mode == network.network_id:
            return

        container_id = self._handle.container_id
        if self._handle.reused:
            info = self.engine.inspect_container(container_id)
            if any(a.network_id == network.network_id for a in info.networks.values()):
                return
        self.engine.connect_network(container_id, network.network_id)

    def _follow_output(self, container_id: str) -> None:
        self._log_followers = [
            LogFollower(self.engine, container_id, consumer).start()
            for consumer in self._log_consumers
        ]

    def _await_readiness(self, container_id: str) -> None:
        """Port wait, startup check and application wait, diagnosed on failure."""
        try:
            self._transition(LifecycleState.PORT_WAITING)
            info = wait_for_mapped_ports(
                self.engine,
                container_id,
                self.exposed_ports,
                timeout=self.settings.port_wait_timeout_seconds,
                interval=self.settings.port_wait_interval_seconds,
            )
            self._handle.container_info = info

            self._transition(LifecycleState.STARTUP_CHECKING)
            if not self.startup_check.wait_until_startup_successful(self.engine, container_id):
                raise ContainerLaunchError("Container did not start correctly.")

            if self._wait_strategy is not None:
                self._transition(LifecycleState.APPLICATION_WAITING)
                self._wait_strategy.wait_until_ready(self)
        except Exception as e:
            logger.debug(f"Readiness check failed for {container_id[:12]}: {e}")
            raise_diagnosed(self.engine, container_id, e)

    def _capture_logs(self) -> str | None:
        container_id = self._handle.container_id
        try:
            logs = self.engine.get_logs(container_id)
        except Exception as e:
            logger.error(f"Could not fetch logs of the failed container {container_id[:12]}: {e}")
            return None

        if logs:
            logger.error(f"Log output from the failed container:\n{logs}")
        else:
            logger.error("There are no stdout/stderr logs available for the failed container")
        return logs

    def _transition(self, state: LifecycleState) -> None:
        container = self._handle.container_id[:12] if self._handle is not None else "-"
        logger.debug(
            f"{self.image_name} ({container}) attempt {self._attempt}: "
            f"{self._state.value} -> {state.value}"
        )
        self._state = state

    def stop(self) -> None:
        """Stop and remove the container.

        A no-op when nothing was started. Hook and reaper errors are logged,
        and the container can be started again afterwards either way.
        """
        handle = self._handle
        if handle is None:
            return

        try:
            image_name = self.image_name if self._resolved_image is not None else "<unknown>"
            for hook in self._hooks:
                hook.container_is_stopping(handle.container_info)
            self.reaper.stop_and_remove(handle.container_id, image_name)
            for follower in self._log_followers:
                follower.join(timeout=LOG_FOLLOWER_JOIN_SECONDS)
            for hook in self._hooks:
                hook.container_is_stopped(handle.container_info)
        except Exception as e:
            logger.warning(f"Error while stopping container {handle.container_id[:12]}: {e}")
        finally:
            self._handle = None
            self._log_followers = []
            self._state = LifecycleState.IDLE
            self._attempt = 0

    # Accessors

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def container_id(self) -> str | None:
        return self._handle.container_id if self._handle is not None else None

    @property
    def container_info(self) -> ContainerInfo | None:
        return self._handle.container_info if self._handle is not None else None

    @property
    def is_reused(self) -> bool:
        return self._handle is not None and self._handle.reused

    @property
    def is_reusable(self) -> bool:
        """Whether the held container was started on the reuse path.

        False when reuse was requested but the environment does not allow it.
        Such containers are not registered with the reaper.
        """
        return self._handle is not None and self._reusable

    @property
    def image_name(self) -> str:
        if self._resolved_image is not None:
            return self._resolved_image
        if isinstance(self.spec.image, str):
            return self.spec.image
        return "<unresolved>"

    @property
    def host(self) -> str:
        return self.engine.host

    @property
    def exposed_ports(self) -> list[str]:
        """Declared container ports, including those with fixed bindings."""
        return list(dict.fromkeys([*self.spec.exposed_ports, *self.spec.port_bindings]))

    def _require_handle(self) -> RuntimeHandle:
        if self._handle is None:
            raise ContainerNotStartedError("Container has not been started")
        return self._handle

    def get_mapped_port(self, port: int | str) -> int:
        """Host port bound to a container port.

        Raises:
            ContainerNotStartedError: If no container is held
            ValueError: If the port has no host binding
        """
        handle = self._require_handle()
        info = handle.container_info
        if info is None:
            info = self.engine.inspect_container(handle.container_id)
            handle.container_info = info

        host_port = info.host_port_for(port)
        if host_port is None:
            raise ValueError(f"Container port {normalize_port(port)} is not mapped")
        return host_port

    def get_logs(self) -> str:
        return self.engine.get_logs(self._require_handle().container_id)

    def copy_file_from_container(
        self, container_path: str, destination: Path | str | None = None
    ) -> bytes:
        """Read a regular file out of the container.

        Args:
            container_path: Absolute path of the file inside the container
            destination: Also write the content to this host path

        Returns:
            The file content

        Raises:
            ContainerNotStartedError: If no container is held
            ContainerNotFoundError: If the path does not exist
        """
        handle = self._require_handle()
        content = self.engine.copy_from_container(handle.container_id, container_path)
        if destination is not None:
            destination = Path(destination)
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(content)
        return content

    def exec_in_container(self, command: str | list[str]) -> ExecResult:
        """Run a command in the container; strings are split shell-style."""
        handle = self._require_handle()
        argv = shlex.split(command) if isinstance(command, str) else list(command)
        return self.engine.exec_in_container(handle.container_id, argv)
