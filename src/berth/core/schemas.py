"""Pydantic schemas for berth.

This module defines the data contracts shared across the package: the
desired-state container description, the engine creation request derived
from it, and the parsed inspection snapshots returned by the engine.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from concurrent.futures import Future
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from berth.core.constants import LABEL_NAMESPACE, MANAGED_LABEL
from berth.core.exceptions import ImageResolutionError

# Docker reports nanosecond timestamps; datetime only parses microseconds.
_FRACTION_RE = re.compile(r"\.(\d{6})\d+")
_NEVER_STARTED = "0001-01-01T00:00:00Z"


def normalize_port(port: int | str) -> str:
    """Normalize a port to engine form, e.g. ``80`` -> ``"80/tcp"``."""
    text = str(port).strip()
    if "/" not in text:
        return f"{text}/tcp"
    return text


def normalize_image_name(name: str) -> str:
    """Append ``:latest`` when an image reference carries no tag or digest."""
    if "@" in name:
        return name
    # A colon before the last slash is a registry port, not a tag
    if ":" not in name.rsplit("/", 1)[-1]:
        return f"{name}:latest"
    return name


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value or value == _NEVER_STARTED:
        return None
    text = _FRACTION_RE.sub(r".\1", value.replace("Z", "+00:00"))
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


class BindMode(str, Enum):
    """Access mode for bind mounts and volumes-from."""

    READ_ONLY = "ro"
    READ_WRITE = "rw"


class BindMount(BaseModel):
    """A host path mounted into the container."""

    host_path: str = Field(..., min_length=1)
    container_path: str = Field(..., min_length=1)
    mode: BindMode = Field(default=BindMode.READ_WRITE)

    def to_bind_string(self) -> str:
        return f"{self.host_path}:{self.container_path}:{self.mode.value}"


class CopyToContainer(BaseModel):
    """A file, directory or in-memory payload staged into the container.

    Exactly one of ``source`` (a host path) or ``content`` (raw bytes) must be
    given. ``mode`` overrides the POSIX permission bits of ``content``
    payloads and of every regular file copied from ``source``.
    """

    destination: str = Field(..., min_length=1, description="Absolute path inside the container")
    source: Path | None = Field(default=None)
    content: bytes | None = Field(default=None)
    mode: int | None = Field(default=None, ge=0, le=0o7777)

    @model_validator(mode="after")
    def check_single_source(self) -> CopyToContainer:
        if (self.source is None) == (self.content is None):
            raise ValueError("Exactly one of 'source' or 'content' must be set")
        return self


class CreateRequest(BaseModel):
    """Fully assembled engine creation request.

    Every field that affects the created container's behavior must live here:
    the reuse fingerprint is computed from this model's serialization.
    """

    image: str
    command: list[str] | None = None
    environment: dict[str, str] = Field(default_factory=dict)
    exposed_ports: list[str] = Field(default_factory=list)
    port_bindings: dict[str, int] = Field(default_factory=dict)
    binds: list[str] = Field(default_factory=list)
    volumes_from: list[str] = Field(default_factory=list)
    links: dict[str, str] = Field(default_factory=dict, description="Container name -> alias")
    network_mode: str | None = None
    network_aliases: list[str] = Field(default_factory=list)
    extra_hosts: list[str] = Field(default_factory=list)
    working_dir: str | None = None
    privileged: bool = False
    shm_size: int | None = None
    tmpfs: dict[str, str] | None = None
    labels: dict[str, str] = Field(default_factory=dict)


class ContainerSpec(BaseModel):
    """Desired state of a managed container.

    All ``with_*`` setters return the spec so calls can be chained. The spec
    must be complete before the owning container is started; mutating it
    afterwards has no defined effect.

    Example:
        ```python
        spec = (
            ContainerSpec(image="redis:7")
            .with_exposed_ports(6379)
            .with_env("REDIS_ARGS", "--save ''")
        )
        ```
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    image: Any = Field(..., description="Image name, Future[str] or zero-argument callable")
    exposed_ports: list[str] = Field(default_factory=list)
    port_bindings: dict[str, int] = Field(
        default_factory=dict, description="Fixed bindings: container port -> host port"
    )
    env: dict[str, str] = Field(default_factory=dict)
    labels: dict[str, str] = Field(default_factory=dict)
    binds: list[BindMount] = Field(default_factory=list)
    volumes_from: list[str] = Field(default_factory=list)
    linked_containers: dict[str, str] = Field(
        default_factory=dict, description="Legacy links: alias -> container name"
    )
    network: str | None = Field(default=None, description="Network name or id to join")
    network_mode: str | None = Field(default=None)
    network_aliases: list[str] = Field(default_factory=list)
    extra_hosts: list[str] = Field(default_factory=list)
    working_dir: str | None = Field(default=None)
    command: list[str] | None = Field(default=None)
    privileged: bool = Field(default=False)
    copy_files: list[CopyToContainer] = Field(default_factory=list)
    shm_size: int | None = Field(default=None, ge=0, description="Size of /dev/shm in bytes")
    tmpfs: dict[str, str] | None = Field(default=None)
    startup_check: Any = Field(default=None, exclude=True)
    create_modifiers: list[Callable[[CreateRequest], None]] = Field(
        default_factory=list, exclude=True
    )

    @field_validator("image")
    @classmethod
    def validate_image(cls, v: Any) -> Any:
        """Accept eager names and lazy references; tag eager names."""
        if isinstance(v, str):
            if not v.strip():
                raise ValueError("Image name must not be empty")
            return normalize_image_name(v.strip())
        if isinstance(v, Future) or callable(v):
            return v
        raise ValueError(f"Unsupported image reference: {v!r}")

    @field_validator("exposed_ports", mode="before")
    @classmethod
    def normalize_exposed_ports(cls, v: Any) -> list[str]:
        return [normalize_port(p) for p in v or []]

    @field_validator("port_bindings", mode="before")
    @classmethod
    def normalize_port_bindings(cls, v: Any) -> dict[str, int]:
        return {normalize_port(k): int(h) for k, h in (v or {}).items()}

    @field_validator("labels")
    @classmethod
    def reject_reserved_labels(cls, v: dict[str, str]) -> dict[str, str]:
        for key in v:
            _check_label_key(key)
        return v

    @field_validator("command", mode="before")
    @classmethod
    def split_command(cls, v: Any) -> list[str] | None:
        if isinstance(v, str):
            return v.split()
        return v

    def resolve_image(self) -> str:
        """Resolve the image reference, blocking on lazy references."""
        image = self.image
        if isinstance(image, str):
            return image
        try:
            resolved = image.result() if isinstance(image, Future) else image()
        except Exception as e:
            raise ImageResolutionError(f"Can't resolve image: {image!r}") from e
        return normalize_image_name(str(resolved))

    def to_create_request(self, image: str | None = None) -> CreateRequest:
        """Build the creation request from this spec.

        Pure apart from resolving the image, which is skipped when an already
        resolved ``image`` is passed. The managed label is always present;
        session, hash, link and port-forwarding details are added by the
        orchestrator.
        """
        network_mode = self.network if self.network is not None else self.network_mode
        return CreateRequest(
            image=image if image is not None else self.resolve_image(),
            command=list(self.command) if self.command else None,
            environment=dict(self.env),
            exposed_ports=list(self.exposed_ports),
            port_bindings=dict(self.port_bindings),
            binds=[b.to_bind_string() for b in self.binds],
            volumes_from=list(self.volumes_from),
            network_mode=network_mode,
            network_aliases=list(self.network_aliases) if self.network else [],
            extra_hosts=list(self.extra_hosts),
            working_dir=self.working_dir,
            privileged=self.privileged,
            shm_size=self.shm_size,
            tmpfs=dict(self.tmpfs) if self.tmpfs is not None else None,
            labels={**self.labels, MANAGED_LABEL: "true"},
        )

    # Fluent setters

    def with_exposed_ports(self, *ports: int | str) -> ContainerSpec:
        for port in ports:
            normalized = normalize_port(port)
            if normalized not in self.exposed_ports:
                self.exposed_ports.append(normalized)
        return self

    def with_fixed_exposed_port(self, host_port: int, container_port: int | str) -> ContainerSpec:
        """Bind a container port to a fixed host port.

        Fixed ports clash easily on shared hosts; prefer random mappings.
        """
        self.port_bindings[normalize_port(container_port)] = int(host_port)
        return self

    def with_env(self, key: str, value: str) -> ContainerSpec:
        self.env[key] = value
        return self

    def with_env_map(self, env: dict[str, str]) -> ContainerSpec:
        self.env.update(env)
        return self

    def with_label(self, key: str, value: str) -> ContainerSpec:
        _check_label_key(key)
        self.labels[key] = value
        return self

    def with_labels(self, labels: dict[str, str]) -> ContainerSpec:
        for key, value in labels.items():
            self.with_label(key, value)
        return self

    def with_command(self, command: str | list[str]) -> ContainerSpec:
        self.command = command.split() if isinstance(command, str) else list(command)
        return self

    def with_file_system_bind(
        self, host_path: str, container_path: str, mode: BindMode | str = BindMode.READ_WRITE
    ) -> ContainerSpec:
        self.binds.append(
            BindMount(host_path=host_path, container_path=container_path, mode=BindMode(mode))
        )
        return self

    def with_volumes_from(
        self, container_name: str, mode: BindMode | str = BindMode.READ_WRITE
    ) -> ContainerSpec:
        self.volumes_from.append(f"{container_name}:{BindMode(mode).value}")
        return self

    def with_link(self, alias: str, container_name: str) -> ContainerSpec:
        """Link to a running container by name (legacy; prefer networks)."""
        self.linked_containers[alias] = container_name
        return self

    def with_network(self, network: str) -> ContainerSpec:
        self.network = network
        return self

    def with_network_mode(self, network_mode: str) -> ContainerSpec:
        self.network_mode = network_mode
        return self

    def with_network_aliases(self, *aliases: str) -> ContainerSpec:
        for alias in aliases:
            if alias not in self.network_aliases:
                self.network_aliases.append(alias)
        return self

    def with_extra_host(self, hostname: str, ip_address: str) -> ContainerSpec:
        self.extra_hosts.append(f"{hostname}:{ip_address}")
        return self

    def with_working_dir(self, working_dir: str) -> ContainerSpec:
        self.working_dir = working_dir
        return self

    def with_privileged_mode(self, privileged: bool = True) -> ContainerSpec:
        self.privileged = privileged
        return self

    def with_copy_file(
        self, source: Path | str, destination: str, mode: int | None = None
    ) -> ContainerSpec:
        self.copy_files.append(
            CopyToContainer(source=Path(source), destination=destination, mode=mode)
        )
        return self

    def with_copy_content(
        self, content: bytes | str, destination: str, mode: int | None = None
    ) -> ContainerSpec:
        data = content.encode("utf-8") if isinstance(content, str) else content
        self.copy_files.append(CopyToContainer(content=data, destination=destination, mode=mode))
        return self

    def with_startup_check(self, strategy: Any) -> ContainerSpec:
        self.startup_check = strategy
        return self

    def with_shared_memory_size(self, size_bytes: int | None) -> ContainerSpec:
        self.shm_size = size_bytes
        return self

    def with_tmpfs(self, mapping: dict[str, str]) -> ContainerSpec:
        self.tmpfs = dict(mapping)
        return self

    def with_create_modifier(self, modifier: Callable[[CreateRequest], None]) -> ContainerSpec:
        """Register a low-level tweak applied to the request before creation."""
        self.create_modifiers.append(modifier)
        return self


def _check_label_key(key: str) -> None:
    if key.startswith(LABEL_NAMESPACE):
        raise ValueError(f"The {LABEL_NAMESPACE} label namespace is reserved for internal use")


# =============================================================================
# ENGINE SNAPSHOTS
# =============================================================================


class PortBinding(BaseModel):
    """One host-side binding of a container port."""

    host_ip: str = Field(default="")
    host_port: str = Field(default="")


class NetworkAttachment(BaseModel):
    """A network the container is attached to."""

    network_id: str = Field(default="")
    ip_address: str = Field(default="")
    aliases: list[str] = Field(default_factory=list)


class ContainerState(BaseModel):
    """State flags reported by the engine."""

    status: str = Field(default="")
    running: bool = Field(default=False)
    dead: bool = Field(default=False)
    oom_killed: bool = Field(default=False)
    exit_code: int | None = Field(default=None)
    error: str = Field(default="")
    started_at: datetime | None = Field(default=None)


class ContainerInfo(BaseModel):
    """Parsed inspection snapshot of a container."""

    id: str
    name: str = Field(default="")
    image: str = Field(default="")
    state: ContainerState = Field(default_factory=ContainerState)
    ports: dict[str, list[PortBinding] | None] = Field(
        default_factory=dict, description="Port -> host bindings, None when not yet mapped"
    )
    networks: dict[str, NetworkAttachment] = Field(default_factory=dict)
    labels: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_inspect(cls, attrs: dict[str, Any]) -> ContainerInfo:
        """Build a snapshot from a raw engine inspect payload."""
        state = attrs.get("State") or {}
        settings = attrs.get("NetworkSettings") or {}
        config = attrs.get("Config") or {}

        ports: dict[str, list[PortBinding] | None] = {}
        for port, bindings in (settings.get("Ports") or {}).items():
            if bindings is None:
                ports[port] = None
            else:
                ports[port] = [
                    PortBinding(host_ip=b.get("HostIp", ""), host_port=str(b.get("HostPort", "")))
                    for b in bindings
                ]

        networks = {
            name: NetworkAttachment(
                network_id=net.get("NetworkID", ""),
                ip_address=net.get("IPAddress", ""),
                aliases=net.get("Aliases") or [],
            )
            for name, net in (settings.get("Networks") or {}).items()
        }

        return cls(
            id=attrs.get("Id", ""),
            name=attrs.get("Name", "").lstrip("/"),
            image=config.get("Image", ""),
            state=ContainerState(
                status=state.get("Status", ""),
                running=bool(state.get("Running")),
                dead=bool(state.get("Dead")),
                oom_killed=bool(state.get("OOMKilled")),
                exit_code=state.get("ExitCode"),
                error=state.get("Error") or "",
                started_at=_parse_timestamp(state.get("StartedAt")),
            ),
            ports=ports,
            networks=networks,
            labels=config.get("Labels") or {},
        )

    def mapped_ports(self) -> set[str]:
        """Ports that already have a host-side binding."""
        return {port for port, bindings in self.ports.items() if bindings is not None}

    def host_port_for(self, port: int | str) -> int | None:
        bindings = self.ports.get(normalize_port(port))
        if not bindings:
            return None
        return int(bindings[0].host_port)


class ContainerSummary(BaseModel):
    """A container as reported by the engine's list call."""

    id: str
    names: list[str] = Field(default_factory=list)
    image: str = Field(default="")
    state: str = Field(default="")
    labels: dict[str, str] = Field(default_factory=dict)
    networks: list[str] = Field(default_factory=list)

    @classmethod
    def from_list_entry(cls, attrs: dict[str, Any]) -> ContainerSummary:
        settings = attrs.get("NetworkSettings") or {}
        state = attrs.get("State")
        if isinstance(state, dict):
            state = state.get("Status", "")
        return cls(
            id=attrs.get("Id", ""),
            names=list(attrs.get("Names") or []),
            image=attrs.get("Image", ""),
            state=state or "",
            labels=attrs.get("Labels") or {},
            networks=list((settings.get("Networks") or {}).keys()),
        )


class ExecResult(BaseModel):
    """Outcome of running a command inside a container."""

    exit_code: int | None = None
    output: str = ""


class PortForwardingNetwork(BaseModel):
    """Network of a helper that forwards container traffic back to the host."""

    network_id: str = Field(..., min_length=1)
    ip_address: str = Field(..., min_length=1)
