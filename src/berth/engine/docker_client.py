"""EngineClient implementation on top of the Docker SDK.

Talks to Docker (or Podman's Docker-compatible socket) through the low-level
``APIClient`` so that every field of a ``CreateRequest`` maps one-to-one onto
the engine's create payload.
"""

from __future__ import annotations

import functools
import io
import logging
import tarfile
import time
from collections.abc import Iterator
from pathlib import PurePosixPath
from urllib.parse import urlparse

import docker
from docker.errors import ImageNotFound, NotFound

from berth.core.exceptions import ContainerNotFoundError
from berth.core.schemas import (
    ContainerInfo,
    ContainerSummary,
    CopyToContainer,
    CreateRequest,
    ExecResult,
)
from berth.engine.base import EngineClient

logger = logging.getLogger(__name__)


class DockerEngineClient(EngineClient):
    """Docker SDK-backed engine client.

    Example:
        ```python
        engine = DockerEngineClient()  # docker.from_env()
        container_id = engine.create_container(spec.to_create_request())
        engine.start_container(container_id)
        ```
    """

    def __init__(self, client: docker.DockerClient | None = None) -> None:
        """Initialize the engine client.

        Args:
            client: Docker SDK client (defaults to ``docker.from_env()``)
        """
        self._client = client if client is not None else docker.from_env()

    @property
    def api(self) -> docker.APIClient:
        return self._client.api

    @property
    def host(self) -> str:
        parsed = urlparse(self.api.base_url)
        # Unix sockets and named pipes surface as http+docker://localhost
        if parsed.scheme.startswith("http+") or not parsed.hostname:
            return "localhost"
        return parsed.hostname

    def create_container(self, request: CreateRequest) -> str:
        api = self.api

        # Fixed bindings need the port exposed as well
        exposed = list(dict.fromkeys([*request.exposed_ports, *request.port_bindings]))
        ports = [tuple(p.split("/", 1)) for p in exposed]
        port_bindings = {p: request.port_bindings.get(p) for p in exposed}

        host_config = api.create_host_config(
            binds=request.binds or None,
            port_bindings=port_bindings or None,
            volumes_from=request.volumes_from or None,
            links=request.links or None,
            network_mode=request.network_mode,
            extra_hosts=request.extra_hosts or None,
            privileged=request.privileged,
            shm_size=request.shm_size,
            tmpfs=request.tmpfs,
        )

        networking_config = None
        if request.network_mode and request.network_aliases:
            networking_config = api.create_networking_config(
                {request.network_mode: api.create_endpoint_config(aliases=request.network_aliases)}
            )

        def _create() -> str:
            result = api.create_container(
                image=request.image,
                command=request.command,
                environment=request.environment or None,
                ports=ports or None,
                working_dir=request.working_dir,
                labels=request.labels,
                host_config=host_config,
                networking_config=networking_config,
            )
            return result["Id"]

        try:
            return _create()
        except ImageNotFound:
            self.pull_image(request.image)
            return _create()

    def pull_image(self, image: str) -> None:
        """Pull an image, logging progress at INFO."""
        logger.info(f"Pulling image {image}...")
        start = time.monotonic()
        self._client.images.pull(image)
        logger.info(f"Successfully pulled {image} in {time.monotonic() - start:.1f}s")

    def start_container(self, container_id: str) -> None:
        try:
            self.api.start(container_id)
        except NotFound as e:
            raise ContainerNotFoundError(container_id) from e

    def inspect_container(self, container_id: str) -> ContainerInfo:
        try:
            attrs = self.api.inspect_container(container_id)
        except NotFound as e:
            raise ContainerNotFoundError(container_id) from e
        return ContainerInfo.from_inspect(attrs)

    def list_containers(
        self,
        labels: dict[str, str] | None = None,
        status: list[str] | None = None,
        limit: int | None = None,
        show_all: bool = False,
    ) -> list[ContainerSummary]:
        filters: dict[str, list[str]] = {}
        if labels:
            filters["label"] = [f"{k}={v}" for k, v in sorted(labels.items())]
        if status:
            filters["status"] = list(status)

        entries = self.api.containers(
            all=show_all or bool(status),
            limit=limit if limit is not None else -1,
            filters=filters or None,
        )
        return [ContainerSummary.from_list_entry(entry) for entry in entries]

    def connect_network(self, container_id: str, network_id: str) -> None:
        logger.debug(f"Connecting container {container_id[:12]} to network {network_id[:12]}")
        self.api.connect_container_to_network(container_id, network_id)

    def copy_to_container(self, container_id: str, item: CopyToContainer) -> None:
        # Archive entries carry the full destination path and are extracted at
        # the root, so missing parent directories are created by the engine.
        arcname = PurePosixPath(item.destination).as_posix().lstrip("/")

        tar_stream = io.BytesIO()
        with tarfile.open(fileobj=tar_stream, mode="w") as tar:
            if item.content is not None:
                info = tarfile.TarInfo(name=arcname)
                info.size = len(item.content)
                info.mode = item.mode if item.mode is not None else 0o644
                info.mtime = int(time.time())
                tar.addfile(info, io.BytesIO(item.content))
            else:
                if item.source is None or not item.source.exists():
                    raise FileNotFoundError(f"Source path not found: {item.source}")

                def _apply_mode(info: tarfile.TarInfo) -> tarfile.TarInfo:
                    if item.mode is not None and info.isfile():
                        info.mode = item.mode
                    return info

                tar.add(str(item.source), arcname=arcname, filter=_apply_mode)

        logger.debug(f"Copying {item.source or '<bytes>'} to {container_id[:12]}:{item.destination}")
        try:
            self.api.put_archive(container_id, "/", tar_stream.getvalue())
        except NotFound as e:
            raise ContainerNotFoundError(container_id) from e

    def get_logs(self, container_id: str) -> str:
        try:
            raw = self.api.logs(container_id, stdout=True, stderr=True)
        except NotFound as e:
            raise ContainerNotFoundError(container_id) from e
        return raw.decode("utf-8", errors="replace")

    def follow_logs(self, container_id: str) -> Iterator[str]:
        try:
            stream = self.api.logs(container_id, stdout=True, stderr=True, stream=True, follow=True)
        except NotFound as e:
            raise ContainerNotFoundError(container_id) from e
        return (chunk.decode("utf-8", errors="replace") for chunk in stream)

    def copy_from_container(self, container_id: str, path: str) -> bytes:
        try:
            bits, _ = self.api.get_archive(container_id, path)
        except NotFound as e:
            raise ContainerNotFoundError(container_id) from e

        # The engine wraps the path in a tar archive, even for a single file
        with tarfile.open(fileobj=io.BytesIO(b"".join(bits)), mode="r") as tar:
            member = tar.next()
            if member is None or not member.isfile():
                raise IsADirectoryError(f"Not a regular file in container: {path}")
            extracted = tar.extractfile(member)
            return extracted.read()

    def exec_in_container(self, container_id: str, command: list[str]) -> ExecResult:
        try:
            container = self._client.containers.get(container_id)
        except NotFound as e:
            raise ContainerNotFoundError(container_id) from e
        exit_code, output = container.exec_run(command)
        return ExecResult(
            exit_code=exit_code,
            output=(output or b"").decode("utf-8", errors="replace"),
        )

    def kill_container(self, container_id: str) -> None:
        try:
            self.api.kill(container_id)
        except NotFound as e:
            raise ContainerNotFoundError(container_id) from e

    def remove_container(self, container_id: str) -> None:
        try:
            self.api.remove_container(container_id, v=True, force=True)
        except NotFound as e:
            raise ContainerNotFoundError(container_id) from e

    def close(self) -> None:
        self._client.close()


@functools.lru_cache(maxsize=1)
def get_default_engine() -> DockerEngineClient:
    """Process-wide engine client, created on first use."""
    return DockerEngineClient()
