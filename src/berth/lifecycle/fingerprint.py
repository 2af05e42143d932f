"""Reuse fingerprinting and lookup.

A fingerprint is the SHA-1 of the key-sorted JSON form of a ``CreateRequest``.
Files staged into the container are not part of the request itself, so an
Adler-32 checksum over their destinations, modes and contents is put on the
request as a label before hashing.

Finding and adopting a running container is not atomic: two processes racing
on the same fingerprint may both create a container.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import stat
import zlib
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

from berth.core.config import Settings
from berth.core.constants import (
    COPIED_FILES_HASH_LABEL,
    DEFAULT_SETTINGS_FILE,
    HASH_LABEL,
    MANAGED_LABEL,
    REUSE_ENV_VAR,
)
from berth.core.exceptions import ReuseConfigurationError
from berth.core.schemas import ContainerSpec, CopyToContainer, CreateRequest
from berth.engine.base import EngineClient
from berth.lifecycle.hooks import ContainerHooks

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_MODE = 0o644
_CHUNK_SIZE = 64 * 1024


def hash_request(request: CreateRequest) -> str:
    """SHA-1 hex digest of the canonical JSON form of a creation request."""
    payload = json.dumps(request.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
    return hashlib.sha1(payload.encode("utf-8")).hexdigest()


def _update_mode(checksum: int, mode: int) -> int:
    return zlib.adler32(stat.S_IMODE(mode).to_bytes(4, "big"), checksum)


def _update_file_content(checksum: int, path: Path) -> int:
    with open(path, "rb") as f:
        while chunk := f.read(_CHUNK_SIZE):
            checksum = zlib.adler32(chunk, checksum)
    return checksum


def _checksum_path(checksum: int, root: Path, mode_override: int | None) -> int:
    paths = [root]
    if root.is_dir():
        paths.extend(sorted(root.rglob("*")))

    for path in paths:
        relative = path.relative_to(root).as_posix()
        checksum = zlib.adler32(relative.encode("utf-8"), checksum)
        is_file = path.is_file()
        mode = mode_override if (is_file and mode_override is not None) else os.stat(path).st_mode
        checksum = _update_mode(checksum, mode)
        if is_file:
            checksum = _update_file_content(checksum, path)
    return checksum


def checksum_copied_files(items: Iterable[CopyToContainer]) -> int:
    """Adler-32 over every staged file, independent of declaration order.

    Entries are sorted by destination. Each contributes its destination, then
    for every path beneath its source (sorted) the relative path, the POSIX
    mode bits and, for regular files, the content.

    Raises:
        FileNotFoundError: If a source path does not exist
    """
    checksum = zlib.adler32(b"")
    for item in sorted(items, key=lambda i: i.destination):
        checksum = zlib.adler32(item.destination.encode("utf-8"), checksum)
        if item.content is not None:
            mode = item.mode if item.mode is not None else DEFAULT_CONTENT_MODE
            checksum = _update_mode(checksum, mode)
            checksum = zlib.adler32(item.content, checksum)
            continue
        if item.source is None or not item.source.exists():
            raise FileNotFoundError(f"Source path not found: {item.source}")
        checksum = _checksum_path(checksum, item.source, item.mode)
    return checksum


def find_container_for_reuse(engine: EngineClient, fingerprint: str) -> str | None:
    """Id of a running container carrying ``fingerprint``, if any."""
    # TODO: take an engine-side lock so concurrent processes cannot both miss
    summaries = engine.list_containers(labels={HASH_LABEL: fingerprint}, status=["running"], limit=1)
    return summaries[0].id if summaries else None


@dataclass(frozen=True)
class ReuseDecision:
    """Outcome of the reuse lookup.

    Attributes:
        reusable: Whether the reuse path is active at all
        container_id: Running container to adopt, or None to create one
        fingerprint: Hash of the request, when the reuse path is active
    """

    reusable: bool
    container_id: str | None = None
    fingerprint: str | None = None

    @property
    def reused(self) -> bool:
        return self.container_id is not None


class ReuseResolver:
    """Decides whether an existing container may be adopted."""

    def __init__(self, engine: EngineClient, settings: Settings) -> None:
        self.engine = engine
        self.settings = settings

    def check_allowed(self, reuse_requested: bool, hooks: Sequence[ContainerHooks]) -> bool:
        """Validate a reuse request without touching the engine.

        Returns:
            True if the reuse path should be taken

        Raises:
            ReuseConfigurationError: If a hook customizes creation
        """
        if not reuse_requested:
            return False

        for hook in hooks:
            if hook.customizes_creation:
                raise ReuseConfigurationError(
                    f"This container does not support reuse: {type(hook).__name__} "
                    f"customizes container creation"
                )

        if not self.settings.reuse_enable:
            logger.warning(
                "Reuse was requested but the environment does not support the reuse of containers. "
                f"To enable it, set 'reuse_enable: true' in {DEFAULT_SETTINGS_FILE} "
                f"or {REUSE_ENV_VAR}=true"
            )
            return False
        return True

    def resolve(self, request: CreateRequest, copy_files: Iterable[CopyToContainer]) -> ReuseDecision:
        """Look up a reusable container for ``request``.

        Mutates ``request``: the copied-files label is always added, the hash
        label only when nothing was found and a container will be created.
        """
        request.labels[COPIED_FILES_HASH_LABEL] = format(checksum_copied_files(copy_files), "x")
        fingerprint = hash_request(request)

        container_id = find_container_for_reuse(self.engine, fingerprint)
        if container_id is not None:
            logger.info(f"Reusing container with ID: {container_id[:12]} and hash: {fingerprint}")
        else:
            logger.debug(f"Can't find a reusable running container with hash: {fingerprint}")
            request.labels[HASH_LABEL] = fingerprint

        return ReuseDecision(reusable=True, container_id=container_id, fingerprint=fingerprint)


def compute_fingerprint(spec: ContainerSpec) -> str:
    """Fingerprint of a spec on its own, without links or port forwarding."""
    request = spec.to_create_request()
    for modifier in spec.create_modifiers:
        modifier(request)
    request.labels[MANAGED_LABEL] = "true"
    request.labels[COPIED_FILES_HASH_LABEL] = format(checksum_copied_files(spec.copy_files), "x")
    return hash_request(request)
