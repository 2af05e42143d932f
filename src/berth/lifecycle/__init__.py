"""Lifecycle module - orchestration of managed containers."""

from __future__ import annotations

from berth.lifecycle.container import LifecycleState, ManagedContainer, RuntimeHandle
from berth.lifecycle.diagnosis import classify_state
from berth.lifecycle.fingerprint import (
    ReuseResolver,
    checksum_copied_files,
    compute_fingerprint,
    hash_request,
)
from berth.lifecycle.hooks import ContainerHooks
from berth.lifecycle.output import LogConsumer, LogFollower
from berth.lifecycle.ports import wait_for_mapped_ports
from berth.lifecycle.retry import retry_until_success
from berth.lifecycle.startables import Startable, deep_start

__all__ = [
    "checksum_copied_files",
    "classify_state",
    "compute_fingerprint",
    "ContainerHooks",
    "deep_start",
    "hash_request",
    "LifecycleState",
    "LogConsumer",
    "LogFollower",
    "ManagedContainer",
    "retry_until_success",
    "ReuseResolver",
    "RuntimeHandle",
    "Startable",
    "wait_for_mapped_ports",
]
