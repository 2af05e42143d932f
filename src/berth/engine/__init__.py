"""Engine module - container engine clients and the reaper."""

from __future__ import annotations

from berth.engine.base import EngineClient
from berth.engine.docker_client import DockerEngineClient, get_default_engine
from berth.engine.reaper import Reaper, ResourceReaper, reaper_for

__all__ = [
    "DockerEngineClient",
    "EngineClient",
    "Reaper",
    "ResourceReaper",
    "get_default_engine",
    "reaper_for",
]
