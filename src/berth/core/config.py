"""Configuration loading utilities.

Supports YAML and JSON files with schema validation, both for process-wide
settings (``~/.berth.yml``) and for container spec files used by the CLI.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from berth.core.constants import (
    CONTAINER_RUNNING_TIMEOUT_SECONDS,
    DEFAULT_SETTINGS_FILE,
    PORT_WAIT_INTERVAL_SECONDS,
    PORT_WAIT_TIMEOUT_SECONDS,
    SETTINGS_ENV_PREFIX,
)
from berth.core.schemas import ContainerSpec


class Settings(BaseSettings):
    """Process-wide berth settings.

    Every field can be overridden with a ``BERTH_*`` environment variable
    (e.g. ``BERTH_REUSE_ENABLE=true``). Environment values win over values
    passed in, which is how they win over the settings file.

    Attributes:
        reuse_enable: Whether this environment allows containers to be reused
            across processes. Reuse requests are downgraded when False.
        port_wait_timeout_seconds: Ceiling for host port bindings to appear
        port_wait_interval_ms: Poll interval while waiting for port bindings
        startup_check_timeout_seconds: Ceiling for the default startup checks
    """

    reuse_enable: bool = Field(default=False)
    port_wait_timeout_seconds: float = Field(default=PORT_WAIT_TIMEOUT_SECONDS, gt=0)
    port_wait_interval_ms: int = Field(
        default=int(PORT_WAIT_INTERVAL_SECONDS * 1000), ge=1, le=1000
    )
    startup_check_timeout_seconds: float = Field(default=CONTAINER_RUNNING_TIMEOUT_SECONDS, gt=0)

    model_config = SettingsConfigDict(env_prefix=SETTINGS_ENV_PREFIX, extra="ignore")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return env_settings, init_settings

    @property
    def port_wait_interval_seconds(self) -> float:
        return self.port_wait_interval_ms / 1000


def _read_document(path: Path) -> Any:
    suffix = path.suffix.lower()
    with open(path, encoding="utf-8") as f:
        if suffix in (".yaml", ".yml"):
            return yaml.safe_load(f)
        if suffix == ".json":
            return json.load(f)
    raise ValueError(f"Unsupported config format: {suffix}. Use .yaml, .yml, or .json")


def load_settings(path: Path | str | None = None) -> Settings:
    """Load berth settings.

    A missing default settings file yields defaults; a missing explicit path
    is an error. ``BERTH_*`` environment variables override file values.

    Args:
        path: Settings file (defaults to ``~/.berth.yml``)

    Returns:
        Validated Settings object

    Raises:
        FileNotFoundError: If an explicit settings file doesn't exist
        ValueError: If file format is unsupported
        pydantic.ValidationError: If settings are invalid
    """
    data: dict[str, Any] = {}
    if path is None:
        default_path = Path(DEFAULT_SETTINGS_FILE).expanduser()
        if default_path.exists():
            data = _read_document(default_path) or {}
    else:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Settings file not found: {path}")
        data = _read_document(path) or {}

    return Settings(**data)


def load_spec(path: Path | str) -> ContainerSpec:
    """Load and validate a container spec file.

    Raises:
        FileNotFoundError: If the spec file doesn't exist
        ValueError: If file format is unsupported
        pydantic.ValidationError: If the spec is invalid
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Spec file not found: {path}")

    data = _read_document(path) or {}
    # Relative copy sources are relative to the spec file
    for item in data.get("copy_files") or []:
        source = item.get("source")
        if source is not None and not Path(source).is_absolute():
            item["source"] = str(path.parent / source)
    return ContainerSpec.model_validate(data)
