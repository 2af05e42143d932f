"""Tests for settings and spec loading."""

import json

import pytest
import yaml
from pydantic import ValidationError

from berth.core.config import Settings, load_settings, load_spec


class TestLoadSettings:
    """Tests for load_settings."""

    def test_defaults_without_file(self, tmp_path, monkeypatch):
        """Test that a missing default settings file yields defaults."""
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.delenv("BERTH_REUSE_ENABLE", raising=False)

        settings = load_settings()

        assert settings.reuse_enable is False
        assert settings.port_wait_timeout_seconds == 5.0
        assert settings.port_wait_interval_seconds == 0.05

    def test_yaml_file(self, tmp_path, monkeypatch):
        """Test loading settings from YAML."""
        monkeypatch.delenv("BERTH_REUSE_ENABLE", raising=False)
        path = tmp_path / "berth.yml"
        path.write_text(yaml.safe_dump({"reuse_enable": True, "port_wait_interval_ms": 10}))

        settings = load_settings(path)

        assert settings.reuse_enable is True
        assert settings.port_wait_interval_seconds == 0.01

    def test_env_override(self, tmp_path, monkeypatch):
        """Test that the environment variable overrides the file."""
        path = tmp_path / "berth.json"
        path.write_text(json.dumps({"reuse_enable": True}))
        monkeypatch.setenv("BERTH_REUSE_ENABLE", "false")

        assert load_settings(path).reuse_enable is False

    def test_env_overrides_every_field(self, tmp_path, monkeypatch):
        """Test that any field can be set through a BERTH_ variable."""
        path = tmp_path / "berth.yml"
        path.write_text("port_wait_timeout_seconds: 2\nport_wait_interval_ms: 10\n")
        monkeypatch.setenv("BERTH_PORT_WAIT_TIMEOUT_SECONDS", "9.5")
        monkeypatch.setenv("BERTH_STARTUP_CHECK_TIMEOUT_SECONDS", "3")

        settings = load_settings(path)

        assert settings.port_wait_timeout_seconds == 9.5
        assert settings.startup_check_timeout_seconds == 3.0
        assert settings.port_wait_interval_ms == 10

    def test_invalid_env_value(self, monkeypatch):
        """Test that environment values are validated like file values."""
        monkeypatch.setenv("BERTH_PORT_WAIT_INTERVAL_MS", "0")

        with pytest.raises(ValidationError):
            Settings()

    def test_missing_explicit_file(self, tmp_path):
        """Test that an explicit missing path is an error."""
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "nope.yml")

    def test_invalid_values(self, tmp_path, monkeypatch):
        """Test that invalid settings are rejected."""
        monkeypatch.delenv("BERTH_REUSE_ENABLE", raising=False)
        path = tmp_path / "berth.yml"
        path.write_text("port_wait_timeout_seconds: -1\n")

        with pytest.raises(ValidationError):
            load_settings(path)

    def test_unsupported_format(self, tmp_path):
        """Test that unknown file extensions are rejected."""
        path = tmp_path / "berth.toml"
        path.write_text("reuse_enable = true\n")

        with pytest.raises(ValueError, match="Unsupported"):
            load_settings(path)


class TestLoadSpec:
    """Tests for load_spec."""

    def test_yaml_spec(self, tmp_path):
        """Test loading a container spec with relative copy sources."""
        (tmp_path / "init.sql").write_text("select 1;")
        path = tmp_path / "postgres.yml"
        path.write_text(
            yaml.safe_dump(
                {
                    "image": "postgres:16",
                    "exposed_ports": [5432],
                    "env": {"POSTGRES_PASSWORD": "test"},
                    "command": "postgres -c fsync=off",
                    "copy_files": [
                        {"source": "init.sql", "destination": "/docker-entrypoint-initdb.d/init.sql"}
                    ],
                }
            )
        )

        spec = load_spec(path)

        assert spec.exposed_ports == ["5432/tcp"]
        assert spec.command == ["postgres", "-c", "fsync=off"]
        assert spec.copy_files[0].source == tmp_path / "init.sql"

    def test_missing_spec(self, tmp_path):
        """Test that a missing spec file is an error."""
        with pytest.raises(FileNotFoundError):
            load_spec(tmp_path / "missing.yml")
