"""Tests for the berth CLI."""

from unittest.mock import patch

import yaml
from typer.testing import CliRunner

from berth.cli import app
from berth.core.config import load_spec
from berth.core.schemas import ContainerSummary
from berth.engine.reaper import ResourceReaper
from berth.lifecycle.fingerprint import compute_fingerprint

runner = CliRunner()


class TestCli:
    """Tests for CLI commands."""

    def test_fingerprint(self, tmp_path):
        """Test that the fingerprint command prints the spec's fingerprint."""
        path = tmp_path / "redis.yml"
        path.write_text(yaml.safe_dump({"image": "redis:7", "exposed_ports": [6379]}))

        result = runner.invoke(app, ["fingerprint", str(path)])

        assert result.exit_code == 0
        assert compute_fingerprint(load_spec(path)) in result.output

    def test_fingerprint_invalid_spec(self, tmp_path):
        """Test that an invalid spec exits with an error."""
        path = tmp_path / "bad.yml"
        path.write_text(yaml.safe_dump({"exposed_ports": [6379]}))

        result = runner.invoke(app, ["fingerprint", str(path)])

        assert result.exit_code == 1

    def test_ps(self):
        """Test listing managed containers."""
        summary = ContainerSummary(
            id="0123456789abcdef",
            names=["/redis"],
            image="redis:7",
            state="running",
            labels={"io.berth": "true", "io.berth.hash": "h"},
        )
        with patch("berth.cli.DockerEngineClient") as engine_cls:
            engine_cls.return_value.list_containers.return_value = [summary]
            result = runner.invoke(app, ["ps"])

        assert result.exit_code == 0
        assert "0123456789ab" in result.output
        engine_cls.return_value.list_containers.assert_called_once_with(
            labels={"io.berth": "true"}, show_all=False
        )

    def test_ps_empty(self):
        """Test the message when nothing is running."""
        with patch("berth.cli.DockerEngineClient") as engine_cls:
            engine_cls.return_value.list_containers.return_value = []
            result = runner.invoke(app, ["ps"])

        assert result.exit_code == 0
        assert "No managed containers" in result.output


class TestUp:
    """Tests for the up command against an in-memory engine."""

    def _invoke(self, tmp_path, engine, reuse_enable, *args, input=None):
        spec_path = tmp_path / "redis.yml"
        spec_path.write_text(yaml.safe_dump({"image": "redis:7", "exposed_ports": [6379]}))
        settings_path = tmp_path / "berth.yml"
        settings_path.write_text(
            yaml.safe_dump({"reuse_enable": reuse_enable, "port_wait_interval_ms": 1})
        )
        reaper = ResourceReaper(engine, register_atexit=False)

        with (
            patch("berth.lifecycle.container.get_default_engine", return_value=engine),
            patch("berth.lifecycle.container.reaper_for", return_value=reaper),
            patch("berth.cli.setup_logging"),
        ):
            result = runner.invoke(
                app, ["up", str(spec_path), "--settings", str(settings_path), *args], input=input
            )
        return result, reaper

    def test_up_stops_on_enter(self, tmp_path, engine):
        """Test that a non-reusable container is removed after Enter."""
        result, _ = self._invoke(tmp_path, engine, False, input="\n")

        assert result.exit_code == 0
        assert "Container stopped." in result.output
        assert engine.infos == {}

    def test_up_keeps_reusable_container(self, tmp_path, engine):
        """Test that a reusable container is left running."""
        result, reaper = self._invoke(tmp_path, engine, True, "--reuse")

        assert result.exit_code == 0
        assert "kept running" in result.output
        assert len(engine.infos) == 1
        assert reaper.registered == set()

    def test_up_reuse_not_enabled_removes_container(self, tmp_path, engine):
        """Test that --reuse without environment support does not promise to keep the container."""
        result, _ = self._invoke(tmp_path, engine, False, "--reuse", input="\n")

        assert result.exit_code == 0
        assert "kept running" not in result.output
        assert "Reuse is not enabled" in result.output
        assert "Container stopped." in result.output
        assert engine.infos == {}
