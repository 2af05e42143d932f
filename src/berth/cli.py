"""CLI for berth.

Provides a rich command-line interface using Typer for:
- Starting a container from a spec file and holding it until Enter
- Printing the reuse fingerprint of a spec file
- Listing containers managed by berth
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from berth.core.config import load_settings, load_spec
from berth.core.constants import HASH_LABEL, MANAGED_LABEL, SESSION_ID_LABEL
from berth.core.exceptions import BerthError
from berth.engine.docker_client import DockerEngineClient
from berth.lifecycle.container import ManagedContainer
from berth.lifecycle.fingerprint import compute_fingerprint
from berth.utils.logging import setup_logging

app = typer.Typer(
    name="berth",
    help="Ephemeral test container lifecycle manager",
    add_completion=False,
)

console = Console()


@app.command()
def up(
    spec_file: Path = typer.Argument(..., help="Container spec file (YAML/JSON)"),
    reuse: bool = typer.Option(False, "--reuse", help="Reuse a running container with the same spec"),
    attempts: int = typer.Option(1, "--attempts", "-n", min=1, help="Maximum start attempts"),
    settings_file: Path | None = typer.Option(
        None, "--settings", "-s", help="Settings file (default: ~/.berth.yml)"
    ),
    log_level: str = typer.Option("INFO", "--log-level", "-l", help="Logging level"),
    log_file: Path | None = typer.Option(
        None, "--log-file", help="Write logs to file in addition to console"
    ),
    json_logs: bool = typer.Option(
        False, "--json-logs", help="Output logs in JSON format (for programmatic parsing)"
    ),
) -> None:
    """Start a container and keep it until Enter is pressed."""
    setup_logging(
        level=log_level, log_file=log_file, json_format=json_logs, rich_console=not json_logs
    )

    try:
        spec = load_spec(spec_file)
        settings = load_settings(settings_file)
    except Exception as e:
        console.print(f"[bold red]Error loading spec: {e}[/]")
        raise typer.Exit(1) from e

    container = ManagedContainer(spec, settings=settings, startup_attempts=attempts, reuse=reuse)

    try:
        container.start()
    except BerthError as e:
        console.print(f"[bold red]Failed to start container: {e}[/]")
        if getattr(e, "container_logs", None):
            console.print(e.container_logs, markup=False)
        container.stop()
        raise typer.Exit(1) from e

    _show_container_table(container)

    if container.is_reusable:
        console.print("[bold green]Container is reusable and will be kept running.[/]")
        return
    if reuse:
        console.print(
            "[bold yellow]Reuse is not enabled in this environment; "
            "the container will be removed on exit.[/]"
        )

    try:
        typer.prompt("Press Enter to stop the container", default="", show_default=False)
    except typer.Abort:
        pass
    finally:
        container.stop()
        console.print("[bold green]Container stopped.[/]")


@app.command()
def fingerprint(
    spec_file: Path = typer.Argument(..., help="Container spec file (YAML/JSON)"),
) -> None:
    """Print the reuse fingerprint of a spec file."""
    try:
        spec = load_spec(spec_file)
        console.print(compute_fingerprint(spec))
    except Exception as e:
        console.print(f"[bold red]Error: {e}[/]")
        raise typer.Exit(1) from e


@app.command()
def ps(
    show_all: bool = typer.Option(False, "--all", "-a", help="Include stopped containers"),
) -> None:
    """List containers managed by berth."""
    engine = DockerEngineClient()
    try:
        summaries = engine.list_containers(labels={MANAGED_LABEL: "true"}, show_all=show_all)
    finally:
        engine.close()

    if not summaries:
        console.print("[bold yellow]No managed containers found[/]")
        return

    table = Table(title="Managed Containers")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="white")
    table.add_column("Image", style="white")
    table.add_column("State", style="green")
    table.add_column("Reusable", style="magenta")
    table.add_column("Session", style="dim")

    for summary in summaries:
        table.add_row(
            summary.id[:12],
            ", ".join(n.lstrip("/") for n in summary.names),
            summary.image,
            summary.state,
            "yes" if HASH_LABEL in summary.labels else "no",
            summary.labels.get(SESSION_ID_LABEL, "-")[:8],
        )

    console.print(table)


def _show_container_table(container: ManagedContainer) -> None:
    """Display the started container and its port mappings."""
    table = Table(title="Container")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("ID", (container.container_id or "")[:12])
    table.add_row("Image", container.image_name)
    table.add_row("Host", container.host)
    table.add_row("Reused", "yes" if container.is_reused else "no")
    for port in container.exposed_ports:
        table.add_row(f"Port {port}", str(container.get_mapped_port(port)))

    console.print(table)


if __name__ == "__main__":
    app()
