"""CLI commands for agent-station."""

from __future__ import annotations

import asyncio
import os
import time
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from agent_station import __version__

app = typer.Typer(
    name="agent_station",
    help="agent-station - Multi-terminal workspace for CLI agents",
    no_args_is_help=True,
)
projects_app = typer.Typer(help="Manage project folders.", no_args_is_help=True)
app.add_typer(projects_app, name="projects")
console = Console()

_DOCTOR_TOKEN = "agent-station-ok"


def version_callback(value: bool) -> None:
    if value:
        console.print(f"agent-station v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log at DEBUG level."),
) -> None:
    """agent-station entrypoint."""
    del version
    from agent_station.config.loader import load_config
    from agent_station.utils.helpers import setup_logging

    config = load_config()
    log_dir = config.data_path / "logs" if config.logging.to_file else None
    setup_logging(
        level="DEBUG" if verbose else config.logging.level,
        log_dir=log_dir,
        rotation=config.logging.rotation,
        retention=config.logging.retention,
    )


@app.command()
def gui() -> None:
    """Start the Agent Station desktop GUI."""
    from agent_station.config.loader import load_config
    from agent_station.gui.channel import GUIChannel
    from agent_station.session.name_store import TerminalNameStore
    from agent_station.session.project_store import ProjectStore
    from agent_station.terminal.registry import SessionRegistry
    from agent_station.utils.helpers import get_data_path

    config = load_config()
    data_path = get_data_path(config.data_dir)

    registry = SessionRegistry(config.terminal)
    gui_channel = GUIChannel(
        config=config,
        registry=registry,
        project_store=ProjectStore(data_path),
        name_store=TerminalNameStore(data_path),
    )

    console.print("Starting Agent Station GUI")
    console.print(f"Data: [cyan]{data_path}[/cyan]")
    console.print(f"Shell: [cyan]{config.terminal.resolve_shell()}[/cyan]")

    async def run_stack() -> None:
        gui_task = asyncio.create_task(gui_channel.start())
        try:
            await gui_task
        finally:
            await gui_channel.stop()

    try:
        asyncio.run(run_stack())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        # Force-exit so no daemon threads keep the interpreter alive.
        os._exit(0)


@projects_app.command("list")
def projects_list() -> None:
    """List registered project folders."""
    from agent_station.config.loader import load_config
    from agent_station.session.project_store import ProjectStore

    store = ProjectStore(load_config().data_path)
    projects = store.list_projects()
    if not projects:
        console.print("[yellow]No projects yet.[/yellow] Add one with [cyan]agent-station projects add PATH[/cyan]")
        return

    table = Table(title="Projects")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Path")
    for project in projects:
        table.add_row(project.project_id, project.name, project.path)
    console.print(table)


@projects_app.command("add")
def projects_add(
    path: Path = typer.Argument(..., help="Project folder."),
) -> None:
    """Register a project folder."""
    from agent_station.config.loader import load_config
    from agent_station.session.project_store import ProjectError, ProjectStore

    store = ProjectStore(load_config().data_path)
    try:
        project = store.add_project(str(path))
    except ProjectError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]OK[/green] Added {project.name} ([dim]{project.project_id}[/dim])")


@projects_app.command("remove")
def projects_remove(
    project_id: str = typer.Argument(..., help="Project id from `projects list`."),
) -> None:
    """Unregister a project folder and forget its terminal names."""
    from agent_station.config.loader import load_config
    from agent_station.session.name_store import TerminalNameStore
    from agent_station.session.project_store import ProjectStore

    data_path = load_config().data_path
    if not ProjectStore(data_path).remove_project(project_id):
        console.print(f"[red]Unknown project '{project_id}'[/red]")
        raise typer.Exit(1)
    TerminalNameStore(data_path).forget_project(project_id)
    console.print(f"[green]OK[/green] Removed {project_id}")


@app.command()
def doctor(
    cwd: Path | None = typer.Option(None, "--cwd", help="Working directory for the test shell."),
    timeout: float = typer.Option(10.0, "--timeout", help="Seconds to wait for output."),
) -> None:
    """Spawn a shell through the session registry and round-trip a command."""
    from agent_station.config.loader import get_config_path, load_config
    from agent_station.terminal.errors import SpawnError
    from agent_station.terminal.events import OutputChunk, SessionExit
    from agent_station.terminal.registry import SessionRegistry

    cwd = (cwd or Path.cwd()).expanduser()
    config = load_config()
    config_path = get_config_path()
    console.print("agent-station Doctor\n")
    console.print(f"Config: {config_path} {'[green]OK[/green]' if config_path.exists() else '[dim]defaults[/dim]'}")
    console.print(f"Shell: [cyan]{config.terminal.resolve_shell()}[/cyan] {' '.join(config.terminal.shell_args())}")
    console.print(f"Working directory: [cyan]{cwd}[/cyan]")

    async def round_trip() -> tuple[bytes, bool]:
        registry = SessionRegistry(config.terminal)
        received = bytearray()
        seen = asyncio.Event()
        exited = asyncio.Event()

        def on_chunk(chunk: OutputChunk) -> None:
            received.extend(chunk.data)
            if received.count(_DOCTOR_TOKEN.encode()) >= 2:
                seen.set()

        def on_exit(_event: SessionExit) -> None:
            exited.set()

        session_id = await registry.create("doctor", str(cwd))
        console.print(f"  [green]OK[/green] Session started: [dim]{session_id}[/dim]")
        registry.attach(session_id, on_chunk, on_exit)
        await registry.write(session_id, f"echo {_DOCTOR_TOKEN}\n")
        started = time.monotonic()
        try:
            await asyncio.wait_for(seen.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass
        console.print(f"  Output after {time.monotonic() - started:.2f}s: {len(received)} bytes")
        await registry.close(session_id)
        try:
            await asyncio.wait_for(exited.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            console.print("  [yellow]WARN[/yellow] Shell did not report exit before timeout")
        ok = seen.is_set()
        await registry.shutdown()
        return bytes(received), ok

    try:
        output, ok = asyncio.run(round_trip())
    except SpawnError as exc:
        console.print(f"  [red]FAIL[/red] {exc}")
        raise typer.Exit(1)

    for line in output.decode("utf-8", errors="replace").splitlines()[-10:]:
        console.print(f"    | {line}", markup=False, highlight=False)
    if not ok:
        console.print("  [yellow]WARN[/yellow] Echo did not come back before timeout")
        raise typer.Exit(1)
    console.print("  [green]OK[/green] Round trip complete")


if __name__ == "__main__":
    app()
