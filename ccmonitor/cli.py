"""ccmonitor CLI — command-line interface."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ccmonitor import __version__
from ccmonitor.config import DEFAULT_PORT

app = typer.Typer(
    name="ccmonitor",
    help="Correlates Claude Code hook events with running sessions.",
    no_args_is_help=True,
    add_completion=False,
)

console = Console()

_STATE_STYLES = {"idle": "dim", "working": "green", "waiting": "yellow"}


def version_callback(value: bool):
    if value:
        console.print(f"[bold cyan]ccmonitor[/bold cyan] v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
):
    """Know which Claude Code session is working and which one is waiting for you."""
    pass


# ── Server Commands ─────────────────────────────────────────


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Listener port."),
    host: Optional[str] = typer.Option(None, "--host", help="Bind address."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level."),
):
    """Run the hook listener and session monitor."""
    import uvicorn

    from ccmonitor.config import LOG_DIR, load_config
    from ccmonitor.engine.monitor import SessionMonitor
    from ccmonitor.log import setup_logging
    from ccmonitor.notifier.macos import make_finished_notifier
    from ccmonitor.server.app import create_app

    config = load_config()
    port = port or config.server.port
    host = host or config.server.bind
    setup_logging(log_level, log_file=LOG_DIR / "ccmonitor.log")

    monitor = SessionMonitor.from_config(
        config, on_finished=make_finished_notifier(config.notifications)
    )

    console.print("\n[bold cyan]⚡ ccmonitor[/bold cyan]")
    console.print(f"  [dim]Hooks:    http://{host}:{port}/hook/<kind>[/dim]")
    console.print(f"  [dim]Sessions: http://{host}:{port}/api/sessions[/dim]")
    console.print(f"  [dim]WS:       ws://{host}:{port}/ws[/dim]")
    console.print(f"  [dim]Rescan:   every {config.discovery.scan_interval_seconds:g}s[/dim]")
    console.print()

    uvicorn.run(create_app(monitor), host=host, port=port, log_level="warning")


@app.command()
def status(
    port: int = typer.Option(DEFAULT_PORT, "--port", "-p", help="Listener port."),
):
    """Check if the listener is running."""
    from ccmonitor.server.client import MonitorClient

    client = MonitorClient(f"http://localhost:{port}")
    if client.is_server_running():
        console.print("[green]✓[/green] ccmonitor is running")
    else:
        console.print("[red]✗[/red] ccmonitor is not running")
        console.print("  Start it with: [cyan]ccmonitor serve[/cyan]")


@app.command()
def sessions(
    port: int = typer.Option(DEFAULT_PORT, "--port", "-p", help="Listener port."),
):
    """List monitored sessions (requires the listener running)."""
    from ccmonitor.models import SessionRecord
    from ccmonitor.paths import shorten_path
    from ccmonitor.server.client import MonitorClient

    sess_list = MonitorClient(f"http://localhost:{port}").list_sessions()
    if sess_list is None:
        console.print("[red]✗[/red] Cannot connect to ccmonitor.")
        console.print("  Start it with: [cyan]ccmonitor serve[/cyan]")
        raise typer.Exit(1)

    if not sess_list:
        console.print("[dim]No active sessions.[/dim]")
        return

    table = Table(title="Claude Sessions")
    table.add_column("PID", style="yellow")
    table.add_column("State")
    table.add_column("Status", style="cyan")
    table.add_column("Task")
    table.add_column("Tokens", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Working Dir", style="dim")

    for record in (SessionRecord.model_validate(s) for s in sess_list):
        style = _STATE_STYLES.get(record.state.value, "white")
        marker = " •" if record.has_pending_output else ""
        table.add_row(
            str(record.pid),
            f"[{style}]{record.state.value}{marker}[/{style}]",
            record.status_text(),
            record.task_description or "",
            f"{record.total_tokens:,}",
            f"${record.cost:.4f}",
            shorten_path(record.working_directory or ""),
        )

    console.print(table)


@app.command()
def refresh(
    pid: int = typer.Argument(..., help="Session pid."),
    port: int = typer.Option(DEFAULT_PORT, "--port", "-p", help="Listener port."),
):
    """Re-read token usage for one session."""
    from ccmonitor.server.client import MonitorClient

    if MonitorClient(f"http://localhost:{port}").refresh(pid):
        console.print(f"[green]✓[/green] Refresh started for pid {pid}")
    else:
        console.print(f"[red]✗[/red] Could not refresh pid {pid}")
        raise typer.Exit(1)


@app.command()
def ack(
    pid: int = typer.Argument(..., help="Session pid."),
    port: int = typer.Option(DEFAULT_PORT, "--port", "-p", help="Listener port."),
):
    """Acknowledge a session's pending output."""
    from ccmonitor.server.client import MonitorClient

    if MonitorClient(f"http://localhost:{port}").acknowledge(pid):
        console.print(f"[green]✓[/green] Acknowledged pid {pid}")
    else:
        console.print(f"[red]✗[/red] Unknown session {pid}")
        raise typer.Exit(1)


@app.command()
def hook(
    kind: str = typer.Argument(..., help="pretooluse, posttooluse, stop or notification."),
    port: int = typer.Option(DEFAULT_PORT, "--port", "-p", help="Listener port."),
):
    """Forward a hook payload from stdin to the listener (never fails the hook)."""
    from ccmonitor.server.client import MonitorClient

    try:
        payload = json.loads(sys.stdin.read() or "{}")
    except json.JSONDecodeError:
        raise typer.Exit(0)
    if isinstance(payload, dict):
        MonitorClient(f"http://localhost:{port}").post_hook(kind, payload)


# ── Inspection Commands ─────────────────────────────────────


@app.command()
def scan():
    """List session processes visible right now."""
    from ccmonitor.config import load_config
    from ccmonitor.discovery.processes import ProcessScanner

    config = load_config()
    scanner = ProcessScanner(
        process_name=config.discovery.process_name,
        require_terminal=config.discovery.require_terminal,
    )
    processes = scanner.list_processes()
    if not processes:
        console.print("[dim]No session processes found.[/dim]")
        return

    table = Table(title="Session Processes")
    table.add_column("PID", style="yellow")
    table.add_column("TTY", style="cyan")
    table.add_column("Started")
    table.add_column("Working Dir", style="dim")

    for p in processes:
        table.add_row(
            str(p.pid),
            p.terminal_device or "?",
            p.start_time.astimezone().strftime("%H:%M:%S"),
            p.working_directory or "?",
        )

    console.print(table)


@app.command()
def usage(
    transcript: Path = typer.Argument(..., exists=True, dir_okay=False, help="Transcript .jsonl file."),
):
    """Show task, token usage and cost for a transcript."""
    from ccmonitor.config import load_config
    from ccmonitor.transcript.pricing import PriceTable
    from ccmonitor.transcript.reader import TranscriptStore

    config = load_config()
    store = TranscriptStore(
        prices=PriceTable(config.pricing),
        max_task_length=config.transcripts.max_task_length,
    )
    path = str(transcript)
    totals = store.usage(path)
    info = store.session_info(path)

    console.print(f"[bold]{store.task_description(path) or 'No task description'}[/bold]")
    console.print(f"  [dim]Session: {info.session_id or '?'}  cwd: {info.cwd or '?'}[/dim]")
    console.print(f"  Model:   {totals.detected_model or 'unknown (default pricing)'}")
    console.print(f"  Input:   {totals.input_tokens:,}")
    console.print(f"  Output:  {totals.output_tokens:,}")
    console.print(
        f"  Cost:    [green]${store.cost(totals.input_tokens, totals.output_tokens, totals.detected_model):.4f}[/green]"
    )


# ── Setup Commands ──────────────────────────────────────────


hooks_app = typer.Typer(help="Manage Claude Code hook registration.")
app.add_typer(hooks_app, name="hooks")


@hooks_app.command("install")
def hooks_install(
    port: int = typer.Option(DEFAULT_PORT, "--port", "-p", help="Listener port."),
    force: bool = typer.Option(False, "--force", help="Overwrite existing hook entries."),
):
    """Register the listener's hooks in ~/.claude/settings.json."""
    from ccmonitor.config import load_config
    from ccmonitor.hooks_config import install_hooks

    settings_file = load_config().transcripts.settings_file
    try:
        written = install_hooks(settings_file, port=port, force=force)
    except ValueError as exc:
        console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(1)

    if written:
        console.print(f"[green]✓[/green] Hooks written to {settings_file}")
    else:
        console.print(f"[yellow]Hooks already configured:[/yellow] {settings_file}")


config_app = typer.Typer(help="Manage ccmonitor configuration.")
app.add_typer(config_app, name="config")


@config_app.command("init")
def config_init():
    """Create the default configuration file."""
    from ccmonitor.config import CONFIG_FILE, ensure_dirs, save_default_config

    ensure_dirs()
    if CONFIG_FILE.exists():
        console.print(f"[yellow]Config already exists:[/yellow] {CONFIG_FILE}")
    else:
        path = save_default_config()
        console.print(f"[green]✓[/green] Created config: {path}")


@config_app.command("show")
def config_show():
    """Show current configuration."""
    from ccmonitor.config import load_config

    console.print_json(data=load_config().model_dump())


if __name__ == "__main__":
    app()
