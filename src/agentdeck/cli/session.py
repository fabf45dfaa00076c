"""
Session commands: launch, watch, run.
"""

import os
import select
import shutil
import signal
import sys
import termios
import threading
import time
import tty
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.table import Table

from ._shared import AgentOption, app, console, err_console, load_configuration, resolve_agent
from ..status_constants import get_state_label, get_state_symbol

# How often `run` wakes to notice the agent has exited
INPUT_POLL_INTERVAL = 0.5


def _format_state(session) -> str:
    symbol, color = get_state_symbol(session.state)
    return f"[{color}]{symbol} {get_state_label(session.state)}[/{color}]"


def _sessions_table(sessions) -> Table:
    table = Table(title="Sessions", show_lines=False)
    table.add_column("Worktree", style="bold")
    table.add_column("Agent")
    table.add_column("Host")
    table.add_column("State")
    for session in sorted(sessions, key=lambda s: s.worktree_key):
        table.add_row(
            session.worktree_key,
            session.agent_kind.value,
            session.hosting_mode.value,
            _format_state(session),
        )
    return table


@app.command()
def launch(
    no_zellij: Annotated[
        bool, typer.Option("--no-zellij", help="Run in this terminal without starting Zellij")
    ] = False,
):
    """Start agentdeck, inside a new Zellij session when possible.

    Runs the watcher directly when already inside Zellij, when Zellij is
    not installed, or with --no-zellij.
    """
    from ..implementations import RealZellij
    from ..launcher import launch_in_zellij

    zellij = RealZellij()
    if no_zellij:
        console.print("[dim]Running directly (without Zellij)[/dim]")
        watch(once=False)
        return
    if zellij.is_inside_session():
        watch(once=False)
        return
    if zellij.which("zellij") is None:
        console.print("[yellow]Zellij not found.[/yellow] Running directly without Zellij integration.")
        console.print("[dim]Install Zellij: https://zellij.dev/documentation/installation[/dim]")
        watch(once=False)
        return

    console.print("[bold]Starting agentdeck in a new Zellij session...[/bold]")
    console.print("[dim]Press Ctrl+O then D to detach from Zellij later[/dim]")
    try:
        code = launch_in_zellij()
    except OSError as e:
        err_console.print(f"[red]✗[/red] Failed to start Zellij: {e}")
        err_console.print("[dim]Use 'agentdeck launch --no-zellij' to skip Zellij[/dim]")
        raise typer.Exit(1)
    console.print("Zellij session ended")
    if code:
        raise typer.Exit(code)


@app.command()
def watch(
    once: Annotated[
        bool, typer.Option("--once", help="Probe once, print a table and exit")
    ] = False,
):
    """Watch agent panes in the current Zellij session and report state changes."""
    from ..events import SESSION_CREATED, SESSION_STATE_CHANGED

    from ._shared import build_pane_directory, build_session_manager

    config = load_configuration()
    panes = build_pane_directory(config)
    if not panes.is_inside_host_session():
        err_console.print("[yellow]Not inside a Zellij session; no panes to watch.[/yellow]")
        raise typer.Exit(1)

    manager = build_session_manager(config, panes=panes)
    try:
        if once:
            manager.discover_existing_sessions()
            manager.reconcile_pane_sessions()
            sessions = manager.get_all_sessions()
            if not sessions:
                console.print("[dim]No agent panes found[/dim]")
                return
            console.print(_sessions_table(sessions))
            return

        # Timer threads log to a file while the console shows events
        from ..logging_config import setup_daemon_logging
        setup_daemon_logging(config.get_logging_settings()["file"])

        manager.on(SESSION_CREATED, lambda s: console.print(
            f"[cyan]+[/cyan] {s.worktree_key} ({s.agent_kind.value})"
        ))
        manager.on(SESSION_STATE_CHANGED, lambda s: console.print(
            f"{time.strftime('%H:%M:%S')} {s.worktree_key} {_format_state(s)}"
        ))
        manager.discover_existing_sessions()
        manager.start_pane_monitoring()
        console.print("[dim]Watching agent panes, Ctrl+C to stop[/dim]")
        while True:
            time.sleep(manager.reconcile_interval)
            manager.discover_existing_sessions()
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped[/dim]")
    finally:
        manager.destroy()


def _stdin_fd() -> Optional[int]:
    """Descriptor of stdin, or None when it has no real file behind it."""
    try:
        return sys.stdin.fileno()
    except (OSError, ValueError, AttributeError):
        return None


@contextmanager
def _raw_mode(fd: Optional[int]):
    """Put a terminal in raw mode for the duration, restoring it after."""
    if fd is None:
        yield
        return
    saved = termios.tcgetattr(fd)
    tty.setraw(fd)
    try:
        yield
    finally:
        termios.tcsetattr(fd, termios.TCSAFLUSH, saved)


def _install_resize_handler(manager, worktree_key: str):
    """Follow terminal resizes into the session; returns the old handler."""

    def on_winch(signum, frame):
        size = shutil.get_terminal_size()
        manager.resize(worktree_key, size.columns, size.lines)

    return signal.signal(signal.SIGWINCH, on_winch)


def _forward_input(manager, worktree_key: str, fd: int, finished: threading.Event) -> None:
    """Copy bytes from ``fd`` to the agent until it exits or input ends."""
    while not finished.is_set():
        readable, _, _ = select.select([fd], [], [], INPUT_POLL_INTERVAL)
        if not readable:
            continue
        data = os.read(fd, 1024)
        if not data:
            return
        manager.write_input(worktree_key, data)


@app.command()
def run(
    path: Annotated[
        Path, typer.Argument(help="Worktree to run the agent in")
    ] = Path("."),
    agent: AgentOption = None,
):
    """Run an agent in a worktree on a pty we own, attached to this terminal.

    Keystrokes go to the agent, the terminal is in raw mode while it runs
    and resizes follow the window. State changes are reported on stderr;
    the command exits when the agent does.
    """
    from ..events import SESSION_DATA, SESSION_EXIT, SESSION_RESTORE, SESSION_STATE_CHANGED
    from ..exceptions import CommandNotFoundError, ProcessSpawnError

    from ._shared import build_session_manager

    config = load_configuration()
    kind = resolve_agent(agent)
    manager = build_session_manager(config)
    finished = threading.Event()
    fd = _stdin_fd()
    interactive = fd is not None and os.isatty(fd)
    # Raw mode turns off output newline translation
    line_end = "\r\n" if interactive else "\n"

    def write_out(data):
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()

    def on_restore(session, chunks):
        for chunk in chunks:
            write_out(chunk)

    manager.on(SESSION_DATA, lambda s, data: write_out(data))
    manager.on(SESSION_RESTORE, on_restore)
    manager.on(SESSION_STATE_CHANGED, lambda s: err_console.print(_format_state(s), end=line_end))
    manager.on(SESSION_EXIT, lambda s: finished.set())

    try:
        session = manager.create_session(str(path), agent_kind=kind)
    except (CommandNotFoundError, ProcessSpawnError) as e:
        err_console.print(f"[red]✗[/red] {e}")
        manager.destroy()
        raise typer.Exit(1)

    previous_winch = None
    if interactive:
        previous_winch = _install_resize_handler(manager, session.worktree_key)
    manager.set_active(session.worktree_key, True)
    try:
        with _raw_mode(fd if interactive else None):
            if fd is not None:
                _forward_input(manager, session.worktree_key, fd, finished)
            while not finished.wait(INPUT_POLL_INTERVAL):
                pass
    except KeyboardInterrupt:
        err_console.print("\n[dim]Stopping agent[/dim]")
    finally:
        if interactive:
            signal.signal(signal.SIGWINCH, previous_winch or signal.SIG_DFL)
        manager.destroy()

    code = session.process.exit_code
    if code:
        raise typer.Exit(code if code > 0 else 1)
