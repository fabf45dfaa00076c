"""
Pane commands: panes, focus, new-pane, close, agents.
"""

from pathlib import Path
from typing import Annotated, List, Optional

import typer
from rich import print as rprint
from rich.table import Table

from ._shared import (
    AgentOption,
    app,
    build_pane_directory,
    console,
    load_configuration,
    resolve_agent,
)


def _require_zellij(panes) -> None:
    if not panes.is_available():
        rprint("[red]Error:[/red] Zellij is not installed")
        raise typer.Exit(1)
    if not panes.is_inside_host_session():
        rprint("[red]Error:[/red] Not running inside a Zellij session")
        raise typer.Exit(1)


@app.command("panes")
def list_panes():
    """List agent panes in the current Zellij session."""
    config = load_configuration()
    panes = build_pane_directory(config)
    _require_zellij(panes)

    records = panes.list_panes()
    if not records:
        rprint("[dim]No agent panes found[/dim]")
        return

    focused = panes.get_current_focused_pane()
    table = Table(title="Agent panes")
    table.add_column("#", justify="right")
    table.add_column("Worktree", style="bold")
    table.add_column("Command")
    table.add_column("Tab", style="dim")
    for pane in records:
        marker = "▶ " if focused and pane.navigable and pane.focus_index == focused.focus_index else ""
        index = str(pane.focus_index) if pane.navigable else "?"
        table.add_row(f"{marker}{index}", pane.cwd, pane.command_line, pane.tab or "")
    console.print(table)


@app.command()
def focus(
    path: Annotated[Path, typer.Argument(help="Worktree whose pane to focus")],
):
    """Move Zellij focus to the agent pane of a worktree."""
    config = load_configuration()
    panes = build_pane_directory(config)
    _require_zellij(panes)

    result = panes.focus_pane(str(path))
    if not result.success:
        rprint(f"[red]✗[/red] {result.error}")
        raise typer.Exit(1)
    rprint(f"[green]✓[/green] Focused pane for [bold]{path}[/bold]")


@app.command("new-pane")
def new_pane(
    path: Annotated[Path, typer.Argument(help="Worktree to open the agent in")],
    agent: AgentOption = None,
    label: Annotated[
        Optional[str], typer.Option("--label", "-l", help="Pane name (defaults to the directory name)")
    ] = None,
    scripted: Annotated[
        Optional[bool],
        typer.Option("--scripted/--one-shot", help="Type commands into a shell pane instead of running the agent directly"),
    ] = None,
):
    """Open a Zellij pane running an agent in a worktree."""
    config = load_configuration()
    panes = build_pane_directory(config)
    kind = resolve_agent(agent)
    if scripted is None:
        scripted = config.get_zellij_settings().scripted_panes

    result = panes.create_pane(str(path), label=label, agent_kind=kind, scripted=scripted)
    if not result.success:
        rprint(f"[red]✗[/red] {result.error}")
        raise typer.Exit(1)
    rprint(f"[green]✓[/green] Started {kind.value} in [bold]{path}[/bold]")


@app.command()
def close(
    paths: Annotated[List[Path], typer.Argument(help="Worktrees whose panes to close")],
):
    """Close the agent panes of one or more worktrees."""
    config = load_configuration()
    panes = build_pane_directory(config)
    _require_zellij(panes)

    result = panes.close_panes_for_worktrees([str(p) for p in paths])
    for error in result.errors:
        rprint(f"[red]✗[/red] {error}")
    rprint(f"Closed {result.closed} pane(s)")
    if not result.success:
        raise typer.Exit(1)


@app.command()
def agents():
    """Show which agent commands are installed."""
    from ..dependency_check import (
        check_agent_availability,
        check_command,
        get_default_agent_kind,
        should_offer_agent_choice,
    )
    from ..status_constants import AgentKind

    availability = check_agent_availability()
    for kind in AgentKind:
        available, path, version = check_command(kind.command)
        if available:
            detail = f" [dim]{version}[/dim]" if version else ""
            rprint(f"  [green]✓[/green] {kind.value}: {path}{detail}")
        else:
            rprint(f"  [red]✗[/red] {kind.value}: not found")

    zellij_ok, zellij_path, _ = check_command("zellij")
    if zellij_ok:
        rprint(f"  [green]✓[/green] zellij: {zellij_path}")
    else:
        rprint("  [yellow]-[/yellow] zellij: not found (pane features unavailable)")

    default = get_default_agent_kind(availability)
    if default is None:
        rprint("\n[red]No agent installed.[/red] Install claude or codex.")
        raise typer.Exit(1)
    if should_offer_agent_choice(availability):
        rprint(f"\nDefault agent: [bold]{default.value}[/bold] (use --agent to choose)")
    else:
        rprint(f"\nDefault agent: [bold]{default.value}[/bold]")
