"""
Shared CLI state: Typer apps, console, options, and builders.
"""

from typing import Annotated, Optional

import typer
from rich.console import Console

from ..status_constants import AgentKind

# Main app
app = typer.Typer(
    name="agentdeck",
    help="Run and watch coding agents, one per git worktree",
    no_args_is_help=False,
    invoke_without_command=True,
    rich_markup_mode="rich",
)

# Config subcommand group
config_app = typer.Typer(
    name="config",
    help="Manage configuration",
    no_args_is_help=False,
    invoke_without_command=True,
)
app.add_typer(config_app, name="config")

# Console for rich output
console = Console()
err_console = Console(stderr=True)

AgentOption = Annotated[
    Optional[AgentKind],
    typer.Option(
        "--agent",
        "-a",
        case_sensitive=False,
        help="Agent to run (defaults to claude when installed)",
    ),
]


def load_configuration():
    """Load config and apply its logging section."""
    import logging

    from ..config import Configuration
    from ..logging_config import setup_cli_logging

    config = Configuration.load()
    settings = config.get_logging_settings()
    setup_cli_logging(
        level=getattr(logging, settings["level"], logging.WARNING),
        log_file=settings["file"],
    )
    return config


def build_pane_directory(config):
    from ..implementations import RealZellij
    from ..process_probe import ProcessTable
    from ..zellij import ZellijPaneDirectory

    settings = config.get_zellij_settings()
    return ZellijPaneDirectory(
        RealZellij(),
        ProcessTable(config.get_probe_settings()),
        config=config,
        settle_delay=settings.settle_delay,
    )


def build_session_manager(config, panes=None):
    from ..session_manager import SessionManager
    from ..worktree import WorktreeService

    return SessionManager(
        config,
        worktrees=WorktreeService(),
        panes=panes,
        reconcile_interval=config.get_zellij_settings().reconcile_interval,
    )


def resolve_agent(agent: Optional[AgentKind]) -> AgentKind:
    """Pick the agent to run, exiting with a message if none is installed."""
    from ..dependency_check import check_agent_availability, get_default_agent_kind

    if agent is not None:
        return agent
    kind = get_default_agent_kind(check_agent_availability())
    if kind is None:
        err_console.print("[red]Error:[/red] Neither claude nor codex found in PATH")
        raise typer.Exit(1)
    return kind


@app.callback(invoke_without_command=True)
def main_callback(ctx: typer.Context):
    """Launch agentdeck (inside Zellij when possible) when no command is given."""
    if ctx.invoked_subcommand is None:
        from .session import launch

        launch(no_zellij=False)
