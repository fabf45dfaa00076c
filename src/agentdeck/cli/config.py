"""
Config commands: init, show, path.
"""

from typing import Annotated

import typer
from rich import print as rprint

from ._shared import config_app


@config_app.callback(invoke_without_command=True)
def config_default(ctx: typer.Context):
    """Show current configuration (default when no subcommand given)."""
    if ctx.invoked_subcommand is None:
        _config_show()


@config_app.command("init")
def config_init(
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Overwrite existing config file")
    ] = False,
):
    """Create a config file with documented defaults.

    Creates ~/.agentdeck/config.yaml with all options commented out.
    Use --force to overwrite an existing config file.
    """
    from ..config import CONFIG_TEMPLATE, get_config_path

    config_path = get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    if config_path.exists() and not force:
        rprint(f"[yellow]Config file already exists:[/yellow] {config_path}")
        rprint("[dim]Use --force to overwrite[/dim]")
        raise typer.Exit(1)

    config_path.write_text(CONFIG_TEMPLATE)
    rprint(f"[green]✓[/green] Created config file: [bold]{config_path}[/bold]")
    rprint("[dim]Edit to customize your settings[/dim]")


@config_app.command("show")
def config_show():
    """Show current configuration."""
    _config_show()


def _config_show():
    from ..config import Configuration, get_config_path

    config_path = get_config_path()
    if not config_path.exists():
        rprint(f"[dim]No config file found at {config_path}[/dim]")
        rprint("[dim]Run 'agentdeck config init' to create one[/dim]")
        return

    config = Configuration.load(config_path)
    if not config.data:
        rprint(f"[dim]Config file is empty: {config_path}[/dim]")
        return

    rprint(f"[bold]Configuration[/bold] ({config_path}):\n")

    hooks = config.get_status_hooks()
    if hooks:
        rprint("  status_hooks:")
        for state, hook in hooks.items():
            flags = []
            if not hook.enabled:
                flags.append("disabled")
            if hook.delay:
                flags.append(f"delay {hook.delay:g}s")
            suffix = f" [dim]({', '.join(flags)})[/dim]" if flags else ""
            rprint(f"    {state}: {hook.command}{suffix}")

    if "agents" in config.data:
        from ..status_constants import AgentKind

        rprint("  agents:")
        for kind in AgentKind:
            args = config.get_agent_args(kind)
            if args:
                rprint(f"    {kind.value}: {' '.join(args)}")

    if "zellij" in config.data:
        z = config.get_zellij_settings()
        rprint("  zellij:")
        rprint(f"    settle_delay: {z.settle_delay}s")
        rprint(f"    reconcile_interval: {z.reconcile_interval}s")
        rprint(f"    scripted_panes: {z.scripted_panes}")

    if "probe" in config.data:
        p = config.get_probe_settings()
        rprint("  probe:")
        rprint(f"    cpu_threshold: {p.cpu_threshold}")
        rprint(f"    recent_start_seconds: {p.recent_start_seconds}")
        rprint(f"    count_open_terminals: {p.count_open_terminals}")

    if "logging" in config.data:
        settings = config.get_logging_settings()
        rprint(f"  logging: level={settings['level']} file={settings['file'] or '-'}")


@config_app.command("path")
def config_path():
    """Show the config file path."""
    from ..config import get_config_path
    print(get_config_path())
