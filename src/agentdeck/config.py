"""
Configuration loading for Agentdeck.

Reads ~/.agentdeck/config.yaml. Every section is optional; a missing or
broken file behaves like an empty one. Environment overrides:

    AGENTDECK_HOME         directory holding config.yaml and logs
    AGENTDECK_CONFIG       explicit config file path
    AGENTDECK_CLAUDE_ARGS  extra args for claude (wins over the file)
    AGENTDECK_CODEX_ARGS   extra args for codex (wins over the file)
"""

import logging
import os
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .process_probe import ProbeSettings
from .status_constants import (
    AGENT_ARGS_ENV,
    ALL_STATES,
    PANE_RECONCILE_INTERVAL,
    AgentKind,
)

logger = logging.getLogger(__name__)


def get_agentdeck_home() -> Path:
    env_home = os.environ.get("AGENTDECK_HOME")
    if env_home:
        return Path(env_home)
    return Path.home() / ".agentdeck"


def get_config_path() -> Path:
    env_path = os.environ.get("AGENTDECK_CONFIG")
    if env_path:
        return Path(env_path)
    return get_agentdeck_home() / "config.yaml"


CONFIG_TEMPLATE = """\
# Agentdeck configuration
# Location: ~/.agentdeck/config.yaml

# Commands run when a session changes state. The command runs through the
# shell inside the worktree with these variables set:
#   AGENTDECK_OLD_STATE, AGENTDECK_NEW_STATE, AGENTDECK_WORKTREE,
#   AGENTDECK_WORKTREE_BRANCH, AGENTDECK_SESSION_ID
# status_hooks:
#   waiting_input:
#     command: "notify-send 'Agent needs input' \\"$AGENTDECK_WORKTREE_BRANCH\\""
#     enabled: true
#   idle:
#     command: "say done"
#     enabled: false
#     delay: 2  # seconds; a newer state change cancels a pending hook

# Extra arguments per agent (AGENTDECK_CLAUDE_ARGS / AGENTDECK_CODEX_ARGS win)
# agents:
#   claude:
#     args: ["--model", "opus"]
#   codex:
#     args: []

# Zellij integration
# zellij:
#   settle_delay: 0.1        # seconds between focus/keystroke actions
#   reconcile_interval: 2.0  # seconds between pane status checks
#   scripted_panes: false    # type commands into a bare pane instead of one-shot

# Activity heuristic for Zellij panes
# probe:
#   cpu_threshold: 0.1
#   recent_start_seconds: 30
#   count_open_terminals: false

# logging:
#   level: WARNING
#   file: ~/.agentdeck/agentdeck.log
"""


@dataclass
class StatusHook:
    """A command to run when a session enters a state."""

    command: str
    enabled: bool = True
    delay: float = 0.0

    @property
    def runnable(self) -> bool:
        return self.enabled and bool(self.command.strip())


@dataclass
class ZellijSettings:
    settle_delay: float = 0.1
    reconcile_interval: float = PANE_RECONCILE_INTERVAL
    scripted_panes: bool = False


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the YAML config as a dict.

    Returns:
        Parsed config, or {} if the file is missing or invalid
    """
    path = path or get_config_path()
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (yaml.YAMLError, OSError) as e:
        logger.warning("Ignoring unreadable config %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        if data is not None:
            logger.warning("Ignoring config %s: top level is not a mapping", path)
        return {}
    return data


def _section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = config.get(name)
    return value if isinstance(value, dict) else {}


def _parse_hook(state: str, raw: Any) -> Optional[StatusHook]:
    if isinstance(raw, str):
        return StatusHook(command=raw)
    if not isinstance(raw, dict) or not raw.get("command"):
        return None
    try:
        delay = float(raw.get("delay", 0) or 0)
    except (TypeError, ValueError):
        logger.warning("Invalid delay for %s hook, using 0", state)
        delay = 0.0
    return StatusHook(
        command=str(raw["command"]),
        enabled=bool(raw.get("enabled", True)),
        delay=max(delay, 0.0),
    )


class Configuration:
    """Typed view over the config file (the configuration collaborator)."""

    def __init__(self, data: Optional[Dict[str, Any]] = None, path: Optional[Path] = None):
        self.path = path or get_config_path()
        self._data = load_config(self.path) if data is None else data

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Configuration":
        return cls(path=path)

    @property
    def data(self) -> Dict[str, Any]:
        return self._data

    def get_status_hooks(self) -> Dict[str, StatusHook]:
        section = _section(self._data, "status_hooks")
        hooks = {}
        for state in ALL_STATES:
            hook = _parse_hook(state.value, section.get(state.value))
            if hook is not None:
                hooks[state.value] = hook
        return hooks

    def get_status_hook(self, state: str) -> Optional[StatusHook]:
        return self.get_status_hooks().get(str(state))

    def get_agent_args(self, kind: AgentKind) -> List[str]:
        """Extra args for an agent; the environment variable wins."""
        env_value = os.environ.get(AGENT_ARGS_ENV[kind])
        if env_value is not None:
            try:
                return shlex.split(env_value)
            except ValueError:
                return env_value.split()

        agent = _section(_section(self._data, "agents"), kind.value)
        args = agent.get("args", [])
        if isinstance(args, str):
            return shlex.split(args)
        if isinstance(args, list):
            return [str(a) for a in args]
        return []

    def get_zellij_settings(self) -> ZellijSettings:
        section = _section(self._data, "zellij")
        defaults = ZellijSettings()
        return ZellijSettings(
            settle_delay=float(section.get("settle_delay", defaults.settle_delay)),
            reconcile_interval=float(section.get("reconcile_interval", defaults.reconcile_interval)),
            scripted_panes=bool(section.get("scripted_panes", defaults.scripted_panes)),
        )

    def get_probe_settings(self) -> ProbeSettings:
        section = _section(self._data, "probe")
        defaults = ProbeSettings()
        return ProbeSettings(
            cpu_threshold=float(section.get("cpu_threshold", defaults.cpu_threshold)),
            recent_start_seconds=float(section.get("recent_start_seconds", defaults.recent_start_seconds)),
            count_open_terminals=bool(section.get("count_open_terminals", defaults.count_open_terminals)),
        )

    def get_logging_settings(self) -> Dict[str, Any]:
        section = _section(self._data, "logging")
        log_file = section.get("file")
        return {
            "level": str(section.get("level", "WARNING")).upper(),
            "file": Path(os.path.expanduser(log_file)) if log_file else None,
        }
