"""
Dependency checking and graceful degradation utilities.

Provides functions to check for the external commands Agentdeck drives
(the two agents and zellij) and to pick a default agent.
"""

import shutil
import subprocess
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .exceptions import CommandNotFoundError
from .status_constants import AgentKind

INSTALL_HINTS = {
    "zellij": "Install it from: https://zellij.dev/documentation/installation",
    AgentKind.CLAUDE.command: "Install it from: https://claude.ai/claude-code",
    AgentKind.CODEX.command: "Install it with: npm install -g @openai/codex",
}


def find_executable(name: str) -> Optional[str]:
    """Find the path to an executable.

    Args:
        name: Name of the executable

    Returns:
        Full path to executable, or None if not found
    """
    return shutil.which(name)


def check_command(name: str, version_flag: str = "--version") -> Tuple[bool, Optional[str], Optional[str]]:
    """Check if a command is available and get its version.

    Returns:
        Tuple of (is_available, path, version)
    """
    path = find_executable(name)
    if not path:
        return False, None, None

    try:
        result = subprocess.run(
            [name, version_flag],
            capture_output=True,
            text=True,
            timeout=10
        )
        version = result.stdout.strip() if result.returncode == 0 else None
        return True, path, version or None
    except (subprocess.SubprocessError, OSError):
        return True, path, None


def require_command(name: str) -> str:
    """Ensure a command is available, raise if not.

    Returns:
        Path to the executable

    Raises:
        CommandNotFoundError: If the command is not found
    """
    path = find_executable(name)
    if not path:
        hint = INSTALL_HINTS.get(name)
        message = f"'{name}' is required but not found in PATH."
        if hint:
            message = f"{message} {hint}"
        raise CommandNotFoundError(name, message)
    return path


@dataclass
class AgentAvailability:
    """Which agent commands are installed."""

    claude: bool = False
    codex: bool = False
    available: List[AgentKind] = field(default_factory=list)


def check_agent_availability() -> AgentAvailability:
    """Check which agent commands are in PATH."""
    claude = find_executable(AgentKind.CLAUDE.command) is not None
    codex = find_executable(AgentKind.CODEX.command) is not None
    available = []
    if claude:
        available.append(AgentKind.CLAUDE)
    if codex:
        available.append(AgentKind.CODEX)
    return AgentAvailability(claude=claude, codex=codex, available=available)


def get_default_agent_kind(availability: AgentAvailability) -> Optional[AgentKind]:
    """Pick the agent to use without asking. Claude wins when both exist."""
    if not availability.available:
        return None
    if availability.claude:
        return AgentKind.CLAUDE
    return availability.available[0]


def should_offer_agent_choice(availability: AgentAvailability) -> bool:
    """Only ask the user when more than one agent is installed."""
    return len(availability.available) > 1
