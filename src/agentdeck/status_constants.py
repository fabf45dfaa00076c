"""
Status constants and mappings for Agentdeck.

Centralizes session states, agent kinds, hosting modes, environment
variable names and the display mappings used by the CLI.
"""

from enum import Enum
from typing import Tuple


# =============================================================================
# Session States
# =============================================================================


class SessionState(str, Enum):
    """Activity state of a session, derived from terminal output or probes."""

    IDLE = "idle"
    BUSY = "busy"
    WAITING_INPUT = "waiting_input"

    def __str__(self) -> str:
        return self.value


STATE_IDLE = SessionState.IDLE
STATE_BUSY = SessionState.BUSY
STATE_WAITING_INPUT = SessionState.WAITING_INPUT

ALL_STATES = [STATE_IDLE, STATE_BUSY, STATE_WAITING_INPUT]


# =============================================================================
# Agent Kinds
# =============================================================================


class AgentKind(str, Enum):
    """The two supported external agent commands."""

    CLAUDE = "claude"
    CODEX = "codex"

    @property
    def command(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.value


AGENT_COMMANDS = tuple(kind.command for kind in AgentKind)


def agent_kind_for_command(command: str) -> "AgentKind | None":
    """Map a command name (or path ending in one) to its agent kind."""
    name = command.rsplit("/", 1)[-1].strip()
    for kind in AgentKind:
        if name == kind.command:
            return kind
    return None


# =============================================================================
# Hosting Modes
# =============================================================================


class HostingMode(str, Enum):
    """Who owns the terminal the agent runs in."""

    OWNED_PROCESS = "owned_process"
    MULTIPLEXER_PANE = "multiplexer_pane"

    def __str__(self) -> str:
        return self.value


# =============================================================================
# Timing
# =============================================================================

STATE_CHECK_INTERVAL = 0.1  # seconds, per owned session
PANE_RECONCILE_INTERVAL = 2.0  # seconds, shared across pane sessions
MAX_HISTORY_BYTES = 10 * 1024 * 1024
CLASSIFIER_WINDOW_LINES = 30


# =============================================================================
# Environment Variables
# =============================================================================

ZELLIJ_ENV_MARKER = "ZELLIJ"
ZELLIJ_SESSION_NAME_ENV = "ZELLIJ_SESSION_NAME"
AUTO_START_ENV = "AGENTDECK_AUTO_START"

AGENT_ARGS_ENV = {
    AgentKind.CLAUDE: "AGENTDECK_CLAUDE_ARGS",
    AgentKind.CODEX: "AGENTDECK_CODEX_ARGS",
}

HOOK_ENV_OLD_STATE = "AGENTDECK_OLD_STATE"
HOOK_ENV_NEW_STATE = "AGENTDECK_NEW_STATE"
HOOK_ENV_WORKTREE = "AGENTDECK_WORKTREE"
HOOK_ENV_BRANCH = "AGENTDECK_WORKTREE_BRANCH"
HOOK_ENV_SESSION_ID = "AGENTDECK_SESSION_ID"


# =============================================================================
# Display Mappings (for Rich styling)
# =============================================================================

STATE_SYMBOLS = {
    STATE_IDLE: ("○", "dim"),
    STATE_BUSY: ("●", "green"),
    STATE_WAITING_INPUT: ("◐", "yellow"),
}

STATE_LABELS = {
    STATE_IDLE: "Idle",
    STATE_BUSY: "Busy",
    STATE_WAITING_INPUT: "Waiting for input",
}


def get_state_symbol(state: str) -> Tuple[str, str]:
    """Get (symbol, color) tuple for a session state."""
    return STATE_SYMBOLS.get(state, ("?", "dim"))


def get_state_label(state: str) -> str:
    """Get a human readable label for a session state."""
    return STATE_LABELS.get(state, str(state))


def needs_attention(state: str) -> bool:
    """Check if the user, not the agent, has to act next."""
    return state == STATE_WAITING_INPUT
