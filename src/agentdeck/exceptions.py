"""
Exception hierarchy for Agentdeck.

Errors raised on the polling paths (classification and pane
reconciliation) are caught and logged where they happen. Errors raised by
explicit user actions reach the caller, either as one of these exceptions
or wrapped in a result object.
"""

from typing import Optional


class AgentDeckError(Exception):
    """Base class for all Agentdeck errors."""


class CommandNotFoundError(AgentDeckError):
    """An agent or multiplexer binary is missing from PATH."""

    def __init__(self, command: str, message: Optional[str] = None):
        self.command = command
        super().__init__(message or f"Command '{command}' not found in PATH")


class NotInsideZellijError(AgentDeckError):
    """A pane operation was attempted outside a Zellij session."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or "Not running inside a Zellij session. Start agentdeck within Zellij."
        )


class PaneNotFoundError(AgentDeckError):
    """No agent pane matches the requested worktree."""

    def __init__(self, worktree: str):
        self.worktree = worktree
        super().__init__(f"No pane found for worktree: {worktree}")


class LayoutParseError(AgentDeckError):
    """The multiplexer layout dump could not be obtained or parsed."""


class ProcessSpawnError(AgentDeckError):
    """A hosted agent process could not be started."""

    def __init__(self, command: str, worktree: str, reason: str):
        self.command = command
        self.worktree = worktree
        self.reason = reason
        super().__init__(f"Failed to start '{command}' in {worktree}: {reason}")


class HookExecutionError(AgentDeckError):
    """A status hook command failed. Logged, never propagated to timers."""


class ProbeError(AgentDeckError):
    """A per-session activity probe failed during reconciliation."""
