"""
Protocol definitions for external dependencies.

These interfaces allow dependency injection for testing, enabling us to
swap real implementations (subprocess calls to zellij, process-table
scans, git) with mock implementations in tests.
"""

from dataclasses import dataclass
from typing import Protocol, Optional, List, Dict, runtime_checkable, TYPE_CHECKING

if TYPE_CHECKING:
    from .config import StatusHook
    from .layout_parser import PaneRecord
    from .status_constants import AgentKind
    from .worktree import Worktree


@dataclass
class CommandResult:
    """Outcome of one multiplexer CLI invocation."""

    success: bool
    stdout: str = ""
    stderr: str = ""
    error: Optional[str] = None


@runtime_checkable
class MultiplexerInterface(Protocol):
    """Interface for the multiplexer's CLI surface"""

    def which(self, command: str) -> Optional[str]:
        """Locate a command in PATH.

        Returns:
            Full path, or None if the command is not installed
        """
        ...

    def is_inside_session(self) -> bool:
        """Check whether this process runs inside a multiplexer session."""
        ...

    def action(self, *args: str, timeout: float = 10.0) -> CommandResult:
        """Run ``zellij action <args>``.

        Args:
            args: action name followed by its arguments
            timeout: seconds before the call is abandoned

        Returns:
            CommandResult; never raises for command failures
        """
        ...


@runtime_checkable
class ProcessTableInterface(Protocol):
    """Interface for process-table inspection"""

    def is_agent_running(self, kind: "AgentKind", cwd: Optional[str] = None) -> bool:
        """Check whether any agent process of this kind exists."""
        ...

    def is_agent_active(self, kind: "AgentKind", cwd: Optional[str] = None) -> bool:
        """Guess whether an agent process of this kind is working."""
        ...

    def synthesize_pane_records(self) -> List["PaneRecord"]:
        """Build pane records from running agent processes."""
        ...


@runtime_checkable
class WorktreeProvider(Protocol):
    """Interface for the worktree collaborator"""

    def get_worktrees(self) -> List["Worktree"]:
        """List worktrees of the repository."""
        ...

    def get_branch_for_path(self, path: str) -> Optional[str]:
        """Get the branch checked out at a worktree path, or None."""
        ...


@runtime_checkable
class ConfigProvider(Protocol):
    """Interface for the configuration collaborator"""

    def get_status_hooks(self) -> Dict[str, "StatusHook"]:
        """Status hooks keyed by state name."""
        ...

    def get_status_hook(self, state: str) -> Optional["StatusHook"]:
        """Hook for one state, or None when not configured."""
        ...

    def get_agent_args(self, kind: "AgentKind") -> List[str]:
        """Extra command-line arguments for an agent kind."""
        ...
