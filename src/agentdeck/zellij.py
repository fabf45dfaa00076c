"""
Pane directory for Zellij.

Translates between worktree sessions and Zellij panes using only the
documented ``zellij action`` CLI. Zellij exposes no pane addressing by
id, so focus moves one step at a time and closing always acts on the
focused pane.

User-triggered operations (focus, create, close) return result objects
and never raise for expected failures; the caller decides whether to
show an error or fall back to an owned session.
"""

import logging
import os
import re
import shlex
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, TYPE_CHECKING

from .exceptions import LayoutParseError, NotInsideZellijError, PaneNotFoundError
from .layout_parser import FocusedPane, PaneRecord, parse_layout
from .status_constants import AgentKind

if TYPE_CHECKING:
    from .protocols import ConfigProvider, MultiplexerInterface, ProcessTableInterface

logger = logging.getLogger(__name__)

ZELLIJ_COMMAND = "zellij"
ENTER_KEY = "13"
# Wait after new-pane before typing into it
PANE_SETTLE_DELAY = 0.3
# Wait between focus steps and between injected lines
STEP_SETTLE_DELAY = 0.1

_LABEL_UNSAFE = re.compile(r"[^a-zA-Z0-9_-]")


@dataclass
class PaneActionResult:
    """Outcome of a focus or create action."""

    success: bool
    error: Optional[str] = None
    steps: int = 0
    already_closed: bool = False


@dataclass
class CloseResult:
    """Outcome of closing panes for several worktrees."""

    success: bool
    closed: int = 0
    errors: List[str] = field(default_factory=list)


def canonical_path(path: str) -> str:
    return os.path.realpath(os.path.abspath(os.path.expanduser(path)))


def pane_label_for_path(path: str) -> str:
    """Pane name from the last path component, e.g. /src/feature-x -> feature-x."""
    last = os.path.basename(os.path.normpath(path)) if path else ""
    return _LABEL_UNSAFE.sub("-", last or "unknown")


class ZellijPaneDirectory:
    """Lists, focuses, creates and closes agent panes in a Zellij session."""

    def __init__(
        self,
        zellij: "MultiplexerInterface",
        process_table: "ProcessTableInterface",
        config: Optional["ConfigProvider"] = None,
        settle_delay: float = STEP_SETTLE_DELAY,
        pane_settle_delay: float = PANE_SETTLE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.zellij = zellij
        self.process_table = process_table
        self.config = config
        self.settle_delay = settle_delay
        self.pane_settle_delay = pane_settle_delay
        self._sleep = sleep

    # =========================================================================
    # Environment
    # =========================================================================

    def is_available(self) -> bool:
        return self.zellij.which(ZELLIJ_COMMAND) is not None

    def is_inside_host_session(self) -> bool:
        return self.zellij.is_inside_session()

    def _precondition_error(self) -> Optional[str]:
        if not self.is_available():
            return "Zellij is not available. Please install Zellij first."
        if not self.is_inside_host_session():
            return str(NotInsideZellijError())
        return None

    # =========================================================================
    # Layout queries
    # =========================================================================

    def _dump_layout(self):
        result = self.zellij.action("dump-layout")
        if not result.success:
            raise LayoutParseError(result.error or "dump-layout failed")
        return parse_layout(result.stdout)

    def list_panes(self) -> List[PaneRecord]:
        """Agent panes in layout order.

        Falls back to the process table when the layout cannot be dumped
        or parsed; those records have no usable focus index.
        """
        try:
            return self._dump_layout().panes
        except LayoutParseError as e:
            logger.warning("Layout dump unavailable (%s), scanning processes instead", e)
        return self.process_table.synthesize_pane_records()

    def find_pane_for_worktree(self, path: str) -> Optional[PaneRecord]:
        target = canonical_path(path)
        for pane in self.list_panes():
            if pane.cwd and canonical_path(pane.cwd) == target:
                return pane
        return None

    def get_current_focused_pane(self) -> Optional[FocusedPane]:
        try:
            return self._dump_layout().focused
        except LayoutParseError as e:
            logger.debug("Cannot read focused pane: %s", e)
            return None

    # =========================================================================
    # Actions
    # =========================================================================

    def focus_pane(self, path: str) -> PaneActionResult:
        """Move focus to the pane running in ``path``.

        Issues ``focus-next-pane`` or ``focus-previous-pane`` once per step
        between the current and the target focus index.
        """
        target = self.find_pane_for_worktree(path)
        if target is None:
            return PaneActionResult(False, error=str(PaneNotFoundError(path)))
        if not target.navigable:
            return PaneActionResult(False, error=f"Pane position unknown for worktree: {path}")

        current = self.get_current_focused_pane()
        if current is None or current.focus_index < 0:
            return PaneActionResult(False, error="Cannot determine the focused pane")

        steps = target.focus_index - current.focus_index
        if steps == 0:
            return PaneActionResult(True)

        action = "focus-next-pane" if steps > 0 else "focus-previous-pane"
        for _ in range(abs(steps)):
            result = self.zellij.action(action)
            if not result.success:
                return PaneActionResult(False, error=result.error, steps=steps)
            self._sleep(self.settle_delay)

        logger.debug("Moved focus %d step(s) to %s", steps, path)
        return PaneActionResult(True, steps=steps)

    def _agent_args(self, kind: AgentKind) -> List[str]:
        if self.config is None:
            return []
        return self.config.get_agent_args(kind)

    def create_pane(
        self,
        path: str,
        label: Optional[str] = None,
        agent_kind: AgentKind = AgentKind.CLAUDE,
        scripted: bool = False,
    ) -> PaneActionResult:
        """Open a pane in ``path`` running the agent.

        One-shot mode starts the agent as the pane's own command behind a
        short banner. Scripted mode opens a shell pane and types the
        commands into it, for setups that need an interactive shell.
        """
        error = self._precondition_error()
        if error:
            return PaneActionResult(False, error=error)

        command = agent_kind.command
        if self.zellij.which(command) is None:
            return PaneActionResult(False, error=f"Command '{command}' not found in PATH")

        path = os.path.abspath(os.path.expanduser(path))
        name = _LABEL_UNSAFE.sub("-", label) if label else pane_label_for_path(path)
        command_line = shlex.join([command, *self._agent_args(agent_kind)])

        if scripted:
            return self._create_scripted_pane(path, name, agent_kind, command_line)

        banner = (
            f"echo {shlex.quote(f'Starting {agent_kind.value} in worktree: {label or name}')}; "
            f"echo {shlex.quote(f'Path: {path}')}; echo; exec {command_line}"
        )
        result = self.zellij.action(
            "new-pane", "--name", name, "--cwd", path, "--", "bash", "-c", banner,
        )
        if not result.success:
            return PaneActionResult(False, error=result.error or "Failed to create Zellij pane")
        logger.info("Created %s pane %s in %s", agent_kind.value, name, path)
        return PaneActionResult(True)

    def _create_scripted_pane(
        self, path: str, name: str, agent_kind: AgentKind, command_line: str
    ) -> PaneActionResult:
        result = self.zellij.action("new-pane", "--name", name, "--cwd", path)
        if not result.success:
            return PaneActionResult(False, error=result.error or "Failed to create Zellij pane")
        self._sleep(self.pane_settle_delay)

        lines = [
            f"echo {shlex.quote(f'Starting {agent_kind.value}...')}",
            f"cd {shlex.quote(path)}",
            command_line,
        ]
        for line in lines:
            for args in (("write-chars", line), ("write", ENTER_KEY)):
                result = self.zellij.action(*args)
                if not result.success:
                    return PaneActionResult(False, error=result.error or "Failed to type into pane")
            self._sleep(self.settle_delay)

        logger.info("Created scripted %s pane %s in %s", agent_kind.value, name, path)
        return PaneActionResult(True)

    def close_pane_for_worktree(self, path: str) -> PaneActionResult:
        """Close the agent pane for ``path``.

        Zellij only closes the focused pane, so the target is focused
        first and nothing is closed unless that succeeds.
        """
        if self.find_pane_for_worktree(path) is None:
            return PaneActionResult(True, already_closed=True)

        focused = self.focus_pane(path)
        if not focused.success:
            return PaneActionResult(False, error=f"Could not focus pane for {path}: {focused.error}")

        result = self.zellij.action("close-pane")
        if not result.success:
            return PaneActionResult(False, error=result.error or "Failed to close pane")
        logger.info("Closed pane for %s", path)
        return PaneActionResult(True)

    def close_panes_for_worktrees(self, paths: List[str]) -> CloseResult:
        closed = 0
        errors = []
        for path in paths:
            result = self.close_pane_for_worktree(path)
            if result.already_closed:
                continue
            if result.success:
                closed += 1
            else:
                errors.append(f"{path}: {result.error}")
        return CloseResult(success=not errors, closed=closed, errors=errors)

    # =========================================================================
    # Activity probes
    # =========================================================================

    def is_pane_active(self, path: str, agent_kind: AgentKind) -> bool:
        return self.process_table.is_agent_active(agent_kind, path)

    def is_agent_process_running(self, path: str, agent_kind: AgentKind) -> bool:
        return self.process_table.is_agent_running(agent_kind, path)
