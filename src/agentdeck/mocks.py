"""
Mock implementations of the external interfaces.

Used by the test suite (and handy for experimenting without Zellij or a
real agent installed). Each mock keeps its state in plain public
attributes so tests can arrange and inspect it directly.
"""

import os
from typing import Callable, Dict, List, Optional, Set, Tuple

from .exceptions import ProbeError
from .layout_parser import PaneRecord
from .protocols import CommandResult
from .status_constants import AgentKind
from .worktree import Worktree


class MockZellij:
    """MultiplexerInterface that records every action instead of running it."""

    def __init__(self, layout: str = "", inside_session: bool = True):
        self.layout = layout
        self.inside_session = inside_session
        self.binaries: Dict[str, str] = {
            "zellij": "/usr/bin/zellij",
            "claude": "/usr/bin/claude",
            "codex": "/usr/bin/codex",
        }
        self.actions: List[Tuple[str, ...]] = []
        # Action name -> error message for actions that should fail
        self.failures: Dict[str, str] = {}

    def which(self, command: str) -> Optional[str]:
        return self.binaries.get(command)

    def is_inside_session(self) -> bool:
        return self.inside_session

    def action(self, *args: str, timeout: float = 10.0) -> CommandResult:
        self.actions.append(tuple(args))
        name = args[0] if args else ""
        if name in self.failures:
            return CommandResult(success=False, error=self.failures[name])
        if name == "dump-layout":
            return CommandResult(success=True, stdout=self.layout)
        return CommandResult(success=True)

    def actions_named(self, name: str) -> List[Tuple[str, ...]]:
        return [a for a in self.actions if a and a[0] == name]

    def navigation_actions(self) -> List[str]:
        return [a[0] for a in self.actions if a and a[0] in ("focus-next-pane", "focus-previous-pane")]


class MockProcessTable:
    """ProcessTableInterface driven by per-path flags."""

    def __init__(self):
        self.running: Set[str] = set()
        self.active: Set[str] = set()
        self.failing: Set[str] = set()
        self.records: List[PaneRecord] = []
        self.probes: List[Tuple[str, Optional[str]]] = []

    @staticmethod
    def _key(cwd: Optional[str]) -> Optional[str]:
        return os.path.realpath(cwd) if cwd else None

    def set_running(self, path: str, active: bool = False) -> None:
        self.running.add(self._key(path))
        if active:
            self.active.add(self._key(path))
        else:
            self.active.discard(self._key(path))

    def set_stopped(self, path: str) -> None:
        self.running.discard(self._key(path))
        self.active.discard(self._key(path))

    def _check(self, cwd: Optional[str]) -> str:
        key = self._key(cwd)
        if key in self.failing:
            raise ProbeError(f"probe failed for {cwd}")
        return key

    def is_agent_running(self, kind: AgentKind, cwd: Optional[str] = None) -> bool:
        self.probes.append(("running", cwd))
        return self._check(cwd) in self.running

    def is_agent_active(self, kind: AgentKind, cwd: Optional[str] = None) -> bool:
        self.probes.append(("active", cwd))
        return self._check(cwd) in self.active

    def synthesize_pane_records(self) -> List[PaneRecord]:
        return list(self.records)


class MockWorktrees:
    """WorktreeProvider over a fixed path -> branch map."""

    def __init__(self, branches: Optional[Dict[str, str]] = None):
        self.branches = dict(branches or {})

    def get_worktrees(self) -> List[Worktree]:
        return [
            Worktree(path=path, branch=f"refs/heads/{branch}", is_main_worktree=i == 0)
            for i, (path, branch) in enumerate(self.branches.items())
        ]

    def get_branch_for_path(self, path: str) -> Optional[str]:
        return self.branches.get(path)


class ManualTask:
    """PeriodicTask stand-in that only ticks when the test says so."""

    def __init__(self, interval: float, fn: Callable[[], None], name: str = "ManualTask", run_immediately: bool = False):
        self.interval = interval
        self.name = name
        self._fn = fn
        self.started = False
        self.stopped = False

    @property
    def running(self) -> bool:
        return self.started and not self.stopped

    def start(self) -> None:
        self.started = True

    def stop(self, timeout: Optional[float] = None) -> None:
        self.stopped = True

    def run_once(self) -> None:
        self._fn()

    def tick(self) -> None:
        """Run one tick if the task is running, like the real timer would."""
        if self.running:
            self._fn()


class ManualTaskFactory:
    """Creates ManualTasks and remembers them by name."""

    def __init__(self):
        self.tasks: List[ManualTask] = []

    def __call__(self, interval, fn, name="ManualTask", run_immediately=False) -> ManualTask:
        task = ManualTask(interval, fn, name=name, run_immediately=run_immediately)
        self.tasks.append(task)
        return task

    def named(self, prefix: str) -> List[ManualTask]:
        return [t for t in self.tasks if t.name.startswith(prefix)]


class FakePtyProcess:
    """PtyProcess stand-in; tests push output and exits by hand."""

    _next_pid = 40000

    def __init__(self, command: str, args: List[str], cwd: str, columns: int = 80, rows: int = 24):
        FakePtyProcess._next_pid += 1
        self.pid = FakePtyProcess._next_pid
        self.command = command
        self.args = list(args)
        self.cwd = cwd
        self.columns = columns
        self.rows = rows
        self.exit_code: Optional[int] = None
        self.written: List[bytes] = []
        self.killed = False
        self._on_data = None
        self._on_exit = None

    def start(self, on_data, on_exit) -> None:
        self._on_data = on_data
        self._on_exit = on_exit

    def emit(self, data: bytes) -> None:
        """Deliver output as if the child had written it."""
        self._on_data(data)

    def exit(self, code: int = 0) -> None:
        """Simulate the child exiting on its own."""
        self.exit_code = code
        self._on_exit(code)

    def is_alive(self) -> bool:
        return self.exit_code is None and not self.killed

    def write(self, data: bytes) -> None:
        self.written.append(data)

    def resize(self, columns: int, rows: int) -> None:
        self.columns = columns
        self.rows = rows

    def kill(self, sig: int = 15) -> None:
        if not self.is_alive():
            raise ProcessLookupError(self.pid)
        self.killed = True

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        return self.exit_code


class FakePtyFactory:
    """Stand-in for PtyProcess.spawn that records every spawn."""

    def __init__(self, error: Optional[Exception] = None):
        self.spawned: List[FakePtyProcess] = []
        self.error = error

    def __call__(self, command, args, cwd, env=None, columns=80, rows=24) -> FakePtyProcess:
        if self.error is not None:
            raise self.error
        process = FakePtyProcess(command, args, cwd, columns=columns, rows=rows)
        self.spawned.append(process)
        return process
