"""
Process-table inspection for agent processes.

Used in two places:
- As the fallback source of pane records when the layout dump fails.
- As the activity heuristic for multiplexer-hosted sessions, which we
  cannot read terminal output from.

The heuristic is approximate by nature (CPU sampling, process age, open
terminals); its thresholds are settings, not correctness guarantees.
"""

import logging
import os
import time
from dataclasses import dataclass
from typing import Iterable, List, Optional

import psutil

from .exceptions import ProbeError
from .layout_parser import UNKNOWN_FOCUS_INDEX, PaneRecord
from .status_constants import AgentKind

logger = logging.getLogger(__name__)


@dataclass
class ProbeSettings:
    """Thresholds for the activity heuristic."""

    # CPU percent above which a process counts as working
    cpu_threshold: float = 0.1
    # A process younger than this with any CPU use counts as working
    recent_start_seconds: float = 30.0
    # Treat an idle process holding a terminal open as active
    count_open_terminals: bool = False
    # Sampling window for cpu_percent
    cpu_sample_interval: float = 0.1


@dataclass
class AgentProcess:
    """Snapshot of one process that looks like an agent."""

    pid: int
    agent_kind: AgentKind
    cmdline: List[str]
    cwd: Optional[str]
    create_time: float


def _mentions_agent(cmdline: Iterable[str], kind: AgentKind) -> bool:
    for part in cmdline:
        if os.path.basename(part) == kind.command:
            return True
    return False


def _same_path(a: Optional[str], b: Optional[str]) -> bool:
    if not a or not b:
        return False
    return os.path.realpath(a) == os.path.realpath(b)


class ProcessTable:
    """Agent-process queries over psutil."""

    def __init__(self, settings: Optional[ProbeSettings] = None):
        self.settings = settings or ProbeSettings()

    def _snapshot(self) -> List[psutil.Process]:
        try:
            return list(psutil.process_iter(["pid", "cmdline", "create_time"]))
        except (psutil.Error, OSError) as e:
            raise ProbeError(f"Cannot read the process table: {e}") from e

    def find_agent_processes(
        self,
        kind: AgentKind,
        cwd: Optional[str] = None,
    ) -> List[AgentProcess]:
        """List processes whose command line mentions the agent command.

        When ``cwd`` is given, processes whose working directory is
        readable and different are skipped. Unreadable working
        directories are kept, since the heuristic is best effort anyway.

        Raises:
            ProbeError: If the process table cannot be read at all
        """
        found = []
        for proc in self._snapshot():
            try:
                cmdline = proc.info.get("cmdline") or []
                if not _mentions_agent(cmdline, kind):
                    continue
                try:
                    proc_cwd = proc.cwd()
                except (psutil.AccessDenied, psutil.ZombieProcess):
                    proc_cwd = None
                if cwd is not None and proc_cwd is not None and not _same_path(proc_cwd, cwd):
                    continue
                found.append(AgentProcess(
                    pid=proc.info["pid"],
                    agent_kind=kind,
                    cmdline=list(cmdline),
                    cwd=proc_cwd,
                    create_time=proc.info.get("create_time") or 0.0,
                ))
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
        return found

    def is_agent_running(self, kind: AgentKind, cwd: Optional[str] = None) -> bool:
        return bool(self.find_agent_processes(kind, cwd))

    def is_agent_active(self, kind: AgentKind, cwd: Optional[str] = None) -> bool:
        """Guess whether an agent is working right now.

        Active when any matching process uses more CPU than the threshold,
        or was started recently and uses any CPU at all. Optionally an
        otherwise quiet process holding a terminal open counts as active.
        """
        processes = self.find_agent_processes(kind, cwd)
        if not processes:
            return False

        now = time.time()
        for agent in processes:
            try:
                cpu = psutil.Process(agent.pid).cpu_percent(interval=self.settings.cpu_sample_interval)
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
            if cpu > self.settings.cpu_threshold:
                return True
            if cpu > 0 and now - agent.create_time < self.settings.recent_start_seconds:
                return True

        if self.settings.count_open_terminals:
            return any(self._holds_terminal(agent.pid) for agent in processes)
        return False

    def _holds_terminal(self, pid: int) -> bool:
        try:
            return psutil.Process(pid).terminal() is not None
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return False

    def synthesize_pane_records(self) -> List[PaneRecord]:
        """Build pane records from the process table.

        One record per (agent kind, working directory); focus index is
        unknown, so these panes cannot be navigated to.
        """
        records: List[PaneRecord] = []
        seen = set()
        for kind in AgentKind:
            for agent in self.find_agent_processes(kind):
                if not agent.cwd:
                    continue
                key = (kind, os.path.realpath(agent.cwd))
                if key in seen:
                    continue
                seen.add(key)
                records.append(PaneRecord(
                    pane_id=f"pid-{agent.pid}",
                    cwd=agent.cwd,
                    command=kind.command,
                    agent_kind=kind,
                    focus_index=UNKNOWN_FOCUS_INDEX,
                    args=agent.cmdline[1:],
                ))
        return records
