"""
Session store and lifecycle manager.

One session per worktree. A session is hosted in one of two ways:

- Owned process: we fork the agent on a pty, feed its output into a
  headless terminal and a bounded history, and classify its state every
  100 ms from the rendered screen.
- Zellij pane: Zellij owns the terminal. We cannot read its output, so a
  single shared timer probes the process table every 2 s instead.

Both timers apply their result under the store lock and re-check that the
session is still stored first, so results computed for a destroyed
session are dropped. The lock is never held across external commands,
hook spawns or event callbacks.
"""

import os
import shutil
import threading
import time
import uuid
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Dict, List, Optional, Union, TYPE_CHECKING

from .events import (
    EventEmitter,
    SESSION_CREATED,
    SESSION_DATA,
    SESSION_DESTROYED,
    SESSION_EXIT,
    SESSION_RESTORE,
    SESSION_STATE_CHANGED,
)
from .exceptions import ProbeError
from .hook_dispatcher import StatusHookDispatcher
from .logging_config import get_structured_logger
from .output_history import OutputHistory
from .pty_process import PtyProcess
from .scheduler import PeriodicTask
from .status_constants import (
    MAX_HISTORY_BYTES,
    PANE_RECONCILE_INTERVAL,
    STATE_CHECK_INTERVAL,
    AgentKind,
    HostingMode,
    SessionState,
)
from .status_patterns import classify_lines
from .virtual_terminal import VirtualTerminal

if TYPE_CHECKING:
    from .layout_parser import PaneRecord
    from .protocols import ConfigProvider, WorktreeProvider
    from .zellij import ZellijPaneDirectory

log = get_structured_logger("session_manager")


def normalize_worktree_key(path: str) -> str:
    return os.path.abspath(os.path.expanduser(path))


def new_session_id() -> str:
    return f"session-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


def pane_session_id(pane_id: str) -> str:
    return f"zellij-{pane_id}"


@dataclass
class OwnedProcessHost:
    """A pty process we spawned plus the terminal its output renders into."""

    process: PtyProcess
    terminal: VirtualTerminal

    @property
    def hosting_mode(self) -> HostingMode:
        return HostingMode.OWNED_PROCESS


@dataclass
class MultiplexerPaneHost:
    """An agent running in a Zellij pane we did not spawn."""

    pane_id: Optional[str] = None

    @property
    def hosting_mode(self) -> HostingMode:
        return HostingMode.MULTIPLEXER_PANE


@dataclass
class Session:
    id: str
    worktree_key: str
    agent_kind: AgentKind
    host: Union[OwnedProcessHost, MultiplexerPaneHost]
    state: SessionState
    output_history: OutputHistory = field(default_factory=OutputHistory)
    last_activity: float = field(default_factory=time.time)
    is_foreground: bool = False
    poll_task: Optional[PeriodicTask] = None
    alive: bool = True

    @property
    def hosting_mode(self) -> HostingMode:
        return self.host.hosting_mode

    @property
    def is_owned(self) -> bool:
        return isinstance(self.host, OwnedProcessHost)

    @property
    def process(self) -> Optional[PtyProcess]:
        return self.host.process if isinstance(self.host, OwnedProcessHost) else None

    @property
    def terminal(self) -> Optional[VirtualTerminal]:
        return self.host.terminal if isinstance(self.host, OwnedProcessHost) else None

    @property
    def pane_id(self) -> Optional[str]:
        return self.host.pane_id if isinstance(self.host, MultiplexerPaneHost) else None


def _default_viewport():
    size = shutil.get_terminal_size((80, 24))
    return size.columns, size.lines


class SessionManager:
    """Owns every session, both timers and the event registry.

    Call ``destroy()`` on shutdown; it stops all timers and kills every
    owned process.
    """

    def __init__(
        self,
        config: "ConfigProvider",
        worktrees: Optional["WorktreeProvider"] = None,
        panes: Optional["ZellijPaneDirectory"] = None,
        hook_dispatcher: Optional[StatusHookDispatcher] = None,
        process_factory: Callable[..., PtyProcess] = PtyProcess.spawn,
        terminal_factory: Callable[..., VirtualTerminal] = VirtualTerminal,
        task_factory: Callable[..., PeriodicTask] = PeriodicTask,
        viewport: Callable[[], tuple] = _default_viewport,
        state_check_interval: float = STATE_CHECK_INTERVAL,
        reconcile_interval: float = PANE_RECONCILE_INTERVAL,
        max_history_bytes: int = MAX_HISTORY_BYTES,
    ):
        self.config = config
        self.worktrees = worktrees
        self.panes = panes
        self.hooks = hook_dispatcher or StatusHookDispatcher(config, worktrees)
        self.events = EventEmitter()
        self._process_factory = process_factory
        self._terminal_factory = terminal_factory
        self._task_factory = task_factory
        self._viewport = viewport
        self.state_check_interval = state_check_interval
        self.reconcile_interval = reconcile_interval
        self.max_history_bytes = max_history_bytes

        self._sessions: Dict[str, Session] = {}
        self._lock = threading.RLock()
        # Serializes creation so a key never gets two processes
        self._create_lock = threading.Lock()
        self._pane_task: Optional[PeriodicTask] = None

    # =========================================================================
    # Events
    # =========================================================================

    def on(self, event: str, callback: Callable) -> None:
        self.events.on(event, callback)

    def off(self, event: str, callback: Callable) -> None:
        self.events.off(event, callback)

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_session(self, worktree_key: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(normalize_worktree_key(worktree_key))

    def get_all_sessions(self) -> List[Session]:
        with self._lock:
            return list(self._sessions.values())

    def _is_current(self, session: Session) -> bool:
        """Whether ``session`` is still the stored, live session for its key."""
        return session.alive and self._sessions.get(session.worktree_key) is session

    # =========================================================================
    # Creation
    # =========================================================================

    def create_session(
        self,
        worktree_key: str,
        agent_kind: AgentKind = AgentKind.CLAUDE,
        hosting_mode: HostingMode = HostingMode.OWNED_PROCESS,
        pane_id: Optional[str] = None,
    ) -> Session:
        """Return the session for a worktree, creating it if needed.

        An existing session is returned as is; the requested agent kind
        and hosting mode only apply to a new session.

        Raises:
            CommandNotFoundError: If the agent command is not installed
            ProcessSpawnError: If the owned process cannot be started
        """
        key = normalize_worktree_key(worktree_key)
        with self._create_lock:
            existing = self.get_session(key)
            if existing is not None:
                return existing

            if hosting_mode == HostingMode.MULTIPLEXER_PANE:
                session = self._new_pane_session(key, agent_kind, pane_id)
            else:
                session = self._new_owned_session(key, agent_kind)

            with self._lock:
                self._sessions[key] = session

        log.info(
            "Session created",
            worktree=key,
            session_id=session.id,
            agent=agent_kind.value,
            mode=session.hosting_mode.value,
        )
        self.events.emit(SESSION_CREATED, session)

        if session.is_owned:
            session.process.start(
                on_data=partial(self._on_data, session),
                on_exit=partial(self._on_exit, session),
            )
            session.poll_task.start()
        else:
            self.start_pane_monitoring()
        return session

    def _new_owned_session(self, key: str, agent_kind: AgentKind) -> Session:
        columns, rows = self._viewport()
        args = self.config.get_agent_args(agent_kind)
        process = self._process_factory(
            agent_kind.command, args, cwd=key, columns=columns, rows=rows,
        )
        terminal = self._terminal_factory(columns=columns, rows=rows)
        session = Session(
            id=new_session_id(),
            worktree_key=key,
            agent_kind=agent_kind,
            host=OwnedProcessHost(process=process, terminal=terminal),
            state=SessionState.BUSY,
            output_history=OutputHistory(self.max_history_bytes),
        )
        session.poll_task = self._task_factory(
            self.state_check_interval,
            partial(self.check_session_state, key),
            name=f"state-check-{session.id}",
        )
        return session

    def _new_pane_session(self, key: str, agent_kind: AgentKind, pane_id: Optional[str]) -> Session:
        return Session(
            id=pane_session_id(pane_id) if pane_id else new_session_id(),
            worktree_key=key,
            agent_kind=agent_kind,
            host=MultiplexerPaneHost(pane_id=pane_id),
            state=SessionState.IDLE,
            output_history=OutputHistory(self.max_history_bytes),
        )

    # =========================================================================
    # Owned process I/O
    # =========================================================================

    def _on_data(self, session: Session, data: bytes) -> None:
        if not session.alive:
            return
        session.terminal.feed(data)
        # Paired with set_active: a chunk is either in the restore
        # snapshot or emitted live, never both
        with self._lock:
            session.output_history.append(data)
            foreground = session.is_foreground
        session.last_activity = time.time()
        if foreground:
            self.events.emit(SESSION_DATA, session, data)

    def _on_exit(self, session: Session, exit_code: Optional[int]) -> None:
        with self._lock:
            if not self._is_current(session):
                return
            session.state = SessionState.IDLE
        log.info("Agent exited", worktree=session.worktree_key, exit_code=exit_code)
        self.events.emit(SESSION_STATE_CHANGED, session)
        self.destroy_session(session.worktree_key)
        self.events.emit(SESSION_EXIT, session)

    def write_input(self, worktree_key: str, data: bytes) -> bool:
        """Forward keystrokes to an owned session's process."""
        session = self.get_session(worktree_key)
        if session is None or not session.is_owned or not session.alive:
            return False
        try:
            session.process.write(data)
        except OSError as e:
            log.warning("Write failed", worktree=session.worktree_key, error=e)
            return False
        return True

    def resize(self, worktree_key: str, columns: int, rows: int) -> None:
        session = self.get_session(worktree_key)
        if session is None or not session.is_owned:
            return
        session.terminal.resize(columns, rows)
        try:
            session.process.resize(columns, rows)
        except OSError as e:
            log.debug("Resize failed", worktree=session.worktree_key, error=e)

    def set_active(self, worktree_key: str, active: bool) -> None:
        """Mark a session as the one being viewed.

        Becoming active with recorded output emits a restore event carrying
        every retained chunk, oldest first.
        """
        session = self.get_session(worktree_key)
        if session is None:
            return
        with self._lock:
            session.is_foreground = active
            chunks = session.output_history.chunks() if active else []
        if chunks:
            self.events.emit(SESSION_RESTORE, session, chunks)

    # =========================================================================
    # State application
    # =========================================================================

    def _apply_state(self, session: Session, new_state: SessionState, touch: bool = False) -> bool:
        with self._lock:
            if not self._is_current(session):
                return False
            old_state = session.state
            if old_state == new_state:
                return False
            session.state = new_state
            if touch:
                session.last_activity = time.time()

        log.debug("State changed", worktree=session.worktree_key, old=old_state.value, new=new_state.value)
        # A destroy can land between the check above and here
        if not session.alive:
            return False
        self.hooks.dispatch(old_state, new_state, session)
        if not session.alive:
            return False
        self.events.emit(SESSION_STATE_CHANGED, session)
        return True

    def check_session_state(self, worktree_key: str) -> Optional[SessionState]:
        """One classification tick for an owned session.

        Returns the classified state, or None when the session is gone.
        """
        session = self.get_session(worktree_key)
        if session is None or not session.is_owned or not session.alive:
            return None
        new_state = classify_lines(session.terminal.bottom_lines())
        self._apply_state(session, new_state)
        return new_state

    # =========================================================================
    # Zellij panes
    # =========================================================================

    def _inside_zellij(self) -> bool:
        return self.panes is not None and self.panes.is_inside_host_session()

    def discover_existing_sessions(self) -> List[Session]:
        """Track every agent pane in the current Zellij session.

        Returns the sessions created by this call.
        """
        if not self._inside_zellij():
            return []
        try:
            panes = self.panes.list_panes()
        except Exception as e:
            log.warning("Pane discovery failed", error=e)
            return []

        created = []
        for pane in panes:
            if not pane.cwd or self.get_session(pane.cwd) is not None:
                continue
            created.append(self._session_for_pane(pane))
        if created:
            log.info("Discovered pane sessions", count=len(created))
        return created

    def restore_session_for_worktree(self, worktree_key: str) -> Optional[Session]:
        existing = self.get_session(worktree_key)
        if existing is not None:
            return existing
        if not self._inside_zellij():
            return None
        try:
            pane = self.panes.find_pane_for_worktree(worktree_key)
        except Exception as e:
            log.warning("Pane lookup failed", worktree=worktree_key, error=e)
            return None
        if pane is None:
            return None
        return self._session_for_pane(pane, worktree_key)

    def _session_for_pane(self, pane: "PaneRecord", worktree_key: Optional[str] = None) -> Session:
        return self.create_session(
            worktree_key or pane.cwd,
            agent_kind=pane.agent_kind,
            hosting_mode=HostingMode.MULTIPLEXER_PANE,
            pane_id=pane.pane_id,
        )

    @property
    def pane_monitoring(self) -> bool:
        return self._pane_task is not None

    def start_pane_monitoring(self) -> None:
        with self._lock:
            if self._pane_task is not None:
                return
            self._pane_task = self._task_factory(
                self.reconcile_interval,
                self.reconcile_pane_sessions,
                name="pane-reconcile",
            )
            task = self._pane_task
        task.start()

    def stop_pane_monitoring(self) -> None:
        with self._lock:
            task = self._pane_task
            self._pane_task = None
        if task is not None:
            task.stop()

    def reconcile_pane_sessions(self) -> None:
        """One reconciliation tick over every pane session.

        Active agent process means busy, anything else idle. A probe that
        fails skips its session for this tick only.
        """
        if self.panes is None:
            return
        with self._lock:
            sessions = [s for s in self._sessions.values() if not s.is_owned and s.alive]

        for session in sessions:
            key = session.worktree_key
            try:
                if self.panes.is_pane_active(key, session.agent_kind):
                    new_state = SessionState.BUSY
                else:
                    if not self.panes.is_agent_process_running(key, session.agent_kind):
                        log.debug("Agent process gone", worktree=key)
                    new_state = SessionState.IDLE
            except ProbeError as e:
                log.warning("Pane probe failed", worktree=key, error=e)
                continue
            self._apply_state(session, new_state, touch=True)

    # =========================================================================
    # Teardown
    # =========================================================================

    def destroy_session(self, worktree_key: str) -> None:
        """Stop and forget a session. Destroying an unknown key is a no-op."""
        key = normalize_worktree_key(worktree_key)
        with self._lock:
            session = self._sessions.get(key)
            if session is None or not session.alive:
                return
            session.alive = False

        if session.poll_task is not None:
            session.poll_task.stop()
        if session.is_owned:
            try:
                session.process.kill()
            except OSError as e:
                # Usually the process has already exited
                log.debug("Kill failed", worktree=key, error=e)
        self.hooks.cancel_pending(key)

        with self._lock:
            if self._sessions.get(key) is session:
                del self._sessions[key]
        log.info("Session destroyed", worktree=key, session_id=session.id)
        self.events.emit(SESSION_DESTROYED, session)

    def destroy(self) -> None:
        """Stop every timer and destroy every session."""
        self.stop_pane_monitoring()
        for session in self.get_all_sessions():
            self.destroy_session(session.worktree_key)
        self.hooks.cancel_all()
