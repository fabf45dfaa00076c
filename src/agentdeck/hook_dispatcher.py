"""
Status hook dispatcher.

Runs the user's configured shell command when a session enters a state.
Hooks are fire-and-forget: they run on daemon threads, their failures are
logged, and nothing they do can block or break a polling tick.

Hook environment (on top of the parent's):
    AGENTDECK_OLD_STATE        previous state
    AGENTDECK_NEW_STATE        state just entered
    AGENTDECK_WORKTREE         worktree path
    AGENTDECK_WORKTREE_BRANCH  branch checked out there, or "unknown"
    AGENTDECK_SESSION_ID       session id
"""

import logging
import os
import subprocess
import threading
from typing import Dict, Optional, TYPE_CHECKING

from .exceptions import HookExecutionError
from .status_constants import (
    HOOK_ENV_BRANCH,
    HOOK_ENV_NEW_STATE,
    HOOK_ENV_OLD_STATE,
    HOOK_ENV_SESSION_ID,
    HOOK_ENV_WORKTREE,
)

if TYPE_CHECKING:
    from .config import StatusHook
    from .protocols import ConfigProvider, WorktreeProvider
    from .session_manager import Session

logger = logging.getLogger(__name__)

UNKNOWN_BRANCH = "unknown"
HOOK_TIMEOUT = 300  # seconds


class StatusHookDispatcher:
    """Fires configured hooks on state transitions."""

    def __init__(
        self,
        config: "ConfigProvider",
        worktrees: Optional["WorktreeProvider"] = None,
        timeout: float = HOOK_TIMEOUT,
    ):
        self.config = config
        self.worktrees = worktrees
        self.timeout = timeout
        self._pending: Dict[str, threading.Timer] = {}
        self._lock = threading.Lock()

    def _resolve_branch(self, path: str) -> str:
        if self.worktrees is None:
            return UNKNOWN_BRANCH
        try:
            return self.worktrees.get_branch_for_path(path) or UNKNOWN_BRANCH
        except Exception as e:
            logger.debug("Branch lookup failed for %s: %s", path, e)
            return UNKNOWN_BRANCH

    def build_environment(self, old_state: str, new_state: str, session: "Session") -> Dict[str, str]:
        env = dict(os.environ)
        env.update({
            HOOK_ENV_OLD_STATE: str(old_state),
            HOOK_ENV_NEW_STATE: str(new_state),
            HOOK_ENV_WORKTREE: session.worktree_key,
            HOOK_ENV_BRANCH: self._resolve_branch(session.worktree_key),
            HOOK_ENV_SESSION_ID: session.id,
        })
        return env

    def dispatch(self, old_state: str, new_state: str, session: "Session"):
        """Run the hook for ``new_state``, if one is configured and enabled.

        Returns the started thread or pending timer (None when nothing
        runs). A delayed hook replaces any hook still pending for the
        same worktree. The environment, including the branch lookup, is
        built on the hook's own thread so the caller never waits on git.
        """
        hook = self.config.get_status_hook(str(new_state))
        if hook is None or not hook.runnable:
            return None

        key = session.worktree_key
        self.cancel_pending(key)
        args = (hook, old_state, new_state, session)

        if hook.delay > 0:
            timer = threading.Timer(hook.delay, self._run_pending, args=args)
            timer.daemon = True
            with self._lock:
                self._pending[key] = timer
            timer.start()
            return timer

        thread = threading.Thread(
            target=self._run_logged,
            args=args,
            name=f"status-hook-{new_state}",
            daemon=True,
        )
        thread.start()
        return thread

    def cancel_pending(self, worktree_key: str) -> bool:
        """Drop a delayed hook that has not started yet."""
        with self._lock:
            timer = self._pending.pop(worktree_key, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    def cancel_all(self) -> None:
        with self._lock:
            timers = list(self._pending.values())
            self._pending.clear()
        for timer in timers:
            timer.cancel()

    def _run_pending(self, hook: "StatusHook", old_state: str, new_state: str, session: "Session") -> None:
        key = session.worktree_key
        with self._lock:
            if self._pending.get(key) is not threading.current_thread():
                return
            del self._pending[key]
        self._run_logged(hook, old_state, new_state, session)

    def _run_logged(self, hook: "StatusHook", old_state: str, new_state: str, session: "Session") -> None:
        env = self.build_environment(old_state, new_state, session)
        try:
            self.run_hook(hook, session.worktree_key, env)
        except HookExecutionError as e:
            logger.warning("%s", e)

    def run_hook(self, hook: "StatusHook", cwd: str, env: Dict[str, str]) -> None:
        """Run a hook command synchronously.

        Raises:
            HookExecutionError: If the command cannot start, times out,
                or exits non-zero
        """
        try:
            proc = subprocess.Popen(
                hook.command,
                shell=True,
                cwd=cwd if os.path.isdir(cwd) else None,
                env=env,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except OSError as e:
            raise HookExecutionError(f"Status hook failed to start: {e}") from e

        try:
            _, stderr = proc.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            proc.kill()
            proc.communicate()
            raise HookExecutionError(f"Status hook timed out after {self.timeout}s: {hook.command}") from e

        if stderr and stderr.strip():
            logger.info("Status hook stderr: %s", stderr.strip())
        if proc.returncode != 0:
            raise HookExecutionError(
                f"Status hook exited with code {proc.returncode}: {hook.command}"
            )
