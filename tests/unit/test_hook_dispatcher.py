"""
Tests for the status hook dispatcher.

Hooks run real shell commands that write their environment to a file in
the worktree, so the tests check exactly what a user's hook would see.
"""

import logging
import time
from types import SimpleNamespace

import pytest

from agentdeck.config import Configuration, StatusHook
from agentdeck.exceptions import HookExecutionError
from agentdeck.hook_dispatcher import StatusHookDispatcher
from agentdeck.mocks import MockWorktrees

ENV_DUMP = (
    'printf "%s|%s|%s|%s|%s" "$AGENTDECK_OLD_STATE" "$AGENTDECK_NEW_STATE" '
    '"$AGENTDECK_WORKTREE" "$AGENTDECK_WORKTREE_BRANCH" "$AGENTDECK_SESSION_ID" > hook.out'
)


def make_session(path):
    return SimpleNamespace(worktree_key=str(path), id="session-1-abc")


def make_dispatcher(hooks, branches=None):
    config = Configuration(data={"status_hooks": hooks})
    return StatusHookDispatcher(config, MockWorktrees(branches))


class TestDispatch:
    """Tests for dispatch."""

    def test_no_hook_configured(self, tmp_path):
        dispatcher = make_dispatcher({})
        assert dispatcher.dispatch("busy", "idle", make_session(tmp_path)) is None

    def test_disabled_hook(self, tmp_path):
        dispatcher = make_dispatcher({"idle": {"command": "touch ran", "enabled": False}})
        assert dispatcher.dispatch("busy", "idle", make_session(tmp_path)) is None
        assert not (tmp_path / "ran").exists()

    def test_runs_in_worktree_with_environment(self, tmp_path):
        dispatcher = make_dispatcher(
            {"waiting_input": {"command": ENV_DUMP}},
            branches={str(tmp_path): "feature-x"},
        )
        thread = dispatcher.dispatch("busy", "waiting_input", make_session(tmp_path))
        thread.join(5)

        out = (tmp_path / "hook.out").read_text()
        assert out == f"busy|waiting_input|{tmp_path}|feature-x|session-1-abc"

    def test_unknown_branch(self, tmp_path):
        dispatcher = make_dispatcher({"idle": ENV_DUMP})
        dispatcher.dispatch("busy", "idle", make_session(tmp_path)).join(5)
        assert (tmp_path / "hook.out").read_text().split("|")[3] == "unknown"

    def test_branch_lookup_failure_is_unknown(self, tmp_path):
        class BrokenWorktrees:
            def get_branch_for_path(self, path):
                raise RuntimeError("git exploded")

        config = Configuration(data={"status_hooks": {"idle": ENV_DUMP}})
        dispatcher = StatusHookDispatcher(config, BrokenWorktrees())
        dispatcher.dispatch("busy", "idle", make_session(tmp_path)).join(5)
        assert (tmp_path / "hook.out").read_text().split("|")[3] == "unknown"

    def test_branch_lookup_runs_off_the_caller_thread(self, tmp_path):
        class SlowWorktrees:
            def get_branch_for_path(self, path):
                time.sleep(1.0)
                return "slow-branch"

        config = Configuration(data={"status_hooks": {"idle": ENV_DUMP}})
        dispatcher = StatusHookDispatcher(config, SlowWorktrees())

        started = time.monotonic()
        thread = dispatcher.dispatch("busy", "idle", make_session(tmp_path))
        assert time.monotonic() - started < 0.5

        thread.join(5)
        assert (tmp_path / "hook.out").read_text().split("|")[3] == "slow-branch"

    def test_failing_hook_is_logged_not_raised(self, tmp_path, caplog):
        dispatcher = make_dispatcher({"idle": "exit 3"})
        with caplog.at_level(logging.WARNING, logger="agentdeck.hook_dispatcher"):
            dispatcher.dispatch("busy", "idle", make_session(tmp_path)).join(5)
        assert "exited with code 3" in caplog.text


class TestDelayedHooks:
    """Tests for hooks with a delay."""

    def test_delayed_hook_runs_later(self, tmp_path):
        dispatcher = make_dispatcher({"idle": {"command": "touch ran", "delay": 0.05}})
        timer = dispatcher.dispatch("busy", "idle", make_session(tmp_path))
        assert not (tmp_path / "ran").exists()

        timer.join(5)
        deadline = time.time() + 5
        while not (tmp_path / "ran").exists() and time.time() < deadline:
            time.sleep(0.01)
        assert (tmp_path / "ran").exists()

    def test_cancel_pending(self, tmp_path):
        dispatcher = make_dispatcher({"idle": {"command": "touch ran", "delay": 0.2}})
        dispatcher.dispatch("busy", "idle", make_session(tmp_path))

        assert dispatcher.cancel_pending(str(tmp_path))
        time.sleep(0.4)
        assert not (tmp_path / "ran").exists()

    def test_cancel_without_pending(self, tmp_path):
        assert not make_dispatcher({}).cancel_pending(str(tmp_path))

    def test_newer_transition_replaces_pending(self, tmp_path):
        dispatcher = make_dispatcher({
            "idle": {"command": "touch idle-ran", "delay": 0.2},
            "busy": {"command": "touch busy-ran"},
        })
        session = make_session(tmp_path)
        dispatcher.dispatch("busy", "idle", session)
        dispatcher.dispatch("idle", "busy", session).join(5)

        time.sleep(0.4)
        assert (tmp_path / "busy-ran").exists()
        assert not (tmp_path / "idle-ran").exists()


class TestRunHook:
    """Tests for the synchronous runner."""

    def test_nonzero_exit_raises(self, tmp_path):
        dispatcher = make_dispatcher({})
        with pytest.raises(HookExecutionError):
            dispatcher.run_hook(StatusHook(command="false"), str(tmp_path), {})

    def test_timeout_raises(self, tmp_path):
        dispatcher = StatusHookDispatcher(Configuration(data={}), timeout=0.1)
        with pytest.raises(HookExecutionError, match="timed out"):
            dispatcher.run_hook(StatusHook(command="exec sleep 5"), str(tmp_path), {"PATH": "/usr/bin:/bin"})

    def test_success(self, tmp_path):
        dispatcher = make_dispatcher({})
        dispatcher.run_hook(StatusHook(command="true"), str(tmp_path), {"PATH": "/usr/bin:/bin"})
