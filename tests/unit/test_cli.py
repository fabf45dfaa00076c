"""
Unit tests for CLI using Typer.

These tests verify that the CLI correctly handles commands
using Typer's CliRunner. Zellij is replaced with MockZellij by
patching the pane-directory builder.
"""

import os
import pty
import re
import signal
import termios
import threading
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from agentdeck.cli import app
from agentdeck.cli.session import _forward_input, _install_resize_handler, _raw_mode
from agentdeck.config import CONFIG_TEMPLATE, Configuration
from agentdeck.dependency_check import AgentAvailability
from agentdeck.mocks import (
    FakePtyFactory,
    FakePtyProcess,
    ManualTaskFactory,
    MockProcessTable,
    MockWorktrees,
    MockZellij,
)
from agentdeck.session_manager import SessionManager
from agentdeck.status_constants import AgentKind
from agentdeck.zellij import ZellijPaneDirectory


def strip_ansi(text: str) -> str:
    """Remove ANSI escape codes from text."""
    return re.sub(r'\x1b\[[0-9;]*m', '', text)


runner = CliRunner()

LAYOUT = """\
cwd "/r"
pane command="claude" cwd="a" focus=true
pane command="bash"
pane command="codex" cwd="b"
"""


@pytest.fixture
def zellij():
    return MockZellij(layout=LAYOUT)


@pytest.fixture
def processes():
    return MockProcessTable()


@pytest.fixture
def directory(zellij, processes):
    return ZellijPaneDirectory(zellij, processes, sleep=lambda _: None)


@pytest.fixture
def patched_panes(directory):
    with patch("agentdeck.cli.panes.build_pane_directory", return_value=directory):
        yield directory


class TestCLICommands:
    """Test CLI commands"""

    def test_main_help(self):
        """Main help shows all commands"""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        output = strip_ansi(result.stdout)
        for command in ("launch", "watch", "run", "panes", "focus", "new-pane", "close", "agents", "config"):
            assert command in output

    def test_run_help(self):
        result = runner.invoke(app, ["run", "--help"])
        assert result.exit_code == 0
        assert "--agent" in strip_ansi(result.stdout)


class TestConfigCommands:
    """Test config subcommands"""

    def test_config_path(self, isolated_home):
        result = runner.invoke(app, ["config", "path"])
        assert result.exit_code == 0
        assert result.stdout.strip() == str(isolated_home / "config.yaml")

    def test_config_init_creates_template(self, isolated_home):
        result = runner.invoke(app, ["config", "init"])
        assert result.exit_code == 0
        assert (isolated_home / "config.yaml").read_text() == CONFIG_TEMPLATE

    def test_config_init_refuses_overwrite(self, isolated_home):
        isolated_home.mkdir(parents=True)
        (isolated_home / "config.yaml").write_text("zellij: {}\n")

        result = runner.invoke(app, ["config", "init"])

        assert result.exit_code == 1
        assert "already exists" in strip_ansi(result.stdout)
        assert (isolated_home / "config.yaml").read_text() == "zellij: {}\n"

    def test_config_init_force(self, isolated_home):
        isolated_home.mkdir(parents=True)
        (isolated_home / "config.yaml").write_text("zellij: {}\n")

        result = runner.invoke(app, ["config", "init", "--force"])

        assert result.exit_code == 0
        assert (isolated_home / "config.yaml").read_text() == CONFIG_TEMPLATE

    def test_config_show_without_file(self):
        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 0
        assert "No config file found" in strip_ansi(result.stdout)

    def test_config_show_lists_hooks(self, isolated_home):
        isolated_home.mkdir(parents=True)
        (isolated_home / "config.yaml").write_text(
            "status_hooks:\n"
            "  waiting_input:\n"
            "    command: notify-send hi\n"
            "    delay: 2\n"
        )

        result = runner.invoke(app, ["config"])

        output = strip_ansi(result.stdout)
        assert result.exit_code == 0
        assert "waiting_input: notify-send hi" in output
        assert "delay 2s" in output


class TestAgentsCommand:
    """Test the agents command"""

    def test_reports_installed_agents(self):
        availability = AgentAvailability(claude=True, available=[AgentKind.CLAUDE])

        def check(name, version_flag="--version"):
            if name == "claude":
                return True, "/usr/bin/claude", "1.0.0"
            return False, None, None

        with patch("agentdeck.dependency_check.check_agent_availability", return_value=availability), \
             patch("agentdeck.dependency_check.check_command", side_effect=check):
            result = runner.invoke(app, ["agents"])

        output = strip_ansi(result.stdout)
        assert result.exit_code == 0
        assert "claude: /usr/bin/claude" in output
        assert "codex: not found" in output
        assert "Default agent: claude" in output

    def test_fails_without_agents(self):
        with patch("agentdeck.dependency_check.check_agent_availability", return_value=AgentAvailability()), \
             patch("agentdeck.dependency_check.check_command", return_value=(False, None, None)):
            result = runner.invoke(app, ["agents"])

        assert result.exit_code == 1
        assert "No agent installed" in strip_ansi(result.stdout)


class TestPaneCommands:
    """Test panes, focus, new-pane and close"""

    def test_panes_lists_agent_panes(self, patched_panes):
        result = runner.invoke(app, ["panes"])
        output = strip_ansi(result.stdout)
        assert result.exit_code == 0
        assert "/r/a" in output
        assert "/r/b" in output

    def test_panes_outside_zellij(self, patched_panes, zellij):
        zellij.inside_session = False
        result = runner.invoke(app, ["panes"])
        assert result.exit_code == 1
        assert "Not running inside a Zellij session" in strip_ansi(result.stdout)

    def test_focus_navigates(self, patched_panes, zellij):
        result = runner.invoke(app, ["focus", "/r/b"])
        assert result.exit_code == 0
        assert zellij.navigation_actions() == ["focus-next-pane", "focus-next-pane"]

    def test_focus_unknown_worktree(self, patched_panes):
        result = runner.invoke(app, ["focus", "/r/zzz"])
        assert result.exit_code == 1
        assert "No pane found" in strip_ansi(result.stdout)

    def test_new_pane(self, patched_panes, zellij):
        result = runner.invoke(app, ["new-pane", "/r/x", "--agent", "codex", "--label", "feat"])

        assert result.exit_code == 0
        (action,) = zellij.actions_named("new-pane")
        assert action[:5] == ("new-pane", "--name", "feat", "--cwd", "/r/x")
        assert "exec codex" in action[-1]

    def test_new_pane_scripted(self, patched_panes, zellij):
        result = runner.invoke(app, ["new-pane", "/r/x", "--agent", "claude", "--scripted"])

        assert result.exit_code == 0
        assert ("write-chars", "claude") in zellij.actions

    def test_new_pane_missing_agent(self, patched_panes, zellij):
        del zellij.binaries["codex"]
        result = runner.invoke(app, ["new-pane", "/r/x", "--agent", "codex"])
        assert result.exit_code == 1
        assert "not found in PATH" in strip_ansi(result.stdout)

    def test_close_panes(self, patched_panes, zellij):
        result = runner.invoke(app, ["close", "/r/b", "/r/gone"])

        assert result.exit_code == 0
        assert len(zellij.actions_named("close-pane")) == 1
        assert "Closed 1 pane(s)" in strip_ansi(result.stdout)


class TestWatchCommand:
    """Test the watch command"""

    def test_requires_zellij_session(self, directory, zellij):
        zellij.inside_session = False
        with patch("agentdeck.cli._shared.build_pane_directory", return_value=directory):
            result = runner.invoke(app, ["watch", "--once"])
        assert result.exit_code == 1

    def test_once_prints_sessions(self, directory, processes):
        processes.set_running("/r/a", active=True)
        with patch("agentdeck.cli._shared.build_pane_directory", return_value=directory):
            result = runner.invoke(app, ["watch", "--once"])

        output = strip_ansi(result.stdout)
        assert result.exit_code == 0
        assert "/r/a" in output
        assert "/r/b" in output


class ChattyPty(FakePtyProcess):
    """Prints a banner as soon as it starts, then exits shortly after."""

    exit_code_on_finish = 0

    def start(self, on_data, on_exit):
        super().start(on_data, on_exit)
        self.emit(b"hello from the agent\r\n")
        threading.Timer(0.2, self.exit, args=(self.exit_code_on_finish,)).start()


class ChattyFactory(FakePtyFactory):
    def __init__(self, exit_code=0):
        super().__init__()
        self.exit_code = exit_code

    def __call__(self, command, args, cwd, env=None, columns=80, rows=24):
        process = ChattyPty(command, args, cwd, columns=columns, rows=rows)
        process.exit_code_on_finish = self.exit_code
        self.spawned.append(process)
        return process


def fake_manager_builder(spawner):
    def build(config, panes=None):
        return SessionManager(
            config,
            worktrees=MockWorktrees(),
            process_factory=spawner,
            task_factory=ManualTaskFactory(),
            viewport=lambda: (80, 24),
        )
    return build


class TestRunCommand:
    """Test the run command"""

    def test_replays_output_written_before_attach(self, tmp_path):
        spawner = ChattyFactory()
        with patch("agentdeck.cli._shared.build_session_manager", side_effect=fake_manager_builder(spawner)):
            result = runner.invoke(app, ["run", str(tmp_path), "--agent", "claude"])

        assert result.exit_code == 0
        assert "hello from the agent" in result.stdout
        assert spawner.spawned[0].cwd == str(tmp_path)

    def test_exit_code_is_propagated(self, tmp_path):
        spawner = ChattyFactory(exit_code=3)
        with patch("agentdeck.cli._shared.build_session_manager", side_effect=fake_manager_builder(spawner)):
            result = runner.invoke(app, ["run", str(tmp_path), "--agent", "claude"])

        assert result.exit_code == 3

    def test_spawn_failure_exits_with_error(self, tmp_path):
        from agentdeck.exceptions import CommandNotFoundError

        spawner = FakePtyFactory(error=CommandNotFoundError("claude"))
        with patch("agentdeck.cli._shared.build_session_manager", side_effect=fake_manager_builder(spawner)):
            result = runner.invoke(app, ["run", str(tmp_path), "--agent", "claude"])

        assert result.exit_code == 1


class TestRunTerminalPlumbing:
    """Stdin forwarding, raw mode and resize handling behind run"""

    @pytest.fixture
    def spawner(self):
        return FakePtyFactory()

    @pytest.fixture
    def manager(self, spawner):
        manager = SessionManager(
            Configuration(data={}),
            worktrees=MockWorktrees(),
            process_factory=spawner,
            task_factory=ManualTaskFactory(),
            viewport=lambda: (80, 24),
        )
        yield manager
        manager.destroy()

    def test_keystrokes_reach_the_agent(self, manager, spawner):
        manager.create_session("/r/a")
        read_fd, write_fd = os.pipe()
        os.write(write_fd, b"yes\r")
        os.close(write_fd)
        try:
            _forward_input(manager, "/r/a", read_fd, threading.Event())
        finally:
            os.close(read_fd)

        assert b"".join(spawner.spawned[0].written) == b"yes\r"

    def test_forwarding_stops_once_agent_exits(self, manager, spawner):
        manager.create_session("/r/a")
        read_fd, write_fd = os.pipe()
        os.write(write_fd, b"late")
        finished = threading.Event()
        finished.set()
        try:
            _forward_input(manager, "/r/a", read_fd, finished)
        finally:
            os.close(read_fd)
            os.close(write_fd)

        assert spawner.spawned[0].written == []

    @pytest.mark.requires_pty
    def test_raw_mode_is_restored(self):
        master, slave = pty.openpty()
        try:
            before = termios.tcgetattr(slave)
            with _raw_mode(slave):
                assert not termios.tcgetattr(slave)[3] & termios.ECHO
            assert termios.tcgetattr(slave) == before
        finally:
            os.close(master)
            os.close(slave)

    def test_raw_mode_without_terminal_is_a_no_op(self):
        with _raw_mode(None):
            pass

    def test_window_resize_reaches_session(self, manager, spawner, monkeypatch):
        monkeypatch.setenv("COLUMNS", "132")
        monkeypatch.setenv("LINES", "40")
        manager.create_session("/r/a")
        previous = _install_resize_handler(manager, "/r/a")
        try:
            os.kill(os.getpid(), signal.SIGWINCH)
        finally:
            signal.signal(signal.SIGWINCH, previous or signal.SIG_DFL)

        process = spawner.spawned[0]
        assert (process.columns, process.rows) == (132, 40)
