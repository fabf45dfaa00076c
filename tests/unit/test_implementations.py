"""Tests for implementations module."""

import subprocess
from unittest.mock import patch, MagicMock

import pytest

from agentdeck.implementations import RealZellij
from agentdeck.protocols import MultiplexerInterface


def completed(returncode=0, stdout="", stderr=""):
    result = MagicMock()
    result.returncode = returncode
    result.stdout = stdout
    result.stderr = stderr
    return result


class TestRealZellij:
    """Tests for RealZellij class."""

    def test_satisfies_protocol(self):
        assert isinstance(RealZellij(), MultiplexerInterface)

    def test_action_success(self):
        """Should run `zellij action ...` and return stdout."""
        zellij = RealZellij()
        with patch("subprocess.run", return_value=completed(stdout="layout {}")) as mock_run:
            result = zellij.action("dump-layout")

        assert result.success is True
        assert result.stdout == "layout {}"
        assert mock_run.call_args[0][0] == ["zellij", "action", "dump-layout"]

    def test_action_targets_named_session(self):
        zellij = RealZellij(session_name="agentdeck-1")
        with patch("subprocess.run", return_value=completed()) as mock_run:
            zellij.action("close-pane")

        assert mock_run.call_args[0][0] == [
            "zellij", "--session", "agentdeck-1", "action", "close-pane",
        ]

    def test_action_failure_uses_stderr(self):
        zellij = RealZellij()
        with patch("subprocess.run", return_value=completed(1, stderr="no session\n")):
            result = zellij.action("dump-layout")

        assert result.success is False
        assert result.error == "no session"

    def test_action_failure_without_stderr(self):
        zellij = RealZellij()
        with patch("subprocess.run", return_value=completed(2)):
            result = zellij.action("dump-layout")

        assert result.success is False
        assert result.error == "exit status 2"

    def test_action_timeout(self):
        zellij = RealZellij()
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired("zellij", 10)):
            result = zellij.action("dump-layout")

        assert result.success is False
        assert result.error == "Command timed out"

    def test_action_missing_binary(self):
        zellij = RealZellij(binary="/nonexistent/zellij")
        with patch("subprocess.run", side_effect=FileNotFoundError("No such file")):
            result = zellij.action("dump-layout")

        assert result.success is False
        assert "No such file" in result.error

    def test_inside_session_reads_environment(self, monkeypatch):
        zellij = RealZellij()
        monkeypatch.setenv("ZELLIJ", "0")
        assert zellij.is_inside_session() is True
        monkeypatch.delenv("ZELLIJ")
        assert zellij.is_inside_session() is False

    @pytest.mark.parametrize("found", ["/usr/bin/zellij", None])
    def test_which(self, found):
        with patch("shutil.which", return_value=found):
            assert RealZellij().which("zellij") == found
