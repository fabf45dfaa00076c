"""
Tests for dependency checking.

Tests the dependency_check module which finds the agent and zellij
binaries and picks a default agent.
"""

import subprocess

import pytest
from unittest.mock import patch, MagicMock

from agentdeck.dependency_check import (
    AgentAvailability,
    check_agent_availability,
    check_command,
    find_executable,
    get_default_agent_kind,
    require_command,
    should_offer_agent_choice,
)
from agentdeck.exceptions import CommandNotFoundError
from agentdeck.status_constants import AgentKind


def fake_which(available):
    return lambda name: f"/usr/bin/{name}" if name in available else None


class TestFindExecutable:
    """Tests for find_executable."""

    def test_finds_existing_executable(self):
        """Should find an executable that exists."""
        with patch("shutil.which") as mock_which:
            mock_which.return_value = "/usr/bin/zellij"
            assert find_executable("zellij") == "/usr/bin/zellij"

    def test_returns_none_for_missing(self):
        """Should return None for missing executable."""
        with patch("shutil.which") as mock_which:
            mock_which.return_value = None
            assert find_executable("nonexistent_binary_xyz") is None


class TestCheckCommand:
    """Tests for check_command."""

    def test_available_with_version(self):
        """Should report path and version."""
        with patch("shutil.which", return_value="/usr/bin/zellij"):
            with patch("subprocess.run") as mock_run:
                mock_run.return_value = MagicMock(returncode=0, stdout="zellij 0.40.1\n")
                assert check_command("zellij") == (True, "/usr/bin/zellij", "zellij 0.40.1")

    def test_not_found(self):
        """Should not try to run a missing command."""
        with patch("shutil.which", return_value=None):
            with patch("subprocess.run") as mock_run:
                assert check_command("zellij") == (False, None, None)
                mock_run.assert_not_called()

    def test_version_failure(self):
        """Should still report availability when --version fails."""
        with patch("shutil.which", return_value="/usr/bin/codex"):
            with patch("subprocess.run", side_effect=subprocess.TimeoutExpired("codex", 10)):
                assert check_command("codex") == (True, "/usr/bin/codex", None)

    def test_nonzero_version_exit(self):
        with patch("shutil.which", return_value="/usr/bin/claude"):
            with patch("subprocess.run") as mock_run:
                mock_run.return_value = MagicMock(returncode=1, stdout="")
                assert check_command("claude") == (True, "/usr/bin/claude", None)


class TestRequireCommand:
    """Tests for require_command."""

    def test_returns_path(self):
        with patch("shutil.which", return_value="/usr/bin/zellij"):
            assert require_command("zellij") == "/usr/bin/zellij"

    def test_raises_with_install_hint(self):
        with patch("shutil.which", return_value=None):
            with pytest.raises(CommandNotFoundError) as exc_info:
                require_command("zellij")
        assert exc_info.value.command == "zellij"
        assert "zellij.dev" in str(exc_info.value)

    def test_raises_without_hint(self):
        with patch("shutil.which", return_value=None):
            with pytest.raises(CommandNotFoundError, match="'frobnicate' is required"):
                require_command("frobnicate")


class TestAgentAvailability:
    """Tests for agent selection helpers."""

    def test_both_available(self):
        with patch("shutil.which", side_effect=fake_which({"claude", "codex"})):
            availability = check_agent_availability()
        assert availability.claude and availability.codex
        assert availability.available == [AgentKind.CLAUDE, AgentKind.CODEX]
        assert get_default_agent_kind(availability) == AgentKind.CLAUDE
        assert should_offer_agent_choice(availability)

    def test_only_codex(self):
        with patch("shutil.which", side_effect=fake_which({"codex"})):
            availability = check_agent_availability()
        assert get_default_agent_kind(availability) == AgentKind.CODEX
        assert not should_offer_agent_choice(availability)

    def test_none_available(self):
        availability = AgentAvailability()
        assert get_default_agent_kind(availability) is None
        assert not should_offer_agent_choice(availability)
