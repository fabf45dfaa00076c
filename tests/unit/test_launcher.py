"""Tests for launching agentdeck inside a new Zellij session."""

from unittest.mock import MagicMock

from agentdeck.launcher import (
    MINIMAL_ZELLIJ_CONFIG,
    build_launch_env,
    ensure_zellij_config,
    launch_in_zellij,
    new_session_name,
    zellij_config_dir,
)


class TestZellijConfig:
    """Tests for the Zellij config bootstrap."""

    def test_config_dir_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ZELLIJ_CONFIG_DIR", str(tmp_path))
        assert zellij_config_dir() == tmp_path

    def test_config_dir_default(self, monkeypatch):
        monkeypatch.delenv("ZELLIJ_CONFIG_DIR", raising=False)
        assert zellij_config_dir().parts[-2:] == (".config", "zellij")

    def test_writes_missing_config(self, tmp_path):
        path = ensure_zellij_config(tmp_path / "zellij")
        assert path == tmp_path / "zellij" / "config.kdl"
        assert path.read_text() == MINIMAL_ZELLIJ_CONFIG

    def test_keeps_existing_config(self, tmp_path):
        existing = tmp_path / "config.kdl"
        existing.write_text("theme \"dracula\"\n")

        ensure_zellij_config(tmp_path)

        assert existing.read_text() == "theme \"dracula\"\n"


class TestLaunch:
    """Tests for launch_in_zellij."""

    def test_session_name_prefix(self):
        assert new_session_name().startswith("agentdeck-")

    def test_launch_env(self, tmp_path):
        env = build_launch_env(tmp_path)
        assert env["ZELLIJ_CONFIG_DIR"] == str(tmp_path)
        assert env["AGENTDECK_AUTO_START"] == "1"

    def test_runs_attach_create(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ZELLIJ_CONFIG_DIR", str(tmp_path))
        runner = MagicMock(return_value=MagicMock(returncode=0))

        code = launch_in_zellij("agentdeck-42", runner=runner)

        assert code == 0
        args, kwargs = runner.call_args
        assert args[0] == ["zellij", "attach", "--create", "agentdeck-42"]
        assert kwargs["env"]["AGENTDECK_AUTO_START"] == "1"
        assert (tmp_path / "config.kdl").exists()

    def test_returns_zellij_exit_code(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ZELLIJ_CONFIG_DIR", str(tmp_path))
        runner = MagicMock(return_value=MagicMock(returncode=3))
        assert launch_in_zellij(runner=runner) == 3
