"""
Unit test configuration for Agentdeck.

Every test gets its own AGENTDECK_HOME and a clean agent-args
environment, so nothing reads or writes the user's ~/.agentdeck.
"""

import logging

import pytest


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    home = tmp_path / "agentdeck-home"
    monkeypatch.setenv("AGENTDECK_HOME", str(home))
    monkeypatch.delenv("AGENTDECK_CONFIG", raising=False)
    monkeypatch.delenv("AGENTDECK_CLAUDE_ARGS", raising=False)
    monkeypatch.delenv("AGENTDECK_CODEX_ARGS", raising=False)
    yield home


@pytest.fixture(autouse=True)
def reset_agentdeck_logger():
    yield
    logger = logging.getLogger("agentdeck")
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)
    logger.propagate = True
