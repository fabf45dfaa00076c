"""
Pytest configuration for agentdeck tests.

This module provides shared fixtures and configuration for all tests.
"""

import os
import shutil

import pytest


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers", "requires_zellij: mark test as requiring a zellij binary and session"
    )
    config.addinivalue_line(
        "markers", "requires_pty: mark test as forking a real process on a pty"
    )


def pytest_collection_modifyitems(config, items):
    """Skip marked tests when their prerequisites are missing."""
    no_zellij = shutil.which("zellij") is None or not os.environ.get("ZELLIJ")
    no_pty = os.name != "posix"
    for item in items:
        if no_zellij and "requires_zellij" in item.keywords:
            item.add_marker(pytest.mark.skip(reason="not inside a zellij session"))
        if no_pty and "requires_pty" in item.keywords:
            item.add_marker(pytest.mark.skip(reason="pty needs a POSIX system"))
