"""
Starting agentdeck inside a fresh Zellij session.

When agentdeck is started outside Zellij it re-launches itself inside a
new, uniquely named session so pane discovery works. The
``AGENTDECK_AUTO_START`` variable tells the shell layout (or the user)
that agentdeck should start right away.
"""

import logging
import os
import subprocess
import time
from pathlib import Path
from typing import Callable, Dict, Optional

from .status_constants import AUTO_START_ENV

logger = logging.getLogger(__name__)

SESSION_PREFIX = "agentdeck"

MINIMAL_ZELLIJ_CONFIG = """\
// Minimal Zellij config for agentdeck
simplified_ui true
default_shell "bash"
pane_frames false
"""


def zellij_config_dir() -> Path:
    env_dir = os.environ.get("ZELLIJ_CONFIG_DIR")
    if env_dir:
        return Path(env_dir)
    return Path.home() / ".config" / "zellij"


def ensure_zellij_config(config_dir: Optional[Path] = None) -> Path:
    """Create a minimal config.kdl unless one exists.

    An existing config is never touched. Returns the config file path.
    """
    config_dir = config_dir or zellij_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    config_path = config_dir / "config.kdl"
    if not config_path.exists():
        config_path.write_text(MINIMAL_ZELLIJ_CONFIG)
        logger.info("Wrote minimal Zellij config to %s", config_path)
    return config_path


def new_session_name() -> str:
    return f"{SESSION_PREFIX}-{int(time.time() * 1000)}"


def build_launch_env(config_dir: Optional[Path] = None) -> Dict[str, str]:
    env = dict(os.environ)
    env["ZELLIJ_CONFIG_DIR"] = str(config_dir or zellij_config_dir())
    env[AUTO_START_ENV] = "1"
    return env


def launch_in_zellij(
    session_name: Optional[str] = None,
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> int:
    """Attach to a new Zellij session and block until it ends.

    Returns:
        Zellij's exit code
    """
    config_dir = zellij_config_dir()
    ensure_zellij_config(config_dir)
    session_name = session_name or new_session_name()
    logger.info("Starting Zellij session %s", session_name)
    result = runner(
        ["zellij", "attach", "--create", session_name],
        cwd=os.getcwd(),
        env=build_launch_env(config_dir),
    )
    return result.returncode
