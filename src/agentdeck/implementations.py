"""
Real implementations of protocol interfaces.

These are production implementations that shell out to zellij.
"""

import logging
import os
import shutil
import subprocess
from typing import Optional

from .protocols import CommandResult
from .status_constants import ZELLIJ_ENV_MARKER

logger = logging.getLogger(__name__)

ZELLIJ_BINARY = "zellij"


class RealZellij:
    """Production implementation of MultiplexerInterface using the zellij CLI."""

    def __init__(self, session_name: Optional[str] = None, binary: str = ZELLIJ_BINARY):
        """Initialize with an optional target session.

        Without a session name, zellij targets the session we run inside.
        """
        self.session_name = session_name
        self.binary = binary

    def which(self, command: str) -> Optional[str]:
        return shutil.which(command)

    def is_inside_session(self) -> bool:
        return os.environ.get(ZELLIJ_ENV_MARKER) is not None

    def _base_command(self) -> list:
        cmd = [self.binary]
        if self.session_name:
            cmd.extend(["--session", self.session_name])
        return cmd

    def action(self, *args: str, timeout: float = 10.0) -> CommandResult:
        cmd = self._base_command() + ["action", *args]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning("zellij action %s timed out after %ss", args[0] if args else "", timeout)
            return CommandResult(success=False, error="Command timed out")
        except (OSError, subprocess.SubprocessError) as e:
            return CommandResult(success=False, error=str(e))

        if result.returncode != 0:
            return CommandResult(
                success=False,
                stdout=result.stdout,
                stderr=result.stderr.strip(),
                error=result.stderr.strip() or f"exit status {result.returncode}",
            )
        return CommandResult(success=True, stdout=result.stdout, stderr=result.stderr.strip())
