"""
Centralized logging configuration for Agentdeck.

All modules log under the ``agentdeck`` logger. The CLI stays quiet
(WARNING) unless configured otherwise; ``watch`` and ``launch`` can add a
log file so background timers leave a trace.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console
from rich.logging import RichHandler

from .config import get_agentdeck_home

ROOT_LOGGER_NAME = "agentdeck"
DEFAULT_LOG_DIR = get_agentdeck_home()
FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
CONSOLE_FORMAT = "%(levelname)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    """Get a logger below the agentdeck namespace."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_logging(
    level: int = logging.WARNING,
    log_file: Optional[Path] = None,
    console: bool = True,
    rich_console: bool = False,
    console_obj: Optional[Console] = None,
) -> logging.Logger:
    """Configure the agentdeck logger.

    Existing handlers are removed first, so calling this twice does not
    duplicate output.

    Args:
        level: Logging level for the agentdeck namespace
        log_file: Optional file to append records to
        console: Whether to log to stderr
        rich_console: Use rich's handler for console output
        console_obj: Console to render to when rich_console is set

    Returns:
        The configured root agentdeck logger
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()
    logger.propagate = False

    if console:
        if rich_console:
            handler: logging.Handler = RichHandler(
                console=console_obj or Console(stderr=True),
                show_path=False,
                rich_tracebacks=True,
            )
        else:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        handler.setLevel(level)
        logger.addHandler(handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    return logger


def setup_daemon_logging(log_file: Optional[Path] = None, level: int = logging.INFO) -> logging.Logger:
    """Logging for long-running timers: file only, INFO by default."""
    if log_file is None:
        log_file = DEFAULT_LOG_DIR / "agentdeck.log"
    setup_logging(level=level, log_file=log_file, console=False)
    return get_logger("daemon")


def setup_cli_logging(level: int = logging.WARNING, log_file: Optional[Path] = None) -> logging.Logger:
    """Logging for interactive commands: rich output on stderr."""
    setup_logging(level=level, log_file=log_file, console=True, rich_console=True)
    return get_logger("cli")


class StructuredLogger:
    """Logger wrapper that appends key=value context to every message.

    Usage:
        log = get_structured_logger("session_manager").with_context(worktree="/repo/wt-a")
        log.info("State changed", old="idle", new="busy")
    """

    def __init__(self, logger: logging.Logger, context: Optional[Dict[str, Any]] = None):
        self._logger = logger
        self._context = dict(context or {})

    def with_context(self, **kwargs) -> "StructuredLogger":
        merged = dict(self._context)
        merged.update(kwargs)
        return StructuredLogger(self._logger, merged)

    def _format(self, message: str, kwargs: Dict[str, Any]) -> str:
        fields = dict(self._context)
        fields.update(kwargs)
        if not fields:
            return message
        rendered = " ".join(f"{key}={value}" for key, value in fields.items())
        return f"{message} [{rendered}]"

    def debug(self, message: str, **kwargs) -> None:
        self._logger.debug(self._format(message, kwargs))

    def info(self, message: str, **kwargs) -> None:
        self._logger.info(self._format(message, kwargs))

    def warning(self, message: str, **kwargs) -> None:
        self._logger.warning(self._format(message, kwargs))

    def error(self, message: str, **kwargs) -> None:
        self._logger.error(self._format(message, kwargs))

    def exception(self, message: str, **kwargs) -> None:
        self._logger.exception(self._format(message, kwargs))


def get_structured_logger(name: str) -> StructuredLogger:
    return StructuredLogger(get_logger(name))
