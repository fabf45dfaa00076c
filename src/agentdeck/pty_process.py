"""
Agent processes hosted on a pseudo-terminal we own.

The child runs with the worktree as its working directory and the
parent's environment. A reader thread drains the master side in arrival
order and hands every chunk to ``on_data``; when the child goes away
``on_exit`` receives its exit code.
"""

import errno
import fcntl
import logging
import os
import pty
import signal
import struct
import termios
import threading
from typing import Callable, Dict, List, Optional

from .dependency_check import require_command
from .exceptions import ProcessSpawnError

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096
DEFAULT_TERM = "xterm-256color"


def _set_window_size(fd: int, columns: int, rows: int) -> None:
    fcntl.ioctl(fd, termios.TIOCSWINSZ, struct.pack("HHHH", rows, columns, 0, 0))


class PtyProcess:
    """A child process attached to a pty master we read from."""

    def __init__(self, pid: int, master_fd: int, command: str, args: List[str]):
        self.pid = pid
        self.command = command
        self.args = args
        self.exit_code: Optional[int] = None
        self._master_fd = master_fd
        self._reader: Optional[threading.Thread] = None
        self._closed = threading.Event()
        self._write_lock = threading.Lock()

    @classmethod
    def spawn(
        cls,
        command: str,
        args: List[str],
        cwd: str,
        env: Optional[Dict[str, str]] = None,
        columns: int = 80,
        rows: int = 24,
    ) -> "PtyProcess":
        """Fork ``command`` on a new pty.

        Raises:
            CommandNotFoundError: If the command is not in PATH
            ProcessSpawnError: If the fork or working directory fails
        """
        require_command(command)
        if not os.path.isdir(cwd):
            raise ProcessSpawnError(command, cwd, "working directory does not exist")

        child_env = dict(os.environ if env is None else env)
        child_env.setdefault("TERM", DEFAULT_TERM)

        try:
            pid, master_fd = pty.fork()
        except OSError as e:
            raise ProcessSpawnError(command, cwd, str(e)) from e

        if pid == 0:
            # Child: never return into the parent's Python state
            try:
                # Size the slave before exec so the child never sees 0x0
                _set_window_size(pty.STDIN_FILENO, columns, rows)
                os.chdir(cwd)
                os.execvpe(command, [command, *args], child_env)
            except Exception:
                os._exit(127)

        logger.debug("Spawned %s (pid %s) in %s", command, pid, cwd)
        return cls(pid, master_fd, command, list(args))

    def start(
        self,
        on_data: Callable[[bytes], None],
        on_exit: Callable[[Optional[int]], None],
    ) -> None:
        """Start the reader thread. Output before this call stays buffered in the pty."""
        if self._reader is not None:
            return
        self._reader = threading.Thread(
            target=self._read_loop,
            args=(on_data, on_exit),
            name=f"pty-reader-{self.pid}",
            daemon=True,
        )
        self._reader.start()

    def _read_loop(self, on_data, on_exit) -> None:
        while True:
            try:
                data = os.read(self._master_fd, READ_CHUNK_SIZE)
            except OSError as e:
                # EIO is how Linux reports the slave side closing
                if e.errno not in (errno.EIO, errno.EBADF):
                    logger.warning("Read from pid %s failed: %s", self.pid, e)
                break
            if not data:
                break
            try:
                on_data(data)
            except Exception:
                logger.exception("Output handler for pid %s failed", self.pid)

        self.exit_code = self._wait()
        self._close_fd()
        on_exit(self.exit_code)

    def _wait(self) -> Optional[int]:
        try:
            _, status = os.waitpid(self.pid, 0)
        except ChildProcessError:
            return self.exit_code
        if os.WIFEXITED(status):
            return os.WEXITSTATUS(status)
        if os.WIFSIGNALED(status):
            return -os.WTERMSIG(status)
        return None

    def _close_fd(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        try:
            os.close(self._master_fd)
        except OSError:
            pass

    def is_alive(self) -> bool:
        if self._closed.is_set():
            return False
        try:
            os.kill(self.pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            return True
        return True

    def write(self, data: bytes) -> None:
        """Forward input to the child. Writes after exit are dropped."""
        if self._closed.is_set():
            return
        with self._write_lock:
            view = memoryview(data)
            while view:
                written = os.write(self._master_fd, view)
                view = view[written:]

    def resize(self, columns: int, rows: int) -> None:
        if self._closed.is_set():
            return
        _set_window_size(self._master_fd, columns, rows)

    def kill(self, sig: int = signal.SIGTERM) -> None:
        """Signal the child. Raises ProcessLookupError if it is already gone."""
        os.kill(self.pid, sig)

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        """Block until the reader thread has observed the exit."""
        if self._reader is not None:
            self._reader.join(timeout)
        return self.exit_code
