"""
Periodic background tasks.

Each tick is a complete unit of work: a tick that raises is logged and
the next tick still runs, so one broken probe never stops the loop.
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Run a callable every ``interval`` seconds on a daemon thread.

    - Call .start() to begin ticking (idempotent).
    - Call .stop() to cancel; it waits for an in-flight tick unless called
      from the task's own thread.
    """

    def __init__(
        self,
        interval: float,
        fn: Callable[[], None],
        name: str = "PeriodicTask",
        run_immediately: bool = False,
    ):
        self.interval = interval
        self.name = name
        self._fn = fn
        self._run_immediately = run_immediately
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()  # protect start/stop

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.running:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
            self._thread.start()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        with self._lock:
            thread = self._thread
            if thread is None:
                return
            self._stop_event.set()
            self._thread = None
        if thread is not threading.current_thread():
            thread.join(timeout=timeout)

    def run_once(self) -> None:
        """Run a single tick on the calling thread, logging any failure."""
        try:
            self._fn()
        except Exception:
            logger.exception("%s tick failed", self.name)

    def _run(self) -> None:
        if self._run_immediately and not self._stop_event.is_set():
            self.run_once()
        while not self._stop_event.wait(self.interval):
            self.run_once()
