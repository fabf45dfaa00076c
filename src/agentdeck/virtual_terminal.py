"""Headless terminal emulator used to classify owned sessions.

Wraps a pyte ``HistoryScreen`` fed through a ``ByteStream`` so the exact
bytes written by the hosted process are interpreted the way a real
terminal would (cursor movement, line clears, redraws). The classifier
then reads rendered lines instead of raw output.
"""

import threading
from typing import Iterator, List

import pyte

from .status_constants import CLASSIFIER_WINDOW_LINES
from .status_patterns import collect_recent_lines_bottom_up

DEFAULT_COLUMNS = 80
DEFAULT_ROWS = 24
DEFAULT_SCROLLBACK = 1000


class VirtualTerminal:
    """Thread-safe pyte screen with scrollback.

    Bytes arrive on the process reader thread while the state check runs
    on its own timer thread, so every access goes through one lock.
    """

    def __init__(
        self,
        columns: int = DEFAULT_COLUMNS,
        rows: int = DEFAULT_ROWS,
        scrollback: int = DEFAULT_SCROLLBACK,
    ):
        self._lock = threading.Lock()
        self._screen = pyte.HistoryScreen(columns, rows, history=scrollback, ratio=0.5)
        self._stream = pyte.ByteStream(self._screen)

    @property
    def columns(self) -> int:
        return self._screen.columns

    @property
    def rows(self) -> int:
        return self._screen.lines

    def feed(self, data: bytes) -> None:
        """Interpret a chunk of raw process output."""
        with self._lock:
            self._stream.feed(data)

    def resize(self, columns: int, rows: int) -> None:
        with self._lock:
            self._screen.resize(lines=rows, columns=columns)

    def _render_history_line(self, line) -> str:
        return "".join(line[x].data for x in range(self._screen.columns)).rstrip()

    def _all_lines(self) -> List[str]:
        history = [self._render_history_line(line) for line in self._screen.history.top]
        display = [row.rstrip() for row in self._screen.display]
        return history + display

    @property
    def line_count(self) -> int:
        """Scrollback lines plus visible rows."""
        with self._lock:
            return len(self._screen.history.top) + self._screen.lines

    def line(self, index: int) -> str:
        """Get one line by index, counting from the oldest scrollback line."""
        with self._lock:
            return self._all_lines()[index]

    def lines(self) -> List[str]:
        """All scrollback and visible lines, top to bottom."""
        with self._lock:
            return self._all_lines()

    def visible_lines(self) -> List[str]:
        """Only the rows currently on screen."""
        with self._lock:
            return [row.rstrip() for row in self._screen.display]

    def _lines_bottom_up(self) -> Iterator[str]:
        for row in reversed(self._screen.display):
            yield row.rstrip()
        for line in reversed(self._screen.history.top):
            yield self._render_history_line(line)

    def bottom_lines(self, limit: int = CLASSIFIER_WINDOW_LINES) -> List[str]:
        """The last ``limit`` lines, skipping blank rows at the bottom.

        Scrollback is rendered only as far up as the window reaches.
        """
        with self._lock:
            return collect_recent_lines_bottom_up(self._lines_bottom_up(), limit)
