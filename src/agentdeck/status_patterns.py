"""
Terminal state classification patterns.

This module holds the pattern lists and the pure functions used to turn
the bottom of an agent's terminal into one of the session states. Keeping
them here makes them:
- Easy to extend when an agent changes its UI text
- Testable without a terminal emulator or a running agent

Priority order (highest first):
1. Boxed confirmation prompt  -> waiting_input
2. "esc to interrupt" banner  -> busy
3. Anything else              -> idle

An agent can show its interrupt banner while a confirmation box is open;
the prompt wins because the user has to act next.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, List

from .status_constants import (
    CLASSIFIER_WINDOW_LINES,
    STATE_BUSY,
    STATE_IDLE,
    STATE_WAITING_INPUT,
    SessionState,
)


# Ordered: each pass removes what the previous ones could leave behind.
_ANSI_PATTERNS = [
    re.compile(r"\x1b\[[0-9;]*m"),              # SGR colour codes, 24-bit included
    re.compile(r"\x1b\[\?[0-9;]*[hl]"),         # Private mode set/reset
    re.compile(r"\x1b\[[0-9;]*[a-zA-Z]"),       # Other CSI (cursor movement, erase)
    re.compile(r"\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"),  # OSC, BEL or ST terminated
    re.compile(r"\x1b[PX^_].*?\x1b\\", re.DOTALL),     # DCS / SOS / PM / APC
    re.compile(r"\x1b[>=]"),                    # Keypad mode
    re.compile(r"\r"),
    re.compile(r"[\x00-\x09\x0b-\x1f\x7f]"),    # Control bytes except newline
    re.compile(r"^[0-9;]+m", re.MULTILINE),     # Orphaned colour code at line start
    re.compile(r"[0-9]+;[0-9]+;[0-9;]+m"),      # Orphaned 24-bit colour code
]


def strip_ansi(text: str) -> str:
    """Remove terminal control sequences from text.

    Handles cursor movement, colour/attribute codes (including 24-bit
    forms), OS commands, device-control strings, private-mode toggles,
    carriage returns and non-printable control bytes. Newlines survive.

    Args:
        text: Text potentially containing escape sequences

    Returns:
        Plain text suitable for pattern matching
    """
    for pattern in _ANSI_PATTERNS:
        text = pattern.sub("", text)
    return text


@dataclass
class StatusPatterns:
    """All patterns used for terminal state classification."""

    # Confirmation dialogs drawn inside a box - HIGHEST priority.
    # Matched case-sensitively against the stripped text; the leading
    # vertical bar is the box border.
    boxed_prompt_markers: List[str] = field(default_factory=lambda: [
        "│ Do you want",
        "│ Would you like",
    ])

    # Banner shown while the agent is working.
    # Matched against the lowercased text.
    busy_indicators: List[str] = field(default_factory=lambda: [
        "esc to interrupt",
    ])


# Default patterns instance
DEFAULT_PATTERNS = StatusPatterns()


def get_patterns() -> StatusPatterns:
    """Get the classification patterns."""
    return DEFAULT_PATTERNS


def collect_recent_lines(
    lines: List[str],
    limit: int = CLASSIFIER_WINDOW_LINES,
) -> List[str]:
    """Take the last ``limit`` lines, ignoring blank lines at the bottom.

    Walks upwards from the last line. Blank lines are skipped until the
    first non-blank line is found; after that every line counts, so blank
    lines inside a multi-line prompt are preserved.

    Args:
        lines: Terminal lines, top to bottom
        limit: Maximum number of lines to return

    Returns:
        Lines in top-to-bottom order
    """
    return collect_recent_lines_bottom_up(reversed(lines), limit)


def collect_recent_lines_bottom_up(
    lines: Iterable[str],
    limit: int = CLASSIFIER_WINDOW_LINES,
) -> List[str]:
    """Like collect_recent_lines, but ``lines`` arrive bottom first.

    Stops pulling from ``lines`` once the window is full, so a lazy
    iterator over a long scrollback is only read as far as needed.
    """
    window: List[str] = []
    for line in lines:
        if len(window) >= limit:
            break
        if window or line.strip():
            window.append(line)
    window.reverse()
    return window


def classify_text(content: str, patterns: StatusPatterns = None) -> SessionState:
    """Classify already-joined terminal text.

    Args:
        content: Raw terminal text (may contain escape sequences)
        patterns: StatusPatterns to use (defaults to DEFAULT_PATTERNS)

    Returns:
        The session state the text indicates
    """
    patterns = patterns or DEFAULT_PATTERNS
    stripped = strip_ansi(content)

    if any(marker in stripped for marker in patterns.boxed_prompt_markers):
        return STATE_WAITING_INPUT

    lowered = stripped.lower()
    if any(indicator.lower() in lowered for indicator in patterns.busy_indicators):
        return STATE_BUSY

    return STATE_IDLE


def classify_lines(
    lines: Iterable[str],
    patterns: StatusPatterns = None,
    limit: int = CLASSIFIER_WINDOW_LINES,
) -> SessionState:
    """Classify the bottom of a terminal buffer.

    Args:
        lines: Terminal lines, top to bottom
        patterns: StatusPatterns to use (defaults to DEFAULT_PATTERNS)
        limit: Window size, counted after trailing blank lines are dropped

    Returns:
        STATE_WAITING_INPUT, STATE_BUSY or STATE_IDLE
    """
    window = collect_recent_lines(list(lines), limit)
    return classify_text("\n".join(window), patterns)
