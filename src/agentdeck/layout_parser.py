"""
Parser for ``zellij action dump-layout`` output.

The dump is a KDL document, but we only rely on a few line shapes and
treat everything else as noise, since the format changes between Zellij
releases:

    cwd "/home/me/repo"                       -> working directory context
    tab name="main" focus=true {              -> tab boundary
    pane command="claude" cwd="wt-a" focus=true {
    args "--model" "opus"                     -> arguments of the pane above

Focus index: every pane line with a ``command=`` attribute gets the next
index, including panes whose command is not an agent. The index has to
follow Zellij's real pane order because it is turned into a number of
focus-next/focus-previous actions.
"""

import os
import re
import shlex
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from .exceptions import LayoutParseError
from .status_constants import AGENT_COMMANDS, AgentKind, agent_kind_for_command

_ATTR_PATTERN = re.compile(r'([A-Za-z_][\w-]*)=(?:"((?:[^"\\]|\\.)*)"|(\S+))')
_CWD_LINE = re.compile(r'^cwd\s+"((?:[^"\\]|\\.)*)"')
_PANE_LINE = re.compile(r"^pane\b")
_TAB_LINE = re.compile(r"^tab\b")
_ARGS_LINE = re.compile(r"^args\s+(.*?)\s*\{?\s*$")

# Blocks describing layouts Zellij may switch to, not panes that exist
_TEMPLATE_BLOCKS = ("new_tab_template", "swap_tiled_layout", "swap_floating_layout")

UNKNOWN_FOCUS_INDEX = -1


@dataclass
class PaneRecord:
    """One agent-bearing pane reported by the multiplexer."""

    pane_id: str
    cwd: str
    command: str
    agent_kind: AgentKind
    focus_index: int = UNKNOWN_FOCUS_INDEX
    args: List[str] = field(default_factory=list)
    name: Optional[str] = None
    tab: Optional[str] = None

    @property
    def command_line(self) -> str:
        return " ".join([self.command, *self.args])

    @property
    def navigable(self) -> bool:
        """Whether focus navigation by index is possible for this pane."""
        return self.focus_index >= 0


@dataclass
class FocusedPane:
    """The pane that currently has focus."""

    cwd: str
    focus_index: int
    command: Optional[str] = None


@dataclass
class LayoutSnapshot:
    """Everything one dump tells us."""

    panes: List[PaneRecord] = field(default_factory=list)
    focused: Optional[FocusedPane] = None
    command_pane_count: int = 0


def parse_attributes(line: str) -> Dict[str, str]:
    """Parse ``key=value`` / ``key="value"`` pairs from a KDL node line."""
    attrs = {}
    for match in _ATTR_PATTERN.finditer(line):
        key, quoted, bare = match.groups()
        if quoted is not None:
            attrs[key] = quoted.replace('\\"', '"').replace("\\\\", "\\")
        else:
            attrs[key] = bare.rstrip("{").strip()
    return attrs


def resolve_cwd(path: str, context: Optional[str]) -> str:
    """Resolve a possibly relative path against the current cwd context."""
    path = os.path.expanduser(path)
    if not os.path.isabs(path) and context:
        path = os.path.join(context, path)
    return os.path.normpath(path) if path else path


def _parse_args(rest: str) -> List[str]:
    try:
        return shlex.split(rest)
    except ValueError:
        return rest.split()


def parse_layout(
    text: str,
    agent_commands: Iterable[str] = AGENT_COMMANDS,
) -> LayoutSnapshot:
    """Scan a layout dump once and collect agent panes plus focus.

    Args:
        text: Output of ``zellij action dump-layout``
        agent_commands: Command names whose panes are kept

    Returns:
        LayoutSnapshot with agent panes in layout order

    Raises:
        LayoutParseError: If the dump is empty
    """
    if not text or not text.strip():
        raise LayoutParseError("Empty layout dump")

    wanted = set(agent_commands)
    snapshot = LayoutSnapshot()
    context: Optional[str] = None
    focus_counter = 0
    # Agent pane that a following ``args`` line belongs to
    last_record: Optional[PaneRecord] = None
    skip_depth = 0
    depth = 0

    saw_tab = False
    in_focused_tab = True
    current_tab: Optional[str] = None
    focus_candidates = []  # (in_focused_tab, FocusedPane)

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("//"):
            continue

        opens = line.count("{")
        closes = line.count("}")

        if skip_depth:
            depth += opens - closes
            if depth < skip_depth:
                skip_depth = 0
            continue

        if line.startswith(_TEMPLATE_BLOCKS):
            if opens > closes:
                skip_depth = depth + 1
                depth += opens - closes
            continue

        depth += opens - closes

        cwd_match = _CWD_LINE.match(line)
        if cwd_match:
            context = resolve_cwd(cwd_match.group(1), context)
            continue

        if _TAB_LINE.match(line):
            attrs = parse_attributes(line)
            saw_tab = True
            in_focused_tab = attrs.get("focus") == "true"
            current_tab = attrs.get("name")
            last_record = None
            continue

        if _PANE_LINE.match(line):
            attrs = parse_attributes(line)
            command = attrs.get("command")
            pane_cwd = resolve_cwd(attrs["cwd"], context) if "cwd" in attrs else (context or "")
            if attrs.get("focus") == "true":
                focus_candidates.append(
                    (in_focused_tab, FocusedPane(cwd=pane_cwd, focus_index=focus_counter, command=command))
                )
            if command is None:
                last_record = None
                continue

            index = focus_counter
            focus_counter += 1
            kind = agent_kind_for_command(command)
            record = None
            if kind is not None and kind.command in wanted:
                record = PaneRecord(
                    pane_id=f"pane-{index}",
                    cwd=pane_cwd,
                    command=command,
                    agent_kind=kind,
                    focus_index=index,
                    name=attrs.get("name"),
                    tab=current_tab,
                )
                snapshot.panes.append(record)
            last_record = record
            continue

        args_match = _ARGS_LINE.match(line)
        if args_match and last_record is not None:
            last_record.args.extend(_parse_args(args_match.group(1)))

    snapshot.command_pane_count = focus_counter

    if focus_candidates:
        preferred = [pane for in_tab, pane in focus_candidates if in_tab or not saw_tab]
        snapshot.focused = preferred[0] if preferred else focus_candidates[0][1]

    return snapshot
