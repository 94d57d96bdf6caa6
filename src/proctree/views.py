"""Text views of the process tree.

The tree can be drawn four ways, matching the view-mode selector of
the classroom UI:

- ``basic`` — ``[pid] name (status)``
- ``pids`` — ``PID:n PPID:m name (status)``
- ``fds`` — ``[pid] name FDs:[0,1,2] (status)``
- ``inheritance`` — what the process inherited from its parent

Drawing is a pure function of a snapshot, so it never touches live
registry state.  ``Display`` is the small interface the demo talks to
when it wants to show a message or switch view; ``TextDisplay`` is the
implementation the shell and the web API use.
"""

from __future__ import annotations

from collections import defaultdict
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

from proctree.process import NO_PARENT

if TYPE_CHECKING:
    from collections.abc import Sequence

    from proctree.process import ProcessInfo

_INDENT = "  "


class ViewMode(StrEnum):
    """How each node of the tree is labelled."""

    BASIC = "basic"
    PIDS = "pids"
    FDS = "fds"
    INHERITANCE = "inheritance"


class MessageKind(StrEnum):
    """Tone of a message shown to the user."""

    INFO = "info"
    WARNING = "warning"


class Display(Protocol):
    """What the demo needs from the presentation layer."""

    def show_message(self, message: str, kind: MessageKind) -> None:
        """Show a transient message."""
        ...

    def set_view_mode(self, mode: ViewMode) -> None:
        """Switch how the tree is drawn."""
        ...


class TextDisplay:
    """A Display that keeps its messages and current mode in memory."""

    def __init__(self, *, mode: ViewMode = ViewMode.BASIC) -> None:
        """Create a display in *mode* with no messages."""
        self.mode = mode
        self.messages: list[tuple[MessageKind, str]] = []

    def show_message(self, message: str, kind: MessageKind) -> None:
        """Record a message."""
        self.messages.append((kind, message))

    def set_view_mode(self, mode: ViewMode) -> None:
        """Switch the current mode."""
        self.mode = mode

    def drain(self) -> list[str]:
        """Return and forget the recorded messages, formatted."""
        lines = [f"[{kind}] {text}" for kind, text in self.messages]
        self.messages.clear()
        return lines


def format_node(process: ProcessInfo, mode: ViewMode, parent: ProcessInfo | None) -> str:
    """Return the one-line label of *process* in *mode*."""
    match mode:
        case ViewMode.PIDS:
            label = f"PID:{process.pid} PPID:{process.ppid} {process.name}"
        case ViewMode.FDS:
            fd_list = ",".join(str(fd) for fd in process.file_descriptors)
            label = f"[{process.pid}] {process.name} FDs:[{fd_list}]"
        case ViewMode.INHERITANCE:
            inherited = (
                f" ↳ inherited: {len(parent.file_descriptors)} FDs, env"
                if parent is not None
                else ""
            )
            label = f"[{process.pid}] {process.name}{inherited}"
        case _:
            label = f"[{process.pid}] {process.name}"
    return f"{label} ({process.status})"


def render_tree(snapshot: Sequence[ProcessInfo], mode: ViewMode = ViewMode.BASIC) -> str:
    """Draw the whole tree, children indented under their parent."""
    by_pid = {p.pid: p for p in snapshot}
    children: dict[int, list[ProcessInfo]] = defaultdict(list)
    for process in snapshot:
        children[process.ppid].append(process)

    lines: list[str] = []

    def _walk(ppid: int, level: int) -> None:
        for process in sorted(children.get(ppid, []), key=lambda p: p.pid):
            node = format_node(process, mode, by_pid.get(process.ppid))
            lines.append(f"{_INDENT * level}├─ {node}")
            _walk(process.pid, level + 1)

    _walk(NO_PARENT, 0)
    return "\n".join(lines) if lines else "No processes."
