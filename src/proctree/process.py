"""Process entity — one simulated OS process.

Each entry in the registry is a ``Process``: an identity (pid), a
parent reference (ppid), a display name, a status, and the resources a
child inherits when it is forked — file descriptors, environment and
working directory.

Processes follow a small state machine.  Every transition method
checks the source state before moving, so an illegal transition is an
exception rather than silent corruption::

    (spawn) → RUNNING ──terminate──▶ ZOMBIE ──reap──▶ (removed)
                 ↺ image replace

There is no ``REAPED`` member: reaping deletes the entry, so a reaped
process simply stops existing.

File descriptors are opaque small integers.  Nothing reads or writes
through them; they exist so a fork can be seen to copy them and an
exec to replace them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from proctree.errors import ProcessStateError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

ROOT_PID = 1
NO_PARENT = 0


class ProcessStatus(StrEnum):
    """Stored lifecycle states of a process.

    - RUNNING: alive; may fork, exec or be terminated.
    - ZOMBIE: terminated, entry retained until reclamation reaps it.
    """

    RUNNING = "running"
    ZOMBIE = "zombie"


@dataclass(frozen=True)
class ProcessInfo:
    """An immutable snapshot of one process, for display.

    Snapshots are handed out to the presentation layer so it never holds
    a reference to live registry state.
    """

    pid: int
    ppid: int
    name: str
    status: ProcessStatus
    file_descriptors: tuple[int, ...]
    environment: tuple[tuple[str, str], ...] = field(default=())
    working_directory: str = "/"

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-friendly dict."""
        return {
            "pid": self.pid,
            "ppid": self.ppid,
            "name": self.name,
            "status": str(self.status),
            "file_descriptors": list(self.file_descriptors),
            "environment": dict(self.environment),
            "working_directory": self.working_directory,
        }


class Process:
    """A simulated process.

    Identity (``pid``) and working directory never change.  ``ppid``
    changes only when the parent dies and the process is adopted by
    init; ``name`` and ``file_descriptors`` change only on image
    replacement.
    """

    def __init__(
        self,
        *,
        pid: int,
        ppid: int,
        name: str,
        file_descriptors: Iterable[int] = (),
        environment: Mapping[str, str] | None = None,
        working_directory: str = "/",
    ) -> None:
        """Create a process in the RUNNING state.

        Args:
            pid: Unique process identifier (positive).
            ppid: Parent pid, or NO_PARENT for the root.
            name: Display label.
            file_descriptors: Open fd numbers, kept in the given order.
            environment: Variables to copy into the process.
            working_directory: Current working directory.

        Raises:
            ValueError: If pid is not positive or ppid is negative.

        """
        if pid <= 0:
            msg = f"pid must be positive, got {pid}"
            raise ValueError(msg)
        if ppid < 0:
            msg = f"ppid must not be negative, got {ppid}"
            raise ValueError(msg)
        self._pid = pid
        self._ppid = ppid
        self._name = name
        self._status = ProcessStatus.RUNNING
        self._fds: tuple[int, ...] = _ordered_fds(file_descriptors)
        self._environment: dict[str, str] = dict(environment) if environment else {}
        self._cwd = working_directory

    @property
    def pid(self) -> int:
        """Return the unique process identifier."""
        return self._pid

    @property
    def ppid(self) -> int:
        """Return the parent's pid (0 for the root)."""
        return self._ppid

    @property
    def name(self) -> str:
        """Return the display name."""
        return self._name

    @property
    def status(self) -> ProcessStatus:
        """Return the current status."""
        return self._status

    @property
    def file_descriptors(self) -> tuple[int, ...]:
        """Return the open file descriptors in order."""
        return self._fds

    @property
    def environment(self) -> dict[str, str]:
        """Return a copy of the environment.

        A copy, so that mutating the returned dict cannot reach into
        registry state.
        """
        return dict(self._environment)

    @property
    def working_directory(self) -> str:
        """Return the working directory."""
        return self._cwd

    @property
    def is_running(self) -> bool:
        """Return True while the process has not been terminated."""
        return self._status is ProcessStatus.RUNNING

    @property
    def is_zombie(self) -> bool:
        """Return True once terminated and awaiting reclamation."""
        return self._status is ProcessStatus.ZOMBIE

    def fork(self, *, pid: int, name: str) -> Process:
        """Build a child that duplicates this process's resources.

        The child is not registered anywhere; the caller inserts it.

        Raises:
            ProcessStateError: If this process is a zombie.

        """
        self._require_running("fork")
        return Process(
            pid=pid,
            ppid=self._pid,
            name=name,
            file_descriptors=self._fds,
            environment=self._environment,
            working_directory=self._cwd,
        )

    def replace_image(self, *, name: str, file_descriptors: Iterable[int]) -> None:
        """Swap in a new program image, keeping pid, ppid, env and cwd."""
        self._require_running("replace image of")
        self._name = name
        self._fds = _ordered_fds(file_descriptors)

    def zombify(self) -> None:
        """Transition RUNNING → ZOMBIE."""
        self._require_running("terminate")
        self._status = ProcessStatus.ZOMBIE

    def adopt(self, new_ppid: int) -> None:
        """Point this process at a new parent (orphan adoption)."""
        self._ppid = new_ppid

    def info(self) -> ProcessInfo:
        """Return an immutable snapshot of this process."""
        return ProcessInfo(
            pid=self._pid,
            ppid=self._ppid,
            name=self._name,
            status=self._status,
            file_descriptors=self._fds,
            environment=tuple(sorted(self._environment.items())),
            working_directory=self._cwd,
        )

    def _require_running(self, action: str) -> None:
        if self._status is not ProcessStatus.RUNNING:
            msg = f"Cannot {action} process {self._pid}: it is {self._status}"
            raise ProcessStateError(msg)

    def __repr__(self) -> str:
        """Return a debug-friendly representation."""
        return (
            f"Process(pid={self._pid}, ppid={self._ppid}, name={self._name!r}, "
            f"status={self._status})"
        )


def _ordered_fds(fds: Iterable[int]) -> tuple[int, ...]:
    """Drop duplicate fds while keeping first-seen order."""
    return tuple(dict.fromkeys(fds))
