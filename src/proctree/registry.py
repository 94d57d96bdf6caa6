"""Process registry — the authoritative table of processes.

The registry owns every ``Process`` entry, keyed by pid.  It allocates
pids, answers parent/children queries, and refuses the mutations that
would break its invariants:

    I1. Exactly one process has pid 1 (init); it is never removed.
    I2. Every ppid other than 0 names a process that exists.
    I3. Pids come from a counter that only goes up; a pid is never
        handed out twice, even after its process was reaped.
    I4. Children are *computed* (``ppid == pid``), never stored, so
        there is no second source of truth to fall out of sync.

The registry itself does not know about zombies, orphans or timers;
that is the lifecycle engine's job.  It is pure in-memory state with no
I/O and nothing that blocks.
"""

from __future__ import annotations

from collections.abc import Mapping
from itertools import count

from proctree.errors import DuplicatePidError, ForbiddenError, NoSuchProcessError
from proctree.process import NO_PARENT, ROOT_PID, Process, ProcessInfo, ProcessStatus

DEFAULT_ROOT_FDS = (0, 1, 2)


class ProcessRegistry:
    """An arena of processes keyed by pid."""

    def __init__(self) -> None:
        """Create an empty registry (no root yet)."""
        self._processes: dict[int, Process] = {}
        self._pid_counter = count(start=ROOT_PID + 1)
        self._last_issued = ROOT_PID

    def create_root(
        self,
        *,
        name: str = "init",
        file_descriptors: tuple[int, ...] = DEFAULT_ROOT_FDS,
        environment: Mapping[str, str] | None = None,
        working_directory: str = "/",
    ) -> Process:
        """Insert the pid-1 root process.

        Raises:
            DuplicatePidError: If the root already exists.

        """
        root = Process(
            pid=ROOT_PID,
            ppid=NO_PARENT,
            name=name,
            file_descriptors=file_descriptors,
            environment=environment,
            working_directory=working_directory,
        )
        self.insert(root)
        return root

    @property
    def has_root(self) -> bool:
        """Return True once create_root has run."""
        return ROOT_PID in self._processes

    @property
    def last_issued_pid(self) -> int:
        """Return the highest pid handed out so far."""
        return self._last_issued

    def next_pid(self) -> int:
        """Return a pid greater than every pid ever issued."""
        self._last_issued = next(self._pid_counter)
        return self._last_issued

    def insert(self, process: Process) -> None:
        """Add a new entry.

        Raises:
            DuplicatePidError: If the pid is already present.

        """
        if process.pid in self._processes:
            msg = f"pid {process.pid} is already in the registry"
            raise DuplicatePidError(msg)
        self._processes[process.pid] = process

    def get(self, pid: int) -> Process:
        """Return the process with *pid*.

        Raises:
            NoSuchProcessError: If no such process exists.

        """
        process = self._processes.get(pid)
        if process is None:
            msg = f"No such process: {pid}"
            raise NoSuchProcessError(msg)
        return process

    def find(self, pid: int) -> Process | None:
        """Return the process with *pid*, or None."""
        return self._processes.get(pid)

    def children_of(self, pid: int) -> list[Process]:
        """Return the processes whose ppid is *pid*, ordered by pid."""
        return sorted(
            (p for p in self._processes.values() if p.ppid == pid),
            key=lambda p: p.pid,
        )

    def remove(self, pid: int) -> Process:
        """Delete an entry and return it.

        Raises:
            ForbiddenError: If *pid* is the root.
            NoSuchProcessError: If no such process exists.

        """
        if pid == ROOT_PID:
            msg = "The root process (pid 1) cannot be removed"
            raise ForbiddenError(msg)
        process = self.get(pid)
        del self._processes[pid]
        return process

    def pids(self) -> list[int]:
        """Return all pids in ascending order."""
        return sorted(self._processes)

    def snapshot(self) -> tuple[ProcessInfo, ...]:
        """Return an immutable, pid-ordered view of every process."""
        return tuple(self._processes[pid].info() for pid in self.pids())

    def check_invariants(self) -> list[str]:
        """Return a description of every broken invariant (empty if none)."""
        problems: list[str] = []
        root = self._processes.get(ROOT_PID)
        if root is None:
            problems.append("root process (pid 1) is missing")
        elif root.status is not ProcessStatus.RUNNING:
            problems.append(f"root process is {root.status}, expected running")
        for process in self._processes.values():
            if process.ppid == NO_PARENT:
                if process.pid != ROOT_PID:
                    problems.append(f"pid {process.pid} has no parent but is not the root")
            elif process.ppid not in self._processes:
                problems.append(f"pid {process.pid} points at missing parent {process.ppid}")
            if process.pid > self._last_issued:
                problems.append(f"pid {process.pid} was never issued by the allocator")
        return problems

    def __contains__(self, pid: object) -> bool:
        """Return True if *pid* is in the registry."""
        return pid in self._processes

    def __len__(self) -> int:
        """Return the number of entries (running and zombie)."""
        return len(self._processes)
