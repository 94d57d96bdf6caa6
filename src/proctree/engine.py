"""Lifecycle engine — fork, exec, terminate, adopt and reap.

The engine is the only code that mutates the registry.  Callers (the
shell, the web API, the demo) ask the engine to do something; the
engine checks the request, applies it as one step, logs it, and hands
back a result or raises a ``ProcessError``.  Because every mutation
funnels through here, the registry invariants hold between any two
calls.

The operations mirror their Unix namesakes:

- **spawn** (``fork()``) — the child is a copy of the parent: same fds,
  a *copy* of the environment, same working directory.
- **image_replace** (``execve()``) — the process keeps its pid, its
  parent, its environment and cwd; only the program name and fds change.
- **terminate** — the process becomes a zombie, its children are
  adopted by init (pid 1), and a reclamation is booked.
- **reap** — a zombie's entry is removed.  Reaping something already
  gone is a no-op, because a booked reclamation may arrive after the
  entry was removed some other way.

Nothing here ever sleeps.  Delays live in the reclamation scheduler,
which calls back into ``reap`` when its clock reaches the due time.
"""

from __future__ import annotations

import random
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

from proctree.errors import (
    ForbiddenError,
    NoKillableParentError,
    ProcessError,
    ProcessStateError,
)
from proctree.logging import Logger, LogLevel
from proctree.process import ROOT_PID, Process, ProcessInfo, ProcessStatus
from proctree.reaper import ReclamationScheduler
from proctree.registry import ProcessRegistry
from proctree.topology import SeedProcess, validate_topology

if TYPE_CHECKING:
    from collections.abc import Callable, Generator, Iterable, Sequence

# Ticks between a termination and the reclamation of its zombie.
REAP_DELAY = 2000


@dataclass(frozen=True)
class ProgramImage:
    """A program that exec can load: its name and the fds it opens."""

    name: str
    file_descriptors: tuple[int, ...]


PROGRAM_IMAGES: tuple[ProgramImage, ...] = (
    ProgramImage("python", (0, 1, 2, 7)),
    ProgramImage("node", (0, 1, 2, 8, 9)),
    ProgramImage("java", (0, 1, 2, 10, 11, 12)),
    ProgramImage("firefox", (0, 1, 2, 13, 14, 15, 16)),
)

type ImageChooser = Callable[[Sequence[ProgramImage]], ProgramImage]


@dataclass(frozen=True)
class TerminationReport:
    """What a termination did, for the caller to surface.

    Attributes:
        terminated_pid: The process that became a zombie.
        orphaned_pids: Its children, now adopted by init, in pid order.

    """

    terminated_pid: int
    orphaned_pids: tuple[int, ...] = ()

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-friendly dict."""
        return {"terminated_pid": self.terminated_pid, "orphaned_pids": list(self.orphaned_pids)}


@dataclass(frozen=True)
class SystemStatus:
    """Orphan and zombie counters shown beside the tree."""

    orphaned: tuple[int, ...]
    zombies: tuple[int, ...]

    def __str__(self) -> str:
        """Format the two status lines."""
        orphan_line = (
            f"Orphaned: {len(self.orphaned)} processes" if self.orphaned else "No orphaned processes"
        )
        zombie_line = (
            f"Zombies: {len(self.zombies)} processes" if self.zombies else "No zombie processes"
        )
        return f"{orphan_line}\n{zombie_line}"


class LifecycleEngine:
    """Apply lifecycle transitions to a process registry.

    The engine owns its registry and reclamation scheduler; pass them in
    only to share a pre-built instance (tests do this to poke at the
    clock directly).
    """

    def __init__(
        self,
        *,
        registry: ProcessRegistry | None = None,
        reaper: ReclamationScheduler | None = None,
        logger: Logger | None = None,
        reap_delay: int = REAP_DELAY,
        chooser: ImageChooser | None = None,
    ) -> None:
        """Create an engine.

        Args:
            registry: The registry to operate on (a fresh one by default).
            reaper: The reclamation scheduler (a fresh one by default).
            logger: Event log shared with the scheduler.
            reap_delay: Ticks between termination and reclamation.
            chooser: Picks the image for ``exec_image``.  Defaults to
                ``random.choice``; pass a seeded ``Random(...).choice``
                or a fixed function for reproducible runs.

        Raises:
            ValueError: If *reap_delay* is negative.

        """
        if reap_delay < 0:
            msg = f"reap_delay must not be negative, got {reap_delay}"
            raise ValueError(msg)
        self._logger = logger if logger is not None else Logger()
        self._registry = registry if registry is not None else ProcessRegistry()
        self._reaper = reaper if reaper is not None else ReclamationScheduler(logger=self._logger)
        self._reaper.bind(self.reap)
        self._reap_delay = reap_delay
        self._chooser: ImageChooser = chooser if chooser is not None else random.choice
        self._adopted: set[int] = set()

    # -- Accessors -------------------------------------------------------------

    @property
    def logger(self) -> Logger:
        """Return the event log."""
        return self._logger

    @property
    def reaper(self) -> ReclamationScheduler:
        """Return the reclamation scheduler."""
        return self._reaper

    @property
    def reap_delay(self) -> int:
        """Return the delay booked for each reclamation."""
        return self._reap_delay

    @property
    def now(self) -> int:
        """Return the current virtual time."""
        return self._reaper.now

    # -- Start-up --------------------------------------------------------------

    def seed(self, topology: Sequence[SeedProcess]) -> list[ProcessInfo]:
        """Create the root and the caller's starting descendants.

        Args:
            topology: Root first, then descendants naming earlier parents.

        Returns:
            The created processes in seed order.

        Raises:
            ForbiddenError: If the registry already has a root.
            ValueError: If the topology is malformed.

        """
        if self._registry.has_root:
            msg = "The process tree has already been seeded"
            raise ForbiddenError(msg)
        validate_topology(tuple(topology))

        root_seed, *descendants = topology
        root = self._registry.create_root(
            name=root_seed.name,
            file_descriptors=root_seed.file_descriptors,
            environment=root_seed.environment,
            working_directory=root_seed.working_directory,
        )
        created = [root]
        pid_by_name = {root_seed.name: root.pid}
        for seed in descendants:
            process = Process(
                pid=self._registry.next_pid(),
                ppid=pid_by_name[seed.parent or root_seed.name],
                name=seed.name,
                file_descriptors=seed.file_descriptors,
                environment=seed.environment,
                working_directory=seed.working_directory,
            )
            self._registry.insert(process)
            pid_by_name[seed.name] = process.pid
            created.append(process)
        self._log(LogLevel.INFO, f"Seeded {len(created)} processes", pid=ROOT_PID)
        return [p.info() for p in created]

    # -- Queries ---------------------------------------------------------------

    def get(self, pid: int) -> ProcessInfo:
        """Return a snapshot of one process.

        Raises:
            NoSuchProcessError: If *pid* is not in the registry.

        """
        return self._registry.get(pid).info()

    def children_of(self, pid: int) -> tuple[ProcessInfo, ...]:
        """Return snapshots of *pid*'s children (empty if none)."""
        return tuple(child.info() for child in self._registry.children_of(pid))

    def snapshot(self) -> tuple[ProcessInfo, ...]:
        """Return every process, ordered by pid."""
        return self._registry.snapshot()

    def find_by_name(self, name: str) -> ProcessInfo | None:
        """Return the lowest-pid running process called *name*, or None."""
        running = (p for p in self._registry.snapshot() if p.status is ProcessStatus.RUNNING)
        return next((p for p in running if p.name == name), None)

    def status(self) -> SystemStatus:
        """Return the current orphan and zombie counters."""
        procs = self._registry.snapshot()
        return SystemStatus(
            orphaned=tuple(p.pid for p in procs if p.pid in self._adopted),
            zombies=tuple(p.pid for p in procs if p.status is ProcessStatus.ZOMBIE),
        )

    def check_invariants(self) -> list[str]:
        """Return every broken registry invariant (empty when healthy)."""
        return self._registry.check_invariants()

    # -- Transitions -----------------------------------------------------------

    def spawn(self, parent_pid: int, *, name: str | None = None) -> ProcessInfo:
        """Fork a child from *parent_pid*.

        Args:
            parent_pid: The process to duplicate.
            name: Child name; defaults to ``child_<parent name>``.

        Returns:
            The new process.

        Raises:
            NoSuchProcessError: If the parent does not exist.
            ProcessStateError: If the parent is a zombie.

        """
        with self._rejections("fork", parent_pid):
            parent = self._registry.get(parent_pid)
            if parent.is_zombie:
                msg = f"Cannot fork from zombie process {parent_pid}"
                raise ProcessStateError(msg)
            child = parent.fork(
                pid=self._registry.next_pid(),
                name=name if name is not None else f"child_{parent.name}",
            )
            self._registry.insert(child)
        self._log(
            LogLevel.INFO,
            f"fork() created PID {child.pid} from parent PID {parent_pid}",
            pid=child.pid,
        )
        return child.info()

    def image_replace(self, pid: int, new_name: str, new_fds: Iterable[int]) -> ProcessInfo:
        """Replace the program image of *pid*.

        Pid, ppid, environment and working directory are untouched.

        Raises:
            NoSuchProcessError: If *pid* does not exist.
            ForbiddenError: If *pid* is the root.
            ProcessStateError: If the process is a zombie.

        """
        with self._rejections("exec", pid):
            self._protect_root(pid, "replaced")
            process = self._registry.get(pid)
            process.replace_image(name=new_name, file_descriptors=new_fds)
        self._log(LogLevel.INFO, f"exec() replaced process PID {pid} with {new_name}", pid=pid)
        return process.info()

    def exec_image(self, pid: int) -> ProcessInfo:
        """Replace *pid*'s image with one picked by the chooser."""
        with self._rejections("exec", pid):
            self._protect_root(pid, "replaced")
            self._registry.get(pid)
        image = self._chooser(PROGRAM_IMAGES)
        return self.image_replace(pid, image.name, image.file_descriptors)

    def terminate(self, pid: int) -> TerminationReport:
        """Terminate *pid*: zombify it, let init adopt its children, book a reap.

        All three effects happen before this returns, with no other
        operation able to observe a half-done state.

        Raises:
            NoSuchProcessError: If *pid* does not exist.
            ForbiddenError: If *pid* is the root.
            ProcessStateError: If the process is already a zombie.

        """
        with self._rejections("terminate", pid):
            self._protect_root(pid, "terminated")
            process = self._registry.get(pid)
            process.zombify()

        orphans = self._registry.children_of(pid)
        for child in orphans:
            child.adopt(ROOT_PID)
            self._adopted.add(child.pid)
        due = self._reaper.schedule_reap(pid, self._reap_delay)

        self._log(LogLevel.INFO, f"PID {pid} ({process.name}) is now a zombie", pid=pid)
        for child in orphans:
            self._log(
                LogLevel.WARNING,
                f"Orphan PID {child.pid} adopted by init (PID {ROOT_PID})",
                pid=child.pid,
            )
        self._log(LogLevel.DEBUG, f"Reclamation of PID {pid} booked for tick {due}", pid=pid)
        return TerminationReport(terminated_pid=pid, orphaned_pids=tuple(c.pid for c in orphans))

    def kill_parent_of(self, pid: int) -> TerminationReport:
        """Terminate the parent of *pid*.

        Raises:
            NoSuchProcessError: If *pid* does not exist.
            ForbiddenError: If *pid* is the root.
            NoKillableParentError: If the parent is the root.

        """
        with self._rejections("kill parent of", pid):
            self._protect_root(pid, "used with kill-parent")
            process = self._registry.get(pid)
            if process.ppid == ROOT_PID:
                msg = f"Process {pid} has no killable parent (its parent is init)"
                raise NoKillableParentError(msg)
        return self.terminate(process.ppid)

    def reap(self, pid: int) -> bool:
        """Remove *pid* if it is a zombie.

        Absent pids and running processes are left alone; this never
        raises for them.

        Returns:
            True if an entry was removed.

        """
        process = self._registry.find(pid)
        if process is None or not process.is_zombie:
            self._log(LogLevel.DEBUG, f"Nothing to reap for PID {pid}", pid=pid)
            return False
        # Adopt any stragglers first so removal cannot leave a dangling ppid.
        for child in self._registry.children_of(pid):
            child.adopt(ROOT_PID)
            self._adopted.add(child.pid)
        self._registry.remove(pid)
        self._adopted.discard(pid)
        self._log(LogLevel.INFO, f"Reaped zombie PID {pid} ({process.name})", pid=pid)
        return True

    # -- Helpers ---------------------------------------------------------------

    def _protect_root(self, pid: int, verb: str) -> None:
        if pid == ROOT_PID:
            msg = f"The init process (PID {ROOT_PID}) cannot be {verb}"
            raise ForbiddenError(msg)

    @contextmanager
    def _rejections(self, action: str, pid: int) -> Generator[None]:
        """Log a rejected request at WARNING, then let the error propagate."""
        try:
            yield
        except ProcessError as e:
            self._log(LogLevel.WARNING, f"{action} {pid} rejected: {e}", pid=pid)
            raise

    def _log(self, level: LogLevel, message: str, *, pid: int | None = None) -> None:
        self._logger.log(level, message, source="engine", tick=self._reaper.now, pid=pid)
