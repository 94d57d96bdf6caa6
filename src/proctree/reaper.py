"""Reclamation scheduler — delayed reaping of zombies.

When a process terminates it lingers as a zombie until somebody
collects it.  Here nobody calls ``wait()``; instead each termination
books a one-shot reclamation that fires a fixed number of ticks later.

The scheduler keeps its own virtual clock.  Time only moves when a
caller advances it (the demo's waits, the shell's ``tick`` command, the
web API's ``/api/tick``), which makes every interleaving reproducible:

    1. ``schedule_reap(pid, delay)`` pushes ``(due, seq, pid)`` onto a
       min-heap.
    2. ``advance(n)`` moves the clock forward and pops everything whose
       due time has been reached, in due-time order.  Requests due at
       the same tick fire in the order they were booked.
    3. Each popped request is delivered to the bound callback (the
       engine's ``reap``) exactly once.

A booked reclamation cannot be cancelled.
"""

from __future__ import annotations

import heapq
from collections.abc import Callable
from dataclasses import dataclass, field
from itertools import count

from proctree.logging import Logger, LogLevel

type ReapCallback = Callable[[int], object]


@dataclass(order=True, frozen=True)
class ReapRequest:
    """One pending reclamation, ordered by (due, seq)."""

    due: int
    seq: int
    pid: int = field(compare=False)


class ReclamationScheduler:
    """A virtual clock with a due-time ordered queue of reap requests."""

    def __init__(self, *, logger: Logger | None = None) -> None:
        """Create a scheduler at tick 0 with nothing pending.

        Args:
            logger: Where deliveries are recorded (DEBUG level).

        """
        self._now = 0
        self._queue: list[ReapRequest] = []
        self._seq = count()
        self._callback: ReapCallback | None = None
        self._logger = logger
        self._delivered = 0

    @property
    def now(self) -> int:
        """Return the current virtual time in ticks."""
        return self._now

    @property
    def delivered(self) -> int:
        """Return how many requests have fired so far."""
        return self._delivered

    @property
    def pending(self) -> tuple[tuple[int, int], ...]:
        """Return ``(pid, due)`` for every request still waiting, soonest first."""
        return tuple((r.pid, r.due) for r in sorted(self._queue))

    @property
    def next_due(self) -> int | None:
        """Return the due time of the soonest request, or None."""
        return self._queue[0].due if self._queue else None

    def bind(self, callback: ReapCallback) -> None:
        """Set the function each request is delivered to."""
        self._callback = callback

    def schedule_reap(self, pid: int, delay: int) -> int:
        """Book a reclamation of *pid* after *delay* ticks.

        Returns:
            The tick at which the request becomes due.

        Raises:
            ValueError: If *delay* is negative.

        """
        if delay < 0:
            msg = f"Reclamation delay must not be negative, got {delay}"
            raise ValueError(msg)
        due = self._now + delay
        heapq.heappush(self._queue, ReapRequest(due=due, seq=next(self._seq), pid=pid))
        return due

    def advance(self, ticks: int) -> list[int]:
        """Move the clock forward, firing every request that falls due.

        Each request is delivered with the clock set to its own due
        time, so anything it logs carries the right timestamp.

        Returns:
            The pids delivered, in firing order.

        Raises:
            ValueError: If *ticks* is negative.
            RuntimeError: If a request falls due with no callback bound.

        """
        if ticks < 0:
            msg = f"Cannot move the clock backwards ({ticks} ticks)"
            raise ValueError(msg)
        target = self._now + ticks
        fired: list[int] = []
        while self._queue and self._queue[0].due <= target:
            request = heapq.heappop(self._queue)
            self._now = request.due
            self._deliver(request)
            fired.append(request.pid)
        self._now = target
        return fired

    def tick(self) -> list[int]:
        """Advance the clock by one tick."""
        return self.advance(1)

    def run_until_idle(self) -> list[int]:
        """Advance until nothing is pending."""
        fired: list[int] = []
        while self._queue:
            fired.extend(self.advance(self._queue[0].due - self._now))
        return fired

    def _deliver(self, request: ReapRequest) -> None:
        if self._callback is None:
            msg = f"No reap callback bound (request for pid {request.pid})"
            raise RuntimeError(msg)
        if self._logger is not None:
            self._logger.log(
                LogLevel.DEBUG,
                f"Reclamation due for pid {request.pid}",
                source="reaper",
                tick=self._now,
                pid=request.pid,
            )
        self._delivered += 1
        self._callback(request.pid)
