"""Lifecycle event log.

Every fork, exec, termination, adoption and reap leaves a structured
record behind, the same way a kernel writes to its ring buffer
(``dmesg`` on Linux).  The log is what the shell's ``log`` command and
the web API's ``/api/log`` endpoint show.

Entries are stamped with the reclamation scheduler's tick rather than
wall-clock time, because the whole model runs on that virtual clock.
Levels are an ``IntEnum`` so ``filter(min_level=...)`` is a plain ``>=``
comparison, and entries are frozen once written.
"""

from dataclasses import dataclass
from enum import IntEnum


class LogLevel(IntEnum):
    """Severity of a lifecycle event, lowest first."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


@dataclass(frozen=True)
class LogEntry:
    """A single structured log record.

    Attributes:
        level: The severity of this event.
        message: A human-readable description of what happened.
        source: The component that generated the event (e.g. "engine").
        tick: Virtual clock time of the event.
        pid: The process the event concerns, if any.

    """

    level: LogLevel
    message: str
    source: str
    tick: int = 0
    pid: int | None = None

    def __str__(self) -> str:
        """Format as ``[tick] [LEVEL] source: message``."""
        return f"[{self.tick:>6}] [{self.level.name}] {self.source}: {self.message}"


class Logger:
    """Append-only log buffer with filtering.

    The logger collects ``LogEntry`` records and provides simple
    querying by level, source and pid.
    """

    def __init__(self) -> None:
        """Create an empty logger."""
        self._entries: list[LogEntry] = []

    @property
    def entries(self) -> list[LogEntry]:
        """Return all log entries in chronological order."""
        return list(self._entries)

    def log(
        self,
        level: LogLevel,
        message: str,
        *,
        source: str,
        tick: int = 0,
        pid: int | None = None,
    ) -> None:
        """Append a new entry to the log.

        Args:
            level: Severity of the event.
            message: Human-readable event description.
            source: Component that generated the event.
            tick: Virtual clock time of the event.
            pid: Process the event concerns.

        """
        self._entries.append(
            LogEntry(level=level, message=message, source=source, tick=tick, pid=pid)
        )

    def filter(
        self,
        *,
        min_level: LogLevel | None = None,
        source: str | None = None,
        pid: int | None = None,
    ) -> list[LogEntry]:
        """Return entries matching the given criteria.

        Args:
            min_level: If set, only return entries at or above this level.
            source: If set, only return entries from this source.
            pid: If set, only return entries about this process.

        Returns:
            A filtered list of log entries.

        """
        result = list(self._entries)
        if min_level is not None:
            result = [e for e in result if e.level >= min_level]
        if source is not None:
            result = [e for e in result if e.source == source]
        if pid is not None:
            result = [e for e in result if e.pid == pid]
        return result

    def tail(self, count: int) -> list[LogEntry]:
        """Return the last *count* entries (all of them if fewer)."""
        if count <= 0:
            return []
        return self._entries[-count:]

    def clear(self) -> None:
        """Remove all log entries."""
        self._entries.clear()

    def __len__(self) -> int:
        """Return the number of entries."""
        return len(self._entries)
