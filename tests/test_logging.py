"""Tests for the lifecycle event log.

The logger records structured entries for every fork, exec,
termination, adoption and reap, stamped with the virtual clock tick.
"""

import pytest

from proctree.engine import LifecycleEngine
from proctree.errors import ForbiddenError
from proctree.logging import LogEntry, Logger, LogLevel
from proctree.topology import DEFAULT_TOPOLOGY


class TestLogLevel:
    """Verify log level ordering."""

    def test_levels_are_ordered(self) -> None:
        """DEBUG < INFO < WARNING < ERROR."""
        assert LogLevel.DEBUG < LogLevel.INFO
        assert LogLevel.INFO < LogLevel.WARNING
        assert LogLevel.WARNING < LogLevel.ERROR


class TestLogEntry:
    """Verify log entry structure."""

    def test_entry_has_fields(self) -> None:
        """A log entry should store level, message, source, tick and pid."""
        entry = LogEntry(level=LogLevel.INFO, message="forked", source="engine", tick=7, pid=3)
        assert entry.level is LogLevel.INFO
        assert entry.message == "forked"
        assert entry.source == "engine"
        assert entry.tick == 7
        assert entry.pid == 3

    def test_entry_str(self) -> None:
        """String form should include the tick, level, source and message."""
        entry = LogEntry(level=LogLevel.WARNING, message="orphan", source="engine", tick=42)
        text = str(entry)
        assert "42" in text
        assert "WARNING" in text
        assert "engine: orphan" in text


class TestLogger:
    """Verify the logger."""

    def test_log_stores_entries_in_order(self) -> None:
        """Entries should come back in the order they were logged."""
        logger = Logger()
        logger.log(LogLevel.INFO, "first", source="test")
        logger.log(LogLevel.INFO, "second", source="test")
        assert [e.message for e in logger.entries] == ["first", "second"]
        assert len(logger) == 2

    def test_filter_by_level(self) -> None:
        """min_level should drop less severe entries."""
        logger = Logger()
        logger.log(LogLevel.DEBUG, "noise", source="test")
        logger.log(LogLevel.ERROR, "boom", source="test")
        assert [e.message for e in logger.filter(min_level=LogLevel.WARNING)] == ["boom"]

    def test_filter_by_source_and_pid(self) -> None:
        """Source and pid filters should combine."""
        logger = Logger()
        logger.log(LogLevel.INFO, "a", source="engine", pid=2)
        logger.log(LogLevel.INFO, "b", source="reaper", pid=2)
        logger.log(LogLevel.INFO, "c", source="engine", pid=3)
        result = logger.filter(source="engine", pid=2)
        assert [e.message for e in result] == ["a"]

    def test_tail(self) -> None:
        """tail(n) should return the last n entries."""
        logger = Logger()
        for i in range(5):
            logger.log(LogLevel.INFO, str(i), source="test")
        assert [e.message for e in logger.tail(2)] == ["3", "4"]
        assert logger.tail(0) == []
        assert len(logger.tail(10)) == 5

    def test_clear(self) -> None:
        """clear() should empty the log."""
        logger = Logger()
        logger.log(LogLevel.INFO, "x", source="test")
        logger.clear()
        assert logger.entries == []


class TestEngineLogging:
    """Verify that engine operations leave a trail."""

    def test_fork_is_logged(self) -> None:
        """A fork should log an INFO entry naming both pids."""
        engine = LifecycleEngine()
        engine.seed(DEFAULT_TOPOLOGY)
        child = engine.spawn(2)
        messages = [e.message for e in engine.logger.filter(source="engine", pid=child.pid)]
        assert f"fork() created PID {child.pid} from parent PID 2" in messages

    def test_rejection_is_logged_as_warning(self) -> None:
        """A rejected operation should be logged at WARNING."""
        engine = LifecycleEngine()
        engine.seed(DEFAULT_TOPOLOGY)
        with pytest.raises(ForbiddenError):
            engine.terminate(1)
        warnings = engine.logger.filter(min_level=LogLevel.WARNING, pid=1)
        assert any("rejected" in e.message for e in warnings)

    def test_reap_is_logged_with_due_tick(self) -> None:
        """The reap entry should carry the tick at which it fired."""
        engine = LifecycleEngine(reap_delay=10)
        engine.seed(DEFAULT_TOPOLOGY)
        engine.terminate(3)
        engine.reaper.advance(25)
        reaped = [e for e in engine.logger.entries if e.message.startswith("Reaped zombie PID 3")]
        assert len(reaped) == 1
        assert reaped[0].tick == 10
