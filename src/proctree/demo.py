"""Scripted walkthrough of orphaning and reaping.

The demo drives the engine through a fixed story:

    1. Pick the shell (``bash``) under init.
    2. Fork a child from it.
    3. Kill the child's parent, so the child and its siblings become
       orphans adopted by init, and the shell becomes a zombie.
    4. Switch to the file-descriptor view.
    5. Switch to the inheritance view.

Each step after the first waits first.  Waiting advances the
reclamation scheduler's clock, so the shell's booked reclamation fires
in the middle of the script, exactly as it would behind a real
walkthrough.  Steps run one after another and never overlap: a step
starts only once the previous step has been applied and its wait is
over.

If a step fails, the rest of the script is skipped and the failure is
raised as ``DemoAbortedError``.  Nothing already done is undone.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from proctree.engine import LifecycleEngine, TerminationReport
from proctree.errors import DemoAbortedError, NoSuchProcessError, ProcessError
from proctree.logging import LogLevel
from proctree.views import Display, MessageKind, TextDisplay, ViewMode

SHELL_NAME = "bash"

# Ticks waited before each step.
SELECT_WAIT = 0
FORK_WAIT = 1000
KILL_PARENT_WAIT = 2000
FDS_VIEW_WAIT = 3000
INHERITANCE_VIEW_WAIT = 2000

type WaitFunction = Callable[[int], object]


@dataclass
class DemoResult:
    """What the demo did, step by step."""

    shell_pid: int | None = None
    child_pid: int | None = None
    report: TerminationReport | None = None
    completed: list[str] = field(default_factory=lambda: [])  # noqa: PIE807


@dataclass(frozen=True)
class DemoStep:
    """One step of the script: wait, then act."""

    name: str
    wait: int
    action: Callable[[DemoResult], None]


class DemoRunner:
    """Run the orphan/zombie walkthrough against an engine."""

    def __init__(
        self,
        engine: LifecycleEngine,
        *,
        display: Display | None = None,
        wait: WaitFunction | None = None,
    ) -> None:
        """Create a runner.

        Args:
            engine: The engine to drive.
            display: Where messages and view switches go.
            wait: How to wait *n* ticks.  Defaults to advancing the
                engine's reclamation clock.

        """
        self._engine = engine
        self._display: Display = display if display is not None else TextDisplay()
        self._wait: WaitFunction = wait if wait is not None else engine.reaper.advance
        self._running = False

    @property
    def running(self) -> bool:
        """Return True while a demo is in progress."""
        return self._running

    def steps(self) -> list[DemoStep]:
        """Return the script, in order."""
        return [
            DemoStep("select shell", SELECT_WAIT, self._select_shell),
            DemoStep("fork", FORK_WAIT, self._fork),
            DemoStep("kill parent", KILL_PARENT_WAIT, self._kill_parent),
            DemoStep("fds view", FDS_VIEW_WAIT, self._view(ViewMode.FDS)),
            DemoStep("inheritance view", INHERITANCE_VIEW_WAIT, self._view(ViewMode.INHERITANCE)),
        ]

    def run_demo(self) -> DemoResult:
        """Run every step in order.

        Returns:
            What each step produced.

        Raises:
            DemoAbortedError: If a step fails, or a demo is already running.

        """
        if self._running:
            msg = "A demo is already running"
            raise DemoAbortedError(msg)
        self._running = True
        result = DemoResult()
        try:
            for step in self.steps():
                if step.wait:
                    self._wait(step.wait)
                try:
                    step.action(result)
                except ProcessError as e:
                    msg = f"Demo aborted at step {step.name!r}: {e}"
                    self._engine.logger.log(
                        LogLevel.ERROR, msg, source="demo", tick=self._engine.now
                    )
                    raise DemoAbortedError(msg) from e
                result.completed.append(step.name)
        finally:
            self._running = False
        return result

    # -- Steps -----------------------------------------------------------------

    def _select_shell(self, result: DemoResult) -> None:
        shell = self._engine.find_by_name(SHELL_NAME)
        if shell is None:
            msg = f"No running {SHELL_NAME!r} process to start the demo from"
            raise NoSuchProcessError(msg)
        result.shell_pid = shell.pid
        self._display.show_message(f"Demo: Selected {SHELL_NAME} (PID {shell.pid})", MessageKind.INFO)

    def _fork(self, result: DemoResult) -> None:
        assert result.shell_pid is not None  # set by the select step  # noqa: S101
        self._display.show_message("Demo: Forking a new process...", MessageKind.INFO)
        child = self._engine.spawn(result.shell_pid)
        result.child_pid = child.pid

    def _kill_parent(self, result: DemoResult) -> None:
        assert result.child_pid is not None  # noqa: S101
        self._display.show_message("Demo: Killing parent to create orphan...", MessageKind.WARNING)
        result.report = self._engine.kill_parent_of(result.child_pid)

    def _view(self, mode: ViewMode) -> Callable[[DemoResult], None]:
        label = "File Descriptor" if mode is ViewMode.FDS else mode.capitalize()

        def _switch(_result: DemoResult) -> None:
            self._display.show_message(f"Demo: Switching to {label} view...", MessageKind.INFO)
            self._display.set_view_mode(mode)

        return _switch
