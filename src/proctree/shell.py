"""The shell — command interpreter for the process tree.

The shell reads a command string, splits it into a command name and
arguments, dispatches to a handler, and returns a string result.  Every
handler goes through the lifecycle engine; the shell never touches the
registry.

Design choices:
    - **Returns strings, not prints.**  This keeps the shell fully
      testable; the REPL decides how to display output.
    - **Command dispatch via a dict.**  Adding a command means writing a
      method and adding one dict entry.
    - **Errors become text.**  A ``ProcessError`` from the engine is
      shown as ``Error: ...``; the shell keeps running.
"""

from collections.abc import Callable

from proctree.demo import DemoRunner
from proctree.engine import LifecycleEngine, TerminationReport
from proctree.errors import ProcessError
from proctree.topology import DEFAULT_TOPOLOGY
from proctree.views import TextDisplay, ViewMode, render_tree

# Type alias for a command handler: takes a list of args, returns output.
type _Handler = Callable[[list[str]], str]

_DEFAULT_LOG_LINES = 20


class Shell:
    """Command interpreter that drives a lifecycle engine.

    When no engine is supplied the shell builds one seeded with the
    default topology (init, bash, vim, gcc).
    """

    EXIT_SENTINEL = "__EXIT__"

    def __init__(self, *, engine: LifecycleEngine | None = None) -> None:
        """Create a shell.

        Args:
            engine: A seeded engine.  A fresh default one if omitted.

        """
        if engine is None:
            engine = LifecycleEngine()
            engine.seed(DEFAULT_TOPOLOGY)
        self._engine = engine
        self._display = TextDisplay()
        self._demo = DemoRunner(engine, display=self._display)

        # Command name -> handler.
        self._commands: dict[str, _Handler] = {
            "help": self._cmd_help,
            "ps": self._cmd_ps,
            "pstree": self._cmd_pstree,
            "view": self._cmd_view,
            "fork": self._cmd_fork,
            "exec": self._cmd_exec,
            "kill": self._cmd_kill,
            "killparent": self._cmd_killparent,
            "reap": self._cmd_reap,
            "tick": self._cmd_tick,
            "status": self._cmd_status,
            "check": self._cmd_check,
            "demo": self._cmd_demo,
            "log": self._cmd_log,
            "exit": self._cmd_exit,
        }

    @property
    def engine(self) -> LifecycleEngine:
        """Return the engine this shell drives."""
        return self._engine

    @property
    def view_mode(self) -> ViewMode:
        """Return the current tree view mode."""
        return self._display.mode

    def commands(self) -> list[str]:
        """Return the sorted command names."""
        return sorted(self._commands)

    def execute(self, command: str) -> str:
        """Parse and execute a single command.

        Args:
            command: The raw command string (e.g. "fork 2").

        Returns:
            The command output, or an error message.

        """
        parts = command.strip().split()
        if not parts:
            return ""
        name, args = parts[0], parts[1:]
        handler = self._commands.get(name)
        if handler is None:
            return f"Unknown command: {name}"
        try:
            return handler(args)
        except ProcessError as e:
            return f"Error: {e}"

    # -- Command handlers ------------------------------------------------

    def _cmd_help(self, _args: list[str]) -> str:
        """List available commands."""
        return "Available commands: " + ", ".join(self.commands())

    def _cmd_ps(self, _args: list[str]) -> str:
        """Show every process."""
        lines = ["PID    PPID   STATUS   NAME"]
        lines.extend(
            f"{p.pid:<6} {p.ppid:<6} {p.status!s:<8} {p.name}" for p in self._engine.snapshot()
        )
        return "\n".join(lines)

    def _cmd_pstree(self, args: list[str]) -> str:
        """Draw the process tree in the current (or given) view mode."""
        mode = self._display.mode
        if args:
            parsed = _parse_mode(args[0])
            if parsed is None:
                return _mode_usage(args[0])
            mode = parsed
        return render_tree(self._engine.snapshot(), mode)

    def _cmd_view(self, args: list[str]) -> str:
        """Switch the tree view mode."""
        if not args:
            return f"View mode: {self._display.mode}"
        mode = _parse_mode(args[0])
        if mode is None:
            return _mode_usage(args[0])
        self._display.set_view_mode(mode)
        return f"View mode: {mode}"

    def _cmd_fork(self, args: list[str]) -> str:
        """Fork a child from a process."""
        if not args:
            return "Usage: fork <pid> [name]"
        pid = _parse_int(args[0])
        if pid is None:
            return f"Error: invalid PID '{args[0]}'"
        child = self._engine.spawn(pid, name=args[1] if len(args) > 1 else None)
        return f"fork() created PID {child.pid} ({child.name}) from parent PID {pid}"

    def _cmd_exec(self, args: list[str]) -> str:
        """Replace a process's image (random program unless one is given)."""
        if not args:
            return "Usage: exec <pid> [name fd...]"
        pid = _parse_int(args[0])
        if pid is None:
            return f"Error: invalid PID '{args[0]}'"
        if len(args) == 1:
            process = self._engine.exec_image(pid)
        else:
            fds = [_parse_int(fd) for fd in args[2:]]
            if any(fd is None for fd in fds):
                return "Error: file descriptors must be integers"
            process = self._engine.image_replace(
                pid, args[1], [fd for fd in fds if fd is not None]
            )
        return f"exec() replaced process PID {pid} with {process.name}"

    def _cmd_kill(self, args: list[str]) -> str:
        """Terminate a process."""
        if not args:
            return "Usage: kill <pid>"
        pid = _parse_int(args[0])
        if pid is None:
            return f"Error: invalid PID '{args[0]}'"
        return _format_report(self._engine.terminate(pid))

    def _cmd_killparent(self, args: list[str]) -> str:
        """Terminate a process's parent."""
        if not args:
            return "Usage: killparent <pid>"
        pid = _parse_int(args[0])
        if pid is None:
            return f"Error: invalid PID '{args[0]}'"
        return _format_report(self._engine.kill_parent_of(pid))

    def _cmd_reap(self, args: list[str]) -> str:
        """Reap a zombie now instead of waiting for its reclamation."""
        if not args:
            return "Usage: reap <pid>"
        pid = _parse_int(args[0])
        if pid is None:
            return f"Error: invalid PID '{args[0]}'"
        if self._engine.reap(pid):
            return f"Reaped PID {pid}"
        return f"Nothing to reap for PID {pid}"

    def _cmd_tick(self, args: list[str]) -> str:
        """Advance the clock, firing any reclamations that fall due."""
        ticks = 1
        if args:
            try:
                ticks = int(args[0])
            except ValueError:
                return f"Error: invalid tick count '{args[0]}'"
            if ticks < 0:
                return "Error: tick count must not be negative"
        reaped = self._engine.reaper.advance(ticks)
        line = f"Clock: {self._engine.now}"
        if reaped:
            line += "; reclaimed " + ", ".join(f"PID {pid}" for pid in reaped)
        return line

    def _cmd_status(self, _args: list[str]) -> str:
        """Show orphan and zombie counters and pending reclamations."""
        lines = [str(self._engine.status())]
        lines.extend(
            f"Reclamation of PID {pid} due at tick {due}"
            for pid, due in self._engine.reaper.pending
        )
        return "\n".join(lines)

    def _cmd_check(self, _args: list[str]) -> str:
        """Verify the registry invariants."""
        problems = self._engine.check_invariants()
        if not problems:
            return "Process tree OK"
        return "\n".join(f"Invariant broken: {p}" for p in problems)

    def _cmd_demo(self, _args: list[str]) -> str:
        """Run the scripted orphan/zombie walkthrough."""
        result = self._demo.run_demo()
        lines = self._display.drain()
        if result.report is not None:
            lines.append(_format_report(result.report))
        lines.append(render_tree(self._engine.snapshot(), self._display.mode))
        return "\n".join(lines)

    def _cmd_log(self, args: list[str]) -> str:
        """Show recent log entries."""
        count = _DEFAULT_LOG_LINES
        if args:
            try:
                count = int(args[0])
            except ValueError:
                return f"Error: invalid line count '{args[0]}'"
        entries = self._engine.logger.tail(count)
        return "\n".join(str(e) for e in entries) if entries else "No log entries."

    def _cmd_exit(self, _args: list[str]) -> str:
        """Signal the REPL to stop."""
        return self.EXIT_SENTINEL


def _parse_int(text: str) -> int | None:
    """Return *text* as an int, or None if it is not one."""
    try:
        return int(text)
    except ValueError:
        return None


def _parse_mode(text: str) -> ViewMode | None:
    """Return the view mode called *text*, or None."""
    try:
        return ViewMode(text)
    except ValueError:
        return None


def _mode_usage(text: str) -> str:
    modes = ", ".join(m.value for m in ViewMode)
    return f"Error: unknown view mode '{text}' (choose from {modes})"


def _format_report(report: TerminationReport) -> str:
    """Describe a termination the way the status panel does."""
    lines = [f"PID {report.terminated_pid} is now a zombie"]
    lines.extend(f"Orphan PID {pid} adopted by init (PID 1)" for pid in report.orphaned_pids)
    return "\n".join(lines)
