"""Interactive REPL (Read-Eval-Print Loop) for the process tree.

The REPL seeds an engine with the default topology, creates a shell,
and enters the classic loop:

    1. **Read** — display a prompt and read user input.
    2. **Eval** — pass the command to ``shell.execute()``.
    3. **Print** — display the result.
    4. **Loop** — repeat until the shell returns the exit sentinel.

The shell is fully testable (returns strings, no I/O); the REPL is the
thin I/O wrapper that connects it to ``stdin``/``stdout``.  The helper
functions (``build_prompt``, ``format_banner``) are pure and testable.
"""

import readline
from collections.abc import Callable

from proctree.engine import LifecycleEngine
from proctree.shell import Shell
from proctree.topology import DEFAULT_TOPOLOGY
from proctree.views import render_tree

_BANNER_WIDTH = 38


def format_banner(tree: str) -> str:
    """Format the start-up banner around the initial tree.

    Args:
        tree: The rendered starting process tree.

    Returns:
        A string suitable for printing to the console.

    """
    border = "=" * _BANNER_WIDTH
    header = f"\n  {border}\n            proctree\n    fork, exec, orphans and zombies\n  {border}\n\n"
    footer = "\n\nType 'help' for commands, 'exit' to quit.\n"
    return header + tree + footer


def build_prompt(engine: LifecycleEngine) -> str:
    """Build the prompt, showing the virtual clock.

    Returns:
        A prompt string like ``proctree[t=2000] $ ``.

    """
    return f"proctree[t={engine.now}] $ "


def _complete(shell: Shell) -> Callable[[str, int], str | None]:
    """Return a readline completer over the shell's command names."""

    def complete(text: str, state: int) -> str | None:
        matches = [name for name in shell.commands() if name.startswith(text)]
        return matches[state] if state < len(matches) else None

    return complete


def run() -> None:
    """Seed the process tree and run the interactive REPL.

    Handles Ctrl+C and Ctrl+D as a graceful exit.
    """
    engine = LifecycleEngine()
    engine.seed(DEFAULT_TOPOLOGY)
    shell = Shell(engine=engine)

    readline.set_completer(_complete(shell))
    readline.set_completer_delims(" \t")
    readline.parse_and_bind("tab: complete")

    print(format_banner(render_tree(engine.snapshot())))  # noqa: T201

    try:
        while True:
            try:
                command = input(build_prompt(engine))
            except EOFError:
                # Ctrl+D
                print()  # noqa: T201
                break

            result = shell.execute(command)
            if result == Shell.EXIT_SENTINEL:
                break
            if result:
                print(result)  # noqa: T201

    except KeyboardInterrupt:
        print("\nInterrupted.")  # noqa: T201

    finally:
        print("Bye.")  # noqa: T201
