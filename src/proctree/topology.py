"""Starting topologies for the process tree.

The engine never hard-codes which processes exist at start-up.  The
caller hands it a sequence of ``SeedProcess`` records: the first is the
root (init), the rest are descendants that name their parent by seed
name.  Descendants are inserted exactly as described, with their own
fds and environment, rather than forked, because a real system's
processes have long since diverged from their parents.

``DEFAULT_TOPOLOGY`` is the classroom picture used by the shell, the
web UI and the demo: init with a bash shell that is running vim and gcc.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class SeedProcess:
    """Description of one process in a starting topology.

    Attributes:
        name: Display name, also the key descendants use as ``parent``.
        parent: Seed name of the parent, or None for the root.
        file_descriptors: Open fds.
        environment: Environment variables.
        working_directory: Working directory.

    """

    name: str
    parent: str | None = None
    file_descriptors: tuple[int, ...] = (0, 1, 2)
    environment: dict[str, str] = field(default_factory=lambda: {})  # noqa: PIE807
    working_directory: str = "/"


_SHELL_ENV = {"PATH": "/bin:/usr/bin", "USER": "student", "HOME": "/home/student"}

DEFAULT_TOPOLOGY: tuple[SeedProcess, ...] = (
    SeedProcess(
        name="init",
        file_descriptors=(0, 1, 2),
        environment={"PATH": "/bin:/usr/bin", "USER": "root"},
        working_directory="/",
    ),
    SeedProcess(
        name="bash",
        parent="init",
        file_descriptors=(0, 1, 2, 3),
        environment=dict(_SHELL_ENV),
        working_directory="/home/student",
    ),
    SeedProcess(
        name="vim",
        parent="bash",
        file_descriptors=(0, 1, 2, 4),
        environment={**_SHELL_ENV, "EDITOR": "vim"},
        working_directory="/home/student",
    ),
    SeedProcess(
        name="gcc",
        parent="bash",
        file_descriptors=(0, 1, 2, 5, 6),
        environment=dict(_SHELL_ENV),
        working_directory="/home/student",
    ),
)


def validate_topology(seeds: tuple[SeedProcess, ...] | list[SeedProcess]) -> None:
    """Check that a topology can be seeded in order.

    The first seed must be the root (no parent); every later seed must
    name a parent that appears earlier, and seed names must be unique.

    Raises:
        ValueError: If the topology is malformed.

    """
    if not seeds:
        msg = "A topology needs at least a root process"
        raise ValueError(msg)
    root, *rest = seeds
    if root.parent is not None:
        msg = f"The first seed must be the root, but {root.name!r} has parent {root.parent!r}"
        raise ValueError(msg)
    seen = {root.name}
    for seed in rest:
        if seed.parent is None:
            msg = f"Only the first seed may be a root ({seed.name!r} has no parent)"
            raise ValueError(msg)
        if seed.parent not in seen:
            msg = f"Seed {seed.name!r} names unknown or later parent {seed.parent!r}"
            raise ValueError(msg)
        if seed.name in seen:
            msg = f"Duplicate seed name {seed.name!r}"
            raise ValueError(msg)
        seen.add(seed.name)
