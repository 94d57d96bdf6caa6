"""proctree — a behavioural model of the Unix process lifecycle.

Processes are forked, have their images replaced, terminate into
zombies, leave orphans for init to adopt, and are reaped after a delay.

Re-exports the public symbols so callers can write::

    from proctree import LifecycleEngine, DEFAULT_TOPOLOGY
"""

from proctree.demo import DemoResult, DemoRunner
from proctree.engine import (
    PROGRAM_IMAGES,
    REAP_DELAY,
    LifecycleEngine,
    ProgramImage,
    SystemStatus,
    TerminationReport,
)
from proctree.errors import (
    DemoAbortedError,
    DuplicatePidError,
    ForbiddenError,
    NoKillableParentError,
    NoSuchProcessError,
    ProcessError,
    ProcessStateError,
)
from proctree.process import ROOT_PID, Process, ProcessInfo, ProcessStatus
from proctree.reaper import ReclamationScheduler
from proctree.registry import ProcessRegistry
from proctree.topology import DEFAULT_TOPOLOGY, SeedProcess
from proctree.views import ViewMode, render_tree

__all__ = [
    "DEFAULT_TOPOLOGY",
    "PROGRAM_IMAGES",
    "REAP_DELAY",
    "ROOT_PID",
    "DemoAbortedError",
    "DemoResult",
    "DemoRunner",
    "DuplicatePidError",
    "ForbiddenError",
    "LifecycleEngine",
    "NoKillableParentError",
    "NoSuchProcessError",
    "Process",
    "ProcessError",
    "ProcessInfo",
    "ProcessRegistry",
    "ProcessStateError",
    "ProcessStatus",
    "ProgramImage",
    "ReclamationScheduler",
    "SeedProcess",
    "SystemStatus",
    "TerminationReport",
    "ViewMode",
    "render_tree",
]
