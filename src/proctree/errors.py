"""Exceptions raised by the process lifecycle model.

Every failure a caller can provoke derives from ``ProcessError`` so the
shell and the web layer can catch one type and turn it into a
user-visible rejection.  None of these are fatal: the registry is left
exactly as it was before the rejected call.

The one exception that does *not* derive from ``ProcessError`` is
``DuplicatePidError``.  It means the pid allocator handed out the same
number twice, which is an internal fault rather than a bad request, so
it is a ``RuntimeError`` and is never caught by the adapters.
"""


class ProcessError(Exception):
    """Base class for caller-facing process lifecycle failures."""


class NoSuchProcessError(ProcessError, LookupError):
    """Raise when a referenced pid is not in the registry."""


class ForbiddenError(ProcessError):
    """Raise when an operation targets the protected root process."""


class NoKillableParentError(ProcessError):
    """Raise when kill-parent is asked to kill the root process."""


class ProcessStateError(ProcessError):
    """Raise when a transition is attempted from the wrong state.

    For example terminating a process that is already a zombie, or
    forking from one.
    """


class DemoAbortedError(ProcessError):
    """Raise when a step of the scripted demo fails."""


class DuplicatePidError(RuntimeError):
    """Raise when a pid is inserted twice (the allocator is broken)."""
