"""
Error types for DevDeck.

Per-process errors (SpawnError, ProcessIOError, ProbeError) stay local to the
affected task. ReloadError is local to one reload attempt. Only InternalFault
ends the session.
"""


class DevDeckError(Exception):
    """Base class for all DevDeck errors."""


class SpawnError(DevDeckError):
    """A task's process could not be created."""

    def __init__(self, task_name: str, reason: str):
        super().__init__(f"{task_name}: {reason}")
        self.task_name = task_name
        self.reason = reason


class ProcessIOError(DevDeckError):
    """Reading from or writing to a child process pipe failed."""


class ProbeError(DevDeckError):
    """A health probe could not reach its target."""


class ReloadError(DevDeckError):
    """Task definitions could not be read or validated."""


class InternalFault(DevDeckError):
    """Unhandled fault inside the session loop."""
