"""
Supervisor set: the ordered name -> ProcessHandle map.

Owns start-up and reconciliation. Reconciliation diffs the running handles
against a freshly loaded task list and applies the smallest change: unchanged
tasks keep their handle (buffer, generation and stats intact), changed tasks
get a fresh handle, removed tasks are shut down.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from .exceptions import ReloadError, SpawnError
from .logging_config import get_logger, get_structured_logger
from .process_handle import ProcessHandle
from .task_config import TaskRecord, startup_order

log = get_logger("supervisor")
slog = get_structured_logger("supervisor")

HandleFactory = Callable[[TaskRecord], ProcessHandle]


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation.

    ``started`` holds every handle that needs an output subscription: new
    tasks and replacements.
    """

    handles: List[ProcessHandle] = field(default_factory=list)
    started: List[ProcessHandle] = field(default_factory=list)
    kept: List[str] = field(default_factory=list)
    replaced: List[str] = field(default_factory=list)
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)

    def summary(self) -> str:
        """One-line description for the operator."""
        parts = []
        if self.added:
            parts.append(f"added {', '.join(self.added)}")
        if self.replaced:
            parts.append(f"restarted {', '.join(self.replaced)}")
        if self.removed:
            parts.append(f"removed {', '.join(self.removed)}")
        if not parts:
            return "Config reloaded: no changes"
        return "Config reloaded: " + "; ".join(parts)


def _start_handle(handle: ProcessHandle) -> None:
    try:
        handle.start()
    except SpawnError as e:
        # Handle stays in the error state and shows the reason inline
        log.warning(f"Spawn failed: {e}")


class SupervisorSet:
    """Ordered collection of process handles, keyed by task name."""

    def __init__(self, handle_factory: Optional[HandleFactory] = None):
        self._factory = handle_factory or ProcessHandle
        self._handles: List[ProcessHandle] = []

    @property
    def handles(self) -> List[ProcessHandle]:
        return list(self._handles)

    def __len__(self) -> int:
        return len(self._handles)

    def get(self, name: str) -> Optional[ProcessHandle]:
        for handle in self._handles:
            if handle.name == name:
                return handle
        return None

    def index_of(self, name: str) -> int:
        """Position of the named task, or -1."""
        for i, handle in enumerate(self._handles):
            if handle.name == name:
                return i
        return -1

    def is_current(self, handle: ProcessHandle) -> bool:
        """True if ``handle`` is the live handle for its task name."""
        return self.get(handle.name) is handle

    def start_all(self, tasks: Sequence[TaskRecord]) -> List[ProcessHandle]:
        """Create handles in declaration order and start them in dependency order.

        Returns:
            The handles to subscribe to (all of them)
        """
        self._handles = [self._factory(task) for task in tasks]
        by_name = {handle.name: handle for handle in self._handles}
        try:
            order = startup_order(tasks)
        except ReloadError as e:
            log.warning(f"Ignoring dependency order: {e}")
            order = list(tasks)
        for task in order:
            _start_handle(by_name[task.name])
        log.info(f"Started {len(self._handles)} task(s)")
        return list(self._handles)

    def reconcile(self, tasks: Sequence[TaskRecord]) -> ReconcileResult:
        """Bring the running set in line with ``tasks``.

        Handles are matched by task name. Old handles that are replaced or
        removed are shut down exactly once.
        """
        existing: Dict[str, ProcessHandle] = {h.name: h for h in self._handles}
        result = ReconcileResult()

        for task in tasks:
            old = existing.pop(task.name, None)
            if old is not None and old.task.same_runtime(task):
                # Metadata (probe, deps, groups) may have changed; keep the process
                old.update_task(task)
                result.handles.append(old)
                result.kept.append(task.name)
                continue

            if old is not None:
                old.shutdown()
                result.replaced.append(task.name)
            else:
                result.added.append(task.name)

            handle = self._factory(task)
            _start_handle(handle)
            result.handles.append(handle)
            result.started.append(handle)

        for name, handle in existing.items():
            handle.shutdown()
            result.removed.append(name)

        self._handles = result.handles
        slog.info(
            "Reconciled task set",
            kept=len(result.kept),
            added=",".join(result.added) or "-",
            replaced=",".join(result.replaced) or "-",
            removed=",".join(result.removed) or "-",
        )
        return result

    def stop_all(self) -> None:
        """Shut down every handle."""
        for handle in self._handles:
            handle.shutdown()
