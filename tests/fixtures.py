"""
Shared test fixtures and helpers for DevDeck tests.

FakeHandle stands in for ProcessHandle wherever a test only cares about
bookkeeping (reconciliation, session transitions, rendering) and not about
real OS processes.
"""

import shlex
import sys
import time
from typing import Callable, List, Optional

from devdeck.exceptions import SpawnError
from devdeck.status_constants import HEALTH_UNCHECKED, STATE_ERROR, STATE_RUNNING, STATE_STOPPED
from devdeck.task_config import TaskRecord


def py_command(code: str) -> str:
    """Shell-style command running ``code`` with the current interpreter (unbuffered)."""
    return f"{shlex.quote(sys.executable)} -u -c {shlex.quote(code)}"


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.02) -> bool:
    """Poll ``predicate`` until it is true or ``timeout`` expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def make_task(name: str, command: str = "run", **kwargs) -> TaskRecord:
    return TaskRecord(name=name, command=command, **kwargs)


class FakeHandle:
    """In-memory ProcessHandle double that records lifecycle calls."""

    def __init__(self, task: TaskRecord, start_log: Optional[List[str]] = None, fail_start: bool = False):
        self.task = task
        self.state = STATE_STOPPED
        self.health_state = HEALTH_UNCHECKED
        self.cpu_percent = 0.0
        self.memory_rss = 0
        self.last_error = ""
        self.generation = 0
        self.start_calls = 0
        self.stop_calls = 0
        self.shutdown_calls = 0
        self.update_calls = 0
        self.inputs: List[str] = []
        self.fail_start = fail_start
        self._start_log = start_log
        self._buffer: List[str] = []

    @property
    def name(self) -> str:
        return self.task.name

    @property
    def is_running(self) -> bool:
        return self.state == STATE_RUNNING

    def start(self) -> None:
        self.generation += 1
        self.start_calls += 1
        if self._start_log is not None:
            self._start_log.append(self.name)
        if self.fail_start:
            self.state = STATE_ERROR
            self.last_error = "no such file"
            raise SpawnError(self.name, "no such file")
        self.state = STATE_RUNNING

    def stop(self) -> None:
        self.stop_calls += 1
        if self.state == STATE_RUNNING:
            self.state = STATE_STOPPED

    def restart(self) -> None:
        self.stop()
        self.start()

    def shutdown(self) -> None:
        self.shutdown_calls += 1
        self.stop()

    def update_task(self, task: TaskRecord) -> None:
        self.task = task
        self.update_calls += 1

    def send_input(self, text: str) -> None:
        if self.state == STATE_RUNNING:
            self.inputs.append(text)

    def sample_stats(self) -> None:
        pass

    def next_line(self, timeout=None):
        return None

    def append_log(self, line: str) -> None:
        self._buffer.append(line)

    def log_lines(self) -> List[str]:
        return list(self._buffer)


class FakeHandleFactory:
    """Handle factory that remembers every handle it built."""

    def __init__(self, failing: tuple = ()):
        self.created: List[FakeHandle] = []
        self.start_order: List[str] = []
        self.failing = set(failing)

    def __call__(self, task: TaskRecord) -> FakeHandle:
        handle = FakeHandle(task, start_log=self.start_order, fail_start=task.name in self.failing)
        self.created.append(handle)
        return handle
