"""
ProcessHandle: one supervised OS child process.

The handle owns its child process, the reader/exit-waiter/probe threads
around it, and a bounded queue of output lines. The dashboard consumes that
queue one line at a time with ``next_line()``; when it falls behind, the
queue fills up and the reader threads block.

Every ``start()`` bumps ``generation``. Asynchronous completions (process
exit, probe results) carry the generation they were armed with and are
dropped when it is no longer current.
"""

import os
import queue
import shlex
import signal
import subprocess
import threading
import time
from typing import Callable, Dict, List, Optional

import psutil

from .exceptions import ProcessIOError, SpawnError
from .health import check_health
from .logging_config import get_logger
from .settings import DEFAULTS
from .status_constants import (
    HEALTH_HEALTHY,
    HEALTH_STARTING,
    HEALTH_UNCHECKED,
    HEALTH_UNHEALTHY,
    STATE_ERROR,
    STATE_RUNNING,
    STATE_STOPPED,
)
from .task_config import HealthProbe, TaskRecord

log = get_logger("process")

# How often blocked queue operations re-check for shutdown (seconds)
_POLL_INTERVAL = 0.1


def merge_environment(base: Dict[str, str], entries) -> Dict[str, str]:
    """Overlay KEY=VALUE entries on a base environment. Later entries win."""
    env = dict(base)
    for entry in entries:
        key, sep, value = entry.partition("=")
        if not sep or not key:
            log.warning(f"Ignoring malformed environment entry: {entry!r}")
            continue
        env[key] = value
    return env


def describe_exit(returncode: int) -> str:
    """Human-readable reason for a non-zero exit."""
    if returncode < 0:
        return f"killed by signal {-returncode}"
    return f"exited with status {returncode}"


class ProcessHandle:
    """Runtime record for one task's OS process.

    Attributes read by the dashboard: ``task``, ``state``, ``health_state``,
    ``cpu_percent``, ``memory_rss``, ``last_error``, ``generation``.
    """

    def __init__(
        self,
        task: TaskRecord,
        output_capacity: int = DEFAULTS.output_capacity,
        stop_timeout: float = DEFAULTS.stop_timeout,
        health_checker: Optional[Callable[[HealthProbe], bool]] = None,
    ):
        self.task = task
        self.state = STATE_STOPPED
        self.health_state = HEALTH_UNCHECKED
        self.cpu_percent = 0.0
        self.memory_rss = 0
        self.last_error = ""
        self.generation = 0

        self.stop_timeout = stop_timeout
        self._health_checker = health_checker or check_health
        self._log_buffer: List[str] = []
        self._output: "queue.Queue[str]" = queue.Queue(maxsize=output_capacity)
        self._closed = threading.Event()
        self._lock = threading.RLock()
        self._proc: Optional[subprocess.Popen] = None
        self._ps: Optional[psutil.Process] = None
        self._stop_requested = False
        self._probe_stop: Optional[threading.Event] = None

    def __repr__(self) -> str:
        return f"<ProcessHandle {self.name} {self.state} gen={self.generation}>"

    @property
    def name(self) -> str:
        return self.task.name

    @property
    def is_running(self) -> bool:
        return self.state == STATE_RUNNING

    @property
    def pid(self) -> Optional[int]:
        proc = self._proc
        return proc.pid if proc is not None else None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Launch the task's command.

        Callers stop a running instance first (see ``restart``).

        Raises:
            SpawnError: If the process could not be created. The handle is
                left in the error state with ``last_error`` set.
        """
        with self._lock:
            self.generation += 1
            gen = self.generation
            self._stop_requested = False
            if self._probe_stop is not None:
                self._probe_stop.set()
                self._probe_stop = None

            try:
                args = shlex.split(self.task.command)
            except ValueError as e:
                self._fail_spawn(f"invalid command: {e}")
            if not args:
                self._fail_spawn("empty command")

            env = merge_environment(os.environ, self.task.environment)
            try:
                proc = subprocess.Popen(
                    args,
                    cwd=self.task.directory or None,
                    env=env,
                    stdin=subprocess.PIPE,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    start_new_session=(os.name == "posix"),
                )
            except OSError as e:
                self._fail_spawn(e.strerror or str(e))

            self._proc = proc
            self.state = STATE_RUNNING
            self.last_error = ""
            self.cpu_percent = 0.0
            self.memory_rss = 0
            try:
                self._ps = psutil.Process(proc.pid)
                # First call primes the CPU counter; it always returns 0.0
                self._ps.cpu_percent(None)
            except psutil.Error:
                self._ps = None

            probe_stop = None
            if self.task.health_probe is not None:
                self.health_state = HEALTH_STARTING
                probe_stop = threading.Event()
                self._probe_stop = probe_stop
            else:
                self.health_state = HEALTH_UNCHECKED

        log.info(f"Started '{self.name}' (pid {proc.pid}, generation {gen})")

        readers = [
            self._spawn_thread(self._read_stream, proc.stdout, "stdout"),
            self._spawn_thread(self._read_stream, proc.stderr, "stderr"),
        ]
        self._spawn_thread(self._wait_exit, proc, gen, readers, label="exit")
        if probe_stop is not None:
            self._spawn_thread(
                self._probe_loop, gen, self.task.health_probe, probe_stop, label="probe"
            )

    def _fail_spawn(self, reason: str) -> None:
        self.state = STATE_ERROR
        self.health_state = HEALTH_UNCHECKED
        self.last_error = reason
        self._proc = None
        self._ps = None
        log.error(f"Failed to start '{self.name}': {reason}")
        raise SpawnError(self.name, reason)

    def stop(self) -> None:
        """Ask the process to terminate. No-op unless running.

        Returns immediately. The exit waiter observes the exit; if the same
        process is still alive after ``stop_timeout`` it is killed.
        """
        with self._lock:
            proc = self._proc
            if self.state != STATE_RUNNING or proc is None:
                return
            self._stop_requested = True

        log.info(f"Stopping '{self.name}' (pid {proc.pid})")
        self._signal(proc, terminate=True)

        timer = threading.Timer(self.stop_timeout, self._escalate, args=(proc,))
        timer.daemon = True
        timer.start()

    def restart(self) -> None:
        """Stop the current instance and start a new one.

        Raises:
            SpawnError: If the new instance could not be created
        """
        self.stop()
        self.start()

    def shutdown(self) -> None:
        """Stop the process and close the output subscription for good."""
        self.stop()
        with self._lock:
            if self._probe_stop is not None:
                self._probe_stop.set()
                self._probe_stop = None
        self._closed.set()

    def update_task(self, task: TaskRecord) -> None:
        """Swap in a record with the same runtime identity.

        The process keeps running; the probe loop is re-armed for the new
        record's health check (or stopped if it has none).
        """
        with self._lock:
            self.task = task
            if self._probe_stop is not None:
                self._probe_stop.set()
                self._probe_stop = None
            probe_stop = None
            if self.state == STATE_RUNNING and task.health_probe is not None:
                self.health_state = HEALTH_STARTING
                probe_stop = threading.Event()
                self._probe_stop = probe_stop
            else:
                self.health_state = HEALTH_UNCHECKED
            gen = self.generation

        if probe_stop is not None:
            self._spawn_thread(self._probe_loop, gen, task.health_probe, probe_stop, label="probe")

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def apply_exit(self, generation: int, returncode: int) -> bool:
        """Apply an exit notification from the instance started as ``generation``.

        Returns:
            True if applied, False if the notification was stale
        """
        with self._lock:
            if generation != self.generation:
                log.debug(
                    f"Ignoring stale exit of '{self.name}' "
                    f"(generation {generation}, current {self.generation})"
                )
                return False

            if self._stop_requested or returncode == 0:
                self.state = STATE_STOPPED
                self.last_error = ""
            else:
                self.state = STATE_ERROR
                self.last_error = describe_exit(returncode)
            self.health_state = HEALTH_UNCHECKED
            self.cpu_percent = 0.0
            self.memory_rss = 0
            self._proc = None
            self._ps = None
            if self._probe_stop is not None:
                self._probe_stop.set()
                self._probe_stop = None

        log.info(f"'{self.name}' exited with code {returncode} -> {self.state}")
        return True

    # -------------------------------------------------------------------------
    # Interaction
    # -------------------------------------------------------------------------

    def send_input(self, text: str) -> None:
        """Write a line to the process's stdin. No-op unless running.

        Write failures are logged and close stdin; they are never raised.
        """
        with self._lock:
            proc = self._proc
            if self.state != STATE_RUNNING or proc is None or proc.stdin is None:
                return
            stdin = proc.stdin

        try:
            self._write_line(stdin, text)
        except ProcessIOError as e:
            log.warning(f"Input to '{self.name}' failed, closing stdin: {e}")
            try:
                stdin.close()
            except OSError:
                pass

    @staticmethod
    def _write_line(stream, text: str) -> None:
        if stream.closed:
            raise ProcessIOError("stdin already closed")
        try:
            stream.write((text + "\n").encode("utf-8"))
            stream.flush()
        except (OSError, ValueError) as e:
            raise ProcessIOError(str(e)) from e

    def sample_stats(self) -> None:
        """Refresh CPU percent and resident memory.

        Zeroes both when not running. Never raises: a vanished process zeroes
        the sample, an access error keeps the previous one.
        """
        with self._lock:
            ps = self._ps
            running = self.state == STATE_RUNNING

        if not running or ps is None:
            self.cpu_percent = 0.0
            self.memory_rss = 0
            return

        try:
            with ps.oneshot():
                cpu = ps.cpu_percent(None)
                rss = ps.memory_info().rss
        except psutil.NoSuchProcess:
            self.cpu_percent = 0.0
            self.memory_rss = 0
            return
        except psutil.Error as e:
            log.debug(f"Stats sample for '{self.name}' failed: {e}")
            return

        self.cpu_percent = cpu
        self.memory_rss = rss

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def next_line(self, timeout: Optional[float] = None) -> Optional[str]:
        """Block until the next output line is available.

        Returns:
            The line, or None once the handle is shut down (or the timeout
            expires)
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while not self._closed.is_set():
            wait = _POLL_INTERVAL
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                wait = min(wait, remaining)
            try:
                return self._output.get(timeout=wait)
            except queue.Empty:
                continue
        return None

    def append_log(self, line: str) -> None:
        self._log_buffer.append(line)

    def log_lines(self) -> List[str]:
        """Copy of the log buffer."""
        return list(self._log_buffer)

    @property
    def log_length(self) -> int:
        return len(self._log_buffer)

    # -------------------------------------------------------------------------
    # Background threads
    # -------------------------------------------------------------------------

    def _spawn_thread(self, target, *args, label: Optional[str] = None) -> threading.Thread:
        name = f"devdeck-{self.name}-{label or args[-1]}"
        thread = threading.Thread(target=target, args=args, name=name, daemon=True)
        thread.start()
        return thread

    def _read_stream(self, stream, label: str) -> None:
        try:
            with stream:
                for raw in iter(stream.readline, b""):
                    line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                    if not self._put_line(line):
                        break
        except (OSError, ValueError) as e:
            log.warning(f"Reading {label} of '{self.name}' failed: {e}")

    def _put_line(self, line: str) -> bool:
        """Queue a line, blocking while the queue is full. False once closed."""
        while not self._closed.is_set():
            try:
                self._output.put(line, timeout=_POLL_INTERVAL)
                return True
            except queue.Full:
                continue
        return False

    def _wait_exit(self, proc: subprocess.Popen, generation: int, readers) -> None:
        returncode = proc.wait()
        for reader in readers:
            reader.join(timeout=1.0)
        if proc.stdin is not None:
            try:
                proc.stdin.close()
            except OSError:
                pass
        self.apply_exit(generation, returncode)

    def _probe_loop(self, generation: int, probe: HealthProbe, stop_event: threading.Event) -> None:
        # First probe runs right away, then once per interval
        while True:
            with self._lock:
                stale = stop_event.is_set() or generation != self.generation
                if stale or self.state != STATE_RUNNING:
                    break
            healthy = self._health_checker(probe)
            with self._lock:
                if stop_event.is_set() or generation != self.generation:
                    break
                if self.state != STATE_RUNNING:
                    self.health_state = HEALTH_UNCHECKED
                    break
                self.health_state = HEALTH_HEALTHY if healthy else HEALTH_UNHEALTHY
            log.debug(f"Probe of '{self.name}': {'healthy' if healthy else 'unhealthy'}")
            if stop_event.wait(probe.interval):
                break

    # -------------------------------------------------------------------------
    # Signals
    # -------------------------------------------------------------------------

    def _signal(self, proc: subprocess.Popen, terminate: bool) -> None:
        if os.name == "posix":
            sig = signal.SIGTERM if terminate else signal.SIGKILL
            try:
                os.killpg(proc.pid, sig)
                return
            except ProcessLookupError:
                return
            except PermissionError:
                pass
        try:
            if terminate:
                proc.terminate()
            else:
                proc.kill()
        except OSError as e:
            log.debug(f"Signal to '{self.name}' failed: {e}")

    def _escalate(self, proc: subprocess.Popen) -> None:
        if proc.poll() is not None:
            return
        log.warning(
            f"'{self.name}' (pid {proc.pid}) ignored termination for "
            f"{self.stop_timeout:g}s, killing"
        )
        self._signal(proc, terminate=False)
