"""
Task definitions: data model and loader.

A task file is YAML or JSON with a ``tasks`` list and an optional ``theme``
mapping::

    tasks:
      - name: api
        command: npm run dev
        directory: ./services/api
        env: [PORT=8080]
        env_file: .env
        health_check: {type: http, target: "http://localhost:8080/health", interval: 2000, timeout: 1000}
        depends_on: [db]
        groups: [backend]
    theme:
      primary: "205"

TaskRecords are immutable. A reload produces new records, and reconciliation
compares them with ``same_runtime``.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import yaml
from dotenv import dotenv_values

from .exceptions import ReloadError
from .logging_config import get_logger
from .settings import DEFAULTS
from .status_constants import PROBE_KINDS

log = get_logger("task_config")


@dataclass(frozen=True)
class HealthProbe:
    """Periodic reachability check. Interval and timeout are in seconds."""

    kind: str
    target: str
    interval: float = DEFAULTS.probe_interval
    timeout: float = DEFAULTS.probe_timeout


@dataclass(frozen=True)
class TaskRecord:
    """One supervised command."""

    name: str
    command: str
    directory: Optional[str] = None
    environment: Tuple[str, ...] = ()
    health_probe: Optional[HealthProbe] = None
    depends_on: Tuple[str, ...] = ()
    groups: Tuple[str, ...] = ()

    def same_runtime(self, other: "TaskRecord") -> bool:
        """True if both records would launch the same process.

        Compares command, directory and the environment sequence
        positionally. Probe, dependency and group metadata are ignored.
        """
        return (
            self.command == other.command
            and self.directory == other.directory
            and tuple(self.environment) == tuple(other.environment)
        )


@dataclass(frozen=True)
class Theme:
    """Colors for the dashboard. Numeric strings are 256-color indices."""

    primary: str = "205"
    secondary: str = "#7D56F4"
    border: str = "63"
    text: str = "240"

    def color(self, key: str) -> str:
        """Get a Rich color string for a theme key."""
        value = getattr(self, key)
        if value.isdigit():
            return f"color({value})"
        return value


@dataclass(frozen=True)
class TaskSet:
    """Ordered task definitions plus the theme loaded with them."""

    tasks: Tuple[TaskRecord, ...] = ()
    theme: Theme = field(default_factory=Theme)
    source: Optional[Path] = None

    @property
    def names(self) -> List[str]:
        return [task.name for task in self.tasks]


def parse_env_file(path: Path) -> List[str]:
    """Read a dotenv file into KEY=VALUE entries (file order).

    Raises:
        OSError: If the file cannot be read
    """
    if not path.is_file():
        raise FileNotFoundError(f"env file not found: {path}")
    values = dotenv_values(path)
    return [f"{key}={value}" for key, value in values.items() if value is not None]


def _read_document(path: Path) -> Dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ReloadError(f"failed to read config file: {e}") from e

    ext = path.suffix.lower()
    if ext == ".json":
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ReloadError(f"failed to parse JSON config file: {e}") from e
    elif ext in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise ReloadError(f"failed to parse YAML config file: {e}") from e
    else:
        raise ReloadError(f"unsupported config file extension: {ext or '(none)'}")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ReloadError("config file must contain a mapping with a 'tasks' list")
    return data


def _string_list(value: Any, what: str, task_name: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ReloadError(f"task '{task_name}': '{what}' must be a list")
    return [str(item) for item in value]


def _parse_probe(raw: Any, task_name: str) -> Optional[HealthProbe]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ReloadError(f"task '{task_name}': 'health_check' must be a mapping")

    kind = str(raw.get("type", "")).lower()
    if kind not in PROBE_KINDS:
        raise ReloadError(
            f"task '{task_name}': health_check type must be one of {', '.join(PROBE_KINDS)}"
        )
    target = raw.get("target")
    if not target:
        raise ReloadError(f"task '{task_name}': health_check needs a target")

    def millis(key: str, default: float) -> float:
        value = raw.get(key) or 0
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise ReloadError(f"task '{task_name}': health_check {key} must be a number (ms)")
        if value < 0:
            raise ReloadError(f"task '{task_name}': health_check {key} must not be negative")
        # 0 or missing means "use the default", as in the file format docs
        return value / 1000.0 if value else default

    return HealthProbe(
        kind=kind,
        target=str(target),
        interval=millis("interval", DEFAULTS.probe_interval),
        timeout=millis("timeout", DEFAULTS.probe_timeout),
    )


def _parse_task(raw: Any, index: int, config_dir: Path) -> TaskRecord:
    if not isinstance(raw, dict):
        raise ReloadError(f"task #{index + 1} must be a mapping")

    name = raw.get("name")
    if not name or not isinstance(name, str):
        raise ReloadError(f"task #{index + 1} is missing a name")
    command = raw.get("command")
    if not command or not isinstance(command, str) or not command.strip():
        raise ReloadError(f"task '{name}' is missing a command")

    directory = raw.get("directory")
    if directory:
        dir_path = Path(str(directory)).expanduser()
        if not dir_path.is_absolute():
            dir_path = config_dir / dir_path
        directory = str(dir_path)
    else:
        directory = None

    environment = _string_list(raw.get("env"), "env", name)
    env_file = raw.get("env_file")
    if env_file:
        env_path = Path(str(env_file)).expanduser()
        if not env_path.is_absolute():
            env_path = config_dir / env_path
        try:
            # File entries go first so explicit env entries win
            environment = parse_env_file(env_path) + environment
        except OSError as e:
            log.warning(f"Task '{name}': failed to load env_file {env_path}: {e}")

    return TaskRecord(
        name=name,
        command=command,
        directory=directory,
        environment=tuple(environment),
        health_probe=_parse_probe(raw.get("health_check"), name),
        depends_on=tuple(_string_list(raw.get("depends_on"), "depends_on", name)),
        groups=tuple(_string_list(raw.get("groups"), "groups", name)),
    )


def _parse_theme(raw: Any) -> Theme:
    if raw is None:
        return Theme()
    if not isinstance(raw, dict):
        raise ReloadError("'theme' must be a mapping")
    defaults = Theme()
    values = {}
    for key in ("primary", "secondary", "border", "text"):
        value = raw.get(key)
        values[key] = str(value) if value not in (None, "") else getattr(defaults, key)
    return Theme(**values)


def startup_order(tasks: Sequence[TaskRecord]) -> List[TaskRecord]:
    """Order tasks so each one comes after the tasks it depends on.

    Stable: among tasks whose dependencies are satisfied, declaration order
    wins.

    Raises:
        ReloadError: On unknown dependencies or dependency cycles
    """
    by_name = {task.name: task for task in tasks}
    for task in tasks:
        for dep in task.depends_on:
            if dep not in by_name:
                raise ReloadError(f"task '{task.name}' depends on unknown task '{dep}'")

    ordered: List[TaskRecord] = []
    placed = set()
    remaining = list(tasks)
    while remaining:
        progressed = False
        for task in list(remaining):
            if all(dep in placed for dep in task.depends_on):
                ordered.append(task)
                placed.add(task.name)
                remaining.remove(task)
                progressed = True
                break
        if not progressed:
            names = ", ".join(task.name for task in remaining)
            raise ReloadError(f"dependency cycle between tasks: {names}")
    return ordered


def select_groups(tasks: Sequence[TaskRecord], groups: Optional[Iterable[str]]) -> Tuple[TaskRecord, ...]:
    """Keep tasks in any of the given groups, plus their dependencies.

    Declaration order is preserved. No groups means every task.
    """
    wanted = set(groups or ())
    if not wanted:
        return tuple(tasks)

    by_name = {task.name: task for task in tasks}
    keep = set()
    pending = [task.name for task in tasks if wanted.intersection(task.groups)]
    while pending:
        name = pending.pop()
        if name in keep or name not in by_name:
            continue
        keep.add(name)
        pending.extend(by_name[name].depends_on)
    return tuple(task for task in tasks if task.name in keep)


def load_tasks(path: Path, groups: Optional[Iterable[str]] = None) -> TaskSet:
    """Load and validate a task file.

    Args:
        path: YAML (.yaml/.yml) or JSON (.json) task file
        groups: Optional group names to restrict the task set to

    Returns:
        TaskSet in declaration order

    Raises:
        ReloadError: If the file can't be read, parsed or validated
    """
    path = Path(path)
    data = _read_document(path)
    config_dir = path.resolve().parent

    raw_tasks = data.get("tasks") or []
    if not isinstance(raw_tasks, list):
        raise ReloadError("'tasks' must be a list")

    tasks = [_parse_task(raw, i, config_dir) for i, raw in enumerate(raw_tasks)]

    seen = set()
    for task in tasks:
        if task.name in seen:
            raise ReloadError(f"duplicate task name '{task.name}'")
        seen.add(task.name)

    # Validates dependencies and rejects cycles
    startup_order(tasks)

    selected = select_groups(tasks, groups)
    return TaskSet(tasks=selected, theme=_parse_theme(data.get("theme")), source=path)
