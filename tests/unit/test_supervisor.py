"""Tests for SupervisorSet start-up and reconciliation."""

import time

import pytest

from devdeck.process_handle import ProcessHandle
from devdeck.status_constants import (
    HEALTH_HEALTHY,
    HEALTH_UNCHECKED,
    STATE_ERROR,
    STATE_RUNNING,
)
from devdeck.supervisor import ReconcileResult, SupervisorSet
from devdeck.task_config import HealthProbe, TaskRecord
from tests.fixtures import FakeHandleFactory, make_task, py_command, wait_until


def abc_tasks(**overrides):
    commands = {"A": "run a", "B": "run b", "C": "run c"}
    commands.update(overrides)
    return [make_task(name, command) for name, command in commands.items()]


@pytest.fixture
def factory():
    return FakeHandleFactory()


@pytest.fixture
def supervisor(factory):
    return SupervisorSet(handle_factory=factory)


class TestStartAll:
    """Tests for start_all."""

    def test_creates_handles_in_declaration_order(self, supervisor):
        handles = supervisor.start_all(abc_tasks())
        assert [h.name for h in handles] == ["A", "B", "C"]
        assert [h.name for h in supervisor.handles] == ["A", "B", "C"]
        assert all(h.state == STATE_RUNNING for h in handles)

    def test_starts_in_dependency_order(self, supervisor, factory):
        tasks = [
            make_task("web", depends_on=("api",)),
            make_task("api", depends_on=("db",)),
            make_task("db"),
        ]
        supervisor.start_all(tasks)
        assert factory.start_order == ["db", "api", "web"]
        assert [h.name for h in supervisor.handles] == ["web", "api", "db"]

    def test_spawn_failure_is_local(self):
        factory = FakeHandleFactory(failing=("B",))
        supervisor = SupervisorSet(handle_factory=factory)
        handles = supervisor.start_all(abc_tasks())
        assert [h.state for h in handles] == [STATE_RUNNING, STATE_ERROR, STATE_RUNNING]
        assert handles[1].last_error

    def test_lookup(self, supervisor):
        supervisor.start_all(abc_tasks())
        assert supervisor.get("B").name == "B"
        assert supervisor.get("Z") is None
        assert supervisor.index_of("C") == 2
        assert supervisor.index_of("Z") == -1
        assert len(supervisor) == 3

    def test_default_factory_is_process_handle(self):
        supervisor = SupervisorSet()
        assert supervisor._factory is ProcessHandle


class TestReconcile:
    """Tests for reconcile."""

    def test_identical_set_keeps_instances_and_buffers(self, supervisor):
        before = supervisor.start_all(abc_tasks())
        for handle in before:
            handle.append_log(f"{handle.name} line 1")
            handle.append_log(f"{handle.name} line 2")
        buffers = [h.log_lines() for h in before]

        result = supervisor.reconcile(abc_tasks())

        assert all(a is b for a, b in zip(result.handles, before))
        assert [h.log_lines() for h in supervisor.handles] == buffers
        assert result.started == []
        assert result.kept == ["A", "B", "C"]
        assert all(h.start_calls == 1 and h.shutdown_calls == 0 for h in before)

    def test_changed_task_replaced_once(self, supervisor):
        """Scenario: only B's command changes."""
        a, b, c = supervisor.start_all(abc_tasks())
        a.append_log("a out")
        b.append_log("b out")
        c.append_log("c out")

        result = supervisor.reconcile(abc_tasks(B="run b --new"))

        new_a, new_b, new_c = supervisor.handles
        assert [h.name for h in supervisor.handles] == ["A", "B", "C"]
        assert new_a is a and new_c is c
        assert new_a.log_lines() == ["a out"] and new_a.generation == 1
        assert new_c.log_lines() == ["c out"] and new_c.generation == 1
        assert new_b is not b
        assert new_b.generation == 1
        assert new_b.log_lines() == []
        assert new_b.task.command == "run b --new"
        assert b.shutdown_calls == 1
        assert result.replaced == ["B"]
        assert result.started == [new_b]

    @pytest.mark.parametrize("change", [
        {"directory": "/elsewhere"},
        {"environment": ("A=1",)},
    ])
    def test_directory_or_environment_change_replaces(self, supervisor, change):
        supervisor.start_all([make_task("A")])
        old = supervisor.get("A")
        supervisor.reconcile([make_task("A", **change)])
        assert supervisor.get("A") is not old
        assert old.shutdown_calls == 1

    def test_metadata_change_keeps_handle(self, supervisor):
        supervisor.start_all([make_task("A")])
        old = supervisor.get("A")
        new_task = make_task("A", groups=("g",))
        result = supervisor.reconcile([new_task])
        assert supervisor.get("A") is old
        assert old.task is new_task
        assert result.kept == ["A"]

    def test_metadata_change_goes_through_update_task(self, supervisor):
        supervisor.start_all([make_task("A", health_probe=HealthProbe("tcp", "localhost:1"))])
        old = supervisor.get("A")
        supervisor.reconcile([make_task("A")])
        assert old.update_calls == 1
        assert old.task.health_probe is None
        assert old.start_calls == 1 and old.shutdown_calls == 0

    def test_removed_task_shut_down(self, supervisor):
        a, b, c = supervisor.start_all(abc_tasks())
        result = supervisor.reconcile([t for t in abc_tasks() if t.name != "B"])
        assert [h.name for h in supervisor.handles] == ["A", "C"]
        assert b.shutdown_calls == 1
        assert a.shutdown_calls == 0 and c.shutdown_calls == 0
        assert result.removed == ["B"]

    def test_added_task_started(self, supervisor):
        supervisor.start_all(abc_tasks())
        result = supervisor.reconcile(abc_tasks() + [make_task("D", "run d")])
        assert [h.name for h in supervisor.handles] == ["A", "B", "C", "D"]
        assert [h.name for h in result.started] == ["D"]
        assert result.added == ["D"]
        assert result.started[0].state == STATE_RUNNING

    def test_reorder_keeps_instances(self, supervisor):
        before = {h.name: h for h in supervisor.start_all(abc_tasks())}
        reordered = list(reversed(abc_tasks()))
        supervisor.reconcile(reordered)
        assert [h.name for h in supervisor.handles] == ["C", "B", "A"]
        assert all(before[h.name] is h for h in supervisor.handles)

    def test_empty_set_removes_everything(self, supervisor):
        handles = supervisor.start_all(abc_tasks())
        supervisor.reconcile([])
        assert supervisor.handles == []
        assert all(h.shutdown_calls == 1 for h in handles)

    def test_back_to_back_reloads(self, supervisor):
        supervisor.start_all(abc_tasks())
        first = supervisor.reconcile(abc_tasks(B="v2"))
        second = supervisor.reconcile(abc_tasks(B="v3"))
        assert first.started[0] is not second.started[0]
        assert first.started[0].shutdown_calls == 1
        assert supervisor.get("B").task.command == "v3"

    def test_is_current(self, supervisor):
        old_b = supervisor.start_all(abc_tasks())[1]
        supervisor.reconcile(abc_tasks(B="v2"))
        assert not supervisor.is_current(old_b)
        assert supervisor.is_current(supervisor.get("B"))


class TestReconcileResult:
    """Tests for the reconcile summary."""

    def test_no_changes(self):
        assert ReconcileResult(kept=["A"]).summary() == "Config reloaded: no changes"

    def test_summary_lists_changes(self):
        result = ReconcileResult(added=["D"], replaced=["B"], removed=["C"])
        assert result.summary() == "Config reloaded: added D; restarted B; removed C"


class TestStopAll:
    """Tests for stop_all."""

    def test_shuts_down_every_handle(self, supervisor):
        handles = supervisor.start_all(abc_tasks())
        supervisor.stop_all()
        assert all(h.shutdown_calls == 1 for h in handles)


@pytest.mark.slow
class TestReconcileWithProcesses:
    """The A/B/C reload scenario with real child processes."""

    def test_only_changed_task_restarts(self):
        sleeper = "import time; time.sleep(30)"
        tasks = [TaskRecord(n, py_command(sleeper)) for n in ("A", "B", "C")]
        supervisor = SupervisorSet()
        try:
            a, b, c = supervisor.start_all(tasks)
            for handle in (a, b, c):
                handle.append_log(f"{handle.name} output")

            changed = [tasks[0], TaskRecord("B", py_command(sleeper + " ")), tasks[2]]
            supervisor.reconcile(changed)

            new_a, new_b, new_c = supervisor.handles
            assert new_a is a and new_c is c
            assert a.log_lines() == ["A output"] and a.generation == 1
            assert c.log_lines() == ["C output"] and c.generation == 1
            assert new_b is not b
            assert new_b.generation == 1
            assert new_b.log_lines() == []
            assert new_b.state == STATE_RUNNING
            assert b.closed
            assert wait_until(lambda: b.state != STATE_RUNNING)
        finally:
            supervisor.stop_all()

    def test_kept_handle_follows_removed_probe(self):
        calls = []
        sleeper = py_command("import time; time.sleep(30)")
        probe = HealthProbe("tcp", "localhost:1", interval=0.05, timeout=0.05)

        def factory(task):
            return ProcessHandle(task, health_checker=lambda p: calls.append(p) or True)

        supervisor = SupervisorSet(handle_factory=factory)
        try:
            (handle,) = supervisor.start_all([TaskRecord("A", sleeper, health_probe=probe)])
            assert wait_until(lambda: handle.health_state == HEALTH_HEALTHY)

            supervisor.reconcile([TaskRecord("A", sleeper)])

            assert supervisor.get("A") is handle
            assert handle.task.health_probe is None
            assert handle.health_state == HEALTH_UNCHECKED
            count = len(calls)
            time.sleep(0.3)
            assert len(calls) <= count + 1
            assert handle.health_state == HEALTH_UNCHECKED
        finally:
            supervisor.stop_all()
