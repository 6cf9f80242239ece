"""Unit tests for the task graph."""

from __future__ import annotations

import pytest

from bettertesting.build.context import BuildContext
from bettertesting.build.graph import DEPENDS_ON, MUST_RUN_AFTER, Edge, TaskGraph
from bettertesting.build.tasks import LifecycleStage, Task, TestRunTask
from bettertesting.errors import CycleError


def _graph(*names: str) -> TaskGraph:
    graph = TaskGraph()
    for name in names:
        graph.add_task(Task(name=name))
    return graph


class TestMutation:
    """Tests for adding tasks and edges."""

    def test_add_task(self):
        graph = TaskGraph()
        task = graph.add_task(Task(name="a"))
        assert graph.get("a") is task
        assert "a" in graph

    def test_duplicate_task_rejected(self):
        graph = _graph("a")
        with pytest.raises(ValueError, match="already exists"):
            graph.add_task(Task(name="a"))

    def test_add_edge_idempotent(self):
        graph = _graph("a", "b")
        first = graph.add_edge("a", "b", DEPENDS_ON)
        second = graph.add_edge("a", "b", DEPENDS_ON)
        assert first == second
        assert graph.edges == [Edge("a", "b", DEPENDS_ON)]

    def test_same_pair_different_kinds(self):
        graph = _graph("a", "b")
        graph.add_edge("a", "b", DEPENDS_ON)
        graph.add_edge("a", "b", MUST_RUN_AFTER)
        assert len(graph.edges) == 2

    def test_unknown_task_rejected(self):
        graph = _graph("a")
        with pytest.raises(ValueError, match="Unknown task: b"):
            graph.add_edge("a", "b")

    def test_unknown_kind_rejected(self):
        graph = _graph("a", "b")
        with pytest.raises(ValueError, match="Unknown edge kind"):
            graph.add_edge("a", "b", "finalized_by")

    def test_self_loop_rejected(self):
        graph = _graph("a")
        with pytest.raises(CycleError):
            graph.add_edge("a", "a")

    def test_edge_str(self):
        assert str(Edge("a", "b", DEPENDS_ON)) == "a -[depends_on]-> b"


class TestTransaction:
    """Tests for transactional rollback."""

    def test_rollback_on_error(self):
        graph = _graph("a")
        task = graph.add_task(TestRunTask(name="t"))
        with pytest.raises(RuntimeError):
            with graph.transaction():
                graph.add_task(Task(name="b"))
                graph.add_edge("b", "a")
                graph.update(task, ignore_failures=True)
                raise RuntimeError("boom")
        assert "b" not in graph
        assert graph.edges == []
        assert task.ignore_failures is False

    def test_commit_keeps_changes(self):
        graph = _graph("a")
        with graph.transaction():
            graph.add_task(Task(name="b"))
            graph.add_edge("b", "a")
        assert "b" in graph
        assert graph.dependencies("b") == ["a"]

    def test_existing_edge_not_removed_on_rollback(self):
        """Re-adding an existing edge inside a failed transaction keeps it."""
        graph = _graph("a", "b")
        graph.add_edge("a", "b")
        with pytest.raises(RuntimeError):
            with graph.transaction():
                graph.add_edge("a", "b")
                raise RuntimeError("boom")
        assert graph.edges == [Edge("a", "b", DEPENDS_ON)]

    def test_nested_commit_rolled_back_by_outer(self):
        graph = _graph("a")
        with pytest.raises(RuntimeError):
            with graph.transaction():
                with graph.transaction():
                    graph.add_task(Task(name="inner"))
                raise RuntimeError("boom")
        assert "inner" not in graph


class TestQueries:
    """Tests for dependency queries."""

    def test_dependencies_and_dependents(self):
        graph = _graph("a", "b", "c")
        graph.add_edge("a", "b", DEPENDS_ON)
        graph.add_edge("a", "c", MUST_RUN_AFTER)
        assert graph.dependencies("a") == ["b"]
        assert graph.runs_after("a") == ["c"]
        assert graph.dependents("b") == ["a"]
        assert graph.dependents("c") == []

    def test_transitive_dependencies(self):
        graph = _graph("a", "b", "c", "d")
        graph.add_edge("a", "b")
        graph.add_edge("b", "c")
        graph.add_edge("a", "d", MUST_RUN_AFTER)
        assert graph.transitive_dependencies("a") == ["b", "c"]

    def test_transitive_dependencies_unknown(self):
        with pytest.raises(KeyError):
            TaskGraph().transitive_dependencies("x")

    def test_tasks_of_type(self):
        graph = TaskGraph()
        graph.add_task(LifecycleStage(name="check"))
        graph.add_task(TestRunTask(name="test"))
        graph.add_task(TestRunTask(name="integration"))
        assert [t.name for t in graph.tasks_of_type(TestRunTask)] == ["test", "integration"]


class TestExecutionPlan:
    """Tests for TaskGraph.execution_plan()."""

    def test_hard_dependencies_pulled_in(self):
        graph = _graph("compile", "test", "check")
        graph.add_edge("test", "compile")
        graph.add_edge("check", "test")
        assert graph.execution_plan(["check"]) == ["compile", "test", "check"]

    def test_soft_edge_orders_but_does_not_pull_in(self):
        graph = _graph("test", "integration")
        graph.add_edge("integration", "test", MUST_RUN_AFTER)
        assert graph.execution_plan(["integration"]) == ["integration"]

    def test_soft_edge_orders_when_both_planned(self):
        # integration inserted first but must run after test
        graph = _graph("integration", "test")
        graph.add_edge("integration", "test", MUST_RUN_AFTER)
        assert graph.execution_plan(["integration", "test"]) == ["test", "integration"]

    def test_insertion_order_breaks_ties(self):
        graph = _graph("a", "b", "c", "root")
        for name in ("c", "a", "b"):
            graph.add_edge("root", name)
        assert graph.execution_plan(["root"]) == ["a", "b", "c", "root"]

    def test_unknown_task(self):
        graph = _graph("a")
        with pytest.raises(ValueError, match="'missing' not found"):
            graph.execution_plan(["missing"])

    def test_cycle_reported(self):
        graph = _graph("a", "b")
        graph.add_edge("a", "b", DEPENDS_ON)
        graph.add_edge("b", "a", MUST_RUN_AFTER)
        with pytest.raises(CycleError) as exc_info:
            graph.execution_plan(["a", "b"])
        assert exc_info.value.cycle[0] == exc_info.value.cycle[-1]

    def test_empty_request(self):
        assert _graph("a").execution_plan([]) == []


class TestBuildContext:
    """Tests for BuildContext creation and markers."""

    def test_default_lifecycle(self):
        build = BuildContext.create("/project")
        assert [t.name for t in build.graph.tasks_of_type(LifecycleStage)] == [
            "assemble", "check", "build",
        ]
        assert sorted(build.graph.dependencies("build")) == ["assemble", "check"]
        assert str(build.reporting_dir) == "/project/build/reports"

    def test_relative_reporting_dir(self):
        build = BuildContext.create("/project", "out/reports")
        assert str(build.reporting_dir) == "/project/out/reports"

    def test_markers(self):
        build = BuildContext.create("/project")
        assert not build.has_marker("x")
        build.mark("x")
        assert build.has_marker("x")

    def test_capabilities(self):
        build = BuildContext.create("/project")
        assert build.capability("ide") is None
        build.add_capability("ide", object())
        assert build.has_capability("ide")
        with pytest.raises(ValueError, match="already applied"):
            build.add_capability("ide", object())
