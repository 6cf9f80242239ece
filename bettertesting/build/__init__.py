"""Build model: tasks, the task graph, lifecycle stages and report paths."""

from bettertesting.build.context import BuildContext
from bettertesting.build.graph import DEPENDS_ON, MUST_RUN_AFTER, Edge, TaskGraph
from bettertesting.build.paths import ReportPathAllocator
from bettertesting.build.tasks import AggregationTask, Classpath, LifecycleStage, Task, TestRunTask
from bettertesting.build.wiring import ExecutionGraphBuilder

__all__ = [
    "DEPENDS_ON",
    "MUST_RUN_AFTER",
    "AggregationTask",
    "BuildContext",
    "Classpath",
    "Edge",
    "ExecutionGraphBuilder",
    "LifecycleStage",
    "ReportPathAllocator",
    "Task",
    "TaskGraph",
    "TestRunTask",
]
