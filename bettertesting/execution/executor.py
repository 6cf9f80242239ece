"""Sequential executor for planned build tasks.

Runs the tasks of ``TaskGraph.execution_plan`` one at a time. A task whose
hard dependency did not succeed is not run and is reported as
``dependencies_failed``. Soft ``must_run_after`` edges only affect order.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

import structlog

from bettertesting.build.context import BuildContext
from bettertesting.build.tasks import AggregationTask, TestRunTask
from bettertesting.errors import ReportMergeError
from bettertesting.execution.runner import SubprocessRunner, TestRunner
from bettertesting.reporting.aggregator import merge_reports
from bettertesting.reporting.reporter import Reporter

logger = structlog.get_logger(__name__)

SUCCESS = "success"
FAILED = "failed"
DEPENDENCIES_FAILED = "dependencies_failed"


@dataclass
class TaskOutcome:
    """Terminal state of one executed task."""

    name: str
    status: str  # success, failed, dependencies_failed
    duration: float = 0.0
    message: str = ""
    summary: dict[str, Any] = field(default_factory=dict)
    report_dir: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCESS


class TaskExecutor:
    """Executes requested tasks and everything they hard-depend on."""

    def __init__(self, build: BuildContext, runner: TestRunner | None = None) -> None:
        self.build = build
        self.runner = runner if runner is not None else SubprocessRunner()
        self.outcomes: dict[str, TaskOutcome] = {}

    def plan(self, requested: list[str]) -> list[str]:
        return self.build.graph.execution_plan(requested)

    def execute(self, requested: list[str]) -> list[TaskOutcome]:
        """Execute the requested tasks.

        Returns:
            Outcomes in execution order.

        Raises:
            ValueError: If a requested task does not exist.
            CycleError: If the tasks cannot be ordered.
        """
        order = self.plan(requested)
        outcome_list: list[TaskOutcome] = []
        for name in order:
            failed_deps = [
                dep for dep in self.build.graph.dependencies(name)
                if dep in self.outcomes and not self.outcomes[dep].succeeded
            ]
            if failed_deps:
                outcome = TaskOutcome(
                    name=name,
                    status=DEPENDENCIES_FAILED,
                    message=f"Not run: {', '.join(failed_deps)} did not succeed",
                )
            else:
                outcome = self._run_task(name)
            self.outcomes[name] = outcome
            outcome_list.append(outcome)
            logger.info("task_finished", task=name, status=outcome.status)
        return outcome_list

    def _run_task(self, name: str) -> TaskOutcome:
        task = self.build.graph.get(name)
        start_time = time.monotonic()
        if isinstance(task, TestRunTask):
            outcome = self._run_tests(task)
        elif isinstance(task, AggregationTask):
            outcome = self._run_aggregation(task)
        else:
            outcome = TaskOutcome(name=name, status=SUCCESS)
        outcome.duration = time.monotonic() - start_time
        return outcome

    def _run_tests(self, task: TestRunTask) -> TaskOutcome:
        if task.report_dir is None:
            return TaskOutcome(
                name=task.name,
                status=FAILED,
                message="No report directory assigned",
            )
        results = self.runner.run(task, self.build.project_dir)
        reporter = Reporter(task.name, task.category.name if task.category else None)
        reporter.add_results(results)
        report = reporter.write_report(task.report_dir)["report"]
        summary = report["summary"]

        outcome = TaskOutcome(
            name=task.name,
            status=SUCCESS,
            summary=summary,
            report_dir=str(task.report_dir),
        )
        if summary["failed"]:
            outcome.message = (
                f"{summary['failed']} of {summary['total']} tests failed. "
                f"See the report at {task.report_dir}"
            )
            if not task.ignore_failures:
                outcome.status = FAILED
        return outcome

    def _run_aggregation(self, task: AggregationTask) -> TaskOutcome:
        try:
            merged = merge_reports(task, self.build.graph)["report"]
        except ReportMergeError as e:
            logger.error("report_merge_failed", task=task.name, error=str(e))
            return TaskOutcome(name=task.name, status=FAILED, message=str(e))
        summary = merged["summary"]
        message = ""
        if summary["failed"]:
            message = f"{summary['failed']} of {summary['total']} tests failed"
        return TaskOutcome(
            name=task.name,
            status=SUCCESS,
            message=message,
            summary=summary,
            report_dir=str(task.destination_dir),
        )
