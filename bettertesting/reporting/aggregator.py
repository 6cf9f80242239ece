"""Aggregation tasks: one merged report over several test tasks.

An aggregation hard-depends on each of its input tasks and forces every
test task it transitively depends on to ignore test failures, so a single
failing category can never keep an aggregation from running. At run time
the inputs' ``report.json`` files are merged into one report in the
aggregation's own destination directory.
"""

from __future__ import annotations

import datetime
import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import structlog

from bettertesting.build.graph import DEPENDS_ON, TaskGraph
from bettertesting.build.paths import ReportPathAllocator
from bettertesting.build.tasks import VERIFICATION_GROUP, AggregationTask, LifecycleStage, TestRunTask
from bettertesting.errors import ApplyError, MissingCategoryError, ReportMergeError
from bettertesting.reporting.html_reporter import write_html_report
from bettertesting.reporting.reporter import HTML_FILE, REPORT_FILE, aggregate_status, summarize

logger = structlog.get_logger(__name__)

# Keys every input report must carry
_REQUIRED_KEYS = ("status", "summary", "tests")


class ReportAggregator:
    """Creates aggregation tasks in a task graph."""

    def __init__(self, graph: TaskGraph, allocator: ReportPathAllocator) -> None:
        self.graph = graph
        self.allocator = allocator

    def build_aggregation(
        self,
        name: str,
        inputs: Sequence[TestRunTask],
        gate: str | None = None,
        destination: str | None = None,
        depends_on: Sequence[str] = (),
        description: str = "",
    ) -> AggregationTask:
        """Create and wire an aggregation task.

        Args:
            name: Task name of the aggregation.
            inputs: Test tasks whose reports are merged, in report order.
            gate: Lifecycle stage that must not complete before this
                aggregation has run.
            destination: Directory name under the reporting base
                directory; defaults to ``name``.
            depends_on: Further lifecycle stages to run first.
            description: Task description.

        Raises:
            ApplyError: If ``inputs`` is empty or holds a non-test task.
            MissingCategoryError: If a stage or input is unknown.
            PathCollisionError: If the destination overlaps another
                report directory.
        """
        if not inputs:
            raise ApplyError(f"Aggregation '{name}' needs at least one input task")
        for task in inputs:
            if not isinstance(task, TestRunTask):
                raise ApplyError(f"Aggregation '{name}' input '{task.name}' is not a test task")
            if self.graph.tasks.get(task.name) is not task:
                raise MissingCategoryError(name, task.name, kind="test task")
        for stage in [*depends_on, *([gate] if gate else [])]:
            if not isinstance(self.graph.tasks.get(stage), LifecycleStage):
                raise MissingCategoryError(name, stage, kind="lifecycle stage")

        destination_dir = self.allocator.allocate_destination(name, destination or name)
        for task in inputs:
            if task.report_dir is not None and _overlaps(destination_dir, task.report_dir):
                raise ApplyError(
                    f"Aggregation '{name}' destination {destination_dir} overlaps "
                    f"the report directory of '{task.name}'"
                )

        aggregation = self.graph.add_task(AggregationTask(
            name=name,
            description=description or _describe(inputs),
            group=VERIFICATION_GROUP,
            inputs=[task.name for task in inputs],
            destination_dir=destination_dir,
            gate=gate,
        ))
        for task in inputs:
            self.graph.add_edge(name, task.name, DEPENDS_ON)
        for stage in depends_on:
            self.graph.add_edge(name, stage, DEPENDS_ON)
        if gate:
            self.graph.add_edge(gate, name, DEPENDS_ON)

        self.tolerate_failures(name)
        logger.info(
            "aggregation_created",
            aggregation=name,
            inputs=aggregation.inputs,
            destination=str(destination_dir),
            gate=gate,
        )
        return aggregation

    def tolerate_failures(self, name: str) -> list[str]:
        """Set ``ignore_failures`` on every test task ``name`` transitively depends on.

        Returns:
            Names of the tasks whose flag changed.
        """
        changed: list[str] = []
        for dep in self.graph.transitive_dependencies(name):
            task = self.graph.get(dep)
            if isinstance(task, TestRunTask) and not task.ignore_failures:
                self.graph.update(task, ignore_failures=True)
                changed.append(dep)
                logger.debug("failures_tolerated", task=dep, aggregation=name)
        return changed


def _overlaps(a: Path, b: Path) -> bool:
    return a == b or a in b.parents or b in a.parents


def _describe(inputs: Sequence[TestRunTask]) -> str:
    names = [t.category.name if t.category else t.name for t in inputs]
    return f"Creates a common report for the {', '.join(names)} tests."


def load_task_report(aggregation: str, report_dir: Path | None) -> dict[str, Any] | None:
    """Read one input's report; None when the task produced no report.

    Raises:
        ReportMergeError: If the report exists but cannot be read or is
            malformed.
    """
    if report_dir is None:
        return None
    path = report_dir / REPORT_FILE
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return None
    except OSError as e:
        raise ReportMergeError(aggregation, f"cannot read {path}: {e}", source=path) from e
    except UnicodeDecodeError as e:
        raise ReportMergeError(aggregation, f"{path} is not valid UTF-8: {e}", source=path) from e
    except json.JSONDecodeError as e:
        raise ReportMergeError(aggregation, f"invalid JSON in {path}: {e}", source=path) from e

    report = data.get("report") if isinstance(data, dict) else None
    if not isinstance(report, dict):
        raise ReportMergeError(aggregation, f"{path} has no 'report' object", source=path)
    missing = [key for key in _REQUIRED_KEYS if key not in report]
    if missing:
        raise ReportMergeError(
            aggregation, f"{path} is missing {', '.join(missing)}", source=path
        )
    if not isinstance(report["tests"], list):
        raise ReportMergeError(aggregation, f"{path}: 'tests' is not a list", source=path)
    for index, entry in enumerate(report["tests"]):
        if not isinstance(entry, dict):
            raise ReportMergeError(
                aggregation, f"{path}: test entry {index} is not an object", source=path
            )
        try:
            float(entry.get("duration_seconds", 0.0))
        except (TypeError, ValueError) as e:
            raise ReportMergeError(
                aggregation,
                f"{path}: test entry {index} has a non-numeric duration_seconds",
                source=path,
            ) from e
    return report


def merge_reports(aggregation: AggregationTask, graph: TaskGraph) -> dict[str, Any]:
    """Merge the input tasks' reports into the aggregation's destination.

    Failed tests in the inputs are carried into the merged report; they
    never make the merge itself fail. Inputs without a report are listed
    as ``not_run``.

    Returns:
        The merged report, ``{"report": {...}}``.

    Raises:
        ReportMergeError: If an input report is unreadable or malformed,
            or the merged report cannot be written.
    """
    if aggregation.destination_dir is None:
        raise ReportMergeError(aggregation.name, "no destination directory")

    sections: list[dict[str, Any]] = []
    all_tests: list[dict[str, Any]] = []
    for input_name in aggregation.inputs:
        task = graph.tasks.get(input_name)
        if not isinstance(task, TestRunTask):
            raise ReportMergeError(aggregation.name, f"input '{input_name}' is not a test task")
        report = load_task_report(aggregation.name, task.report_dir)
        category = task.category.name if task.category else None
        if report is None:
            logger.warning("input_report_missing", aggregation=aggregation.name, task=input_name)
            sections.append({
                "task": input_name,
                "category": category,
                "status": "not_run",
                "report_dir": str(task.report_dir) if task.report_dir else None,
                "summary": summarize([]),
                "tests": [],
            })
            continue
        tests = list(report["tests"])
        all_tests.extend(tests)
        sections.append({
            "task": input_name,
            "category": category,
            "status": report["status"],
            "report_dir": str(task.report_dir),
            "summary": report["summary"],
            "tests": tests,
        })

    summary = summarize(all_tests)
    summary["tasks"] = len(sections)
    merged = {
        "report": {
            "generated_at": datetime.datetime.now(tz=datetime.timezone.utc).isoformat(),
            "aggregation": aggregation.name,
            "status": aggregate_status([s["status"] for s in sections]),
            "summary": summary,
            "tasks": sections,
        }
    }

    destination = aggregation.destination_dir
    try:
        destination.mkdir(parents=True, exist_ok=True)
        with open(destination / REPORT_FILE, "w") as f:
            json.dump(merged, f, indent=2)
        write_html_report(merged, destination / HTML_FILE)
    except OSError as e:
        raise ReportMergeError(aggregation.name, f"cannot write to {destination}: {e}") from e

    logger.info(
        "reports_merged",
        aggregation=aggregation.name,
        tasks=len(sections),
        total=summary["total"],
        failed=summary["failed"],
    )
    return merged
