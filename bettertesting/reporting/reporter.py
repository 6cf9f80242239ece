"""Per-task test reports.

Each test run task writes ``report.json`` and ``index.html`` into its own
report directory. Test statuses are ``passed``, ``failed`` and
``skipped``; a whole report is ``passed``, ``failed``, ``not_run`` or
``no_tests``.
"""

from __future__ import annotations

import datetime
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from bettertesting.reporting.html_reporter import write_html_report

REPORT_FILE = "report.json"
HTML_FILE = "index.html"

VALID_STATUSES = frozenset({"passed", "failed", "skipped"})


@dataclass
class TestResult:
    """Outcome of one test case."""

    __test__ = False  # not a pytest test class

    name: str
    status: str  # passed, failed, skipped
    classname: str = ""
    duration: float = 0.0
    message: str = ""
    stdout: str = ""
    stderr: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.classname}.{self.name}" if self.classname else self.name


class Reporter:
    """Collects one task's test results and writes its report."""

    def __init__(self, task_name: str, category: str | None = None) -> None:
        self.task_name = task_name
        self.category = category
        self.results: list[TestResult] = []
        self.runner_output: str = ""

    def add_result(self, result: TestResult) -> None:
        if result.status not in VALID_STATUSES:
            raise ValueError(f"Invalid test status '{result.status}' for {result.full_name}")
        self.results.append(result)

    def add_results(self, results: list[TestResult]) -> None:
        for result in results:
            self.add_result(result)

    def generate_report(self) -> dict[str, Any]:
        """Generate the report data structure.

        Returns:
            ``{"report": {...}}`` suitable for JSON serialization.
        """
        now = datetime.datetime.now(tz=datetime.timezone.utc).isoformat()
        report: dict[str, Any] = {
            "generated_at": now,
            "task": self.task_name,
            "category": self.category,
            "status": aggregate_status([r.status for r in self.results]),
            "summary": summarize([_format_result(r) for r in self.results]),
            "tests": [_format_result(r) for r in self.results],
        }
        if self.runner_output:
            report["runner_output"] = self.runner_output
        return {"report": report}

    def write_report(self, report_dir: Path) -> dict[str, Any]:
        """Write ``report.json`` and ``index.html`` into ``report_dir``.

        Returns:
            The report that was written.
        """
        report = self.generate_report()
        report_dir.mkdir(parents=True, exist_ok=True)
        with open(report_dir / REPORT_FILE, "w") as f:
            json.dump(report, f, indent=2)
        write_html_report(report, report_dir / HTML_FILE)
        return report


def _format_result(result: TestResult) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "name": result.name,
        "classname": result.classname,
        "status": result.status,
        "duration_seconds": round(result.duration, 3),
    }
    # Include messages and logs only if non-empty
    if result.message:
        entry["message"] = result.message
    if result.stdout:
        entry["stdout"] = result.stdout
    if result.stderr:
        entry["stderr"] = result.stderr
    return entry


def summarize(tests: list[dict[str, Any]]) -> dict[str, Any]:
    """Count statuses and total duration over formatted test entries."""
    return {
        "total": len(tests),
        "passed": sum(1 for t in tests if t.get("status") == "passed"),
        "failed": sum(1 for t in tests if t.get("status") == "failed"),
        "skipped": sum(1 for t in tests if t.get("status") == "skipped"),
        "total_duration_seconds": round(
            sum(float(t.get("duration_seconds", 0.0)) for t in tests), 3
        ),
    }


def aggregate_status(statuses: list[str]) -> str:
    """Compute aggregated status from child statuses.

    ``skipped`` and ``not_run`` children do not influence the verdict.
    """
    active = [s for s in statuses if s not in ("skipped", "not_run")]
    if not active:
        if any(s == "not_run" for s in statuses):
            return "not_run"
        return "no_tests" if not statuses else "passed"
    if any(s == "failed" for s in active):
        return "failed"
    return "passed"
