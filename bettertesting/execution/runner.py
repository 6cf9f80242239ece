"""Test runner adapters.

Running the individual test cases of a category is delegated to an
external runner. The default SubprocessRunner invokes pytest on the
category's source directories with the task's runtime classpath on
PYTHONPATH and reads the JUnit XML file it writes.
"""

from __future__ import annotations

import os
import subprocess
import sys
import time
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Protocol

import structlog

from bettertesting.build.tasks import TestRunTask
from bettertesting.reporting.reporter import TestResult

logger = structlog.get_logger(__name__)

JUNIT_FILE = "junit.xml"

# pytest exit code when no tests were collected
_NO_TESTS_COLLECTED = 5

DEFAULT_COMMAND: list[str] = [
    sys.executable, "-m", "pytest", "-q", "--junitxml={junit_xml}", "{sources}",
]


class TestRunner(Protocol):
    """Runs the test cases of one test task."""

    def run(self, task: TestRunTask, cwd: Path) -> list[TestResult]:
        ...


def parse_junit_xml(xml_content: str) -> list[TestResult]:
    """Parse JUnit XML into test results.

    Accepts a ``<testsuites>`` root or a single ``<testsuite>``.

    Raises:
        ET.ParseError: If the XML is malformed.
    """
    root = ET.fromstring(xml_content)
    results: list[TestResult] = []
    for case in root.iter("testcase"):
        status = "passed"
        message = ""
        for tag in ("failure", "error"):
            elem = case.find(tag)
            if elem is not None:
                status = "failed"
                message = elem.get("message", "") or (elem.text or "").strip()
                break
        else:
            skipped = case.find("skipped")
            if skipped is not None:
                status = "skipped"
                message = skipped.get("message", "")

        try:
            duration = float(case.get("time", "0") or 0)
        except ValueError:
            duration = 0.0

        stdout_elem = case.find("system-out")
        stderr_elem = case.find("system-err")
        results.append(TestResult(
            name=case.get("name", ""),
            classname=case.get("classname", ""),
            status=status,
            duration=duration,
            message=message,
            stdout=(stdout_elem.text or "") if stdout_elem is not None else "",
            stderr=(stderr_elem.text or "") if stderr_elem is not None else "",
        ))
    return results


class SubprocessRunner:
    """Runs a task's tests in a subprocess.

    The command template supports the placeholders ``{junit_xml}``,
    ``{report_dir}`` and ``{task}``; a lone ``{sources}`` argument expands
    to the task's existing source directories.
    """

    def __init__(self, command: list[str] | None = None, timeout: float = 600.0) -> None:
        self.command = list(command) if command else list(DEFAULT_COMMAND)
        self.timeout = timeout

    def build_command(self, task: TestRunTask, junit_xml: Path, sources: list[Path]) -> list[str]:
        args: list[str] = []
        for part in self.command:
            if part == "{sources}":
                args.extend(str(s) for s in sources)
                continue
            args.append(part.format(
                junit_xml=junit_xml,
                report_dir=task.report_dir,
                task=task.name,
            ))
        return args

    def build_env(self, task: TestRunTask) -> dict[str, str]:
        env = dict(os.environ)
        entries = list(task.classpath.runtime)
        if env.get("PYTHONPATH"):
            entries.append(env["PYTHONPATH"])
        if entries:
            env["PYTHONPATH"] = os.pathsep.join(entries)
        return env

    def run(self, task: TestRunTask, cwd: Path) -> list[TestResult]:
        """Run the task's tests and return one result per test case.

        A task without existing source directories runs nothing. A runner
        crash that produces no JUnit file is reported as a single failed
        result named after the task.
        """
        sources = [s for s in task.source_dirs if s.exists()]
        if not sources:
            logger.info("no_test_sources", task=task.name)
            return []
        if task.report_dir is None:
            raise ValueError(f"Task '{task.name}' has no report directory")

        task.report_dir.mkdir(parents=True, exist_ok=True)
        junit_xml = task.report_dir / JUNIT_FILE
        if junit_xml.exists():
            junit_xml.unlink()
        args = self.build_command(task, junit_xml, sources)
        logger.debug("runner_started", task=task.name, command=args)

        start_time = time.monotonic()
        try:
            proc = subprocess.run(
                args,
                cwd=cwd,
                env=self.build_env(task),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            return [TestResult(
                name=task.name,
                status="failed",
                duration=time.monotonic() - start_time,
                message=f"Timeout after {self.timeout}s",
            )]
        except OSError as e:
            return [TestResult(
                name=task.name,
                status="failed",
                duration=time.monotonic() - start_time,
                message=f"Could not start test runner: {e}",
            )]
        duration = time.monotonic() - start_time

        if junit_xml.exists():
            try:
                return parse_junit_xml(junit_xml.read_text())
            except ET.ParseError as e:
                return [TestResult(
                    name=task.name,
                    status="failed",
                    duration=duration,
                    message=f"Malformed JUnit XML: {e}",
                    stdout=proc.stdout,
                    stderr=proc.stderr,
                )]
        if proc.returncode in (0, _NO_TESTS_COLLECTED):
            return []
        return [TestResult(
            name=task.name,
            status="failed",
            duration=duration,
            message=f"Test runner exited with code {proc.returncode}",
            stdout=proc.stdout,
            stderr=proc.stderr,
        )]
