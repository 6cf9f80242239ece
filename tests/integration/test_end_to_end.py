"""End-to-end tests exercising the full pipeline.

Tests the complete flow from config -> plugin -> task graph -> pytest
subprocesses -> per-task reports -> merged reports on a small sample
project with unit, integration and system tests.
"""

from __future__ import annotations

import json
import tempfile
from pathlib import Path

import pytest
import yaml

from bettertesting.build.context import BuildContext
from bettertesting.config import CONFIG_FILE, BuildConfig
from bettertesting.execution.executor import SUCCESS, TaskExecutor
from bettertesting.execution.runner import SubprocessRunner
from bettertesting.plugin import BetterTesting


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)


def _make_project(root: Path, unit_fails: bool = False) -> Path:
    """Create a sample project with one test module per category."""
    _write(root / "src/main/calc.py", "def add(a, b):\n    return a + b\n")
    _write(root / "src/test/test_calc_unit.py", (
        "def test_add():\n"
        f"    assert {'1 + 1 == 3' if unit_fails else '1 + 1 == 2'}\n"
        "\n"
        "def test_sub():\n"
        "    assert 2 - 1 == 1\n"
    ))
    _write(root / "src/integration/test_calc_integration.py", (
        "import calc\n"
        "\n"
        "def test_add_via_module():\n"
        "    assert calc.add(2, 3) == 5\n"
    ))
    _write(root / "src/system/test_calc_system.py", (
        "import pytest\n"
        "\n"
        "def test_end_to_end():\n"
        "    assert True\n"
        "\n"
        "@pytest.mark.skip(reason='needs a database')\n"
        "def test_with_database():\n"
        "    pass\n"
    ))
    _write(root / CONFIG_FILE, yaml.safe_dump({"runtime_dependencies": ["src/main"]}))
    return root


def _build(project: Path) -> tuple[BuildContext, TaskExecutor]:
    config = BuildConfig(project / CONFIG_FILE)
    build = BuildContext.create(project, config.reporting_dir)
    BetterTesting(config).apply(build)
    runner = SubprocessRunner(command=config.runner_command, timeout=120.0)
    return build, TaskExecutor(build, runner)


def _report(project: Path, dir_name: str) -> dict:
    path = project / "build" / "reports" / dir_name / "report.json"
    return json.loads(path.read_text())["report"]


@pytest.fixture
def project():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# ---------------------------------------------------------------------------
# Check
# ---------------------------------------------------------------------------


class TestCheck:
    """``check`` runs unit and integration tests and merges their reports."""

    def test_all_pass(self, project):
        _make_project(project)
        _, executor = _build(project)
        outcomes = executor.execute(["check"])

        assert all(o.status == SUCCESS for o in outcomes)
        names = [o.name for o in outcomes]
        assert names.index("test") < names.index("integration") < names.index("reportOnCheck")
        assert "system" not in names

        merged = _report(project, "allOnCheck")
        assert merged["status"] == "passed"
        assert merged["summary"]["total"] == 3
        assert merged["summary"]["passed"] == 3

    def test_unit_failure_does_not_block_report(self, project):
        _make_project(project, unit_fails=True)
        _, executor = _build(project)
        outcomes = {o.name: o for o in executor.execute(["check"])}

        assert outcomes["integration"].status == SUCCESS
        assert outcomes["reportOnCheck"].status == SUCCESS
        assert "1 of 2 tests failed" in outcomes["test"].message

        merged = _report(project, "allOnCheck")
        assert merged["status"] == "failed"
        assert merged["summary"]["failed"] == 1
        assert merged["summary"]["passed"] == 2
        sections = {s["task"]: s for s in merged["tasks"]}
        assert sections["test"]["status"] == "failed"
        assert sections["integration"]["status"] == "passed"
        assert (project / "build/reports/allOnCheck/index.html").exists()

    def test_reports_isolated(self, project):
        _make_project(project)
        _, executor = _build(project)
        executor.execute(["check"])

        unit = _report(project, "tests")
        integration = _report(project, "integrations")
        assert unit["category"] == "unit"
        assert {t["name"] for t in unit["tests"]} == {"test_add", "test_sub"}
        assert integration["category"] == "integration"
        assert [t["name"] for t in integration["tests"]] == ["test_add_via_module"]
        assert (project / "build/reports/tests/junit.xml").exists()
        assert (project / "build/reports/integrations/junit.xml").exists()


# ---------------------------------------------------------------------------
# Isolation and system tests
# ---------------------------------------------------------------------------


class TestSingleCategory:
    """Each category runs in isolation."""

    def test_integration_alone(self, project):
        _make_project(project)
        _, executor = _build(project)
        outcomes = executor.execute(["integration"])

        assert [o.name for o in outcomes] == ["integration"]
        assert outcomes[0].summary["passed"] == 1
        assert not (project / "build/reports/tests").exists()

    def test_system_runs_after_build(self, project):
        _make_project(project)
        _, executor = _build(project)
        names = [o.name for o in executor.execute(["system"])]

        assert names[-1] == "system"
        assert names.index("build") < names.index("system")
        system = _report(project, "systems")
        assert system["summary"]["passed"] == 1
        assert system["summary"]["skipped"] == 1


class TestAllTests:
    """``allTests`` merges every category."""

    def test_merges_three_categories(self, project):
        _make_project(project, unit_fails=True)
        _, executor = _build(project)
        outcomes = {o.name: o for o in executor.execute(["allTests"])}

        assert outcomes["allTests"].status == SUCCESS
        assert outcomes["system"].status == SUCCESS
        merged = _report(project, "all")
        assert [s["task"] for s in merged["tasks"]] == ["test", "integration", "system"]
        assert merged["summary"]["total"] == 5
        assert merged["summary"]["failed"] == 1
        assert merged["summary"]["skipped"] == 1
        # reportOnCheck ran on the way through build -> check
        assert _report(project, "allOnCheck")["summary"]["total"] == 3
