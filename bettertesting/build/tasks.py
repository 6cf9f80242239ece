"""Task records living in the build graph.

Tasks are plain records; edges between them are owned by TaskGraph.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from bettertesting.categories.registry import TestCategory

VERIFICATION_GROUP = "Verification"


@dataclass
class Task:
    """A named unit of work in the build."""

    name: str
    description: str = ""
    group: str = ""


@dataclass
class LifecycleStage(Task):
    """A pre-existing checkpoint of the build (``build``, ``check``, ...)."""


@dataclass
class Classpath:
    """Compile and runtime search paths for one source set."""

    compile: tuple[str, ...] = ()
    runtime: tuple[str, ...] = ()


@dataclass
class TestRunTask(Task):
    """Runs the tests of one category and writes that category's report.

    ``category`` is None for test tasks defined outside the plugin.
    """

    __test__ = False  # not a pytest test class

    category: TestCategory | None = None
    report_dir: Path | None = None
    classpath_source_category: str = ""
    ignore_failures: bool = False
    classpath: Classpath = field(default_factory=Classpath)
    source_dirs: list[Path] = field(default_factory=list)


@dataclass
class AggregationTask(Task):
    """Merges the reports of several test tasks into one report.

    ``inputs`` holds task names only; the aggregation never owns them.
    """

    inputs: list[str] = field(default_factory=list)
    destination_dir: Path | None = None
    gate: str | None = None
