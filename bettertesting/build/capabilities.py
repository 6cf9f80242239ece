"""Collaborator capabilities the plugin builds on.

- BaseTestCapability: source sets and the unit ``test`` task.
- ClasspathResolver: compile and runtime paths per category.
- IdeIntegration: optional; collects test source roots for an IDE module.

Capabilities are registered on the BuildContext by name and are either
present or absent.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from bettertesting.build.context import BuildContext
from bettertesting.build.tasks import VERIFICATION_GROUP, Classpath, TestRunTask
from bettertesting.categories.registry import TestCategory

logger = structlog.get_logger(__name__)

TEST_BASE = "test-base"
IDE = "ide"

MAIN_SOURCE_SET = "main"
UNIT_SOURCE_SET = "test"
UNIT_TASK = "test"


@dataclass
class SourceSet:
    """Sources of one category and the directory their output goes to."""

    name: str
    source_dirs: list[Path]
    output_dir: Path


class BaseTestCapability:
    """Provides source sets and creates test run tasks.

    Applying it adds the ``main`` and ``test`` source sets and the unit
    ``test`` task to the build.
    """

    def __init__(
        self,
        build: BuildContext,
        source_layout: str = "src/{name}",
        output_layout: str = "build/classes/{name}",
    ) -> None:
        self.build = build
        self.source_layout = source_layout
        self.output_layout = output_layout
        self.source_sets: dict[str, SourceSet] = {}

    @classmethod
    def apply(
        cls,
        build: BuildContext,
        source_layout: str = "src/{name}",
        output_layout: str = "build/classes/{name}",
    ) -> BaseTestCapability:
        """Apply to ``build`` unless already present; return the capability."""
        existing = build.capability(TEST_BASE)
        if existing is not None:
            return existing
        capability = cls(build, source_layout, output_layout)
        capability.source_set(MAIN_SOURCE_SET)
        unit_sources = capability.source_set(UNIT_SOURCE_SET)
        build.graph.add_task(TestRunTask(
            name=UNIT_TASK,
            description="Runs the unit tests.",
            group=VERIFICATION_GROUP,
            classpath_source_category=UNIT_SOURCE_SET,
            source_dirs=list(unit_sources.source_dirs),
        ))
        build.add_capability(TEST_BASE, capability)
        logger.info("capability_applied", capability=TEST_BASE)
        return capability

    def source_set(self, name: str) -> SourceSet:
        """Return the named source set, creating it from the layout if needed."""
        if name not in self.source_sets:
            self.source_sets[name] = SourceSet(
                name=name,
                source_dirs=[self.build.resolve(self.source_layout.format(name=name))],
                output_dir=self.build.resolve(self.output_layout.format(name=name)),
            )
        return self.source_sets[name]

    def run_test_task(
        self,
        category: TestCategory,
        classpath: Classpath,
        report_dir: Path,
    ) -> TestRunTask:
        """Create the category's run task, or adopt an existing one by name."""
        graph = self.build.graph
        sources = self.source_set(category.source_set)
        task = graph.tasks.get(category.task_name)
        if task is None:
            return graph.add_task(TestRunTask(
                name=category.task_name,
                description=category.description,
                group=VERIFICATION_GROUP,
                category=category,
                report_dir=report_dir,
                classpath_source_category=category.source_set,
                classpath=classpath,
                source_dirs=list(sources.source_dirs),
            ))
        if not isinstance(task, TestRunTask):
            raise ValueError(
                f"Task '{task.name}' for category '{category.name}' is not a test task"
            )
        graph.update(
            task,
            category=category,
            report_dir=report_dir,
            classpath_source_category=category.source_set,
            classpath=classpath,
            source_dirs=list(sources.source_dirs),
        )
        return task


class ClasspathResolver:
    """Resolves the search paths a category's tests compile and run against.

    Compile paths are the main output, the unit test output and the
    test-scoped dependencies; runtime paths add the category's own output
    and the runtime dependencies.
    """

    def __init__(
        self,
        base: BaseTestCapability,
        test_dependencies: Iterable[str] = (),
        runtime_dependencies: Iterable[str] = (),
    ) -> None:
        self.base = base
        self.test_dependencies = tuple(str(d) for d in test_dependencies)
        self.runtime_dependencies = tuple(str(d) for d in runtime_dependencies)

    def resolve(self, category: TestCategory) -> Classpath:
        main = self.base.source_set(MAIN_SOURCE_SET)
        unit = self.base.source_set(UNIT_SOURCE_SET)
        own = self.base.source_set(category.source_set)

        compile_paths: list[str] = []
        for entry in (str(main.output_dir), str(unit.output_dir), *self.test_dependencies):
            if entry not in compile_paths:
                compile_paths.append(entry)

        runtime_paths = list(compile_paths)
        for entry in (
            *(str(d) for d in own.source_dirs),
            str(own.output_dir),
            *self.runtime_dependencies,
        ):
            if entry not in runtime_paths:
                runtime_paths.append(entry)
        return Classpath(compile=tuple(compile_paths), runtime=tuple(runtime_paths))


@dataclass
class IdeIntegration:
    """IDE module description; only test source roots are tracked."""

    module_name: str = ""
    test_source_dirs: list[Path] = field(default_factory=list)

    def add_test_source_dirs(self, dirs: Iterable[Path]) -> None:
        for path in dirs:
            if path not in self.test_source_dirs:
                self.test_source_dirs.append(path)

    @classmethod
    def apply(cls, build: BuildContext) -> IdeIntegration:
        existing = build.capability(IDE)
        if existing is not None:
            return existing
        ide = cls(module_name=build.project_dir.name)
        build.add_capability(IDE, ide)
        return ide
