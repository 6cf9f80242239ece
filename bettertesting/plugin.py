"""Adds integration and system test categories to a build.

Goals:

- Every category of tests (unit, integration, system) can run in
  isolation and gets a report of its own.
- Tasks that run several categories (``check``, ``allTests``) produce a
  common report.

Categories and aggregations come from BuildConfig; the defaults are

- ``integration``: tests that integrate modules inside the project,
  typically with mocked infrastructure. Runs on ``check`` after the unit
  tests.
- ``system``: tests of the built project as a whole, possibly together
  with external systems. Depends on ``build`` and never runs on
  ``check``.
- ``reportOnCheck``: common report for unit and integration tests,
  required by ``check``.
- ``allTests``: runs everything and writes a common report.

Every test task in the build, including ones defined elsewhere, writes its
report to ``<reporting dir>/<task name>s`` so reports never overwrite one
another.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from bettertesting.build.capabilities import (
    IDE,
    TEST_BASE,
    UNIT_SOURCE_SET,
    BaseTestCapability,
    ClasspathResolver,
    IdeIntegration,
)
from bettertesting.build.context import BuildContext
from bettertesting.build.graph import TaskGraph
from bettertesting.build.paths import ReportPathAllocator
from bettertesting.build.tasks import TestRunTask
from bettertesting.build.wiring import ExecutionGraphBuilder
from bettertesting.categories.registry import CategoryRegistry, register_defaults
from bettertesting.config import BuildConfig
from bettertesting.errors import ApplyError, MissingCategoryError
from bettertesting.reporting.aggregator import ReportAggregator

logger = structlog.get_logger(__name__)

PLUGIN_MARKER = "bettertesting"


class BetterTesting:
    """Applies test categories, report isolation and aggregations to a build."""

    def __init__(self, config: BuildConfig | None = None) -> None:
        self.config = config if config is not None else BuildConfig()

    def apply(self, build: BuildContext) -> bool:
        """Apply the plugin to ``build``.

        Returns:
            False if the plugin was already applied (nothing changed),
            True otherwise.

        Raises:
            ApplyError: If the configuration cannot be wired. The build
                is left exactly as it was.
        """
        if build.has_marker(PLUGIN_MARKER):
            logger.debug("plugin_already_applied", project=str(build.project_dir))
            return False

        had_base = build.has_capability(TEST_BASE)
        ide = build.capability(IDE)
        ide_dirs = list(ide.test_source_dirs) if ide is not None else []
        try:
            with build.graph.transaction():
                registry = self._wire(build)
                if ide is not None:
                    self._register_ide_sources(build, registry, ide)
        except Exception:
            if not had_base:
                build.capabilities.pop(TEST_BASE, None)
            if ide is not None:
                ide.test_source_dirs = ide_dirs
            raise

        build.categories = registry
        build.mark(PLUGIN_MARKER)
        logger.info(
            "plugin_applied",
            project=str(build.project_dir),
            categories=registry.names(),
            tasks=len(build.graph.tasks),
        )
        return True

    def _wire(self, build: BuildContext) -> CategoryRegistry:
        base = BaseTestCapability.apply(
            build,
            source_layout=self.config.source_layout,
            output_layout=self.config.output_layout,
        )

        registry = CategoryRegistry()
        register_defaults(registry, self.config.categories)
        registry.freeze()

        allocator = ReportPathAllocator(build.resolve(build.reporting_dir))
        resolver = ClasspathResolver(
            base,
            test_dependencies=self.config.test_dependencies,
            runtime_dependencies=self.config.runtime_dependencies,
        )
        run_tasks: dict[str, TestRunTask] = {}
        for category in registry:
            run_tasks[category.name] = base.run_test_task(
                category,
                resolver.resolve(category),
                allocator.allocate(category.task_name),
            )

        ExecutionGraphBuilder(build.graph).wire(registry.categories())

        aggregator = ReportAggregator(build.graph, allocator)
        for definition in self.config.aggregations:
            self._build_aggregation(aggregator, definition, run_tasks)

        isolate_reports(build.graph, allocator)
        return registry

    def _build_aggregation(
        self,
        aggregator: ReportAggregator,
        definition: Mapping[str, Any],
        run_tasks: Mapping[str, TestRunTask],
    ) -> None:
        name = str(definition.get("name", ""))
        if not name:
            raise ApplyError(f"Aggregation definition without a name: {dict(definition)}")
        inputs: list[TestRunTask] = []
        for category in definition.get("inputs", []) or []:
            if category not in run_tasks:
                raise MissingCategoryError(name, str(category))
            inputs.append(run_tasks[category])
        aggregator.build_aggregation(
            name,
            inputs,
            gate=definition.get("gate"),
            destination=definition.get("destination"),
            depends_on=list(definition.get("depends_on_lifecycle", []) or []),
            description=str(definition.get("description", "") or ""),
        )

    def _register_ide_sources(
        self,
        build: BuildContext,
        registry: CategoryRegistry,
        ide: IdeIntegration,
    ) -> None:
        base = build.capability(TEST_BASE)
        for category in registry:
            if category.source_set == UNIT_SOURCE_SET:
                continue
            ide.add_test_source_dirs(base.source_set(category.source_set).source_dirs)
        logger.debug("ide_test_sources_registered", dirs=[str(d) for d in ide.test_source_dirs])


def isolate_reports(graph: TaskGraph, allocator: ReportPathAllocator) -> list[TestRunTask]:
    """Give every test task in the graph its own report directory.

    Returns:
        The tasks whose report directory changed.
    """
    changed: list[TestRunTask] = []
    for task in graph.tasks_of_type(TestRunTask):
        report_dir = allocator.allocate(task.name)
        if task.report_dir != report_dir:
            graph.update(task, report_dir=report_dir)
            changed.append(task)
    return changed


def apply(build: BuildContext, config: BuildConfig | None = None) -> bool:
    """Apply the plugin with the given (or default) configuration."""
    return BetterTesting(config).apply(build)
