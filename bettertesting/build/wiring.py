"""Wires test category tasks into the build's lifecycle graph."""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from bettertesting.build.context import CHECK
from bettertesting.build.graph import DEPENDS_ON, MUST_RUN_AFTER, Edge, TaskGraph
from bettertesting.build.tasks import LifecycleStage, TestRunTask
from bettertesting.categories.registry import TestCategory
from bettertesting.errors import MissingCategoryError

logger = structlog.get_logger(__name__)


class ExecutionGraphBuilder:
    """Adds ordering edges for categories whose run tasks are already in the graph."""

    def __init__(self, graph: TaskGraph, check_stage: str = CHECK) -> None:
        self.graph = graph
        self.check_stage = check_stage

    def wire(self, categories: Sequence[TestCategory]) -> set[Edge]:
        """Add run-after, lifecycle and check edges for each category.

        Categories are processed in the given order. All edges of a
        category are validated before any of them is added.

        Returns:
            The edges wired for these categories.

        Raises:
            MissingCategoryError: If a category refers to an unknown
                category or lifecycle stage, or has no run task.
        """
        by_name = {c.name: c for c in categories}
        wired: set[Edge] = set()
        for category in categories:
            planned = self._plan(category, by_name)
            for source, target, kind in planned:
                wired.add(self.graph.add_edge(source, target, kind))
            logger.debug("category_wired", category=category.name, edges=len(planned))
        return wired

    def _plan(
        self,
        category: TestCategory,
        by_name: dict[str, TestCategory],
    ) -> list[tuple[str, str, str]]:
        task_name = category.task_name
        if not isinstance(self.graph.tasks.get(task_name), TestRunTask):
            raise MissingCategoryError(category.name, task_name, kind="test task")

        planned: list[tuple[str, str, str]] = []
        for pred in sorted(category.runs_after):
            predecessor = by_name.get(pred)
            if predecessor is None:
                raise MissingCategoryError(category.name, pred)
            if predecessor.task_name not in self.graph:
                raise MissingCategoryError(category.name, predecessor.task_name, kind="test task")
            planned.append((task_name, predecessor.task_name, MUST_RUN_AFTER))

        for stage in sorted(category.depends_on_lifecycle):
            self._require_stage(category, stage)
            planned.append((task_name, stage, DEPENDS_ON))

        if category.auto_runs_on_check:
            self._require_stage(category, self.check_stage)
            planned.append((self.check_stage, task_name, DEPENDS_ON))
        return planned

    def _require_stage(self, category: TestCategory, stage: str) -> None:
        if not isinstance(self.graph.tasks.get(stage), LifecycleStage):
            raise MissingCategoryError(category.name, stage, kind="lifecycle stage")
