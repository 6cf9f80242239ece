"""Registry of test categories.

A category is a named group of tests with its own source set, classpath
and report directory (unit, integration, system). Categories are
registered once while the plugin is applied and are read-only afterwards.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from bettertesting.errors import (
    ApplyError,
    CycleError,
    DuplicateCategoryError,
    RegistryFrozenError,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TestCategory:
    """Static description of one test category."""

    __test__ = False  # not a pytest test class

    name: str
    auto_runs_on_check: bool = False
    runs_after: frozenset[str] = field(default_factory=frozenset)
    depends_on_lifecycle: frozenset[str] = field(default_factory=frozenset)
    task_name: str = ""
    source_set: str = ""
    description: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Test category name must not be empty")
        # frozen dataclass: defaults derived from name go through object.__setattr__
        object.__setattr__(self, "runs_after", frozenset(self.runs_after))
        object.__setattr__(
            self, "depends_on_lifecycle", frozenset(self.depends_on_lifecycle)
        )
        if not self.task_name:
            object.__setattr__(self, "task_name", self.name)
        if not self.source_set:
            object.__setattr__(self, "source_set", self.name)
        if not self.description:
            object.__setattr__(
                self, "description", f"Runs the {self.name} tests."
            )


class CategoryRegistry:
    """Ordered set of test categories with acyclic ``runs_after`` ordering.

    Categories are kept in registration order. A ``runs_after`` entry may
    name a category that is registered later; such dangling references are
    reported by the execution graph builder, not here.
    """

    def __init__(self) -> None:
        self._categories: dict[str, TestCategory] = {}
        self._frozen = False

    def register(
        self,
        name: str,
        auto_runs_on_check: bool = False,
        runs_after: Iterable[str] = (),
        depends_on_lifecycle: Iterable[str] = (),
        task_name: str = "",
        source_set: str = "",
        description: str = "",
    ) -> TestCategory:
        """Register a new category.

        Raises:
            RegistryFrozenError: If the registry has been frozen.
            DuplicateCategoryError: If ``name`` is already registered.
            CycleError: If a ``runs_after`` edge would close a cycle.
        """
        if self._frozen:
            raise RegistryFrozenError(
                f"Cannot register '{name}': category registry is read-only"
            )
        if name in self._categories:
            raise DuplicateCategoryError(name)

        predecessors = frozenset(runs_after)
        for pred in sorted(predecessors):
            if pred == name:
                raise CycleError([name, name])
            path = self._find_path(pred, name)
            if path is not None:
                raise CycleError([name] + path)

        category = TestCategory(
            name=name,
            auto_runs_on_check=auto_runs_on_check,
            runs_after=predecessors,
            depends_on_lifecycle=frozenset(depends_on_lifecycle),
            task_name=task_name,
            source_set=source_set,
            description=description,
        )
        self._categories[name] = category
        logger.debug(
            "category_registered",
            category=name,
            task=category.task_name,
            runs_after=sorted(category.runs_after),
            auto_runs_on_check=auto_runs_on_check,
        )
        return category

    def _find_path(self, start: str, goal: str) -> list[str] | None:
        """Return a ``runs_after`` path from start to goal, or None."""
        stack: list[list[str]] = [[start]]
        seen: set[str] = set()
        while stack:
            path = stack.pop()
            node = path[-1]
            if node == goal:
                return path
            if node in seen:
                continue
            seen.add(node)
            category = self._categories.get(node)
            if category is None:
                continue
            for pred in sorted(category.runs_after):
                stack.append(path + [pred])
        return None

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> TestCategory:
        """Look up a category by name.

        Raises:
            KeyError: If no such category is registered.
        """
        return self._categories[name]

    def categories(self) -> list[TestCategory]:
        """All categories in registration order."""
        return list(self._categories.values())

    def names(self) -> list[str]:
        return list(self._categories)

    def __contains__(self, name: object) -> bool:
        return name in self._categories

    def __iter__(self) -> Iterator[TestCategory]:
        return iter(list(self._categories.values()))

    def __len__(self) -> int:
        return len(self._categories)


def register_defaults(
    registry: CategoryRegistry,
    definitions: Iterable[Mapping[str, Any]],
) -> list[TestCategory]:
    """Register categories from configuration entries.

    Each entry is a mapping with ``name`` and the optional keys
    ``auto_runs_on_check``, ``runs_after``, ``depends_on_lifecycle``,
    ``task``, ``source_set`` and ``description``.
    """
    registered: list[TestCategory] = []
    for entry in definitions:
        if "name" not in entry:
            raise ApplyError(f"Category definition without a name: {dict(entry)}")
        registered.append(
            registry.register(
                name=str(entry["name"]),
                auto_runs_on_check=bool(entry.get("auto_runs_on_check", False)),
                runs_after=list(entry.get("runs_after", []) or []),
                depends_on_lifecycle=list(entry.get("depends_on_lifecycle", []) or []),
                task_name=str(entry.get("task", "") or ""),
                source_set=str(entry.get("source_set", "") or ""),
                description=str(entry.get("description", "") or ""),
            )
        )
    return registered
