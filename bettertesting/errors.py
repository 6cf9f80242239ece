"""Errors raised while wiring test categories and merging their reports.

Construction-time errors derive from ApplyError and abort
``BetterTesting.apply`` without leaving a half-wired graph behind.
ReportMergeError is raised at run time by aggregation tasks.
"""

from __future__ import annotations


class ApplyError(ValueError):
    """Base error for failures while applying the plugin to a build."""


class DuplicateCategoryError(ApplyError):
    """Raised when a category name is registered twice.

    Attributes:
        name: The duplicated category name.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Test category already registered: {name}")


class CycleError(ApplyError):
    """Raised when ordering edges would form a cycle.

    Attributes:
        cycle: Node names along the cycle, first and last entries equal.
    """

    def __init__(self, cycle: list[str], what: str = "category ordering") -> None:
        self.cycle = list(cycle)
        super().__init__(f"Cycle detected in {what}: {' -> '.join(cycle)}")


class MissingCategoryError(ApplyError):
    """Raised when a category refers to an unknown category or stage.

    Attributes:
        owner: The category holding the dangling reference.
        reference: The name that could not be resolved.
    """

    def __init__(self, owner: str, reference: str, kind: str = "category") -> None:
        self.owner = owner
        self.reference = reference
        super().__init__(f"Category '{owner}' references unknown {kind}: {reference}")


class PathCollisionError(ApplyError):
    """Raised when two report producers would write to overlapping paths."""

    def __init__(self, path: object, owner: str, other: str) -> None:
        self.path = path
        self.owner = owner
        self.other = other
        super().__init__(
            f"Report path {path} for '{owner}' overlaps the one allocated to '{other}'"
        )


class RegistryFrozenError(ApplyError):
    """Raised when a frozen category registry is mutated."""


class ReportMergeError(Exception):
    """Raised when per-task reports cannot be merged into a combined report.

    Attributes:
        task: The aggregation task name.
        source: The input report that could not be read, if any.
    """

    def __init__(self, task: str, message: str, source: object | None = None) -> None:
        self.task = task
        self.source = source
        super().__init__(f"Cannot merge reports for '{task}': {message}")
