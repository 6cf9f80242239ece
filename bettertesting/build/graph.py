"""Build task graph: tasks, ordering edges and execution planning.

Two edge kinds exist:

- ``depends_on`` (hard): the target must reach a terminal state before the
  source starts, and requesting the source pulls the target into the plan.
- ``must_run_after`` (soft): when both tasks are in the plan the target
  runs first; it never pulls the target in.

Edges are only ever added. Mutations made inside ``transaction()`` are
undone if the block raises.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, TypeVar

import structlog

from bettertesting.build.tasks import Task
from bettertesting.errors import CycleError

logger = structlog.get_logger(__name__)

DEPENDS_ON = "depends_on"
MUST_RUN_AFTER = "must_run_after"
EDGE_KINDS = frozenset({DEPENDS_ON, MUST_RUN_AFTER})

T = TypeVar("T", bound=Task)


@dataclass(frozen=True)
class Edge:
    """``source`` waits for ``target`` (hard) or runs after it (soft)."""

    source: str
    target: str
    kind: str

    def __str__(self) -> str:
        return f"{self.source} -[{self.kind}]-> {self.target}"


class TaskGraph:
    """Tasks keyed by name plus an insertion-ordered edge set."""

    def __init__(self) -> None:
        self.tasks: dict[str, Task] = {}
        self._edges: dict[Edge, None] = {}
        self._journals: list[list[Callable[[], None]]] = []

    # --- mutation ---

    def add_task(self, task: T) -> T:
        """Add a task.

        Raises:
            ValueError: If a task with the same name already exists.
        """
        if task.name in self.tasks:
            raise ValueError(f"Task already exists: {task.name}")
        self.tasks[task.name] = task
        self._record(lambda: self.tasks.pop(task.name, None))
        return task

    def add_edge(self, source: str, target: str, kind: str = DEPENDS_ON) -> Edge:
        """Add an edge; adding an existing edge is a no-op.

        Raises:
            ValueError: If either task is unknown, the kind is invalid, or
                the edge is a self loop.
        """
        if kind not in EDGE_KINDS:
            raise ValueError(f"Unknown edge kind: {kind}")
        for name in (source, target):
            if name not in self.tasks:
                raise ValueError(f"Unknown task: {name}")
        if source == target:
            raise CycleError([source, source], what="task graph")
        edge = Edge(source, target, kind)
        if edge not in self._edges:
            self._edges[edge] = None
            self._record(lambda: self._edges.pop(edge, None))
            logger.debug("edge_added", source=source, target=target, kind=kind)
        return edge

    def update(self, task: Task, **changes: Any) -> None:
        """Set attributes on a task so that a failing transaction restores them."""
        previous = {key: getattr(task, key) for key in changes}
        for key, value in changes.items():
            setattr(task, key, value)

        def undo() -> None:
            for key, value in previous.items():
                setattr(task, key, value)

        self._record(undo)

    def _record(self, undo: Callable[[], None]) -> None:
        if self._journals:
            self._journals[-1].append(undo)

    @contextmanager
    def transaction(self) -> Iterator[TaskGraph]:
        """Undo every mutation made inside the block if it raises."""
        journal: list[Callable[[], None]] = []
        self._journals.append(journal)
        try:
            yield self
        except BaseException:
            self._journals.pop()
            for undo in reversed(journal):
                undo()
            logger.debug("transaction_rolled_back", mutations=len(journal))
            raise
        self._journals.pop()
        if self._journals:
            # nested: the outer transaction must be able to undo these too
            self._journals[-1].extend(journal)

    # --- queries ---

    def get(self, name: str) -> Task:
        """Look up a task by name.

        Raises:
            KeyError: If no such task exists.
        """
        return self.tasks[name]

    def __contains__(self, name: object) -> bool:
        return name in self.tasks

    def tasks_of_type(self, task_type: type[T]) -> list[T]:
        """All tasks of the given type, in insertion order."""
        return [t for t in self.tasks.values() if isinstance(t, task_type)]

    @property
    def edges(self) -> list[Edge]:
        return list(self._edges)

    def edge_set(self) -> set[Edge]:
        return set(self._edges)

    def dependencies(self, name: str) -> list[str]:
        """Direct hard dependencies of a task."""
        return [
            e.target for e in self._edges
            if e.source == name and e.kind == DEPENDS_ON
        ]

    def dependents(self, name: str) -> list[str]:
        """Tasks that hard-depend on this task."""
        return [
            e.source for e in self._edges
            if e.target == name and e.kind == DEPENDS_ON
        ]

    def runs_after(self, name: str) -> list[str]:
        """Tasks this task must run after when both are scheduled."""
        return [
            e.target for e in self._edges
            if e.source == name and e.kind == MUST_RUN_AFTER
        ]

    def transitive_dependencies(self, name: str) -> list[str]:
        """All tasks reachable over hard edges, in BFS order, excluding ``name``."""
        if name not in self.tasks:
            raise KeyError(name)
        visited: set[str] = {name}
        queue: deque[str] = deque([name])
        result: list[str] = []
        while queue:
            current = queue.popleft()
            for dep in self.dependencies(current):
                if dep not in visited:
                    visited.add(dep)
                    result.append(dep)
                    queue.append(dep)
        return result

    # --- planning ---

    def _detect_cycle(self, nodes: list[str], successors: dict[str, list[str]]) -> list[str] | None:
        """DFS cycle search; returns the cycle path or None."""
        WHITE, GRAY, BLACK = 0, 1, 2
        color: dict[str, int] = {name: WHITE for name in nodes}
        path: list[str] = []

        def dfs(node: str) -> list[str] | None:
            color[node] = GRAY
            path.append(node)
            for nxt in successors.get(node, []):
                if color[nxt] == GRAY:
                    return path[path.index(nxt):] + [nxt]
                if color[nxt] == WHITE:
                    found = dfs(nxt)
                    if found is not None:
                        return found
            path.pop()
            color[node] = BLACK
            return None

        for name in nodes:
            if color[name] == WHITE:
                found = dfs(name)
                if found is not None:
                    return found
        return None

    def execution_plan(self, requested: list[str]) -> list[str]:
        """Order the requested tasks and their hard dependencies for execution.

        Hard and soft edges between planned tasks both constrain the order.
        Ties are broken by task insertion order, so the plan is stable.

        Raises:
            ValueError: If a requested task does not exist.
            CycleError: If the planned tasks cannot be ordered.
        """
        for name in requested:
            if name not in self.tasks:
                raise ValueError(f"Task '{name}' not found in build")

        selected: set[str] = set(requested)
        for name in requested:
            selected.update(self.transitive_dependencies(name))
        ordered = [name for name in self.tasks if name in selected]
        position = {name: i for i, name in enumerate(ordered)}

        # prerequisites[x] = tasks that must finish before x starts
        prerequisites: dict[str, list[str]] = {name: [] for name in ordered}
        for edge in self._edges:
            if edge.source in selected and edge.target in selected:
                if edge.target not in prerequisites[edge.source]:
                    prerequisites[edge.source].append(edge.target)

        cycle = self._detect_cycle(ordered, prerequisites)
        if cycle is not None:
            raise CycleError(cycle, what="task graph")

        # Kahn's algorithm, always taking the earliest-inserted ready task
        remaining = {name: len(prerequisites[name]) for name in ordered}
        unlocks: dict[str, list[str]] = {name: [] for name in ordered}
        for name, prereqs in prerequisites.items():
            for prereq in prereqs:
                unlocks[prereq].append(name)

        ready = sorted((n for n, c in remaining.items() if c == 0), key=position.__getitem__)
        plan: list[str] = []
        while ready:
            name = ready.pop(0)
            plan.append(name)
            for nxt in unlocks[name]:
                remaining[nxt] -= 1
                if remaining[nxt] == 0:
                    ready.append(nxt)
            ready.sort(key=position.__getitem__)

        if len(plan) != len(ordered):
            raise CycleError(sorted(set(ordered) - set(plan)), what="task graph")
        return plan
