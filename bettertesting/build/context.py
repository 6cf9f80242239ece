"""The build a plugin is applied to.

A BuildContext holds the task graph with its lifecycle stages, the
capabilities applied so far, and the markers plugins leave behind to
guard against being applied twice.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from bettertesting.build.graph import DEPENDS_ON, TaskGraph
from bettertesting.build.tasks import VERIFICATION_GROUP, LifecycleStage

BUILD = "build"
CHECK = "check"
ASSEMBLE = "assemble"

# (name, description, group, hard dependencies)
DEFAULT_LIFECYCLE: tuple[tuple[str, str, str, tuple[str, ...]], ...] = (
    (ASSEMBLE, "Assembles the outputs of this project.", "Build", ()),
    (CHECK, "Runs all checks.", VERIFICATION_GROUP, ()),
    (BUILD, "Assembles and tests this project.", "Build", (ASSEMBLE, CHECK)),
)


@dataclass
class BuildContext:
    """One build invocation of one project."""

    project_dir: Path
    reporting_dir: Path
    graph: TaskGraph = field(default_factory=TaskGraph)
    capabilities: dict[str, Any] = field(default_factory=dict)
    markers: set[str] = field(default_factory=set)
    categories: Any = None

    @classmethod
    def create(cls, project_dir: Path, reporting_dir: Path | None = None) -> BuildContext:
        """Create a build with the default ``assemble``/``check``/``build`` stages."""
        project_dir = Path(project_dir)
        if reporting_dir is None:
            reporting_dir = project_dir / "build" / "reports"
        elif not Path(reporting_dir).is_absolute():
            reporting_dir = project_dir / reporting_dir
        build = cls(project_dir=project_dir, reporting_dir=Path(reporting_dir))
        for name, description, group, deps in DEFAULT_LIFECYCLE:
            build.graph.add_task(LifecycleStage(name=name, description=description, group=group))
            for dep in deps:
                build.graph.add_edge(name, dep, DEPENDS_ON)
        return build

    def has_marker(self, marker: str) -> bool:
        return marker in self.markers

    def mark(self, marker: str) -> None:
        self.markers.add(marker)

    def has_capability(self, name: str) -> bool:
        return name in self.capabilities

    def capability(self, name: str) -> Any:
        """Return an applied capability, or None when it is absent."""
        return self.capabilities.get(name)

    def add_capability(self, name: str, capability: Any) -> None:
        if name in self.capabilities:
            raise ValueError(f"Capability already applied: {name}")
        self.capabilities[name] = capability

    def resolve(self, path: str | Path) -> Path:
        """Resolve a path relative to the project directory."""
        path = Path(path)
        return path if path.is_absolute() else self.project_dir / path
