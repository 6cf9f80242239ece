"""Report directory allocation.

Every report-producing task gets its own directory under the reporting
base directory so that one task's report never overwrites another's.
Test tasks get ``<base>/<task name>s`` (the unit task ``test`` keeps the
conventional ``tests`` directory); aggregations claim a named directory.
"""

from __future__ import annotations

from pathlib import Path

import structlog

from bettertesting.errors import PathCollisionError

logger = structlog.get_logger(__name__)


def report_dir_name(task_name: str) -> str:
    """Directory name for a test task's report."""
    return f"{task_name}s"


class ReportPathAllocator:
    """Hands out non-overlapping report directories."""

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = Path(base_dir)
        self._owners: dict[Path, str] = {}

    def allocate(self, task_name: str) -> Path:
        """Report directory for a test task.

        Raises:
            PathCollisionError: If the directory overlaps one owned by a
                different task.
        """
        if not task_name:
            raise ValueError("Task name must not be empty")
        return self._claim(task_name, self.base_dir / report_dir_name(task_name))

    def allocate_destination(self, owner: str, dir_name: str) -> Path:
        """Report directory for an aggregation task.

        Raises:
            PathCollisionError: If the directory overlaps one owned by a
                different task.
        """
        if not dir_name:
            raise ValueError(f"Empty destination directory for '{owner}'")
        return self._claim(owner, self.base_dir / dir_name)

    def _claim(self, owner: str, path: Path) -> Path:
        for claimed, other in self._owners.items():
            if other == owner:
                if claimed == path:
                    return path
                continue
            if claimed == path or claimed in path.parents or path in claimed.parents:
                raise PathCollisionError(path, owner, other)
        self._owners[path] = owner
        logger.debug("report_path_allocated", owner=owner, path=str(path))
        return path

    def owner_of(self, path: Path) -> str | None:
        return self._owners.get(Path(path))

    def allocations(self) -> dict[Path, str]:
        """Allocated directory to owner name."""
        return dict(self._owners)
