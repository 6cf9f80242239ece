"""Build configuration file management.

Reads and writes the ``bettertesting.yaml`` file that describes the test
categories, the aggregations over them, source layout and runner
settings. Missing keys fall back to DEFAULT_CONFIG.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

CONFIG_FILE = "bettertesting.yaml"

DEFAULT_CATEGORIES: list[dict[str, Any]] = [
    {
        "name": "unit",
        "task": "test",
        "source_set": "test",
        "auto_runs_on_check": True,
        "description": "Runs the unit tests.",
    },
    {
        "name": "integration",
        "auto_runs_on_check": True,
        "runs_after": ["unit"],
        "description": "Runs the integration tests.",
    },
    {
        "name": "system",
        "auto_runs_on_check": False,
        "depends_on_lifecycle": ["build"],
        "description": "Runs the system tests.",
    },
]

DEFAULT_AGGREGATIONS: list[dict[str, Any]] = [
    {
        "name": "reportOnCheck",
        "inputs": ["unit", "integration"],
        "destination": "allOnCheck",
        "gate": "check",
        "description": "Creates a common report for unit and integration tests.",
    },
    {
        "name": "allTests",
        "inputs": ["unit", "integration", "system"],
        "destination": "all",
        "depends_on_lifecycle": ["build"],
        "description": "Runs unit, integration and system tests and creates a common report.",
    },
]

DEFAULT_CONFIG: dict[str, Any] = {
    "reporting_dir": "build/reports",
    "source_layout": "src/{name}",
    "output_layout": "build/classes/{name}",
    "categories": DEFAULT_CATEGORIES,
    "aggregations": DEFAULT_AGGREGATIONS,
    "test_dependencies": [],
    "runtime_dependencies": [],
    "runner": {
        "command": None,
        "timeout": 600.0,
    },
}


class BuildConfig:
    """Manages the bettertesting.yaml configuration file."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path
        self._data: dict[str, Any] = copy.deepcopy(DEFAULT_CONFIG)
        if path is not None and path.exists():
            self._load()

    def _load(self) -> None:
        """Load config from the file."""
        assert self.path is not None
        try:
            data = yaml.safe_load(self.path.read_text())
        except (yaml.YAMLError, OSError) as e:
            logger.warning("config_unreadable", path=str(self.path), error=str(e))
            return
        if data is None:
            return
        if not isinstance(data, dict):
            logger.warning("config_not_a_mapping", path=str(self.path))
            return
        runner = {**DEFAULT_CONFIG["runner"], **(data.get("runner") or {})}
        self._data = {**copy.deepcopy(DEFAULT_CONFIG), **data, "runner": runner}

    def save(self) -> None:
        """Write config to the file."""
        if self.path is None:
            raise ValueError("No config file path specified")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            yaml.safe_dump(self._data, f, sort_keys=False)

    @property
    def config(self) -> dict[str, Any]:
        """Get a copy of the full configuration dict."""
        return copy.deepcopy(self._data)

    @property
    def reporting_dir(self) -> Path:
        return Path(self._data.get("reporting_dir") or DEFAULT_CONFIG["reporting_dir"])

    @property
    def source_layout(self) -> str:
        return str(self._data.get("source_layout") or DEFAULT_CONFIG["source_layout"])

    @property
    def output_layout(self) -> str:
        return str(self._data.get("output_layout") or DEFAULT_CONFIG["output_layout"])

    @property
    def categories(self) -> list[dict[str, Any]]:
        """Category definitions, in registration order."""
        return list(self._data.get("categories") or [])

    @property
    def aggregations(self) -> list[dict[str, Any]]:
        return list(self._data.get("aggregations") or [])

    @property
    def test_dependencies(self) -> list[str]:
        return [str(d) for d in self._data.get("test_dependencies") or []]

    @property
    def runtime_dependencies(self) -> list[str]:
        return [str(d) for d in self._data.get("runtime_dependencies") or []]

    @property
    def runner_command(self) -> list[str] | None:
        """Command template for the test runner (None = pytest)."""
        command = self._data["runner"].get("command")
        if command is None:
            return None
        if isinstance(command, str):
            return command.split()
        return [str(part) for part in command]

    @property
    def runner_timeout(self) -> float:
        return float(self._data["runner"].get("timeout", DEFAULT_CONFIG["runner"]["timeout"]))

    def set_config(
        self,
        reporting_dir: str | None = None,
        source_layout: str | None = None,
    ) -> None:
        """Update configuration values."""
        if reporting_dir is not None:
            self._data["reporting_dir"] = reporting_dir
        if source_layout is not None:
            self._data["source_layout"] = source_layout
