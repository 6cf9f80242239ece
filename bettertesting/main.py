"""Entry point for running test categories of a project.

Loads ``bettertesting.yaml``, builds the task graph with the plugin
applied, and executes the requested tasks (default: ``check``).
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from bettertesting.build.capabilities import IDE, IdeIntegration
from bettertesting.build.context import BuildContext
from bettertesting.config import CONFIG_FILE, BuildConfig
from bettertesting.execution.executor import TaskExecutor, TaskOutcome
from bettertesting.execution.runner import SubprocessRunner
from bettertesting.observability import configure_logging
from bettertesting.plugin import BetterTesting


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Run unit, integration and system tests with isolated and merged reports"
    )
    parser.add_argument(
        "tasks",
        nargs="*",
        default=["check"],
        help="Tasks to run (default: check)",
    )
    parser.add_argument(
        "--project-dir",
        type=Path,
        default=Path("."),
        help="Project directory (default: current directory)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"Path to the configuration file (default: <project-dir>/{CONFIG_FILE})",
    )
    parser.add_argument(
        "--list-tasks",
        action="store_true",
        default=False,
        help="List the tasks of the build and exit",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Print the execution plan without running anything",
    )
    parser.add_argument(
        "--ide",
        action="store_true",
        default=False,
        help="Print the test source roots for IDE integration and exit",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug logging",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        default=False,
        help="Write log lines as JSON",
    )
    return parser.parse_args(argv)


def create_build(args: argparse.Namespace) -> tuple[BuildContext, BuildConfig]:
    """Create the build and apply the plugin to it.

    Raises:
        ApplyError: If the configuration cannot be wired.
    """
    project_dir = args.project_dir.resolve()
    config_path = args.config if args.config is not None else project_dir / CONFIG_FILE
    config = BuildConfig(config_path)
    build = BuildContext.create(project_dir, config.reporting_dir)
    if args.ide:
        IdeIntegration.apply(build)
    BetterTesting(config).apply(build)
    return build, config


def _print_tasks(build: BuildContext) -> None:
    groups: dict[str, list[str]] = {}
    for task in build.graph.tasks.values():
        groups.setdefault(task.group or "Other", []).append(
            f"  {task.name} - {task.description}" if task.description else f"  {task.name}"
        )
    for group in sorted(groups):
        print(f"{group} tasks")
        print("-" * (len(group) + 6))
        for line in groups[group]:
            print(line)
        print()


def _print_outcomes(outcomes: list[TaskOutcome]) -> None:
    for outcome in outcomes:
        line = f"{outcome.name}: {outcome.status.upper()} ({outcome.duration:.2f}s)"
        if outcome.message:
            line += f" - {outcome.message}"
        print(line)
        if outcome.report_dir and outcome.summary:
            print(f"  report: {outcome.report_dir}")


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    configure_logging(verbose=args.verbose, json_output=args.json_logs)

    try:
        build, config = create_build(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.list_tasks:
        _print_tasks(build)
        return 0

    if args.ide:
        ide = build.capability(IDE)
        for path in ide.test_source_dirs:
            print(path)
        return 0

    executor = TaskExecutor(
        build,
        SubprocessRunner(command=config.runner_command, timeout=config.runner_timeout),
    )
    try:
        plan = executor.plan(args.tasks)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.dry_run:
        for name in plan:
            print(name)
        return 0

    outcomes = executor.execute(args.tasks)
    _print_outcomes(outcomes)

    failed = [o for o in outcomes if not o.succeeded]
    if failed:
        print(f"\nBUILD FAILED: {len(failed)} task(s) did not succeed", file=sys.stderr)
        return 1
    print("\nBUILD SUCCESSFUL")
    return 0


if __name__ == "__main__":
    sys.exit(main())
