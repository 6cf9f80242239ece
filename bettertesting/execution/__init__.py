"""Task execution: sequential executor and test runner adapters."""

from bettertesting.execution.executor import TaskExecutor, TaskOutcome
from bettertesting.execution.runner import SubprocessRunner, TestRunner, parse_junit_xml

__all__ = [
    "SubprocessRunner",
    "TaskExecutor",
    "TaskOutcome",
    "TestRunner",
    "parse_junit_xml",
]
