"""Test reports: per-task JSON/HTML reports and merged aggregation reports."""

from bettertesting.reporting.aggregator import ReportAggregator, merge_reports
from bettertesting.reporting.html_reporter import generate_html_report, write_html_report
from bettertesting.reporting.reporter import Reporter, TestResult

__all__ = [
    "ReportAggregator",
    "Reporter",
    "TestResult",
    "generate_html_report",
    "merge_reports",
    "write_html_report",
]
