"""HTML rendering of task and merged test reports.

Generates self-contained HTML pages with color-coded statuses and
expandable failure details. A task report renders one test list; a
merged report renders one section per input task.
"""

from __future__ import annotations

import html
import json
from pathlib import Path
from typing import Any

STATUS_COLORS: dict[str, str] = {
    "passed": "#90EE90",
    "failed": "#FFB6C1",
    "skipped": "#D3D3D3",
    "not_run": "#B0C4DE",
    "no_tests": "#D3D3D3",
}

STATUS_LABELS: dict[str, str] = {
    "passed": "PASSED",
    "failed": "FAILED",
    "skipped": "SKIPPED",
    "not_run": "NOT RUN",
    "no_tests": "NO TESTS",
}

_CSS = """\
body {
    font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
    padding: 20px;
    background: #f5f5f5;
    color: #333;
}
.report-header, .task-section {
    background: #fff;
    border-radius: 8px;
    padding: 20px;
    margin-bottom: 20px;
    box-shadow: 0 1px 3px rgba(0,0,0,0.1);
}
.report-header h1 {
    margin: 0 0 10px 0;
    font-size: 24px;
}
.meta {
    color: #666;
    font-size: 14px;
}
.summary {
    display: flex;
    gap: 20px;
    flex-wrap: wrap;
    margin-top: 15px;
}
.summary-item {
    padding: 10px 16px;
    border-radius: 6px;
    font-weight: 600;
    font-size: 14px;
}
.test-entry {
    border-left: 4px solid #e8e8e8;
    padding: 6px 12px;
    margin: 6px 0;
}
.status-badge {
    padding: 2px 8px;
    border-radius: 4px;
    font-size: 12px;
    font-weight: 600;
}
pre {
    background: #f4f6f9;
    padding: 8px;
    overflow-x: auto;
    font-size: 12px;
}
"""


def generate_html_report(report_data: dict[str, Any]) -> str:
    """Generate a self-contained HTML page from report data.

    Args:
        report_data: ``{"report": {...}}`` as written by Reporter or by
            an aggregation task.

    Returns:
        Complete HTML string.
    """
    report = report_data.get("report", {})
    title = report.get("aggregation") or report.get("task") or "Test Report"
    parts: list[str] = [
        "<!DOCTYPE html>",
        '<html lang="en">',
        "<head>",
        '<meta charset="UTF-8">',
        f"<title>{html.escape(str(title))} - Test Report</title>",
        f"<style>{_CSS}</style>",
        "</head>",
        "<body>",
        _render_header(report, str(title)),
    ]

    if "tasks" in report:
        for section in report["tasks"]:
            parts.append(_render_task_section(section))
    else:
        parts.append('<div class="task-section">')
        parts.append(_render_tests(report.get("tests", [])))
        parts.append("</div>")

    parts.append("</body>")
    parts.append("</html>")
    return "\n".join(parts)


def generate_html_from_file(report_path: Path) -> str:
    """Generate an HTML page from a JSON report file.

    Raises:
        FileNotFoundError: If the report file doesn't exist.
        json.JSONDecodeError: If the JSON is invalid.
    """
    with open(report_path) as f:
        report_data = json.load(f)
    return generate_html_report(report_data)


def write_html_report(report_data: dict[str, Any], output_path: Path) -> None:
    html_content = generate_html_report(report_data)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        f.write(html_content)


def _badge(status: str) -> str:
    color = STATUS_COLORS.get(status, "#e8e8e8")
    label = STATUS_LABELS.get(status, status.upper())
    return (
        f'<span class="status-badge" style="background:{color}">'
        f"{html.escape(label)}</span>"
    )


def _render_summary(summary: dict[str, Any]) -> str:
    items = [
        ("Total", summary.get("total", 0), "#e8e8e8"),
        ("Passed", summary.get("passed", 0), STATUS_COLORS["passed"]),
        ("Failed", summary.get("failed", 0), STATUS_COLORS["failed"]),
        ("Skipped", summary.get("skipped", 0), STATUS_COLORS["skipped"]),
    ]
    parts = ['<div class="summary">']
    for label, count, color in items:
        parts.append(
            f'<div class="summary-item" style="background:{color}">'
            f"{label}: {count}</div>"
        )
    parts.append(
        '<div class="summary-item">'
        f"Duration: {summary.get('total_duration_seconds', 0)}s</div>"
    )
    parts.append("</div>")
    return "\n".join(parts)


def _render_header(report: dict[str, Any], title: str) -> str:
    parts = ['<div class="report-header">']
    parts.append(f"<h1>{html.escape(title)} {_badge(report.get('status', 'no_tests'))}</h1>")
    meta: list[str] = []
    if report.get("generated_at"):
        meta.append(f"Generated: {html.escape(str(report['generated_at']))}")
    if report.get("category"):
        meta.append(f"Category: {html.escape(str(report['category']))}")
    if "tasks" in report:
        names = ", ".join(str(t.get("task", "")) for t in report["tasks"])
        meta.append(f"Tasks: {html.escape(names)}")
    if meta:
        parts.append(f'<div class="meta">{" | ".join(meta)}</div>')
    parts.append(_render_summary(report.get("summary", {})))
    parts.append("</div>")
    return "\n".join(parts)


def _render_task_section(section: dict[str, Any]) -> str:
    task = str(section.get("task", "unknown"))
    parts = [f'<div class="task-section" id="task-{html.escape(task, quote=True)}">']
    parts.append(f"<h2>{html.escape(task)} {_badge(section.get('status', 'no_tests'))}</h2>")
    if section.get("category"):
        parts.append(f'<div class="meta">Category: {html.escape(str(section["category"]))}</div>')
    parts.append(_render_summary(section.get("summary", {})))
    parts.append(_render_tests(section.get("tests", [])))
    parts.append("</div>")
    return "\n".join(parts)


def _render_tests(tests: list[dict[str, Any]]) -> str:
    if not tests:
        return '<p class="meta">No tests recorded.</p>'
    parts: list[str] = []
    for test in tests:
        status = test.get("status", "passed")
        color = STATUS_COLORS.get(status, "#e8e8e8")
        name = test.get("name", "unknown")
        if test.get("classname"):
            name = f"{test['classname']}.{name}"
        parts.append(f'<div class="test-entry" style="border-left-color:{color}">')
        parts.append(
            f"{html.escape(str(name))} {_badge(status)} "
            f'<span class="meta">{test.get("duration_seconds", 0)}s</span>'
        )
        details = [
            test[key] for key in ("message", "stdout", "stderr") if test.get(key)
        ]
        if details:
            parts.append("<details><summary>Details</summary>")
            for text in details:
                parts.append(f"<pre>{html.escape(str(text))}</pre>")
            parts.append("</details>")
        parts.append("</div>")
    return "\n".join(parts)
