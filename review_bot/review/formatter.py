"""
Report formatters.

Renders aggregated issues as console text, JSON, HTML or Markdown, and
optionally writes the artifact to a file.
"""

import html
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from review_bot.analysis.aggregator import AggregatedIssues, IssueAggregator
from review_bot.config import OutputFormat
from review_bot.exceptions import ReportWriteError
from review_bot.models import SEVERITY_ORDER, Issue, Severity

logger = logging.getLogger(__name__)

NO_ISSUES_MESSAGE = "No issues found"

SEVERITY_ICONS = {
    Severity.CRITICAL: "🚨",
    Severity.HIGH: "❌",
    Severity.MEDIUM: "⚠️",
    Severity.LOW: "💡",
    Severity.INFO: "ℹ️",
}

HTML_COLORS = {
    Severity.CRITICAL: "#b71c1c",
    Severity.HIGH: "#e65100",
    Severity.MEDIUM: "#f9a825",
    Severity.LOW: "#1565c0",
    Severity.INFO: "#546e7a",
}


@dataclass
class ReportOptions:
    """Options controlling report rendering."""
    format: Union[OutputFormat, str] = OutputFormat.CONSOLE
    output_file: Optional[str] = None
    include_snippets: bool = True
    include_suggestions: bool = True
    max_suggestions_per_file: Optional[int] = None
    sort_by_location: bool = False
    deduplicate: bool = False


def issue_to_dict(issue: Issue, include_snippet: bool = True, include_suggestion: bool = True) -> Dict[str, Any]:
    """Serialize an issue for the JSON report."""
    data = issue.model_dump(mode="json", exclude_none=True)
    if not include_snippet:
        data.pop("snippet", None)
    if not include_suggestion:
        data.pop("suggestion", None)
    return data


def _suggestion_allowance(aggregated: AggregatedIssues, options: ReportOptions) -> Dict[str, set]:
    """
    IDs of issues whose suggestion is shown, honoring the per-file cap.

    The cap is applied in severity order so the most severe issues keep
    their suggestions.
    """
    allowed: Dict[str, set] = {}
    limit = options.max_suggestions_per_file
    for issue in aggregated.all_issues():
        if not issue.suggestion:
            continue
        ids = allowed.setdefault(issue.file, set())
        if limit is None or len(ids) < limit:
            ids.add(issue.id)
    return allowed


def format_console_report(aggregated: AggregatedIssues, options: ReportOptions) -> str:
    """
    Format issues as plain console text.

    Args:
        aggregated: Issues grouped by severity
        options: Rendering options

    Returns:
        Console text
    """
    if aggregated.total == 0:
        return f"🎉 {NO_ISSUES_MESSAGE}! Great job!"

    parts = []
    parts.append("📊 Code Review Summary")
    parts.append("─" * 50)
    for severity in SEVERITY_ORDER:
        count = len(aggregated[severity])
        if count:
            parts.append(f"{SEVERITY_ICONS[severity]} {severity.value.upper()}: {count} issues")
    parts.append("")
    parts.append(f"Total Issues: {aggregated.total}")
    parts.append("")
    parts.append("🔍 Detailed Issues")
    parts.append("─" * 50)

    allowed = _suggestion_allowance(aggregated, options)
    suggestions = 0

    for severity in SEVERITY_ORDER:
        issues = aggregated[severity]
        if not issues:
            continue
        parts.append("")
        parts.append(f"{SEVERITY_ICONS[severity]} {severity.value.upper()} Issues:")
        parts.append("─" * 30)

        for issue in issues:
            parts.append("")
            parts.append(f"⚠ {issue.title}")
            parts.append(f"   {issue.message}")
            parts.append(f"   File: {issue.location}")
            parts.append(f"   Type: {issue.type}, Analyzer: {issue.analyzer}")
            if issue.duplicate_count > 1:
                parts.append(f"   Occurrences: {issue.duplicate_count}")
            if options.include_snippets and issue.snippet:
                parts.append("   Code:")
                parts.append("   ```")
                parts.extend(f"      {line}" for line in issue.snippet.splitlines())
                parts.append("   ```")
            if options.include_suggestions and issue.id in allowed.get(issue.file, ()):
                parts.append(f"   💡 Suggestion: {issue.suggestion}")
                suggestions += 1

    if suggestions:
        parts.append("")
        parts.append(f"💡 Fix Suggestions: {suggestions} issues have suggestions available")

    return "\n".join(parts)


def format_json_report(aggregated: AggregatedIssues, options: ReportOptions) -> str:
    """Format issues as a JSON document with a severity summary."""
    allowed = _suggestion_allowance(aggregated, options)
    issues = [
        issue_to_dict(
            issue,
            include_snippet=options.include_snippets,
            include_suggestion=(
                options.include_suggestions and issue.id in allowed.get(issue.file, ())
            ),
        )
        for issue in aggregated.all_issues()
    ]

    payload = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "summary": aggregated.summary(),
        "total": aggregated.total,
        "issues": issues,
    }
    if not issues:
        payload["message"] = NO_ISSUES_MESSAGE

    return json.dumps(payload, indent=2)


def format_markdown_report(aggregated: AggregatedIssues, options: ReportOptions) -> str:
    """
    Format issues as Markdown grouped by severity.

    Args:
        aggregated: Issues grouped by severity
        options: Rendering options

    Returns:
        Markdown document
    """
    parts = []
    parts.append("# Code Review Report")
    parts.append("")
    parts.append(f"*Generated {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')}*")
    parts.append("")

    if aggregated.total == 0:
        parts.append(f"✅ **{NO_ISSUES_MESSAGE}.**")
        return "\n".join(parts)

    parts.append("## Summary")
    parts.append("")
    parts.append("| Severity | Count |")
    parts.append("|----------|-------|")
    for severity in SEVERITY_ORDER:
        parts.append(f"| {SEVERITY_ICONS[severity]} {severity.value.upper()} | {len(aggregated[severity])} |")
    parts.append(f"| **Total** | **{aggregated.total}** |")
    parts.append("")

    allowed = _suggestion_allowance(aggregated, options)

    for severity in SEVERITY_ORDER:
        issues = aggregated[severity]
        if not issues:
            continue
        parts.append(f"## {SEVERITY_ICONS[severity]} {severity.value.capitalize()} ({len(issues)})")
        parts.append("")

        for issue in issues:
            parts.append(f"### {issue.title}")
            parts.append("")
            parts.append(issue.message)
            parts.append("")
            parts.append(f"- **Location:** `{issue.location}`")
            parts.append(f"- **Type:** {issue.type}")
            parts.append(f"- **Analyzer:** {issue.analyzer}")
            if issue.duplicate_count > 1:
                parts.append(f"- **Occurrences:** {issue.duplicate_count}")
            parts.append("")
            if options.include_snippets and issue.snippet:
                parts.append("```")
                parts.append(issue.snippet)
                parts.append("```")
                parts.append("")
            if options.include_suggestions and issue.id in allowed.get(issue.file, ()):
                parts.append(f"**Suggestion:** {issue.suggestion}")
                parts.append("")

    return "\n".join(parts)


def format_html_report(aggregated: AggregatedIssues, options: ReportOptions) -> str:
    """Format issues as a standalone HTML page. All issue text is escaped."""
    esc = html.escape
    parts = []
    parts.append("<!DOCTYPE html>")
    parts.append('<html lang="en">')
    parts.append("<head>")
    parts.append('<meta charset="utf-8">')
    parts.append("<title>Code Review Report</title>")
    parts.append("<style>")
    parts.append("body { font-family: sans-serif; margin: 2em; }")
    parts.append(".issue { border-left: 4px solid #ccc; padding: 0.5em 1em; margin: 1em 0; }")
    parts.append("pre { background: #f5f5f5; padding: 0.5em; overflow-x: auto; }")
    parts.append(".meta { color: #666; font-size: 0.9em; }")
    parts.append("</style>")
    parts.append("</head>")
    parts.append("<body>")
    parts.append("<h1>Code Review Report</h1>")

    if aggregated.total == 0:
        parts.append(f'<p class="empty">{NO_ISSUES_MESSAGE}.</p>')
        parts.append("</body>")
        parts.append("</html>")
        return "\n".join(parts)

    parts.append("<table>")
    parts.append("<tr><th>Severity</th><th>Count</th></tr>")
    for severity in SEVERITY_ORDER:
        parts.append(
            f"<tr><td>{severity.value.upper()}</td><td>{len(aggregated[severity])}</td></tr>"
        )
    parts.append(f"<tr><th>Total</th><th>{aggregated.total}</th></tr>")
    parts.append("</table>")

    allowed = _suggestion_allowance(aggregated, options)

    for severity in SEVERITY_ORDER:
        issues = aggregated[severity]
        if not issues:
            continue
        color = HTML_COLORS[severity]
        parts.append(f'<h2 style="color: {color}">{severity.value.capitalize()} ({len(issues)})</h2>')

        for issue in issues:
            parts.append(f'<div class="issue" style="border-color: {color}">')
            parts.append(f"<h3>{esc(issue.title)}</h3>")
            parts.append(f"<p>{esc(issue.message)}</p>")
            parts.append(
                f'<p class="meta"><code>{esc(issue.location)}</code> '
                f"&middot; {esc(issue.type)} &middot; {esc(issue.analyzer)}</p>"
            )
            if issue.duplicate_count > 1:
                parts.append(f'<p class="meta">Occurrences: {issue.duplicate_count}</p>')
            if options.include_snippets and issue.snippet:
                parts.append(f"<pre><code>{esc(issue.snippet)}</code></pre>")
            if options.include_suggestions and issue.id in allowed.get(issue.file, ()):
                parts.append(f"<p><strong>Suggestion:</strong> {esc(issue.suggestion)}</p>")
            parts.append("</div>")

    parts.append("</body>")
    parts.append("</html>")
    return "\n".join(parts)


FORMATTERS = {
    OutputFormat.CONSOLE: format_console_report,
    OutputFormat.JSON: format_json_report,
    OutputFormat.HTML: format_html_report,
    OutputFormat.MARKDOWN: format_markdown_report,
}


class ReportGenerator:
    """Renders issues in the requested format and writes the artifact."""

    def render(self, issues: List[Issue], options: Optional[ReportOptions] = None) -> str:
        """
        Render a report without writing or printing it.

        Raises:
            ValueError: If the format is not supported
        """
        options = options or ReportOptions()
        report_format = OutputFormat(options.format)

        aggregated = IssueAggregator(
            sort_by_location=options.sort_by_location,
            deduplicate=options.deduplicate,
        ).aggregate(issues)

        return FORMATTERS[report_format](aggregated, options)

    def emit(self, report: str, options: Optional[ReportOptions] = None) -> None:
        """
        Deliver a rendered report: to ``output_file`` when set, otherwise
        console reports go to stdout.

        Raises:
            ReportWriteError: If ``output_file`` cannot be written
        """
        options = options or ReportOptions()
        report_format = OutputFormat(options.format)

        if options.output_file:
            self.write(report, options.output_file)
            logger.info(
                "Report written",
                extra={"path": options.output_file, "format": report_format.value},
            )
        elif report_format == OutputFormat.CONSOLE:
            print(report)

    def generate(self, issues: List[Issue], options: Optional[ReportOptions] = None) -> str:
        """
        Render a report and deliver it.

        Args:
            issues: Issues in merge order
            options: Rendering options (console to stdout by default)

        Returns:
            Rendered report

        Raises:
            ReportWriteError: If ``output_file`` cannot be written
            ValueError: If the format is not supported
        """
        report = self.render(issues, options)
        self.emit(report, options)
        return report

    @staticmethod
    def write(report: str, path: str) -> None:
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write(report)
        except OSError as e:
            raise ReportWriteError(f"Failed to write report: {e}", path=path) from e
