"""Rich-based output formatter with colored tables, panels, and severity coding."""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from bookcheck.models import Severity, StageReport

# Severity -> Rich style mapping
_SEVERITY_STYLES = {
    Severity.VIOLATION: "bold red",
    Severity.WARNING: "yellow",
    Severity.INFO: "blue",
}


def _render(renderable) -> str:
    """Render a Rich object to a string."""
    buf = StringIO()
    console = Console(file=buf, force_terminal=True, width=120)
    console.print(renderable)
    return buf.getvalue()


class RichFormatter:
    """Format stage reports using Rich tables and panels."""

    def format_report(self, report: StageReport) -> str:
        """Format a stage report with color-coded severity."""
        parts: list[str] = []

        if report.passed:
            status_text = Text("PASS", style="bold green")
        else:
            status_text = Text("FAIL", style="bold red")

        summary_text = Text()
        summary_text.append("Status: ")
        summary_text.append_text(status_text)
        summary_text.append("\n")
        for line in (
            f"Checks:     {len(report.checks_run)}",
            f"Failures:   {report.failure_count}",
            f"Warnings:   {report.warning_count}",
        ):
            summary_text.append(line + "\n")

        title = f"{report.stage.value.replace('_', ' ').title()} Validation"
        parts.append(_render(Panel(summary_text, title=title, border_style="cyan")))

        if not report.findings:
            return "\n".join(parts)

        table = Table(title="Findings", show_lines=True)
        table.add_column("Check", style="cyan", min_width=10)
        table.add_column("Severity", min_width=9)
        table.add_column("Kind", min_width=8)
        table.add_column("Message", min_width=30)
        table.add_column("Path", style="dim", min_width=20)

        for f in report.findings:
            severity = Text(f.severity.value.upper(), style=_SEVERITY_STYLES.get(f.severity, ""))
            table.add_row(f.check_name, severity, f.kind.value, f.message, f.path)

        parts.append(_render(table))
        return "\n".join(parts)
