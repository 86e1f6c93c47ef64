"""Plain text output formatter -- no ANSI escapes."""

from __future__ import annotations

from bookcheck.models import StageReport


def _header(title: str) -> str:
    """Create a plain text section header."""
    return f"\n{'=' * 60}\n  {title}\n{'=' * 60}\n"


def _subheader(title: str) -> str:
    """Create a plain text sub-header."""
    return f"\n--- {title} ---\n"


class PlainFormatter:
    """Format stage reports as plain text without ANSI escapes."""

    def format_report(self, report: StageReport) -> str:
        """Format a stage report."""
        lines: list[str] = []
        status = "PASS" if report.passed else "FAIL"

        lines.append(_header(f"{report.stage.value.replace('_', ' ').title()} Validation"))
        lines.append(f"  Status:     {status}")
        lines.append(f"  Checks:     {len(report.checks_run)}")
        lines.append(f"  Failures:   {report.failure_count}")
        lines.append(f"  Warnings:   {report.warning_count}")

        if not report.findings:
            return "\n".join(lines)

        lines.append(_subheader("Findings"))
        lines.append(f"  {'Check':<28} {'Severity':<10} {'Kind':<15} Message")
        lines.append(f"  {'-' * 28} {'-' * 10} {'-' * 15} {'-' * 40}")
        for f in report.findings:
            lines.append(f"  {f.check_id:<28} {f.severity.value:<10} {f.kind.value:<15} {f.message}")
            if f.path:
                lines.append(f"  {'':<28} {'':<10} {'':<15} at {f.path}")

        return "\n".join(lines)
