"""JSON output formatter -- valid JSON suitable for piping to jq."""

from __future__ import annotations

import json

from bookcheck.models import StageReport


class JsonFormatter:
    """Format stage reports as pretty-printed JSON."""

    def format_report(self, report: StageReport) -> str:
        """Format a stage report as JSON."""
        data = {
            "type": "stage_report",
            "stage": report.stage.value,
            "summary": {
                "passed": report.passed,
                "failure_count": report.failure_count,
                "warning_count": report.warning_count,
                "info_count": len(report.infos),
                "checks_run": len(report.checks_run),
            },
            "findings": [f.model_dump(mode="json") for f in report.findings],
        }
        return json.dumps(data, indent=2)
