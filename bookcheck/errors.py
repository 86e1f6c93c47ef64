"""Exception hierarchy for bookcheck.

Business-rule mismatches are never raised while a stage runs; they are
recorded as findings and surfaced together through ContractViolation.
The remaining exceptions mark conditions that are not contract failures.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from bookcheck.models import StageReport


class BookcheckError(Exception):
    """Base exception for bookcheck."""

    def __init__(self, message: str = "") -> None:
        self.message = message or self.__class__.__name__
        super().__init__(self.message)


class ContractViolation(BookcheckError, AssertionError):
    """One or more contract failures were recorded for a stage."""

    def __init__(self, report: "StageReport") -> None:
        self.report = report
        lines = [f"{report.stage.value}: {report.failure_count} failure(s)"]
        for finding in report.failures:
            lines.append(f"  [{finding.check_id}] {finding.message}")
        super().__init__("\n".join(lines))


class StageSkipped(BookcheckError):
    """The stage does not apply to this test case (e.g. another booking flow)."""


class ToolingError(BookcheckError):
    """A defect in the validation tooling itself, never absorbed as a finding."""


class ConfigError(BookcheckError):
    """Invalid or unreadable validation configuration."""
