"""Soft-assertion collector.

Checks never raise on a contract mismatch. They record findings through a
CheckRecorder bound to their id, and the orchestrator turns the collected
findings into one StageReport at the end of the stage.
"""

from __future__ import annotations

import logging
from typing import Any

from bookcheck.models import Finding, FindingKind, Severity, Stage, StageReport

logger = logging.getLogger(__name__)


class FailureCollector:
    """Accumulates findings for one stage."""

    def __init__(self, stage: Stage) -> None:
        self.stage = stage
        self.findings: list[Finding] = []
        self.checks_run: list[str] = []

    def bind(self, check_id: str, check_name: str = "") -> "CheckRecorder":
        """Return a recorder that tags findings with the given check."""
        return CheckRecorder(self, check_id, check_name or check_id)

    def record(self, finding: Finding) -> None:
        self.findings.append(finding)
        if finding.severity == Severity.VIOLATION:
            logger.debug("[%s] %s", finding.check_id, finding.message)

    @property
    def failure_count(self) -> int:
        return sum(1 for f in self.findings if f.severity == Severity.VIOLATION)

    def report(self) -> StageReport:
        return StageReport(
            stage=self.stage,
            findings=list(self.findings),
            checks_run=list(self.checks_run),
        )


class CheckRecorder:
    """Records findings on behalf of a single check."""

    def __init__(self, collector: FailureCollector, check_id: str, check_name: str) -> None:
        self.collector = collector
        self.check_id = check_id
        self.check_name = check_name
        self.failures = 0

    def _add(
        self,
        message: str,
        kind: FindingKind,
        severity: Severity,
        path: str = "",
        expected: Any = None,
        actual: Any = None,
    ) -> None:
        if severity == Severity.VIOLATION:
            self.failures += 1
        self.collector.record(
            Finding(
                check_id=self.check_id,
                check_name=self.check_name,
                stage=self.collector.stage,
                kind=kind,
                severity=severity,
                message=message,
                path=path,
                expected=None if expected is None else str(expected),
                actual=None if actual is None else str(actual),
            )
        )

    def fail(self, message: str, path: str = "", expected: Any = None, actual: Any = None) -> None:
        self._add(message, FindingKind.ASSERTION, Severity.VIOLATION, path, expected, actual)

    def missing(self, message: str, path: str = "") -> None:
        self._add(message, FindingKind.MISSING_DATA, Severity.VIOLATION, path)

    def malformed(self, message: str, path: str = "", actual: Any = None) -> None:
        self._add(message, FindingKind.MALFORMED_DATA, Severity.VIOLATION, path, actual=actual)

    def prerequisite(self, message: str) -> None:
        self._add(message, FindingKind.PREREQUISITE, Severity.VIOLATION)

    def warn(self, message: str, path: str = "") -> None:
        self._add(message, FindingKind.ASSERTION, Severity.WARNING, path)

    def info(self, message: str, path: str = "") -> None:
        self._add(message, FindingKind.ASSERTION, Severity.INFO, path)

    def expect_equal(
        self,
        expected: Any,
        actual: Any,
        message: str,
        path: str = "",
    ) -> bool:
        """Record a failure unless expected == actual. Returns the outcome."""
        if expected == actual:
            return True
        self.fail(f"{message}: expected [{expected}] but found [{actual}]", path, expected, actual)
        return False

    def expect(self, condition: bool, message: str, path: str = "") -> bool:
        if not condition:
            self.fail(message, path)
        return bool(condition)
