"""Check engine base: protocol, registry, and decorators."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Protocol

from bookcheck.models import Stage

if TYPE_CHECKING:
    from bookcheck.collector import CheckRecorder
    from bookcheck.validator import StageContext


class Check(Protocol):
    """Protocol for stage checks.

    ``needs_model`` checks only run when the response parsed into its typed
    view. ``needs_prior`` checks compare against an earlier step's snapshot
    and record a prerequisite failure when it is unavailable.
    """

    check_id: str
    check_name: str
    check_reference: str
    stages: frozenset[Stage]
    needs_model: bool
    needs_prior: bool

    def check(self, ctx: "StageContext", out: "CheckRecorder") -> None: ...


# Global check registry
_CHECK_REGISTRY: list[type] = []


def register_check(cls: type) -> type:
    """Decorator to register a check class."""
    _CHECK_REGISTRY.append(cls)
    return cls


def get_registered_checks(stage: Optional[Stage] = None) -> list[type]:
    """Return registered check classes, optionally only those for one stage."""
    if stage is None:
        return list(_CHECK_REGISTRY)
    return [cls for cls in _CHECK_REGISTRY if stage in cls.stages]


class BaseCheck:
    """Defaults shared by concrete checks."""

    check_id = "unknown"
    check_name = "Unknown"
    check_reference = ""
    stages: frozenset[Stage] = frozenset()
    needs_model = True
    needs_prior = False
