"""Check engine package -- auto-discovers all check modules."""

from bookcheck.checks.base import BaseCheck, Check, get_registered_checks, register_check

__all__ = ["BaseCheck", "Check", "get_registered_checks", "register_check"]
