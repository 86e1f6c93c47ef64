"""Completeness scan: flag null-like values anywhere in a response tree."""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from bookcheck.checks.base import BaseCheck, register_check
from bookcheck.collector import CheckRecorder
from bookcheck.models import Stage


class EmptyKind(str, Enum):
    """Kinds of null-like value, in report order."""

    NULL = "null"
    EMPTY_STRING = "empty string"
    EMPTY_LIST = "empty list"
    EMPTY_OBJECT = "empty object"


_RANK = {kind: i for i, kind in enumerate(EmptyKind)}


@dataclass(frozen=True)
class EmptyValue:
    path: str
    kind: EmptyKind


def _classify(value: Any):
    if value is None:
        return EmptyKind.NULL
    if isinstance(value, str) and not value.strip():
        return EmptyKind.EMPTY_STRING
    if isinstance(value, list) and not value:
        return EmptyKind.EMPTY_LIST
    if isinstance(value, dict) and not value:
        return EmptyKind.EMPTY_OBJECT
    return None


def find_empty_values(tree: Any, path: str = "$") -> list[EmptyValue]:
    """Every null, blank string, empty list and empty object, by path.

    Results are de-duplicated and ordered by kind, then path.
    """
    found: set[EmptyValue] = set()

    def walk(node: Any, where: str) -> None:
        kind = _classify(node)
        if kind is not None:
            found.add(EmptyValue(where, kind))
            return
        if isinstance(node, dict):
            for key, child in node.items():
                walk(child, f"{where}.{key}")
        elif isinstance(node, list):
            for i, child in enumerate(node):
                walk(child, f"{where}[{i}]")

    walk(tree, path)
    return sorted(found, key=lambda e: (_RANK[e.kind], e.path))


def is_warning_only(path: str, suffixes: list[str]) -> bool:
    return any(path.endswith(f".{suffix}") for suffix in suffixes)


def report_empty_values(tree: Any, out: CheckRecorder, warning_only_suffixes: list[str]) -> None:
    for empty in find_empty_values(tree):
        message = f"{empty.kind.value} value at {empty.path}"
        if is_warning_only(empty.path, warning_only_suffixes):
            out.warn(message, empty.path)
        else:
            out.fail(message, empty.path)


@register_check
class CompletenessCheck(BaseCheck):
    """No null or empty values in the Search response."""

    check_id = "completeness"
    check_name = "Completeness Scan"
    check_reference = "$"
    stages = frozenset({Stage.SEARCH})
    needs_model = False

    def check(self, ctx, out) -> None:
        if ctx.body is None:
            return
        report_empty_values(ctx.body, out, ctx.config.warning_only_suffixes)
