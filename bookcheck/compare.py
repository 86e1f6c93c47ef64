"""Cross-step comparison primitives.

Two whole responses are compared after normalization: bundle references
are dropped from journeys, and a service charge that is missing, null, or
zero is dropped entirely. List-valued fields are compared by length and
then element by element up to the shorter length.
"""

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from bookcheck.amounts import ZERO, amount_or_zero, is_zero_or_absent, round2
from bookcheck.collector import CheckRecorder
from bookcheck.models import PassengerFareBreakdown

logger = logging.getLogger(__name__)

SERVICE_CHARGE_KEYS = frozenset({"serviceChargeAmount", "passengerServiceChargeAmount"})
BUNDLE_KEY = "bundleReferenceIds"


class _Absent:
    def __repr__(self) -> str:
        return "<absent>"


ABSENT = _Absent()


# --- Normalization ---


def _strip_bundles(journeys: Mapping) -> dict:
    return {
        journey_id: (
            {k: v for k, v in journey.items() if k != BUNDLE_KEY}
            if isinstance(journey, Mapping)
            else journey
        )
        for journey_id, journey in journeys.items()
    }


def normalize_for_comparison(tree: Any) -> Any:
    """Return a normalized copy of tree for equality comparison.

    Idempotent: normalizing a normalized tree changes nothing.
    """
    if isinstance(tree, Mapping):
        result = {}
        for key, value in tree.items():
            if key in SERVICE_CHARGE_KEYS and is_zero_or_absent(value):
                continue
            if key == "journeys" and isinstance(value, Mapping):
                value = _strip_bundles(value)
            result[key] = normalize_for_comparison(value)
        return result
    if isinstance(tree, list):
        return [normalize_for_comparison(item) for item in tree]
    return tree


# --- Tree diff ---


@dataclass(frozen=True)
class Difference:
    """One differing location between two trees."""

    path: str
    expected: Any
    actual: Any
    note: str = ""

    def describe(self) -> str:
        if self.note:
            return f"{self.path}: {self.note}"
        return f"{self.path}: expected [{self.expected!r}] but found [{self.actual!r}]"


def _scalar_equal(a: Any, b: Any) -> bool:
    # JSON true is not the number 1
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    return a == b


def diff_trees(expected: Any, actual: Any, path: str = "$") -> Iterator[Difference]:
    """Yield every difference between two JSON-like trees."""
    if isinstance(expected, Mapping) and isinstance(actual, Mapping):
        for key in expected:
            child = f"{path}.{key}"
            if key not in actual:
                yield Difference(child, expected[key], ABSENT, "missing in actual")
            else:
                yield from diff_trees(expected[key], actual[key], child)
        for key in actual:
            if key not in expected:
                yield Difference(f"{path}.{key}", ABSENT, actual[key], "unexpected key in actual")
        return
    if isinstance(expected, list) and isinstance(actual, list):
        if len(expected) != len(actual):
            yield Difference(
                path,
                len(expected),
                len(actual),
                f"length mismatch: expected {len(expected)} but found {len(actual)}",
            )
        for i, (e, a) in enumerate(zip(expected, actual)):
            yield from diff_trees(e, a, f"{path}[{i}]")
        return
    if not _scalar_equal(expected, actual):
        yield Difference(path, expected, actual)


# --- Recorders ---


def compare_subtree(
    out: CheckRecorder,
    name: str,
    expected: Any,
    actual: Any,
    path: Optional[str] = None,
) -> int:
    """Deep-compare normalized subtrees, recording one failure per difference.

    Each side is normalized under its own key, so a "journeys" subtree loses
    its bundle references just as it would inside a whole response.
    """
    count = 0
    for diff in diff_trees(
        normalize_for_comparison({name: expected})[name],
        normalize_for_comparison({name: actual})[name],
        path or f"$.{name}",
    ):
        out.fail(f"{name} mismatch at {diff.describe()}", diff.path)
        count += 1
    if count:
        logger.debug("%s: %d differences", name, count)
    return count


def compare_fields(
    out: CheckRecorder,
    fields: list[str],
    expected: Mapping,
    actual: Mapping,
    label: str,
    path: str = "$",
) -> None:
    """Plain equality on a named subset of fields."""
    for field in fields:
        e, a = expected.get(field), actual.get(field)
        logger.debug("%s %s: expected=%r actual=%r", label, field, e, a)
        out.expect_equal(e, a, f"{label}: {field} mismatch", f"{path}.{field}")


def compare_amount_maps(
    out: CheckRecorder,
    expected: Optional[Mapping],
    actual: Optional[Mapping],
    label: str,
    path: str = "$",
) -> None:
    """Compare every money-valued key on either side by amount.

    A key missing on one side compares as zero.
    """
    expected = normalize_for_comparison(expected or {})
    actual = normalize_for_comparison(actual or {})
    keys = list(actual) + [k for k in expected if k not in actual]
    for key in keys:
        if not isinstance(actual.get(key), Mapping) and not isinstance(expected.get(key), Mapping):
            continue
        a = amount_or_zero(actual.get(key))
        e = amount_or_zero(expected.get(key))
        if a != e:
            out.fail(
                f"{label}: {key} mismatch expected [{e}] but found [{a}]",
                f"{path}.{key}",
                e,
                a,
            )


def _by_type(breakdown: list[PassengerFareBreakdown]) -> dict[str, list[PassengerFareBreakdown]]:
    grouped: dict[str, list[PassengerFareBreakdown]] = {}
    for pax in breakdown:
        grouped.setdefault((pax.passenger_type_code or "").upper(), []).append(pax)
    return grouped


_PER_TYPE_FIELDS = (
    ("passengerBaseAmount", "passenger_base_amount"),
    ("passengerTaxesAmount", "passenger_taxes_amount"),
    ("passengerTotalAmount", "passenger_total_amount"),
)


def compare_per_type_totals(
    out: CheckRecorder,
    booked: Optional[list[PassengerFareBreakdown]],
    quoted: Optional[list[PassengerFareBreakdown]],
    pax_counts: dict[str, int],
    label: str = "order",
) -> None:
    """Quoted per-unit amounts times passenger count equal the booked sums per type.

    The count is the requested count for the type, or failing that the
    number of booked entries of that type.
    """
    booked_by_type = _by_type(booked or [])
    for quote in quoted or []:
        code = (quote.passenger_type_code or "").upper()
        entries = booked_by_type.get(code, [])
        count = pax_counts.get(code, len(entries))
        if not entries:
            out.fail(f"{label}: no booked passengers of type {code}")
            continue
        for field, attr in _PER_TYPE_FIELDS:
            expected = round2(amount_or_zero(getattr(quote, attr)) * Decimal(count))
            actual = round2(sum((amount_or_zero(getattr(e, attr)) for e in entries), ZERO))
            if actual != expected:
                out.fail(
                    f"{label}: {field} for type {code} expected [{expected}] "
                    f"({count} x quoted) but found [{actual}]",
                    "$.order.passengerFareBreakdown",
                    expected,
                    actual,
                )
