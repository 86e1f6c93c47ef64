"""Fare arithmetic checks.

Within one response the API rounds every amount itself, so totals and tax
sums must match exactly after half-up rounding to cents. Only aggregate
closure, which multiplies response amounts by request-side passenger
counts, allows a one-cent rounding tolerance.
"""

import logging
from decimal import Decimal
from typing import Optional

from bookcheck.amounts import ZERO, round2, sum_amounts
from bookcheck.checks.base import BaseCheck, register_check
from bookcheck.collector import CheckRecorder
from bookcheck.models import MoneyAmount, PassengerFareBreakdown, PriceDetails, Stage

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = Decimal("0.01")


def _value(money: Optional[MoneyAmount]) -> Decimal:
    return money.value if money is not None else ZERO


def _report_malformed(out: CheckRecorder, label: str, path: str, fields: dict) -> bool:
    """Record each malformed amount; True if any were found."""
    found = False
    for name, money in fields.items():
        if money is not None and money.malformed:
            out.malformed(
                f"{label}: {name} is not a number: {money.amount!r}",
                f"{path}.{name}.amount",
                actual=money.amount,
            )
            found = True
    return found


def compare_with_tolerance(
    out: CheckRecorder,
    actual: Decimal,
    expected: Decimal,
    field: str,
    label: str,
    tolerance: Decimal = DEFAULT_TOLERANCE,
    path: str = "",
) -> bool:
    """Compare two amounts allowing a small rounding difference.

    An exact match passes silently, a difference within tolerance is
    recorded as info, anything larger is a failure.
    """
    diff = abs(actual - expected)
    if diff == 0:
        return True
    if diff <= tolerance:
        logger.info("%s %s differs by %s (within tolerance)", label, field, diff)
        out.info(
            f"{label}: {field} rounding difference {diff} "
            f"(expected [{expected}] found [{actual}])",
            path,
        )
        return True
    out.fail(
        f"{label}: {field} mismatch expected [{expected}] but found [{actual}] (diff {diff})",
        path,
        expected,
        actual,
    )
    return False


def check_passenger_totals(
    breakdown: Optional[list[PassengerFareBreakdown]],
    out: CheckRecorder,
    label: str,
    path: str = "$",
) -> None:
    """passengerTotalAmount == round2(base + taxes - discount + service)."""
    for p, pax in enumerate(breakdown or []):
        pax_label = f"{label} {pax.passenger_type_code or f'pax[{p}]'}"
        pax_path = f"{path}.passengerFareBreakdown[{p}]"
        fields = {
            "passengerBaseAmount": pax.passenger_base_amount,
            "passengerTaxesAmount": pax.passenger_taxes_amount,
            "passengerDiscountAmount": pax.passenger_discount_amount,
            "passengerServiceChargeAmount": pax.passenger_service_charge_amount,
            "passengerTotalAmount": pax.passenger_total_amount,
        }
        if _report_malformed(out, pax_label, pax_path, fields):
            continue
        if pax.passenger_total_amount is None or pax.passenger_total_amount.amount is None:
            out.missing(f"{pax_label}: passengerTotalAmount is missing", f"{pax_path}.passengerTotalAmount")
            continue

        expected = round2(
            _value(pax.passenger_base_amount)
            + _value(pax.passenger_taxes_amount)
            - _value(pax.passenger_discount_amount)
            + _value(pax.passenger_service_charge_amount)
        )
        actual = round2(pax.passenger_total_amount.value)
        if actual != expected:
            out.fail(
                f"{pax_label}: incorrect passengerTotalAmount expected [{expected}] but found [{actual}]",
                f"{pax_path}.passengerTotalAmount",
                expected,
                actual,
            )


def check_passenger_tax_sums(
    breakdown: Optional[list[PassengerFareBreakdown]],
    out: CheckRecorder,
    label: str,
    path: str = "$",
) -> None:
    """passengerTaxesAmount == sum(taxesAndFees), exact."""
    for p, pax in enumerate(breakdown or []):
        pax_label = f"{label} {pax.passenger_type_code or f'pax[{p}]'}"
        pax_path = f"{path}.passengerFareBreakdown[{p}]"
        if pax.taxes_and_fees is None:
            out.warn(f"{pax_label}: taxesAndFees is missing, tax sum not checked", f"{pax_path}.taxesAndFees")
            continue
        if _report_malformed(
            out,
            pax_label,
            pax_path,
            {"passengerTaxesAmount": pax.passenger_taxes_amount},
        ):
            continue
        total = sum_amounts(pax.taxes_and_fees)
        reported = _value(pax.passenger_taxes_amount)
        if total != reported:
            out.fail(
                f"{pax_label}: passengerTaxesAmount [{reported}] != sum of taxesAndFees [{total}]",
                f"{pax_path}.passengerTaxesAmount",
                total,
                reported,
            )


def check_price_details(
    price: Optional[PriceDetails],
    out: CheckRecorder,
    label: str,
    path: str = "$",
) -> None:
    """Offer-level total and tax-sum arithmetic."""
    pd_path = f"{path}.priceDetails"
    if price is None:
        out.missing(f"{label}: priceDetails is missing", pd_path)
        return
    fields = {
        "baseAmount": price.base_amount,
        "taxesAmount": price.taxes_amount,
        "discountAmount": price.discount_amount,
        "serviceChargeAmount": price.service_charge_amount,
        "totalAmount": price.total_amount,
    }
    if _report_malformed(out, label, pd_path, fields):
        return
    if price.total_amount is None or price.total_amount.amount is None:
        out.missing(f"{label}: priceDetails.totalAmount is missing", f"{pd_path}.totalAmount")
    else:
        expected = round2(
            _value(price.base_amount)
            + _value(price.taxes_amount)
            - _value(price.discount_amount)
            + _value(price.service_charge_amount)
        )
        actual = round2(price.total_amount.value)
        if actual != expected:
            out.fail(
                f"{label}: incorrect priceDetails.totalAmount expected [{expected}] but found [{actual}]",
                f"{pd_path}.totalAmount",
                expected,
                actual,
            )

    if not price.taxes_and_fees:
        logger.info("%s: priceDetails.taxesAndFees empty, tax sum skipped", label)
        return
    total = sum_amounts(price.taxes_and_fees)
    reported = _value(price.taxes_amount)
    if total != reported:
        out.fail(
            f"{label}: priceDetails.taxesAmount [{reported}] != sum of taxesAndFees [{total}]",
            f"{pd_path}.taxesAmount",
            total,
            reported,
        )


def passenger_count(pax: PassengerFareBreakdown, pax_counts: dict[str, int]) -> int:
    """Count for a passenger type: request payload first, then the response, then 1."""
    code = (pax.passenger_type_code or "").upper()
    if code in pax_counts:
        return pax_counts[code]
    if pax.number_of_passengers is not None:
        return pax.number_of_passengers
    return 1


def check_aggregate_closure(
    price: Optional[PriceDetails],
    breakdown: Optional[list[PassengerFareBreakdown]],
    pax_counts: dict[str, int],
    out: CheckRecorder,
    label: str,
    tolerance: Decimal = DEFAULT_TOLERANCE,
    path: str = "$",
) -> None:
    """sum(per-passenger amount x count) == priceDetails amount, for base, taxes and total."""
    if price is None or not breakdown:
        return
    pairs = (
        ("baseAmount", "passenger_base_amount", price.base_amount),
        ("taxesAmount", "passenger_taxes_amount", price.taxes_amount),
        ("totalAmount", "passenger_total_amount", price.total_amount),
    )
    for field, pax_attr, aggregate in pairs:
        if aggregate is None or aggregate.amount is None or aggregate.malformed:
            continue
        summed = ZERO
        for pax in breakdown:
            summed += _value(getattr(pax, pax_attr)) * passenger_count(pax, pax_counts)
        logger.debug("%s: sum of passenger %s = %s, reported %s", label, field, summed, aggregate.value)
        compare_with_tolerance(
            out,
            actual=round2(aggregate.value),
            expected=round2(summed),
            field=f"priceDetails.{field}",
            label=label,
            tolerance=tolerance,
            path=f"{path}.priceDetails.{field}",
        )


@register_check
class PassengerTotalCheck(BaseCheck):
    """Per-passenger total equals base + taxes - discount + service."""

    check_id = "passenger_total"
    check_name = "Passenger Total Arithmetic"
    check_reference = "passengerFareBreakdown[].passengerTotalAmount"
    stages = frozenset({Stage.SEARCH, Stage.FARE_CONFIRM, Stage.BOOK})

    def check(self, ctx, out) -> None:
        for item in ctx.priced_items():
            check_passenger_totals(item.breakdown, out, item.label, item.path)


@register_check
class PassengerTaxSumCheck(BaseCheck):
    """Per-passenger taxes equal the sum of taxesAndFees."""

    check_id = "passenger_tax_sum"
    check_name = "Passenger Tax Sum"
    check_reference = "passengerFareBreakdown[].passengerTaxesAmount"
    stages = frozenset({Stage.SEARCH, Stage.FARE_CONFIRM, Stage.BOOK})

    def check(self, ctx, out) -> None:
        for item in ctx.priced_items():
            check_passenger_tax_sums(item.breakdown, out, item.label, item.path)


@register_check
class PriceDetailsCheck(BaseCheck):
    """Offer-level total and taxes arithmetic."""

    check_id = "price_details"
    check_name = "Price Details Arithmetic"
    check_reference = "priceDetails.totalAmount, priceDetails.taxesAmount"
    stages = frozenset({Stage.SEARCH, Stage.FARE_CONFIRM, Stage.BOOK})

    def check(self, ctx, out) -> None:
        for item in ctx.priced_items():
            check_price_details(item.price_details, out, item.label, item.path)


@register_check
class AggregateClosureCheck(BaseCheck):
    """priceDetails equals the passenger amounts multiplied by passenger counts."""

    check_id = "aggregate_closure"
    check_name = "Aggregate Closure"
    check_reference = "priceDetails"
    stages = frozenset({Stage.SEARCH, Stage.FARE_CONFIRM})

    def check(self, ctx, out) -> None:
        counts = ctx.pax_counts
        for item in ctx.priced_items():
            check_aggregate_closure(
                item.price_details,
                item.breakdown,
                counts,
                out,
                item.label,
                tolerance=ctx.config.rounding_tolerance,
                path=item.path,
            )
