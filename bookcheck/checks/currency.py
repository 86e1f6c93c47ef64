"""Currency consistency: every monetary field carries the expected currency."""

import logging
from collections.abc import Iterator
from typing import Optional

from bookcheck.checks.base import BaseCheck, register_check
from bookcheck.collector import CheckRecorder
from bookcheck.config import ValidationConfig
from bookcheck.models import MoneyAmount, PassengerFareBreakdown, PriceDetails, Stage, TaxFee

logger = logging.getLogger(__name__)


def _tax_fields(
    taxes: Optional[list[TaxFee]], path: str, config: ValidationConfig
) -> Iterator[tuple[str, Optional[MoneyAmount]]]:
    for t, tax in enumerate(taxes or []):
        if config.is_excluded_fee(tax.code):
            logger.debug("Skipping excluded fee %s at %s", tax.code, path)
            continue
        yield f"{path}.taxesAndFees[{t}].amount", tax.amount


def money_fields(
    price: Optional[PriceDetails],
    breakdown: Optional[list[PassengerFareBreakdown]],
    path: str,
    config: ValidationConfig,
) -> Iterator[tuple[str, Optional[MoneyAmount]]]:
    """Yield (path, money) for every currency-bearing field of a priced unit."""
    for p, pax in enumerate(breakdown or []):
        pax_path = f"{path}.passengerFareBreakdown[{p}]"
        yield f"{pax_path}.passengerBaseAmount", pax.passenger_base_amount
        yield f"{pax_path}.passengerTaxesAmount", pax.passenger_taxes_amount
        yield f"{pax_path}.passengerTotalAmount", pax.passenger_total_amount
        yield from _tax_fields(pax.taxes_and_fees, pax_path, config)
    if price is not None:
        pd_path = f"{path}.priceDetails"
        yield f"{pd_path}.totalAmount", price.total_amount
        yield f"{pd_path}.baseAmount", price.base_amount
        yield f"{pd_path}.taxesAmount", price.taxes_amount
        yield from _tax_fields(price.taxes_and_fees, pd_path, config)


def check_currencies(
    price: Optional[PriceDetails],
    breakdown: Optional[list[PassengerFareBreakdown]],
    expected: str,
    out: CheckRecorder,
    config: ValidationConfig,
    path: str = "$",
) -> None:
    """Every currency present must equal ``expected``; absent ones are skipped."""
    for field_path, money in money_fields(price, breakdown, path, config):
        currency = money.currency.strip() if money is not None and money.currency else ""
        if not currency:
            logger.debug("No currency at %s, skipped", field_path)
            continue
        if currency.upper() != expected:
            out.fail(
                f"Currency mismatch at {field_path}: expected [{expected}] but found [{currency}]",
                f"{field_path}.currency",
                expected,
                currency,
            )


@register_check
class CurrencyConsistencyCheck(BaseCheck):
    """All amounts are priced in the agency currency."""

    check_id = "currency_consistency"
    check_name = "Currency Consistency"
    check_reference = "*.currency"
    stages = frozenset({Stage.SEARCH, Stage.FARE_CONFIRM, Stage.BOOK})

    def check(self, ctx, out) -> None:
        expected = ctx.config.expected_currency
        if not expected:
            out.missing("Expected currency is not configured")
            return
        for item in ctx.priced_items():
            check_currencies(
                item.price_details, item.breakdown, expected, out, ctx.config, item.path
            )
