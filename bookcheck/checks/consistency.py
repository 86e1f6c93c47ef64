"""Cross-step consistency checks.

FareConfirm must agree with the Search offer it confirms, Book with the
FareConfirm snapshot, and Retrieve must reproduce the Book response.
"""

import logging
from collections.abc import Mapping
from typing import Any, Optional

from bookcheck.checks.base import BaseCheck, register_check
from bookcheck.collector import CheckRecorder
from bookcheck.compare import (
    compare_amount_maps,
    compare_fields,
    compare_per_type_totals,
    compare_subtree,
)
from bookcheck.models import MoneyAmount, PassengerFareBreakdown, PriceDetails, Stage

logger = logging.getLogger(__name__)


def _get(tree: Any, *keys: Any) -> Any:
    """Walk nested dicts/lists, returning None as soon as a step is missing."""
    node = tree
    for key in keys:
        if isinstance(key, int):
            if not isinstance(node, list) or key >= len(node):
                return None
        elif not isinstance(node, Mapping):
            return None
        node = node[key] if isinstance(key, int) else node.get(key)
    return node


def _first_by_type(breakdown: Optional[list[PassengerFareBreakdown]]) -> dict[str, PassengerFareBreakdown]:
    result: dict[str, PassengerFareBreakdown] = {}
    for pax in breakdown or []:
        result.setdefault((pax.passenger_type_code or "").upper(), pax)
    return result


def _amount(money: Optional[MoneyAmount]):
    return money.value if money is not None else None


def compare_rbds(
    out: CheckRecorder,
    expected: Optional[list[PassengerFareBreakdown]],
    actual: Optional[list[PassengerFareBreakdown]],
    label: str,
) -> None:
    """RBD per passenger type and segment index matches.

    A segment count mismatch is reported and the comparison continues up to
    the shorter list.
    """
    actual_by_type = _first_by_type(actual)
    for code, quoted in _first_by_type(expected).items():
        pax = actual_by_type.get(code)
        if pax is None:
            out.fail(f"{label}: passenger type {code} missing, RBD not compared")
            continue
        e_rbds = [ref.rbd for ref in quoted.segment_details or []]
        a_rbds = [ref.rbd for ref in pax.segment_details or []]
        if len(e_rbds) != len(a_rbds):
            out.fail(
                f"{label} {code}: segment count mismatch, expected {len(e_rbds)} but found {len(a_rbds)}"
            )
        for i, (e, a) in enumerate(zip(e_rbds, a_rbds)):
            out.expect_equal(e, a, f"{label} {code}: RBD mismatch at segment {i}")


def compare_price_totals(
    out: CheckRecorder,
    expected: Optional[PriceDetails],
    actual: Optional[PriceDetails],
    label: str,
) -> None:
    """priceDetails total, taxes and base amounts are equal."""
    if expected is None or actual is None:
        out.missing(f"{label}: priceDetails missing on one side")
        return
    for field, attr in (
        ("totalAmount", "total_amount"),
        ("taxesAmount", "taxes_amount"),
        ("baseAmount", "base_amount"),
    ):
        out.expect_equal(
            _amount(getattr(expected, attr)),
            _amount(getattr(actual, attr)),
            f"{label}: priceDetails.{field} mismatch",
        )


def compare_passenger_amounts(
    out: CheckRecorder,
    expected: Optional[list[PassengerFareBreakdown]],
    actual: Optional[list[PassengerFareBreakdown]],
    label: str,
) -> None:
    """Per passenger type: count and base, taxes and total amounts are equal."""
    actual_by_type = _first_by_type(actual)
    for code, quoted in _first_by_type(expected).items():
        pax = actual_by_type.get(code)
        if pax is None:
            out.fail(f"{label}: passenger type {code} missing")
            continue
        out.expect_equal(
            quoted.number_of_passengers,
            pax.number_of_passengers,
            f"{label} {code}: numberOfPassengers mismatch",
        )
        for field, attr in (
            ("passengerTotalAmount", "passenger_total_amount"),
            ("passengerTaxesAmount", "passenger_taxes_amount"),
            ("passengerBaseAmount", "passenger_base_amount"),
        ):
            out.expect_equal(
                _amount(getattr(quoted, attr)),
                _amount(getattr(pax, attr)),
                f"{label} {code}: {field} mismatch",
            )


@register_check
class FareConfirmMatchesSearchCheck(BaseCheck):
    """The confirmed offer keeps the Search offer's classes, flags and prices."""

    check_id = "fare_confirm_matches_search"
    check_name = "FareConfirm vs Search"
    check_reference = "selectedOfferOptions[0]"
    stages = frozenset({Stage.FARE_CONFIRM})
    needs_prior = True

    def check(self, ctx, out) -> None:
        searched = ctx.prior
        confirmed = ctx.response.selected_offer
        if confirmed is None:
            out.missing("selectedOfferOptions is missing or empty", "$.selectedOfferOptions")
            return
        label = "fareConfirm"

        compare_rbds(out, searched.passenger_fare_breakdown, confirmed.passenger_fare_breakdown, label)
        out.expect_equal(searched.have_bundles, confirmed.have_bundles, f"{label}: haveBundles mismatch")
        out.expect_equal(searched.can_be_held, confirmed.can_be_held, f"{label}: canBeHeld mismatch")
        compare_price_totals(out, searched.price_details, confirmed.price_details, label)
        compare_passenger_amounts(
            out, searched.passenger_fare_breakdown, confirmed.passenger_fare_breakdown, label
        )


@register_check
class BookMatchesFareConfirmCheck(BaseCheck):
    """Book reproduces the confirmed itinerary and prices."""

    check_id = "book_matches_fare_confirm"
    check_name = "Book vs FareConfirm"
    check_reference = "journeys, segments, baggageDetails, order"
    stages = frozenset({Stage.BOOK})
    needs_prior = True

    def check(self, ctx, out) -> None:
        book, quote = ctx.body, ctx.prior_body

        compare_subtree(out, "journeys", quote.get("journeys"), book.get("journeys"))
        compare_subtree(out, "segments", quote.get("segments"), book.get("segments"))
        compare_subtree(out, "baggageDetails", quote.get("baggageDetails"), book.get("baggageDetails"))

        quoted_offer = ctx.prior.selected_offer
        if quoted_offer is None:
            out.missing("FareConfirm snapshot has no selected offer, prices not compared")
            return
        compare_amount_maps(
            out,
            _get(quote, "selectedOfferOptions", 0, "priceDetails"),
            _get(book, "order", "priceDetails"),
            "order.priceDetails",
            "$.order.priceDetails",
        )
        order = ctx.response.order
        compare_per_type_totals(
            out,
            order.passenger_fare_breakdown if order is not None else None,
            quoted_offer.passenger_fare_breakdown,
            ctx.pax_counts,
        )


@register_check
class BookRbdCheck(BaseCheck):
    """Booked classes match the offer selected in Search."""

    check_id = "book_rbd"
    check_name = "Book RBD vs Selected Offer"
    check_reference = "order.passengerFareBreakdown[].segmentDetails[].rbd"
    stages = frozenset({Stage.BOOK})

    def check(self, ctx, out) -> None:
        if ctx.selected_offer is None:
            logger.debug("No selected Search offer, RBD comparison skipped")
            return
        order = ctx.response.order
        compare_rbds(
            out,
            ctx.selected_offer.passenger_fare_breakdown,
            order.passenger_fare_breakdown if order is not None else None,
            "order",
        )


_BOOKING_IDS = ["airlinePnr", "gdsPnr", "ndcBookingReference", "bookingToken"]
_WHOLE_SUBTREES = ["journeys", "segments", "passengers", "baggageDetails"]


@register_check
class RetrieveMatchesBookCheck(BaseCheck):
    """Retrieve returns exactly what Book returned."""

    check_id = "retrieve_matches_book"
    check_name = "Retrieve vs Book"
    check_reference = "$"
    stages = frozenset({Stage.RETRIEVE})
    needs_prior = True

    def check(self, ctx, out) -> None:
        book, retrieved = ctx.prior_body, ctx.body

        if not retrieved.get("bookingToken"):
            out.missing("bookingToken is missing in Retrieve", "$.bookingToken")
        compare_fields(out, _BOOKING_IDS, book, retrieved, "retrieve")

        for name in _WHOLE_SUBTREES:
            compare_subtree(out, name, book.get(name), retrieved.get(name))

        book_classes = book.get("priceClasses") or {}
        retrieved_classes = retrieved.get("priceClasses") or {}
        for key, price_class in book_classes.items():
            if key not in retrieved_classes:
                out.fail(f"priceClass {key} missing in Retrieve", f"$.priceClasses.{key}")
                continue
            out.expect_equal(
                _get(price_class, "priceClassName"),
                _get(retrieved_classes[key], "priceClassName"),
                f"priceClassName mismatch for {key}",
                f"$.priceClasses.{key}.priceClassName",
            )

        self._compare_order(out, book.get("order") or {}, retrieved.get("order") or {})

    def _compare_order(self, out: CheckRecorder, book: Mapping, retrieved: Mapping) -> None:
        priced = {"priceDetails", "passengerFareBreakdown"}
        compare_subtree(
            out,
            "order",
            {k: v for k, v in book.items() if k not in priced},
            {k: v for k, v in retrieved.items() if k not in priced},
        )

        book_pax = book.get("passengerFareBreakdown") or []
        retrieved_pax = retrieved.get("passengerFareBreakdown") or []
        if len(book_pax) != len(retrieved_pax):
            out.fail(
                f"passengerFareBreakdown size mismatch: expected {len(book_pax)} but found {len(retrieved_pax)}",
                "$.order.passengerFareBreakdown",
            )
        for i, (b, r) in enumerate(zip(book_pax, retrieved_pax)):
            compare_subtree(out, f"order.passengerFareBreakdown[{i}]", b, r)

        book_price = book.get("priceDetails") or {}
        retrieved_price = retrieved.get("priceDetails") or {}
        compare_amount_maps(
            out,
            {k: book_price.get(k) for k in ("totalAmount", "baseAmount", "taxesAmount")},
            {k: retrieved_price.get(k) for k in ("totalAmount", "baseAmount", "taxesAmount")},
            "order.priceDetails",
            "$.order.priceDetails",
        )
        book_taxes = book_price.get("taxesAndFees") or []
        retrieved_taxes = retrieved_price.get("taxesAndFees") or []
        if len(book_taxes) != len(retrieved_taxes):
            out.fail(
                f"priceDetails.taxesAndFees size mismatch: expected {len(book_taxes)} "
                f"but found {len(retrieved_taxes)}",
                "$.order.priceDetails.taxesAndFees",
            )
        for i, (b, r) in enumerate(zip(book_taxes, retrieved_taxes)):
            compare_subtree(out, f"order.priceDetails.taxesAndFees[{i}]", b, r)
