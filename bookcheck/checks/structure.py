"""Structural checks: mandatory fields, uniqueness, ordering, and counts."""

import base64
import binascii
import json
import logging
from collections import Counter
from typing import Optional

from bookcheck.checks.base import BaseCheck, register_check
from bookcheck.collector import CheckRecorder
from bookcheck.models import Offer, PassengerFareBreakdown, Stage

logger = logging.getLogger(__name__)


def _duplicates(values) -> list:
    """Values occurring more than once, in first-seen order."""
    counts = Counter(values)
    seen: list = []
    for v in values:
        if counts[v] > 1 and v not in seen:
            seen.append(v)
    return seen


# --- Uniqueness ---


def check_unique_tax_codes(
    breakdown: Optional[list[PassengerFareBreakdown]],
    out: CheckRecorder,
    label: str,
    path: str = "$",
) -> None:
    """Tax codes are unique within each passenger's taxesAndFees."""
    for p, pax in enumerate(breakdown or []):
        pax_label = f"{label} {pax.passenger_type_code or f'pax[{p}]'}"
        if not pax.taxes_and_fees:
            logger.debug("%s: no taxesAndFees, skipped", pax_label)
            continue
        codes = [t.code for t in pax.taxes_and_fees if t.code]
        for code in _duplicates(codes):
            out.fail(
                f"{pax_label}: duplicate tax code {code}",
                f"{path}.passengerFareBreakdown[{p}].taxesAndFees",
            )


def check_passenger_types(
    breakdown: Optional[list[PassengerFareBreakdown]],
    pax_counts: dict[str, int],
    out: CheckRecorder,
    label: str,
    path: str = "$",
) -> None:
    """Type codes are unique, and every requested type is present with its count."""
    entries = breakdown or []
    types = [(pax.passenger_type_code or "").upper() for pax in entries]
    for code in _duplicates(types):
        out.fail(f"{label}: duplicate passenger type code {code}", f"{path}.passengerFareBreakdown")

    by_type = {code: pax for code, pax in zip(types, entries)}
    for code, count in pax_counts.items():
        pax = by_type.get(code)
        if pax is None:
            out.fail(f"{label}: missing passenger type {code}", f"{path}.passengerFareBreakdown")
            continue
        out.expect_equal(
            count,
            pax.number_of_passengers,
            f"{label}: passenger type {code} count mismatch",
            f"{path}.passengerFareBreakdown[{types.index(code)}].numberOfPassengers",
        )


@register_check
class OffersPresentCheck(BaseCheck):
    """Search returns at least one offer."""

    check_id = "offers_present"
    check_name = "Offers Present"
    check_reference = "offers"
    stages = frozenset({Stage.SEARCH})

    def check(self, ctx, out) -> None:
        if not ctx.response.offers:
            out.missing("offers list is missing or empty", "$.offers")


@register_check
class UniqueOfferIdCheck(BaseCheck):
    """offerId values are unique across the offers list."""

    check_id = "unique_offer_ids"
    check_name = "Unique Offer IDs"
    check_reference = "offers[].offerId"
    stages = frozenset({Stage.SEARCH})

    def check(self, ctx, out) -> None:
        ids = []
        for label, path, offer in ctx.offers():
            if not offer.offer_id:
                out.missing(f"{label}: offerId is missing", f"{path}.offerId")
                continue
            ids.append(offer.offer_id)
        for offer_id in _duplicates(ids):
            out.fail(f"Duplicate offerId {offer_id}", "$.offers")


@register_check
class PassengerTypeCheck(BaseCheck):
    """Passenger type codes are unique and match the requested counts."""

    check_id = "passenger_types"
    check_name = "Passenger Types"
    check_reference = "passengerFareBreakdown[].passengerTypeCode"
    stages = frozenset({Stage.SEARCH, Stage.FARE_CONFIRM})

    def check(self, ctx, out) -> None:
        counts = ctx.payload.pax_counts() if ctx.payload is not None else {}
        for label, path, offer in ctx.offers():
            check_passenger_types(offer.passenger_fare_breakdown, counts, out, label, path)


@register_check
class UniqueTaxCodeCheck(BaseCheck):
    """No tax code appears twice for one passenger."""

    check_id = "unique_tax_codes"
    check_name = "Unique Tax Codes"
    check_reference = "passengerFareBreakdown[].taxesAndFees[].code"
    stages = frozenset({Stage.SEARCH, Stage.FARE_CONFIRM, Stage.BOOK})

    def check(self, ctx, out) -> None:
        for item in ctx.priced_items():
            check_unique_tax_codes(item.breakdown, out, item.label, item.path)


# --- Ordering and duplicates ---


def check_sorted_by_total(offers: list[Optional[Offer]], out: CheckRecorder) -> None:
    """Offers are non-decreasing by priceDetails.totalAmount.

    An offer without a readable total is reported and skipped; the next
    offer is compared with the last readable one. Unreadable entries (None)
    are skipped silently.
    """
    previous = None
    previous_index = None
    for i, offer in enumerate(offers):
        if offer is None:
            continue
        path = f"$.offers[{i}].priceDetails.totalAmount"
        total = offer.total
        if total is None:
            money = offer.price_details.total_amount if offer.price_details else None
            if money is not None and money.malformed:
                out.malformed(f"offer[{i}]: totalAmount is not a number: {money.amount!r}", path, money.amount)
            else:
                out.missing(f"offer[{i}]: totalAmount is missing, sort order not checked", path)
            continue
        if previous is not None and total < previous:
            out.fail(
                f"offers not sorted by totalAmount: offer[{i}] ({total}) "
                f"is lower than offer[{previous_index}] ({previous})",
                path,
            )
        previous, previous_index = total, i


@register_check
class OfferSortOrderCheck(BaseCheck):
    """Offers are sorted ascending by total price (ties allowed)."""

    check_id = "offer_sort_order"
    check_name = "Offer Sort Order"
    check_reference = "offers[].priceDetails.totalAmount"
    stages = frozenset({Stage.SEARCH})

    def check(self, ctx, out) -> None:
        check_sorted_by_total(ctx.response.offers or [], out)


@register_check
class DuplicateOfferCheck(BaseCheck):
    """No two offers are structurally identical."""

    check_id = "duplicate_offers"
    check_name = "Duplicate Offers"
    check_reference = "offers[]"
    stages = frozenset({Stage.SEARCH})
    needs_model = False

    def check(self, ctx, out) -> None:
        offers = ctx.body.get("offers") if isinstance(ctx.body, dict) else None
        if not isinstance(offers, list):
            return
        first_seen: dict[str, int] = {}
        for i, offer in enumerate(offers):
            key = json.dumps(offer, sort_keys=True, default=str)
            if key in first_seen:
                out.fail(f"offer[{i}] is identical to offer[{first_seen[key]}]", f"$.offers[{i}]")
            else:
                first_seen[key] = i


# --- Field presence ---


@register_check
class RbdPresentCheck(BaseCheck):
    """Every segment detail carries a booking class."""

    check_id = "rbd_present"
    check_name = "RBD Present"
    check_reference = "passengerFareBreakdown[].segmentDetails[].rbd"
    stages = frozenset({Stage.SEARCH, Stage.FARE_CONFIRM})

    def check(self, ctx, out) -> None:
        for item in ctx.priced_items():
            for p, pax in enumerate(item.breakdown or []):
                for s, ref in enumerate(pax.segment_details or []):
                    if not (ref.rbd or "").strip():
                        out.missing(
                            f"{item.label} {pax.passenger_type_code or f'pax[{p}]'}: "
                            f"rbd is missing for segment {ref.segment_reference_id}",
                            f"{item.path}.passengerFareBreakdown[{p}].segmentDetails[{s}].rbd",
                        )


@register_check
class MandatoryBookingFieldsCheck(BaseCheck):
    """Booking identifiers and journey segment lists are present."""

    check_id = "mandatory_booking_fields"
    check_name = "Mandatory Booking Fields"
    check_reference = "ndcBookingReference, airlinePnr, journeys"
    stages = frozenset({Stage.BOOK})

    def check(self, ctx, out) -> None:
        resp = ctx.response
        if resp.ndc_booking_reference is None:
            out.missing("ndcBookingReference is null", "$.ndcBookingReference")
        if resp.airline_pnr is None:
            out.missing("airlinePnr is null", "$.airlinePnr")
        if not resp.journeys:
            out.missing("journeys is missing or empty", "$.journeys")
            return
        for journey_id, journey in resp.journeys.items():
            if journey.segment_reference_ids is None:
                out.missing(
                    f"segmentReferenceIds is null in journey {journey_id}",
                    f"$.journeys.{journey_id}.segmentReferenceIds",
                )


@register_check
class PassengerAmountsPresentCheck(BaseCheck):
    """Each passenger entry carries base, taxes and total amounts."""

    check_id = "passenger_amounts_present"
    check_name = "Passenger Amounts Present"
    check_reference = "passengerFareBreakdown[]"
    stages = frozenset({Stage.FARE_CONFIRM})

    def check(self, ctx, out) -> None:
        for label, path, offer in ctx.offers():
            if not offer.passenger_fare_breakdown:
                out.missing(f"{label}: passengerFareBreakdown is missing or empty", f"{path}.passengerFareBreakdown")
                continue
            for p, pax in enumerate(offer.passenger_fare_breakdown):
                pax_path = f"{path}.passengerFareBreakdown[{p}]"
                code = pax.passenger_type_code or f"pax[{p}]"
                for name, money in (
                    ("passengerTotalAmount", pax.passenger_total_amount),
                    ("passengerTaxesAmount", pax.passenger_taxes_amount),
                    ("passengerBaseAmount", pax.passenger_base_amount),
                ):
                    if money is None or money.amount is None:
                        out.missing(f"{label}: {name} missing for passenger type {code}", f"{pax_path}.{name}")


@register_check
class PriceClassCheck(BaseCheck):
    """Price classes carry a name, a fare type and their rules."""

    check_id = "price_classes"
    check_name = "Price Classes"
    check_reference = "priceClasses"
    stages = frozenset({Stage.FARE_CONFIRM})

    def check(self, ctx, out) -> None:
        classes = ctx.response.price_classes
        if not classes:
            out.missing("priceClasses is missing or empty", "$.priceClasses")
            return
        for key, pc in classes.items():
            path = f"$.priceClasses.{key}"
            if not pc.price_class_name:
                out.missing(f"priceClassName is missing in priceClass {key}", f"{path}.priceClassName")
            if not pc.fare_type:
                out.missing(f"fareType is missing in priceClass {key}", f"{path}.fareType")
            if not pc.rules_and_penalties:
                out.missing(f"rulesAndPenalties missing or empty in priceClass {key}", f"{path}.rulesAndPenalties")


@register_check
class BaggageDetailCheck(BaseCheck):
    """Baggage entries state both carry-on and checked allowances."""

    check_id = "baggage_details"
    check_name = "Baggage Details"
    check_reference = "baggageDetails"
    stages = frozenset({Stage.FARE_CONFIRM})

    def check(self, ctx, out) -> None:
        baggage = ctx.response.baggage_details
        if not baggage:
            out.missing("baggageDetails is missing or empty", "$.baggageDetails")
            return
        for key, detail in baggage.items():
            if detail.carry_on_baggage is None:
                out.missing(f"carryOnBaggage is null for key {key}", f"$.baggageDetails.{key}.carryOnBaggage")
            if detail.check_in_baggage is None:
                out.missing(f"checkInBaggage is null for key {key}", f"$.baggageDetails.{key}.checkInBaggage")


@register_check
class SingleOfferCheck(BaseCheck):
    """FareConfirm returns exactly one selected offer."""

    check_id = "single_offer"
    check_name = "Single Selected Offer"
    check_reference = "selectedOfferOptions"
    stages = frozenset({Stage.FARE_CONFIRM})

    def check(self, ctx, out) -> None:
        options = ctx.response.selected_offer_options
        if not options:
            out.missing("selectedOfferOptions is missing or empty", "$.selectedOfferOptions")
            return
        out.expect_equal(1, len(options), "selectedOfferOptions count", "$.selectedOfferOptions")


# --- Counts against the request ---


@register_check
class StopsCountCheck(BaseCheck):
    """numberOfStops equals segment count minus one."""

    check_id = "stops_count"
    check_name = "Number of Stops"
    check_reference = "journeys.*.numberOfStops"
    stages = frozenset({Stage.SEARCH, Stage.FARE_CONFIRM})

    def check(self, ctx, out) -> None:
        for journey_id, journey in (ctx.response.journeys or {}).items():
            path = f"$.journeys.{journey_id}"
            if journey.segment_reference_ids is None:
                out.missing(f"journey {journey_id}: segmentReferenceIds is missing", f"{path}.segmentReferenceIds")
                continue
            if journey.number_of_stops is None:
                out.missing(f"journey {journey_id}: numberOfStops is missing", f"{path}.numberOfStops")
                continue
            expected = len(journey.segment_reference_ids) - 1
            if journey.number_of_stops != expected:
                out.fail(
                    f"journey {journey_id}: expected {expected} stops, found {journey.number_of_stops}",
                    f"{path}.numberOfStops",
                    expected,
                    journey.number_of_stops,
                )


@register_check
class SegmentDetailsCountCheck(BaseCheck):
    """Each passenger has at least one segment detail per requested leg."""

    check_id = "segment_details_count"
    check_name = "Segment Details Count"
    check_reference = "passengerFareBreakdown[].segmentDetails"
    stages = frozenset({Stage.SEARCH})

    def check(self, ctx, out) -> None:
        if ctx.payload is None:
            logger.debug("No search payload, segment details count skipped")
            return
        legs = len(ctx.payload.search_criteria)
        for label, path, offer in ctx.offers():
            for p, pax in enumerate(offer.passenger_fare_breakdown or []):
                found = len(pax.segment_details or [])
                if found < legs:
                    out.fail(
                        f"{label} {pax.passenger_type_code or f'pax[{p}]'}: "
                        f"expected at least {legs} segments, found {found}",
                        f"{path}.passengerFareBreakdown[{p}].segmentDetails",
                    )


@register_check
class JourneyCountCheck(BaseCheck):
    """Each offer has one journey per requested leg."""

    check_id = "journey_count"
    check_name = "Journey Count"
    check_reference = "offers[].journeys"
    stages = frozenset({Stage.SEARCH, Stage.FARE_CONFIRM})

    def check(self, ctx, out) -> None:
        if ctx.payload is None:
            logger.debug("No search payload, journey count skipped")
            return
        legs = len(ctx.payload.search_criteria)
        for label, path, offer in ctx.offers():
            found = len(offer.journey_refs or [])
            if found != legs:
                out.fail(
                    f"{label}: expected {legs} journeys, found {found}",
                    f"{path}.journeys",
                    legs,
                    found,
                )


# --- Identifiers ---


def decode_offer_id(offer_id: str) -> str:
    """Base64-decode an offer id to text.

    Raises:
        ValueError: If the id is not valid base64 or not UTF-8 text.
    """
    try:
        return base64.b64decode(offer_id, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise ValueError(str(exc)) from exc


def check_offer_id_agency(offer_id: Optional[str], agency: str, out: CheckRecorder, label: str, path: str = "$") -> None:
    """The decoded offer id names the agency (case-insensitive)."""
    if not offer_id:
        out.missing(f"{label}: offerId is missing", f"{path}.offerId")
        return
    try:
        decoded = decode_offer_id(offer_id)
    except ValueError as exc:
        out.malformed(f"{label}: offerId is not valid base64: {offer_id!r} ({exc})", f"{path}.offerId", offer_id)
        return
    if agency.casefold() not in decoded.casefold():
        out.fail(
            f"{label}: decoded offerId {decoded!r} does not contain agency {agency!r}",
            f"{path}.offerId",
            agency,
            decoded,
        )


@register_check
class OfferIdAgencyCheck(BaseCheck):
    """Decoded offer ids contain the agency name."""

    check_id = "offer_id_agency"
    check_name = "Offer ID Agency"
    check_reference = "offers[].offerId"
    stages = frozenset({Stage.SEARCH})

    def check(self, ctx, out) -> None:
        agency = ctx.config.agency_name
        if not agency:
            out.missing("Agency name is not configured")
            return
        for label, path, offer in ctx.offers():
            check_offer_id_agency(offer.offer_id, agency, out, label, path)


@register_check
class BookedPassengersCheck(BaseCheck):
    """Booked passengers match the AddPax request by key and type."""

    check_id = "booked_passengers"
    check_name = "Booked Passengers"
    check_reference = "passengers"
    stages = frozenset({Stage.BOOK})

    def check(self, ctx, out) -> None:
        if ctx.add_pax is None:
            logger.debug("No AddPax payload, booked passengers skipped")
            return
        booked = ctx.response.passengers or {}
        for key, sent in ctx.add_pax.passengers.items():
            passenger = booked.get(key)
            if passenger is None:
                out.fail(f"Booking passengers missing key {key}", f"$.passengers.{key}")
                continue
            out.expect_equal(
                sent.passenger_type_code,
                passenger.passenger_type_code,
                f"passengerTypeCode mismatch for key {key}",
                f"$.passengers.{key}.passengerTypeCode",
            )
