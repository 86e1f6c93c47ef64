"""Reference-graph checks.

Every id embedded in an offer or order (segment, price class, baggage,
journey) must resolve to a key of the response's root lookup maps.
"""

import logging
from typing import Optional

from bookcheck.checks.base import BaseCheck, register_check
from bookcheck.collector import CheckRecorder
from bookcheck.models import (
    BookingResponse,
    Journey,
    PassengerFareBreakdown,
    ResponseCatalog,
    Stage,
)

logger = logging.getLogger(__name__)


def check_passenger_references(
    breakdown: Optional[list[PassengerFareBreakdown]],
    catalog: ResponseCatalog,
    out: CheckRecorder,
    label: str,
    path: str = "$",
) -> None:
    """Check segment, price class and baggage references for every passenger.

    All three references are checked independently so that every missing
    id is reported, not just the first.
    """
    if not breakdown:
        out.missing(f"{label}: passengerFareBreakdown is missing or empty", f"{path}.passengerFareBreakdown")
        return

    segments = catalog.segments or {}
    price_classes = catalog.price_classes or {}
    baggage = catalog.baggage_details or {}

    for p, pax in enumerate(breakdown):
        pax_path = f"{path}.passengerFareBreakdown[{p}]"
        pax_label = f"{label} {pax.passenger_type_code or f'pax[{p}]'}"
        if not pax.segment_details:
            out.missing(f"{pax_label}: segmentDetails is missing or empty", f"{pax_path}.segmentDetails")
            continue
        for s, ref in enumerate(pax.segment_details):
            ref_path = f"{pax_path}.segmentDetails[{s}]"
            if ref.segment_reference_id not in segments:
                out.fail(
                    f"{pax_label}: segmentReferenceId {ref.segment_reference_id} not found in segments",
                    f"{ref_path}.segmentReferenceId",
                )
            if ref.price_class_ref_id is not None and ref.price_class_ref_id not in price_classes:
                out.fail(
                    f"{pax_label}: priceClassRefId {ref.price_class_ref_id} not found in priceClasses",
                    f"{ref_path}.priceClassRefId",
                )
            if ref.baggage_details_ref_id is not None and ref.baggage_details_ref_id not in baggage:
                out.fail(
                    f"{pax_label}: baggageDetailsRefId {ref.baggage_details_ref_id} not found in baggageDetails",
                    f"{ref_path}.baggageDetailsRefId",
                )


def check_offer_journeys(
    journey_refs: Optional[list[str]],
    journeys: Optional[dict[str, Journey]],
    out: CheckRecorder,
    label: str,
    path: str = "$",
) -> None:
    """Every journey id an offer references must be a key of the journeys map."""
    if not journey_refs:
        out.missing(f"{label}: journeys list is missing or empty", f"{path}.journeys")
        return
    known = journeys or {}
    for j, journey_id in enumerate(journey_refs):
        if journey_id not in known:
            out.fail(f"{label}: journey {journey_id} not found in journeys", f"{path}.journeys[{j}]")


@register_check
class PassengerReferenceCheck(BaseCheck):
    """Segment, price class and baggage references resolve."""

    check_id = "passenger_references"
    check_name = "Passenger References"
    check_reference = "passengerFareBreakdown[].segmentDetails[]"
    stages = frozenset({Stage.SEARCH, Stage.FARE_CONFIRM, Stage.BOOK})

    def check(self, ctx, out) -> None:
        for item in ctx.priced_items():
            logger.debug("Checking references for %s", item.label)
            check_passenger_references(item.breakdown, ctx.response, out, item.label, item.path)
        if isinstance(ctx.response, BookingResponse) and ctx.response.order is None:
            out.missing("order is missing", "$.order")


@register_check
class OfferJourneyReferenceCheck(BaseCheck):
    """Offer journey ids resolve to root journeys."""

    check_id = "offer_journey_references"
    check_name = "Offer Journey References"
    check_reference = "offers[].journeys[]"
    stages = frozenset({Stage.SEARCH, Stage.FARE_CONFIRM})

    def check(self, ctx, out) -> None:
        for label, path, offer in ctx.offers():
            check_offer_journeys(offer.journey_refs, ctx.response.journeys, out, label, path)
