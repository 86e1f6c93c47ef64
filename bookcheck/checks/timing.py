"""Segment timing and chaining checks."""

import logging
from datetime import datetime, timezone
from typing import Optional

from bookcheck.checks.base import BaseCheck, register_check
from bookcheck.collector import CheckRecorder
from bookcheck.models import Journey, SearchCriterion, Segment, Stage

logger = logging.getLogger(__name__)


def parse_local_datetime(value: Optional[str]) -> datetime:
    """Parse an ISO-8601 date-time such as 2026-11-20T08:00:00.

    A value with a UTC offset (or a trailing ``Z``) is converted to UTC and
    returned naive, so that every parsed value can be compared with every
    other.

    Raises:
        ValueError: If the value is missing or not ISO-8601.
    """
    if not value:
        raise ValueError("missing date-time")
    text = value.strip()
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _times(
    seg_id: str, segment: Segment, out: CheckRecorder, label: str
) -> Optional[tuple[datetime, datetime]]:
    """Departure and arrival of a segment, or None after recording why not."""
    path = f"$.segments.{seg_id}"
    if not segment.departure_date_time or not segment.arrival_date_time:
        out.missing(f"{label}: segment {seg_id} is missing departure or arrival time", path)
        return None
    try:
        return (
            parse_local_datetime(segment.departure_date_time),
            parse_local_datetime(segment.arrival_date_time),
        )
    except ValueError:
        out.malformed(
            f"{label}: segment {seg_id} has unparseable times "
            f"{segment.departure_date_time!r} / {segment.arrival_date_time!r}",
            path,
            f"{segment.departure_date_time} / {segment.arrival_date_time}",
        )
        return None


def check_segment_sequence(
    segment_ids: list[Optional[str]],
    segments: dict[str, Segment],
    out: CheckRecorder,
    label: str,
) -> None:
    """Each segment arrives after it departs and before the next one departs."""
    previous: Optional[tuple[str, datetime]] = None
    for seg_id in segment_ids:
        segment = segments.get(seg_id) if seg_id else None
        if segment is None:
            out.missing(f"{label}: segment {seg_id} not found in segments", "$.segments")
            return
        times = _times(seg_id, segment, out, label)
        if times is None:
            return
        departure, arrival = times
        if arrival <= departure:
            out.fail(
                f"{label}: segment {seg_id} arrives at {arrival.isoformat()} "
                f"before departing at {departure.isoformat()}",
                f"$.segments.{seg_id}.arrivalDateTime",
            )
        if previous is not None and previous[1] >= departure:
            out.fail(
                f"{label}: segment {seg_id} departs at {departure.isoformat()} before "
                f"segment {previous[0]} arrives at {previous[1].isoformat()}",
                f"$.segments.{seg_id}.departureDateTime",
            )
        previous = (seg_id, arrival)


def _matching_leg(
    origin: Optional[str], destination: Optional[str], legs: list[SearchCriterion]
) -> tuple[Optional[SearchCriterion], bool]:
    """The search leg for a journey's endpoints and whether both ends match."""
    for leg in legs:
        if leg.origin == origin and leg.destination == destination:
            return leg, True
    for leg in legs:
        if leg.origin == origin or leg.destination == destination:
            return leg, False
    return None, False


def check_journey_chain(
    journey_id: str,
    journey: Journey,
    segments: dict[str, Segment],
    legs: list[SearchCriterion],
    out: CheckRecorder,
) -> None:
    """Segments sorted by departure chain airport to airport and match a search leg."""
    label = f"journey {journey_id}"
    ids = journey.segment_reference_ids or []
    if not ids:
        out.missing(f"{label}: no segmentReferenceIds", f"$.journeys.{journey_id}.segmentReferenceIds")
        return

    timed: list[tuple[datetime, str, Segment]] = []
    for seg_id in ids:
        segment = segments.get(seg_id)
        if segment is None:
            out.missing(f"{label}: segment {seg_id} not found in segments", "$.segments")
            return
        try:
            departure = parse_local_datetime(segment.departure_date_time)
        except ValueError:
            out.malformed(
                f"{label}: segment {seg_id} has unparseable departure {segment.departure_date_time!r}",
                f"$.segments.{seg_id}.departureDateTime",
                segment.departure_date_time,
            )
            return
        timed.append((departure, seg_id, segment))
    timed.sort(key=lambda t: t[0])
    chain = [(seg_id, segment) for _, seg_id, segment in timed]

    stops = journey.number_of_stops if journey.number_of_stops is not None else len(chain) - 1
    if stops == 0 and len(chain) != 1:
        out.fail(f"{label}: direct journey has {len(chain)} segments, expected exactly 1")

    for (a_id, a), (b_id, b) in zip(chain, chain[1:]):
        if a.destination != b.origin:
            out.fail(
                f"{label}: segment {a_id} arrives at {a.destination} but "
                f"segment {b_id} departs from {b.origin}",
                f"$.segments.{b_id}.origin",
            )

    if not legs:
        return
    origin, destination = chain[0][1].origin, chain[-1][1].destination
    leg, exact = _matching_leg(origin, destination, legs)
    if leg is None:
        out.fail(f"{label}: {origin}-{destination} does not match any search leg")
    elif not exact:
        out.fail(
            f"{label}: runs {origin}-{destination}, expected {leg.origin}-{leg.destination}",
            f"$.journeys.{journey_id}",
            f"{leg.origin}-{leg.destination}",
            f"{origin}-{destination}",
        )


@register_check
class SegmentTimingCheck(BaseCheck):
    """Segments of each offer do not overlap in time."""

    check_id = "segment_timing"
    check_name = "Segment Timing"
    check_reference = "segments.*.departureDateTime, segments.*.arrivalDateTime"
    stages = frozenset({Stage.SEARCH, Stage.FARE_CONFIRM})

    def check(self, ctx, out) -> None:
        segments = ctx.response.segments or {}
        for label, path, offer in ctx.offers():
            breakdown = offer.passenger_fare_breakdown or []
            if not breakdown or not breakdown[0].segment_details:
                logger.debug("%s: no segment details to time", label)
                continue
            ids = [ref.segment_reference_id for ref in breakdown[0].segment_details]
            check_segment_sequence(ids, segments, out, label)


@register_check
class SegmentChainingCheck(BaseCheck):
    """Journeys chain airport to airport and match the requested legs."""

    check_id = "segment_chaining"
    check_name = "Segment Chaining"
    check_reference = "journeys.*.segmentReferenceIds"
    stages = frozenset({Stage.SEARCH, Stage.FARE_CONFIRM})

    def check(self, ctx, out) -> None:
        segments = ctx.response.segments or {}
        legs = ctx.payload.search_criteria if ctx.payload is not None else []
        for journey_id, journey in (ctx.response.journeys or {}).items():
            check_journey_chain(journey_id, journey, segments, legs, out)
