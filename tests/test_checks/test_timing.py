"""Tests for segment timing and chaining."""

from datetime import datetime

import pytest

from bookcheck.checks.timing import (
    SegmentChainingCheck,
    SegmentTimingCheck,
    check_journey_chain,
    check_segment_sequence,
    parse_local_datetime,
)
from bookcheck.collector import FailureCollector
from bookcheck.models import FindingKind, Journey, SearchCriterion, Segment, Stage
from bookcheck.validator import build_context


def _run(check_cls, stage, body, **kwargs):
    ctx = build_context(stage, body, **kwargs)
    collector = FailureCollector(stage)
    check_cls().check(ctx, collector.bind(check_cls.check_id))
    return collector.report()


def _seg(origin, destination, dep, arr):
    return Segment(origin=origin, destination=destination, departure_date_time=dep, arrival_date_time=arr)


class TestParseLocalDatetime:
    def test_iso(self):
        assert parse_local_datetime("2026-11-20T08:00:00") == datetime(2026, 11, 20, 8, 0)

    @pytest.mark.parametrize("value", [None, "", "20/11/2026 08:00"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_local_datetime(value)

    def test_trailing_z(self):
        assert parse_local_datetime("2026-11-20T08:00:00Z") == datetime(2026, 11, 20, 8, 0)

    def test_offset_converted_to_utc(self):
        parsed = parse_local_datetime("2026-11-20T12:00:00+02:00")
        assert parsed == datetime(2026, 11, 20, 10, 0)
        assert parsed.tzinfo is None

    def test_mixed_offsets_compare(self):
        assert parse_local_datetime("2026-11-20T08:00:00+02:00") < parse_local_datetime("2026-11-20T08:00:00")


class TestSegmentSequence:
    def test_ordered(self, out, collector):
        segments = {
            "A": _seg("CAI", "JED", "2026-11-20T08:00:00", "2026-11-20T10:00:00"),
            "B": _seg("JED", "DXB", "2026-11-20T12:00:00", "2026-11-20T15:00:00"),
        }
        check_segment_sequence(["A", "B"], segments, out, "offer[0]")
        assert collector.findings == []

    def test_arrival_before_departure(self, out, collector):
        segments = {"A": _seg("CAI", "JED", "2026-11-20T10:00:00", "2026-11-20T08:00:00")}
        check_segment_sequence(["A"], segments, out, "offer[0]")
        assert len(collector.findings) == 1
        assert "arrives at 2026-11-20T08:00:00 before departing" in collector.findings[0].message

    def test_overlap(self, out, collector):
        segments = {
            "A": _seg("CAI", "JED", "2026-11-20T08:00:00", "2026-11-20T12:30:00"),
            "B": _seg("JED", "DXB", "2026-11-20T12:00:00", "2026-11-20T15:00:00"),
        }
        check_segment_sequence(["A", "B"], segments, out, "offer[0]")
        assert [f.path for f in collector.findings] == ["$.segments.B.departureDateTime"]

    def test_unknown_segment(self, out, collector):
        check_segment_sequence(["Z"], {}, out, "offer[0]")
        assert collector.findings[0].kind == FindingKind.MISSING_DATA

    def test_unparseable_time(self, out, collector):
        segments = {"A": _seg("CAI", "JED", "tomorrow", "2026-11-20T08:00:00")}
        check_segment_sequence(["A"], segments, out, "offer[0]")
        assert collector.findings[0].kind == FindingKind.MALFORMED_DATA


class TestJourneyChain:
    legs = [SearchCriterion(origin="CAI", destination="DXB"), SearchCriterion(origin="DXB", destination="CAI")]

    def _segments(self):
        return {
            "S1": _seg("CAI", "JED", "2026-11-20T08:00:00", "2026-11-20T10:00:00"),
            "S2": _seg("JED", "DXB", "2026-11-20T12:00:00", "2026-11-20T15:00:00"),
            "S3": _seg("AMM", "DXB", "2026-11-20T12:00:00", "2026-11-20T15:00:00"),
        }

    def test_chained_journey_sorted_by_departure(self, out, collector):
        journey = Journey(segment_reference_ids=["S2", "S1"], number_of_stops=1)
        check_journey_chain("J1", journey, self._segments(), self.legs, out)
        assert collector.findings == []

    def test_broken_chain(self, out, collector):
        journey = Journey(segment_reference_ids=["S1", "S3"], number_of_stops=1)
        check_journey_chain("J1", journey, self._segments(), self.legs, out)
        assert [f.message for f in collector.findings] == [
            "journey J1: segment S1 arrives at JED but segment S3 departs from AMM"
        ]

    def test_direct_journey_with_two_segments(self, out, collector):
        journey = Journey(segment_reference_ids=["S1", "S2"], number_of_stops=0)
        check_journey_chain("J1", journey, self._segments(), self.legs, out)
        assert [f.message for f in collector.findings] == [
            "journey J1: direct journey has 2 segments, expected exactly 1"
        ]

    def test_partial_leg_match(self, out, collector):
        journey = Journey(segment_reference_ids=["S1"], number_of_stops=0)
        check_journey_chain("J1", journey, self._segments(), self.legs, out)
        assert [f.message for f in collector.findings] == ["journey J1: runs CAI-JED, expected CAI-DXB"]

    def test_no_leg_match(self, out, collector):
        segments = {"X": _seg("LHR", "JFK", "2026-11-20T08:00:00", "2026-11-20T16:00:00")}
        journey = Journey(segment_reference_ids=["X"], number_of_stops=0)
        check_journey_chain("J9", journey, segments, self.legs, out)
        assert [f.message for f in collector.findings] == ["journey J9: LHR-JFK does not match any search leg"]


class TestTimingChecks:
    def test_search_fixture(self, search_response, search_payload):
        assert _run(SegmentTimingCheck, Stage.SEARCH, search_response).passed
        assert _run(SegmentChainingCheck, Stage.SEARCH, search_response, payload=search_payload).passed

    def test_fare_confirm_fixture(self, fare_confirm, search_payload):
        assert _run(SegmentTimingCheck, Stage.FARE_CONFIRM, fare_confirm).passed
        assert _run(SegmentChainingCheck, Stage.FARE_CONFIRM, fare_confirm, payload=search_payload).passed

    def test_overlapping_fixture_segments(self, search_response):
        search_response["segments"]["SEG2"]["departureDateTime"] = "2026-11-20T09:30:00"
        report = _run(SegmentTimingCheck, Stage.SEARCH, search_response)
        # one finding per offer
        assert len(report.failures) == 2
        assert report.messages()[0].startswith("offer[0]: segment SEG2 departs at 2026-11-20T09:30:00")

    def test_mixed_offset_fixture_segments(self, search_response, search_payload):
        search_response["segments"]["SEG1"]["departureDateTime"] = "2026-11-20T08:00:00+02:00"
        search_response["segments"]["SEG3"]["arrivalDateTime"] = "2026-11-27T11:30:00Z"
        assert _run(SegmentTimingCheck, Stage.SEARCH, search_response).passed
        assert _run(SegmentChainingCheck, Stage.SEARCH, search_response, payload=search_payload).passed
