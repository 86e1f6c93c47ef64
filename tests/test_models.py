"""Tests for response, payload and report models."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from bookcheck.errors import ContractViolation
from bookcheck.models import (
    AddPaxPayload,
    BookingResponse,
    FareConfirmResponse,
    Finding,
    FindingKind,
    Journey,
    MoneyAmount,
    Offer,
    SavedBookingContext,
    SearchPayload,
    SearchResponse,
    Segment,
    Severity,
    Stage,
    StageReport,
    unreadable_values,
)


class TestMoneyAmount:
    def test_object_form(self):
        m = MoneyAmount.model_validate({"amount": 12.5, "currency": "USD"})
        assert m.value == Decimal("12.5")
        assert m.currency == "USD"
        assert not m.malformed

    def test_bare_number(self):
        m = MoneyAmount.model_validate(30)
        assert m.value == Decimal("30")
        assert m.currency is None

    def test_malformed_amount_kept_raw(self):
        m = MoneyAmount.model_validate({"amount": "twelve", "currency": "USD"})
        assert m.malformed
        assert m.amount == "twelve"
        assert m.value == Decimal("0")

    def test_null_amount(self):
        m = MoneyAmount.model_validate({"amount": None, "currency": "USD"})
        assert m.amount is None
        assert not m.malformed


class TestSearchResponse:
    def test_parses_fixture(self, search_response):
        resp = SearchResponse.model_validate(search_response)
        assert len(resp.offers) == 2
        assert set(resp.segments) == {"SEG1", "SEG2", "SEG3"}
        assert resp.journeys["J1"].segment_reference_ids == ["SEG1", "SEG2"]
        pax = resp.offers[0].passenger_fare_breakdown[0]
        assert pax.passenger_type_code == "ADT"
        assert pax.passenger_total_amount.value == Decimal("125.5")
        assert pax.segment_details[2].rbd == "B"

    def test_offer_total(self, search_response):
        resp = SearchResponse.model_validate(search_response)
        assert resp.offers[1].total == Decimal("401.25")

    def test_unknown_keys_kept(self):
        offer = Offer.model_validate({"offerId": "X", "supplierCode": "S1"})
        assert offer.model_extra == {"supplierCode": "S1"}

    def test_offer_journeys_synonym(self):
        offer = Offer.model_validate({"offerJourneys": ["J1"]})
        assert offer.journey_refs == ["J1"]
        assert Offer.model_validate({"journeys": ["J2"], "offerJourneys": ["J1"]}).journey_refs == ["J2"]

    def test_total_missing(self):
        assert Offer().total is None


class TestFareConfirmResponse:
    def test_selected_offer(self, fare_confirm):
        resp = FareConfirmResponse.model_validate(fare_confirm)
        assert resp.response_id == "fc-20261120-0001"
        assert resp.selected_offer.offer_id == fare_confirm["selectedOfferOptions"][0]["offerId"]

    def test_no_selected_offer(self):
        assert FareConfirmResponse.model_validate({"selectedOfferOptions": []}).selected_offer is None


class TestBookingResponse:
    def test_parses_fixture(self, book):
        resp = BookingResponse.model_validate(book)
        assert resp.airline_pnr == "K7XQ2M"
        assert len(resp.order.passenger_fare_breakdown) == 3
        assert resp.passengers["CHD1"].passenger_type_code == "CHD"

    def test_saved_context(self, book):
        ctx = SavedBookingContext.from_booking(book)
        assert ctx.ndc_booking_reference == "NDC-778812"
        assert ctx.booking_token == "tok-5d1e9f2c"


class TestUnreadableValues:
    def test_number_read_as_string(self):
        segment = Segment.model_validate({"flightNumber": 643, "origin": "CAI"})
        assert segment.flight_number == "643"
        assert segment.unreadable == {}

    def test_bad_scalar_dropped_and_kept_raw(self):
        journey = Journey.model_validate({"numberOfStops": "one", "segmentReferenceIds": ["SEG1"]})
        assert journey.number_of_stops is None
        assert journey.segment_reference_ids == ["SEG1"]
        assert journey.unreadable == {"numberOfStops": "one"}

    def test_paths_in_nested_tree(self, search_response):
        search_response["journeys"]["J1"]["numberOfStops"] = "one"
        search_response["offers"][1]["haveBundles"] = {"yes": True}
        resp = SearchResponse.model_validate(search_response)
        assert resp.journeys["J1"].segment_reference_ids == ["SEG1", "SEG2"]
        assert unreadable_values(resp) == [
            ("$.journeys.J1.numberOfStops", "one"),
            ("$.offers[1].haveBundles", {"yes": True}),
        ]

    def test_non_mapping_still_rejected(self):
        with pytest.raises(ValidationError):
            Offer.model_validate("not an offer")


class TestPayloads:
    def test_payload_stays_strict(self):
        with pytest.raises(ValidationError):
            SearchPayload.model_validate({"passengers": [{"passengerTypeCode": "ADT", "count": "two"}]})

    def test_search_pax_counts(self, search_payload):
        assert SearchPayload.model_validate(search_payload).pax_counts() == {"ADT": 2, "CHD": 1}

    def test_search_pax_counts_merge_case(self):
        payload = SearchPayload.model_validate(
            {"passengers": [{"passengerTypeCode": "adt", "count": 1}, {"passengerTypeCode": "ADT", "count": 2}]}
        )
        assert payload.pax_counts() == {"ADT": 3}

    def test_add_pax_pascal_case(self, add_pax):
        payload = AddPaxPayload.model_validate(add_pax)
        assert payload.offer_id == add_pax["OfferId"]
        assert payload.pax_counts() == {"ADT": 2, "CHD": 1}


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


def _finding(severity=Severity.VIOLATION, kind=FindingKind.ASSERTION, check_id="c1", message="m"):
    return Finding(
        check_id=check_id,
        check_name=check_id,
        stage=Stage.SEARCH,
        kind=kind,
        severity=severity,
        message=message,
    )


class TestStageReport:
    def test_empty_report_passes(self):
        report = StageReport(stage=Stage.SEARCH)
        assert report.passed
        assert report.failure_count == 0
        report.raise_for_failures()

    def test_warnings_do_not_fail(self):
        report = StageReport(stage=Stage.SEARCH, findings=[_finding(Severity.WARNING), _finding(Severity.INFO)])
        assert report.passed
        assert report.warning_count == 1
        assert len(report.infos) == 1

    def test_failures(self):
        report = StageReport(
            stage=Stage.BOOK,
            findings=[
                _finding(message="first"),
                _finding(check_id="c2", message="second", kind=FindingKind.PREREQUISITE),
            ],
        )
        assert not report.passed
        assert report.failure_count == 2
        assert report.messages() == ["first", "second"]
        assert report.messages("c2") == ["second"]
        assert len(report.prerequisite_failures) == 1

    def test_raise_for_failures_lists_every_failure(self):
        report = StageReport(stage=Stage.BOOK, findings=[_finding(message="a"), _finding(message="b")])
        with pytest.raises(ContractViolation) as exc_info:
            report.raise_for_failures()
        text = str(exc_info.value)
        assert "book: 2 failure(s)" in text
        assert "[c1] a" in text and "[c1] b" in text
        assert exc_info.value.report is report

    def test_contract_violation_is_assertion_error(self):
        report = StageReport(stage=Stage.SEARCH, findings=[_finding()])
        with pytest.raises(AssertionError):
            report.raise_for_failures()
