"""Tests for cross-step consistency checks."""

from bookcheck.checks.consistency import (
    BookMatchesFareConfirmCheck,
    BookRbdCheck,
    FareConfirmMatchesSearchCheck,
    RetrieveMatchesBookCheck,
    compare_rbds,
)
from bookcheck.collector import FailureCollector
from bookcheck.models import PassengerFareBreakdown, Stage
from bookcheck.validator import build_context


def _run(check_cls, stage, body, **kwargs):
    ctx = build_context(stage, body, **kwargs)
    collector = FailureCollector(stage)
    check_cls().check(ctx, collector.bind(check_cls.check_id))
    return collector.report()


def _rbd_pax(code, *rbds):
    return PassengerFareBreakdown.model_validate(
        {"passengerTypeCode": code, "segmentDetails": [{"segmentReferenceId": f"S{i}", "rbd": r} for i, r in enumerate(rbds)]}
    )


class TestCompareRbds:
    def test_equal(self, out, collector):
        compare_rbds(out, [_rbd_pax("ADT", "Y", "B")], [_rbd_pax("ADT", "Y", "B")], "fareConfirm")
        assert collector.findings == []

    def test_mismatch_at_index(self, out, collector):
        compare_rbds(out, [_rbd_pax("ADT", "Y", "B")], [_rbd_pax("ADT", "Y", "M")], "fareConfirm")
        assert [f.message for f in collector.findings] == [
            "fareConfirm ADT: RBD mismatch at segment 1: expected [B] but found [M]"
        ]

    def test_count_mismatch_then_compares_prefix(self, out, collector):
        compare_rbds(out, [_rbd_pax("ADT", "Y", "B")], [_rbd_pax("ADT", "Q")], "order")
        assert [f.message for f in collector.findings] == [
            "order ADT: segment count mismatch, expected 2 but found 1",
            "order ADT: RBD mismatch at segment 0: expected [Y] but found [Q]",
        ]

    def test_missing_type(self, out, collector):
        compare_rbds(out, [_rbd_pax("CHD", "Y")], [_rbd_pax("ADT", "Y")], "order")
        assert [f.message for f in collector.findings] == ["order: passenger type CHD missing, RBD not compared"]


class TestFareConfirmMatchesSearch:
    def test_fixture(self, fare_confirm, search_response):
        report = _run(FareConfirmMatchesSearchCheck, Stage.FARE_CONFIRM, fare_confirm, prior=search_response["offers"][0])
        assert report.passed, report.messages()

    def test_price_change(self, fare_confirm, search_response):
        offer = fare_confirm["selectedOfferOptions"][0]
        offer["priceDetails"]["totalAmount"]["amount"] = 350.00
        offer["canBeHeld"] = True
        report = _run(FareConfirmMatchesSearchCheck, Stage.FARE_CONFIRM, fare_confirm, prior=search_response["offers"][0])
        messages = report.messages()
        assert "fareConfirm: canBeHeld mismatch: expected [False] but found [True]" in messages
        assert any(m.startswith("fareConfirm: priceDetails.totalAmount mismatch") for m in messages)

    def test_rbd_change(self, fare_confirm, search_response):
        fare_confirm["selectedOfferOptions"][0]["passengerFareBreakdown"][0]["segmentDetails"][2]["rbd"] = "Y"
        report = _run(FareConfirmMatchesSearchCheck, Stage.FARE_CONFIRM, fare_confirm, prior=search_response["offers"][0])
        assert report.messages() == ["fareConfirm ADT: RBD mismatch at segment 2: expected [B] but found [Y]"]

    def test_passenger_count_change(self, fare_confirm, search_response):
        fare_confirm["selectedOfferOptions"][0]["passengerFareBreakdown"][1]["numberOfPassengers"] = 2
        report = _run(FareConfirmMatchesSearchCheck, Stage.FARE_CONFIRM, fare_confirm, prior=search_response["offers"][0])
        assert report.messages() == ["fareConfirm CHD: numberOfPassengers mismatch: expected [1] but found [2]"]


class TestBookMatchesFareConfirm:
    def test_fixture(self, book, fare_confirm, search_payload):
        report = _run(BookMatchesFareConfirmCheck, Stage.BOOK, book, prior=fare_confirm, payload=search_payload)
        assert report.passed, report.messages()

    def test_fixture_without_payload(self, book, fare_confirm):
        assert _run(BookMatchesFareConfirmCheck, Stage.BOOK, book, prior=fare_confirm).passed

    def test_segment_changed(self, book, fare_confirm):
        book["segments"]["SEG2"]["flightNumber"] = "920"
        report = _run(BookMatchesFareConfirmCheck, Stage.BOOK, book, prior=fare_confirm)
        assert report.messages() == [
            "segments mismatch at $.segments.SEG2.flightNumber: expected ['919'] but found ['920']"
        ]

    def test_order_total_changed(self, book, fare_confirm):
        book["order"]["priceDetails"]["totalAmount"]["amount"] = 346.00
        report = _run(BookMatchesFareConfirmCheck, Stage.BOOK, book, prior=fare_confirm)
        assert report.messages() == [
            "order.priceDetails: totalAmount mismatch expected [346.25] but found [346.0]"
        ]

    def test_booked_passenger_amount_changed(self, book, fare_confirm, search_payload):
        book["order"]["passengerFareBreakdown"][1]["passengerBaseAmount"]["amount"] = 110.00
        report = _run(BookMatchesFareConfirmCheck, Stage.BOOK, book, prior=fare_confirm, payload=search_payload)
        assert report.messages() == [
            "order: passengerBaseAmount for type ADT expected [200.00] (2 x quoted) but found [210.00]"
        ]

    def test_missing_journey_segments(self, book, fare_confirm):
        book["journeys"]["J1"]["segmentReferenceIds"] = ["SEG1"]
        report = _run(BookMatchesFareConfirmCheck, Stage.BOOK, book, prior=fare_confirm)
        assert report.failure_count == 1
        assert "length mismatch" in report.messages()[0]


class TestBookRbd:
    def test_matches_selected_offer(self, book, search_response):
        assert _run(BookRbdCheck, Stage.BOOK, book, selected_offer=search_response["offers"][0]).passed

    def test_other_offer_differs(self, book, search_response):
        report = _run(BookRbdCheck, Stage.BOOK, book, selected_offer=search_response["offers"][1])
        # ADT and CHD, three segments each
        assert report.failure_count == 6

    def test_skipped_without_offer(self, book):
        assert _run(BookRbdCheck, Stage.BOOK, book).passed


class TestRetrieveMatchesBook:
    def test_identical(self, retrieve, book):
        assert _run(RetrieveMatchesBookCheck, Stage.RETRIEVE, retrieve, prior=book).passed

    def test_null_vs_zero_service_charge(self, retrieve, book):
        book["order"]["priceDetails"]["serviceChargeAmount"] = None
        retrieve["order"]["priceDetails"]["serviceChargeAmount"] = {"amount": 0.00, "currency": "USD"}
        assert _run(RetrieveMatchesBookCheck, Stage.RETRIEVE, retrieve, prior=book).passed

    def test_pnr_changed(self, retrieve, book):
        retrieve["airlinePnr"] = "ZZZZZZ"
        report = _run(RetrieveMatchesBookCheck, Stage.RETRIEVE, retrieve, prior=book)
        assert report.messages() == ["retrieve: airlinePnr mismatch: expected [K7XQ2M] but found [ZZZZZZ]"]

    def test_missing_booking_token(self, retrieve, book):
        del retrieve["bookingToken"]
        report = _run(RetrieveMatchesBookCheck, Stage.RETRIEVE, retrieve, prior=book)
        assert report.messages() == [
            "bookingToken is missing in Retrieve",
            "retrieve: bookingToken mismatch: expected [tok-5d1e9f2c] but found [None]",
        ]

    def test_passenger_dropped(self, retrieve, book):
        del retrieve["passengers"]["CHD1"]
        report = _run(RetrieveMatchesBookCheck, Stage.RETRIEVE, retrieve, prior=book)
        assert report.messages() == ["passengers mismatch at $.passengers.CHD1: missing in actual"]

    def test_price_class_name(self, retrieve, book):
        retrieve["priceClasses"]["PC1"]["priceClassName"] = "Economy Flex"
        report = _run(RetrieveMatchesBookCheck, Stage.RETRIEVE, retrieve, prior=book)
        assert report.messages() == [
            "priceClassName mismatch for PC1: expected [Economy Basic] but found [Economy Flex]"
        ]

    def test_breakdown_size(self, retrieve, book):
        retrieve["order"]["passengerFareBreakdown"].pop()
        report = _run(RetrieveMatchesBookCheck, Stage.RETRIEVE, retrieve, prior=book)
        assert report.messages() == ["passengerFareBreakdown size mismatch: expected 3 but found 2"]

    def test_order_total_missing(self, retrieve, book):
        del retrieve["order"]["priceDetails"]["totalAmount"]
        report = _run(RetrieveMatchesBookCheck, Stage.RETRIEVE, retrieve, prior=book)
        assert report.messages() == ["order.priceDetails: totalAmount mismatch expected [346.25] but found [0]"]

    def test_order_status_changed(self, retrieve, book):
        retrieve["order"]["orderStatus"] = "CANCELLED"
        report = _run(RetrieveMatchesBookCheck, Stage.RETRIEVE, retrieve, prior=book)
        assert report.messages() == [
            "order mismatch at $.order.orderStatus: expected ['CONFIRMED'] but found ['CANCELLED']"
        ]

    def test_tax_line_changed(self, retrieve, book):
        retrieve["order"]["priceDetails"]["taxesAndFees"][1]["code"] = "XX"
        report = _run(RetrieveMatchesBookCheck, Stage.RETRIEVE, retrieve, prior=book)
        assert report.messages() == [
            "order.priceDetails.taxesAndFees[1] mismatch at "
            "$.order.priceDetails.taxesAndFees[1].code: expected ['EG'] but found ['XX']"
        ]
