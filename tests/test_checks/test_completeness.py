"""Tests for the completeness scan."""

from bookcheck.checks.completeness import (
    CompletenessCheck,
    EmptyKind,
    EmptyValue,
    find_empty_values,
    is_warning_only,
)
from bookcheck.collector import FailureCollector
from bookcheck.config import ValidationConfig
from bookcheck.models import Severity, Stage
from bookcheck.validator import build_context


def _run(body, config=None):
    ctx = build_context(Stage.SEARCH, body, config)
    collector = FailureCollector(Stage.SEARCH)
    CompletenessCheck().check(ctx, collector.bind("completeness"))
    return collector.report()


class TestFindEmptyValues:
    def test_all_kinds_ordered(self):
        tree = {"b": [], "a": None, "c": {"d": "", "e": {}}, "f": [None, 1]}
        assert find_empty_values(tree) == [
            EmptyValue("$.a", EmptyKind.NULL),
            EmptyValue("$.f[0]", EmptyKind.NULL),
            EmptyValue("$.c.d", EmptyKind.EMPTY_STRING),
            EmptyValue("$.b", EmptyKind.EMPTY_LIST),
            EmptyValue("$.c.e", EmptyKind.EMPTY_OBJECT),
        ]

    def test_zero_and_false_are_values(self):
        assert find_empty_values({"n": 0, "flag": False, "s": "x"}) == []

    def test_blank_string(self):
        assert find_empty_values({"s": "   "}) == [EmptyValue("$.s", EmptyKind.EMPTY_STRING)]

    def test_warning_suffix(self):
        assert is_warning_only("$.segments.SEG3.arrivalTerminal", ["arrivalTerminal"])
        assert not is_warning_only("$.segments.SEG3.arrivalTerminalName", ["arrivalTerminal"])


class TestCompletenessCheck:
    def test_fixture_only_warns_on_terminal(self, search_response):
        report = _run(search_response)
        assert report.passed
        assert [f.message for f in report.warnings] == ["empty string value at $.segments.SEG3.arrivalTerminal"]

    def test_null_fails(self, search_response):
        search_response["offers"][0]["canBeHeld"] = None
        report = _run(search_response)
        assert report.messages() == ["null value at $.offers[0].canBeHeld"]

    def test_empty_list_fails(self, search_response):
        search_response["journeys"]["J2"]["bundleReferenceIds"] = []
        report = _run(search_response)
        assert report.messages() == ["empty list value at $.journeys.J2.bundleReferenceIds"]

    def test_configured_suffixes(self, search_response):
        report = _run(search_response, ValidationConfig(warning_only_suffixes=[]))
        assert not report.passed
        assert report.warnings == []

    def test_warning_severity(self, search_response):
        search_response["segments"]["SEG1"]["departureTerminal"] = None
        report = _run(search_response)
        assert report.passed
        assert {f.severity for f in report.warnings} == {Severity.WARNING}
        assert len(report.warnings) == 2
