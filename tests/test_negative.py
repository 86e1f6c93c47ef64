"""Tests for negative (expected-error) scenarios."""

import pytest

from bookcheck.models import Stage
from bookcheck.negative import (
    ADD_PAX_ERRORS,
    DEFAULT_MESSAGE,
    SEARCH_ERRORS,
    check_expected_error,
    contains_expected_error,
    expected_message,
    validation_errors,
)


class TestExpectedMessage:
    def test_search_scenario(self):
        assert expected_message("BLANK_ORIGIN") == "the origin field is required"

    def test_case_and_whitespace(self):
        assert expected_message(" blank_origin ") == SEARCH_ERRORS["BLANK_ORIGIN"]

    def test_add_pax_step_spellings(self):
        for step in ("addpax", "add_pax", "ADD-PAX"):
            assert expected_message("GENDER_REQUIRED", step) == ADD_PAX_ERRORS["GENDER_REQUIRED"]

    def test_unknown_scenario_generic(self):
        assert expected_message("SOMETHING_NEW") == DEFAULT_MESSAGE

    def test_unknown_step(self):
        with pytest.raises(ValueError, match="Unknown step"):
            expected_message("BLANK_ORIGIN", "book")


class TestValidationErrors:
    def test_pascal_case_key(self, load_yaml):
        errors = validation_errors(load_yaml("negative_search.yaml"))
        assert errors[0] == {
            "propertyname": "searchcriteria[0].origin",
            "errormessage": "the origin field is required.",
        }

    def test_camel_case_key(self):
        body = {"validationErrors": [{"errorMessage": "Bad", "propertyName": None}]}
        assert validation_errors(body) == [{"errormessage": "bad", "propertyname": ""}]

    @pytest.mark.parametrize("body", [None, [], {"validationErrors": "x"}, {}])
    def test_no_errors(self, body):
        assert validation_errors(body) == []

    def test_contains(self, load_yaml):
        body = load_yaml("negative_search.yaml")
        assert contains_expected_error(body, "AT LEAST ONE PASSENGER")
        assert not contains_expected_error(body, "date must be in the future")


class TestCheckExpectedError:
    def test_passes(self, load_yaml):
        report = check_expected_error(load_yaml("negative_search.yaml"), "MISSING_ORIGIN")
        assert report.stage == Stage.NEGATIVE
        assert report.passed
        assert report.checks_run == ["expected_error"]

    def test_fails_with_actual_messages(self, load_yaml):
        report = check_expected_error(load_yaml("negative_search.yaml"), "SAME_ORIGIN_DESTINATION")
        assert not report.passed
        message = report.messages()[0]
        assert "SAME_ORIGIN_DESTINATION: expected error message not found" in message
        assert "the origin field is required." in message

    def test_add_pax(self):
        body = {"ValidationErrors": [{"ErrorMessage": "First Name is required.", "PropertyName": "Passengers.ADT1"}]}
        assert check_expected_error(body, "FIRST_NAME_REQUIRED", "addpax").passed
