"""Negative scenarios: expected validation errors for rejected requests.

A negative Search or AddPax call passes when the response's validation
errors contain the message expected for its scenario.
"""

import logging
from typing import Any

from bookcheck.collector import FailureCollector
from bookcheck.models import Stage, StageReport

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE = "validation error"

SEARCH_ERRORS: dict[str, str] = {
    "EMPTY_SEARCH_CRITERIA": "at least one search segment is required",
    "BLANK_CRITERIA": "at least one search segment is required",
    "EMPTY_PASSENGER_TYPE_CODE": "invalid passenger type",
    "INVALID_PASSENGER_TYPE": "invalid passenger type",
    "BLANK_ORIGIN": "the origin field is required",
    "MISSING_ORIGIN": "the origin field is required",
    "BLANK_DESTINATION": "the destination field is required",
    "MISSING_DESTINATION": "the destination field is required",
    "BLANK_DATE": "date must be in the future",
    "MISSING_DATE": "date must be in the future",
    "SAME_ORIGIN_DESTINATION": "the origin location cannot be the same as the destination",
    "INVALID_RETURN_JOURNEY_DATE": "cannot be before the previous outbound journey date",
    "INFANT_TO_ADULT_RATIO": "infants (inf) must not exceed the number of adults (adt)",
    "BLANK_PASSENGER_COUNT": "passenger count must be greater than 0",
    "EMPTY_PASSENGERS_LIST": "at least one passenger is required",
    "BLANK_PASSENGER_TYPE_FIELD": "must exist at least one adult",
    "INVALID_CODE_LENGTH": "must be exactly 3 uppercase letters",
    "NON_EXISTING_PASSENGER_CODE": (
        "Invalid passenger type. Please select a valid type. "
        "Allowed values: ADT (Adult), CHD (Child), INF (Infant)"
    ),
    "FUTURE_DATE_ONLY": "The search date must be in the future",
    "ORIGIN_DATA_TYPE": "Origin must be exactly 3 uppercase letters",
    "WRONG_DATE_FORMAT": "Could not convert string to DateTime: 2025-27-05.",
}

ADD_PAX_ERRORS: dict[str, str] = {
    "PASSENGER_TITLE_GENDER_ALIGN": "title and gender do not align",
    "FIRST_NAME_REQUIRED": "First Name is required.",
    "PASSENGER_DATA_MISMATCH": "Passenger data must match travel document details",
    "INF_REFER_TO_EXIST_ADT": "referenced passenger 'adt2' does not exist",
    "INF_REFER_TO_ONLY_ONE_ADT": (
        "adult passenger 'adt1' is referenced by more than one infant, which is not allowed."
    ),
    "DUPLICATE_PASSENGER_DATA": "Duplicate passengers detected: Duplicate for",
    "DUPLICATE_TRAVEL_DOCUMENT": (
        "Duplicate travel document detected. "
        "Each combination of Document Number and Type must be unique"
    ),
    "PASSENGER_COUNT_MISMATCH": "Passenger count mismatch.",
    "FIRST_NAME_ONE_CHARACTER": "First Name must be more than one character.",
    "LAST_NAME_ONE_CHARACTER": "Last Name must be more than one character.",
    "LAST_NAME_REQUIRED": "LAST Name is required.",
    "GENDER_REQUIRED": "Invalid gender. Please select either Male or Female",
    "INVALID_DOCUMENT_TYPE": "Invalid document type. Allowed values: Passport, IQAMA, NationalId.",
    "DOCUMENT_TYPE_REQUIRED": "Document type is required for international flights.",
    "PASSPORT_>_BIRTH_DATE": "Travel document expiration date must be after the birth date.",
    "RESIDENCE_CODE_REQUIRED": "Residence country code is required.",
    "RESIDENCE_CODE_INVALID": "Residence country code is invalid",
    "NATIONAL_CODE_REQUIRED": "Nationality country code is required.",
    "NATIONAL_CODE_INVALID": "Nationality country code is invalid",
    "ISSUANCE_CODE_REQUIRED": "Issuance country code is required.",
    "ISSUANCE_CODE_INVALID": "Issuance country code is invalid",
}

_CATALOGUES = {
    "search": SEARCH_ERRORS,
    "addpax": ADD_PAX_ERRORS,
}


def expected_message(scenario: str, step: str = "search") -> str:
    """Expected error text for a scenario; unknown scenarios expect a generic error.

    Raises:
        ValueError: If the step has no catalogue.
    """
    key = step.lower().replace("_", "").replace("-", "")
    if key not in _CATALOGUES:
        raise ValueError(f"Unknown step: {step!r}. Use 'search' or 'addpax'.")
    return _CATALOGUES[key].get(scenario.strip().upper(), DEFAULT_MESSAGE)


def validation_errors(body: Any) -> list[dict[str, str]]:
    """Validation errors with lower-cased, stripped keys and values."""
    if not isinstance(body, dict):
        return []
    raw = body.get("ValidationErrors")
    if raw is None:
        raw = body.get("validationErrors")
    if not isinstance(raw, list):
        return []
    normalized = []
    for err in raw:
        if not isinstance(err, dict):
            continue
        normalized.append(
            {
                str(k).lower().strip(): "" if v is None else str(v).lower().strip()
                for k, v in err.items()
            }
        )
    return normalized


def contains_expected_error(body: Any, message: str) -> bool:
    """True if any validation error value contains message (case-insensitive)."""
    wanted = message.lower().strip()
    return any(wanted in value for err in validation_errors(body) for value in err.values())


def check_expected_error(body: Any, scenario: str, step: str = "search") -> StageReport:
    """Report whether a rejected response carries the scenario's expected error."""
    message = expected_message(scenario, step)
    collector = FailureCollector(Stage.NEGATIVE)
    out = collector.bind("expected_error", "Expected Validation Error")
    collector.checks_run.append(out.check_id)

    errors = validation_errors(body)
    for err in errors:
        logger.debug("Validation error: %s (property: %s)", err.get("errormessage"), err.get("propertyname"))

    if not contains_expected_error(body, message):
        actual = [err.get("errormessage", "<empty>") for err in errors]
        out.fail(
            f"{scenario}: expected error message not found. Expected: {message!r}, actual: {actual}",
            "$.validationErrors",
            message,
            actual,
        )
    return collector.report()
