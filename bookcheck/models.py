"""Domain models for bookcheck.

Pydantic models for booking API responses and request payloads, plus the
finding/report models produced by validation. Response models accept the
API's camelCase keys, keep unknown keys, and make every field optional so
that absent data is reported by a check rather than rejected at parse time.
"""

from collections import Counter
from collections.abc import Mapping
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    ValidationError,
    ValidatorFunctionWrapHandler,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel, to_pascal

from bookcheck.amounts import amount_or_zero, to_decimal
from bookcheck.errors import ContractViolation


# --- Enums ---


class Stage(str, Enum):
    """Booking workflow step being validated."""

    SEARCH = "search"
    FARE_CONFIRM = "fare_confirm"
    BOOK = "book"
    RETRIEVE = "retrieve"
    NEGATIVE = "negative"  # Expected-error responses


class Severity(str, Enum):
    """Finding severity."""

    VIOLATION = "violation"  # Contract broken -- stage fails
    WARNING = "warning"  # Suspicious but tolerated
    INFO = "info"  # Informational only


class FindingKind(str, Enum):
    """What sort of problem a finding describes."""

    ASSERTION = "assertion"  # Expected vs actual mismatch
    MISSING_DATA = "missing_data"  # Required field or list absent
    MALFORMED_DATA = "malformed_data"  # Unparseable amount, date, or id
    PREREQUISITE = "prerequisite"  # Prior-step snapshot unavailable


# --- API models ---


class ApiModel(BaseModel):
    """Base for response models: camelCase keys, unknown keys kept.

    A field whose value has the wrong type is dropped (read as None) and
    its raw value kept in ``unreadable``, so one bad value does not stop
    the rest of the response from being checked.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        coerce_numbers_to_str=True,
    )

    _unreadable: dict[str, Any] = PrivateAttr(default_factory=dict)

    @model_validator(mode="wrap")
    @classmethod
    def _drop_unreadable_fields(cls, data: Any, handler: ValidatorFunctionWrapHandler) -> Any:
        try:
            return handler(data)
        except ValidationError as exc:
            if not isinstance(data, Mapping):
                raise
            bad = {}
            for err in exc.errors():
                key = err["loc"][0] if err["loc"] else None
                if isinstance(key, str) and key in data:
                    bad[key] = data[key]
            if not bad:
                raise
            model = handler({k: v for k, v in data.items() if k not in bad})
            model._unreadable = bad
            return model

    @property
    def unreadable(self) -> dict[str, Any]:
        """Raw values of fields dropped for having the wrong type, by key."""
        return dict(self._unreadable)


def unreadable_values(model: BaseModel, path: str = "$") -> list[tuple[str, Any]]:
    """(path, raw value) for every dropped field in a parsed model tree."""
    found = [(f"{path}.{key}", raw) for key, raw in getattr(model, "unreadable", {}).items()]
    for name, info in type(model).model_fields.items():
        value = getattr(model, name)
        key = info.alias or name
        if isinstance(value, BaseModel):
            found.extend(unreadable_values(value, f"{path}.{key}"))
        elif isinstance(value, list):
            for i, item in enumerate(value):
                if isinstance(item, BaseModel):
                    found.extend(unreadable_values(item, f"{path}.{key}[{i}]"))
        elif isinstance(value, dict):
            for item_key, item in value.items():
                if isinstance(item, BaseModel):
                    found.extend(unreadable_values(item, f"{path}.{key}.{item_key}"))
    return found


class PayloadModel(BaseModel):
    """Base for request payloads: camelCase keys, validated strictly."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class MoneyAmount(ApiModel):
    """A currency amount. Non-numeric amounts are kept raw as strings."""

    amount: Optional[Union[Decimal, str]] = None
    currency: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _wrap_bare_amount(cls, data: Any) -> Any:
        if isinstance(data, (Mapping, BaseModel)):
            return data
        return {"amount": data}

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, v: Any) -> Any:
        if v is None:
            return None
        parsed = to_decimal(v)
        if parsed is not None:
            return parsed
        return str(v)

    @property
    def value(self) -> Decimal:
        """The amount as a Decimal, zero when absent or malformed."""
        return amount_or_zero(self.amount)

    @property
    def malformed(self) -> bool:
        return isinstance(self.amount, str)


class TaxFee(ApiModel):
    """A single tax or fee line."""

    code: Optional[str] = None
    amount: Optional[MoneyAmount] = None


class SegmentRef(ApiModel):
    """Per-passenger reference to a flown segment."""

    segment_reference_id: Optional[str] = None
    rbd: Optional[str] = None
    price_class_ref_id: Optional[str] = None
    baggage_details_ref_id: Optional[str] = None


class PassengerFareBreakdown(ApiModel):
    """Fare breakdown for one passenger type (or one passenger in Book)."""

    passenger_type_code: Optional[str] = None
    number_of_passengers: Optional[int] = None
    passenger_base_amount: Optional[MoneyAmount] = None
    passenger_taxes_amount: Optional[MoneyAmount] = None
    passenger_discount_amount: Optional[MoneyAmount] = None
    passenger_service_charge_amount: Optional[MoneyAmount] = None
    passenger_total_amount: Optional[MoneyAmount] = None
    taxes_and_fees: Optional[list[TaxFee]] = None
    segment_details: Optional[list[SegmentRef]] = None


class PriceDetails(ApiModel):
    """Offer-level aggregate price."""

    base_amount: Optional[MoneyAmount] = None
    taxes_amount: Optional[MoneyAmount] = None
    discount_amount: Optional[MoneyAmount] = None
    service_charge_amount: Optional[MoneyAmount] = None
    total_amount: Optional[MoneyAmount] = None
    taxes_and_fees: Optional[list[TaxFee]] = None


class Segment(ApiModel):
    """A flown segment, keyed by reference id in the root segments map."""

    origin: Optional[str] = None
    destination: Optional[str] = None
    departure_date_time: Optional[str] = None
    arrival_date_time: Optional[str] = None
    departure_terminal: Optional[str] = None
    arrival_terminal: Optional[str] = None
    marketing_carrier_code: Optional[str] = None
    flight_number: Optional[str] = None


class Journey(ApiModel):
    """An ordered chain of segments from one search leg."""

    segment_reference_ids: Optional[list[str]] = None
    number_of_stops: Optional[int] = None
    bundle_reference_ids: Optional[list[str]] = None


class PriceClass(ApiModel):
    price_class_name: Optional[str] = None
    fare_type: Optional[str] = None
    rules_and_penalties: Optional[list[Any]] = None


class BaggageDetail(ApiModel):
    carry_on_baggage: Optional[Any] = None
    check_in_baggage: Optional[Any] = None


class Offer(ApiModel):
    """A priced, bookable itinerary."""

    offer_id: Optional[str] = None
    have_bundles: Optional[bool] = None
    can_be_held: Optional[bool] = None
    booking_flow: Optional[str] = None
    price_details: Optional[PriceDetails] = None
    passenger_fare_breakdown: Optional[list[PassengerFareBreakdown]] = None
    journeys: Optional[list[str]] = None
    offer_journeys: Optional[list[str]] = None

    @property
    def journey_refs(self) -> Optional[list[str]]:
        """Journey ids referenced by the offer (`journeys` or `offerJourneys`)."""
        if self.journeys is not None:
            return self.journeys
        return self.offer_journeys

    @property
    def total(self) -> Optional[Decimal]:
        """Reported aggregate total, or None when absent or malformed."""
        if self.price_details is None or self.price_details.total_amount is None:
            return None
        return to_decimal(self.price_details.total_amount.amount)


class ResponseCatalog(ApiModel):
    """Root lookup maps shared by Search, FareConfirm, Book and Retrieve."""

    segments: Optional[dict[str, Segment]] = None
    journeys: Optional[dict[str, Journey]] = None
    price_classes: Optional[dict[str, PriceClass]] = None
    baggage_details: Optional[dict[str, BaggageDetail]] = None


class SearchResponse(ResponseCatalog):
    # An unreadable entry is kept as None so indexes match the response
    offers: Optional[list[Optional[Offer]]] = None


class FareConfirmResponse(ResponseCatalog):
    response_id: Optional[str] = None
    selected_offer_options: Optional[list[Optional[Offer]]] = None

    @property
    def selected_offer(self) -> Optional[Offer]:
        if not self.selected_offer_options:
            return None
        return self.selected_offer_options[0]


class Order(ApiModel):
    price_details: Optional[PriceDetails] = None
    passenger_fare_breakdown: Optional[list[PassengerFareBreakdown]] = None


class BookedPassenger(ApiModel):
    passenger_type_code: Optional[str] = None


class BookingResponse(ResponseCatalog):
    """Book response. Retrieve returns the same shape."""

    ndc_booking_reference: Optional[str] = None
    airline_pnr: Optional[str] = None
    gds_pnr: Optional[str] = None
    booking_token: Optional[str] = None
    order: Optional[Order] = None
    passengers: Optional[dict[str, BookedPassenger]] = None


# --- Request payloads ---


class SearchCriterion(PayloadModel):
    """One requested leg."""

    origin: Optional[str] = None
    destination: Optional[str] = None
    departure_date: Optional[str] = None


class PassengerCount(PayloadModel):
    passenger_type_code: str
    count: int = 0


class SearchPayload(PayloadModel):
    """Search request echo: legs and passenger counts."""

    search_criteria: list[SearchCriterion] = Field(default_factory=list)
    passengers: list[PassengerCount] = Field(default_factory=list)

    def pax_counts(self) -> dict[str, int]:
        """Requested passenger count per upper-cased type code."""
        counts: dict[str, int] = {}
        for pax in self.passengers:
            code = pax.passenger_type_code.upper()
            counts[code] = counts.get(code, 0) + pax.count
        return counts


class AddPaxPassenger(BaseModel):
    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True, extra="allow")

    passenger_type_code: Optional[str] = None


class AddPaxPayload(BaseModel):
    """AddPax request body (PascalCase keys)."""

    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True, extra="allow")

    offer_id: Optional[str] = None
    passengers: dict[str, AddPaxPassenger] = Field(default_factory=dict)

    def pax_counts(self) -> dict[str, int]:
        counts = Counter(
            (p.passenger_type_code or "").upper() for p in self.passengers.values()
        )
        return dict(counts)


class SavedBookingContext(ApiModel):
    """Identifiers carried from Book to Retrieve."""

    ndc_booking_reference: Optional[str] = None
    airline_pnr: Optional[str] = None
    gds_pnr: Optional[str] = None
    booking_token: Optional[str] = None

    @classmethod
    def from_booking(cls, response: Mapping[str, Any]) -> "SavedBookingContext":
        return cls.model_validate(
            {
                "ndcBookingReference": response.get("ndcBookingReference"),
                "airlinePnr": response.get("airlinePnr"),
                "gdsPnr": response.get("gdsPnr"),
                "bookingToken": response.get("bookingToken"),
            }
        )


# --- Result Models ---


class Finding(BaseModel):
    """A single recorded check outcome."""

    check_id: str
    check_name: str
    stage: Optional[Stage] = None
    kind: FindingKind = FindingKind.ASSERTION
    severity: Severity = Severity.VIOLATION
    message: str
    path: str = ""  # e.g. "$.offers[1].priceDetails.totalAmount"
    expected: Optional[str] = None
    actual: Optional[str] = None


class StageReport(BaseModel):
    """All findings recorded while validating one stage."""

    stage: Stage
    findings: list[Finding] = Field(default_factory=list)
    checks_run: list[str] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.failures

    @property
    def failures(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == Severity.VIOLATION]

    @property
    def warnings(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == Severity.WARNING]

    @property
    def infos(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == Severity.INFO]

    @property
    def prerequisite_failures(self) -> list[Finding]:
        return [f for f in self.failures if f.kind == FindingKind.PREREQUISITE]

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    def messages(self, check_id: Optional[str] = None) -> list[str]:
        """Failure messages, optionally for one check only."""
        return [f.message for f in self.failures if check_id is None or f.check_id == check_id]

    def raise_for_failures(self) -> None:
        """Raise ContractViolation carrying every failure, if any."""
        if not self.passed:
            raise ContractViolation(self)
