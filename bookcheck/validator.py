"""Validator: builds stage context and runs all checks registered for a stage."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from pydantic import BaseModel, ValidationError

from bookcheck.collector import FailureCollector
from bookcheck.config import ValidationConfig
from bookcheck.errors import ToolingError
from bookcheck.models import (
    AddPaxPayload,
    BookingResponse,
    FareConfirmResponse,
    Offer,
    PassengerFareBreakdown,
    PriceDetails,
    SearchPayload,
    SearchResponse,
    Stage,
    StageReport,
    unreadable_values,
)

logger = logging.getLogger(__name__)

# Typed view of each stage's response
_RESPONSE_MODELS: dict[Stage, type[BaseModel]] = {
    Stage.SEARCH: SearchResponse,
    Stage.FARE_CONFIRM: FareConfirmResponse,
    Stage.BOOK: BookingResponse,
    Stage.RETRIEVE: BookingResponse,
}

# Typed view of the earlier-step snapshot each stage compares against
_PRIOR_MODELS: dict[Stage, type[BaseModel]] = {
    Stage.FARE_CONFIRM: Offer,
    Stage.BOOK: FareConfirmResponse,
    Stage.RETRIEVE: BookingResponse,
}

PRIOR_NAMES = {
    Stage.FARE_CONFIRM: "selected Search offer",
    Stage.BOOK: "FareConfirm",
    Stage.RETRIEVE: "Book",
}


@dataclass
class PricedItem:
    """One priced unit of a response: a Search/FareConfirm offer or a Book order."""

    label: str  # e.g. "offer[2]" or "order"
    path: str  # e.g. "$.offers[2]"
    price_details: Optional[PriceDetails]
    breakdown: Optional[list[PassengerFareBreakdown]]
    offer: Optional[Offer] = None


@dataclass
class StageContext:
    """Inputs for one stage's checks."""

    stage: Stage
    # Raw response body as parsed from JSON
    body: Any
    config: ValidationConfig = field(default_factory=ValidationConfig)
    # Typed view of body, None when it failed to parse
    response: Optional[Any] = None
    payload: Optional[SearchPayload] = None
    add_pax: Optional[AddPaxPayload] = None
    # Earlier step's snapshot, raw and typed
    prior_body: Optional[Any] = None
    prior: Optional[Any] = None
    # Search offer the booking was made from (Book RBD check)
    selected_offer: Optional[Offer] = None
    parse_errors: list[str] = field(default_factory=list)
    prior_parse_errors: list[str] = field(default_factory=list)
    # (path, raw value) of response values dropped for having the wrong type
    unreadable: list[tuple[str, Any]] = field(default_factory=list)

    @property
    def pax_counts(self) -> dict[str, int]:
        if self.payload is not None:
            return self.payload.pax_counts()
        if self.add_pax is not None:
            return self.add_pax.pax_counts()
        return {}

    def offers(self) -> list[tuple[str, str, Offer]]:
        """(label, path, offer) for every offer in a Search or FareConfirm response."""
        if isinstance(self.response, SearchResponse):
            return [
                (f"offer[{i}]", f"$.offers[{i}]", o)
                for i, o in enumerate(self.response.offers or [])
                if o is not None
            ]
        if isinstance(self.response, FareConfirmResponse):
            return [
                (f"selectedOffer[{i}]", f"$.selectedOfferOptions[{i}]", o)
                for i, o in enumerate(self.response.selected_offer_options or [])
                if o is not None
            ]
        return []

    def priced_items(self) -> list[PricedItem]:
        """Priced units subject to fare arithmetic and currency checks."""
        if isinstance(self.response, BookingResponse):
            order = self.response.order
            if order is None:
                return []
            return [
                PricedItem(
                    label="order",
                    path="$.order",
                    price_details=order.price_details,
                    breakdown=order.passenger_fare_breakdown,
                )
            ]
        return [
            PricedItem(
                label=label,
                path=path,
                price_details=offer.price_details,
                breakdown=offer.passenger_fare_breakdown,
                offer=offer,
            )
            for label, path, offer in self.offers()
        ]


def _format_errors(exc: ValidationError) -> list[str]:
    return [f"{' -> '.join(str(x) for x in err['loc'])}: {err['msg']}" for err in exc.errors()]


def _parse(model: type[BaseModel], value: Any, errors: list[str]) -> Optional[Any]:
    """Parse value into model, appending readable errors on failure."""
    if value is None:
        return None
    if isinstance(value, model):
        return value
    try:
        return model.model_validate(value)
    except ValidationError as exc:
        errors.extend(_format_errors(exc))
        return None


# Offer lists are parsed entry by entry: (response key, model field)
_OFFER_LISTS: dict[type[BaseModel], tuple[str, str]] = {
    SearchResponse: ("offers", "offers"),
    FareConfirmResponse: ("selectedOfferOptions", "selected_offer_options"),
}


def _parse_response(model: type[BaseModel], body: Any, ctx: StageContext) -> Optional[Any]:
    """Parse a response body, tolerating unreadable values.

    Wrongly typed fields are dropped by the models. An offer entry that
    cannot be read at all is kept as None, so the remaining offers are
    still checked under their own index.
    """
    key, attr = _OFFER_LISTS.get(model, (None, None))
    items = body.get(key) if key is not None and isinstance(body, Mapping) else None
    if not isinstance(items, list):
        response = _parse(model, body, ctx.parse_errors)
    else:
        response = _parse(model, {k: v for k, v in body.items() if k != key}, ctx.parse_errors)
        if response is not None:
            offers = []
            for i, item in enumerate(items):
                errors: list[str] = []
                offer = _parse(Offer, item, errors)
                if offer is None:
                    logger.debug("%s[%d] unreadable: %s", key, i, "; ".join(errors))
                    ctx.unreadable.append((f"$.{key}[{i}]", item))
                offers.append(offer)
            setattr(response, attr, offers)

    if response is not None:
        ctx.unreadable.extend(unreadable_values(response))
    return response


def _parse_payload(model: type[BaseModel], value: Any) -> Optional[Any]:
    """Request payloads are test inputs: a bad one is a tooling defect."""
    if value is None or isinstance(value, model):
        return value
    try:
        return model.model_validate(value)
    except ValidationError as exc:
        raise ToolingError(
            f"Invalid {model.__name__}: " + "; ".join(_format_errors(exc))
        ) from exc


def build_context(
    stage: Stage,
    body: Any,
    config: Optional[ValidationConfig] = None,
    payload: Union[SearchPayload, Mapping, None] = None,
    prior: Any = None,
    selected_offer: Union[Offer, Mapping, None] = None,
    add_pax_payload: Union[AddPaxPayload, Mapping, None] = None,
) -> StageContext:
    """Build a stage context, parsing typed views of every input."""
    ctx = StageContext(stage=stage, body=body, config=config or ValidationConfig())

    model = _RESPONSE_MODELS.get(stage)
    if model is not None:
        if body is None:
            ctx.parse_errors.append("response body is empty")
        else:
            ctx.response = _parse_response(model, body, ctx)

    prior_model = _PRIOR_MODELS.get(stage)
    if prior_model is not None and prior is not None:
        ctx.prior_body = prior.model_dump(by_alias=True) if isinstance(prior, BaseModel) else prior
        ctx.prior = _parse(prior_model, prior, ctx.prior_parse_errors)

    ctx.payload = _parse_payload(SearchPayload, payload)
    ctx.add_pax = _parse_payload(AddPaxPayload, add_pax_payload)
    ctx.selected_offer = _parse_payload(Offer, selected_offer)
    return ctx


class Validator:
    """Runs all registered checks for a stage."""

    def __init__(self) -> None:
        # Import check modules to trigger registration
        self._discover_checks()

    def _discover_checks(self) -> None:
        """Import all check modules so @register_check decorators fire."""
        import bookcheck.checks.references  # noqa: F401
        import bookcheck.checks.fares  # noqa: F401
        import bookcheck.checks.currency  # noqa: F401
        import bookcheck.checks.structure  # noqa: F401
        import bookcheck.checks.completeness  # noqa: F401
        import bookcheck.checks.timing  # noqa: F401
        import bookcheck.checks.consistency  # noqa: F401

    def validate(self, ctx: StageContext) -> StageReport:
        """Run every check for ctx.stage and return the collected report."""
        from bookcheck.checks.base import get_registered_checks

        collector = FailureCollector(ctx.stage)

        if ctx.parse_errors:
            collector.bind("response_shape", "Response Shape").malformed(
                "Response could not be read: " + "; ".join(ctx.parse_errors),
                path="$",
            )
        if ctx.unreadable:
            shape = collector.bind("response_shape", "Response Shape")
            for path, raw in ctx.unreadable:
                shape.malformed(f"unreadable value at {path}: {raw!r}", path, raw)
        if ctx.prior_parse_errors:
            collector.bind("prior_snapshot_shape", "Prior Snapshot Shape").malformed(
                f"{PRIOR_NAMES.get(ctx.stage, 'Prior')} snapshot could not be read: "
                + "; ".join(ctx.prior_parse_errors),
            )

        for check_cls in get_registered_checks(ctx.stage):
            check = check_cls()
            out = collector.bind(check.check_id, check.check_name)

            if check.needs_prior and ctx.prior is None:
                if not ctx.prior_parse_errors:
                    out.prerequisite(
                        f"No {PRIOR_NAMES.get(ctx.stage, 'prior')} snapshot available; "
                        f"{check.check_name} not run"
                    )
                continue
            if check.needs_model and ctx.response is None:
                continue

            collector.checks_run.append(check.check_id)
            try:
                check.check(ctx, out)
            except ToolingError:
                raise
            except Exception as e:
                logger.debug("Check %s raised", check.check_id, exc_info=True)
                out.fail(f"Check execution error: {e}")

        report = collector.report()
        logger.info(
            "%s: %d checks, %d failures, %d warnings",
            ctx.stage.value,
            len(report.checks_run),
            report.failure_count,
            report.warning_count,
        )
        return report


# --- Stage entry points ---


def validate_search(
    response: Any,
    payload: Union[SearchPayload, Mapping, None] = None,
    config: Optional[ValidationConfig] = None,
) -> StageReport:
    """Validate a Search response against its request payload."""
    ctx = build_context(Stage.SEARCH, response, config, payload=payload)
    return Validator().validate(ctx)


def validate_fare_confirm(
    response: Any,
    prior_offer: Any,
    config: Optional[ValidationConfig] = None,
    payload: Union[SearchPayload, Mapping, None] = None,
) -> StageReport:
    """Validate a FareConfirm response against the Search offer it confirms."""
    ctx = build_context(Stage.FARE_CONFIRM, response, config, payload=payload, prior=prior_offer)
    return Validator().validate(ctx)


def validate_booking(
    response: Any,
    prior_snapshot: Any,
    payload: Union[SearchPayload, Mapping, None] = None,
    config: Optional[ValidationConfig] = None,
    *,
    selected_offer: Union[Offer, Mapping, None] = None,
    add_pax_payload: Union[AddPaxPayload, Mapping, None] = None,
) -> StageReport:
    """Validate a Book response against the FareConfirm snapshot."""
    ctx = build_context(
        Stage.BOOK,
        response,
        config,
        payload=payload,
        prior=prior_snapshot,
        selected_offer=selected_offer,
        add_pax_payload=add_pax_payload,
    )
    return Validator().validate(ctx)


def validate_retrieve(
    book_snapshot: Any,
    retrieve_response: Any,
    config: Optional[ValidationConfig] = None,
) -> StageReport:
    """Validate a Retrieve response reproduces the Book response."""
    ctx = build_context(Stage.RETRIEVE, retrieve_response, config, prior=book_snapshot)
    return Validator().validate(ctx)
