"""Per-run booking flow: sequences stage validation and carries snapshots.

Each step is validated only when its HTTP call returned the expected status
and a non-empty body. Snapshots needed by later steps go into an injected
SnapshotStore.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

from bookcheck.collector import FailureCollector
from bookcheck.config import ValidationConfig
from bookcheck.errors import StageSkipped
from bookcheck.models import SavedBookingContext, Stage, StageReport
from bookcheck.store import SnapshotStore
from bookcheck.validator import (
    validate_booking,
    validate_fare_confirm,
    validate_retrieve,
    validate_search,
)

logger = logging.getLogger(__name__)


class FlowState(str, Enum):
    NEW = "new"
    SEARCH_VALIDATED = "search_validated"
    FARECONFIRM_VALIDATED = "fareconfirm_validated"
    BOOK_VALIDATED = "book_validated"
    RETRIEVE_VALIDATED = "retrieve_validated"


_NEXT_STATE = {
    Stage.SEARCH: FlowState.SEARCH_VALIDATED,
    Stage.FARE_CONFIRM: FlowState.FARECONFIRM_VALIDATED,
    Stage.BOOK: FlowState.BOOK_VALIDATED,
    Stage.RETRIEVE: FlowState.RETRIEVE_VALIDATED,
}


@dataclass
class StepResponse:
    """What the HTTP collaborator hands back for one step."""

    status_code: int
    body: Any


def require_booking_flow(offer: Any, allowed: Iterable[str], step: str = "") -> str:
    """Return the offer's booking flow, or raise StageSkipped if not allowed.

    The flow comes from the offer's ``bookingFlow`` and defaults to "book".
    """
    flow = None
    if isinstance(offer, dict):
        flow = offer.get("bookingFlow")
    elif offer is not None:
        flow = getattr(offer, "booking_flow", None)
    flow = (flow or "book").lower()
    allowed_flows = {a.lower() for a in allowed}
    if flow not in allowed_flows:
        raise StageSkipped(
            f"{step or 'Step'} skipped: booking flow {flow!r} not in {sorted(allowed_flows)}"
        )
    return flow


def _offer_key(offer: Any) -> Optional[str]:
    if isinstance(offer, dict):
        return offer.get("offerId")
    return getattr(offer, "offer_id", None)


class BookingFlow:
    """NEW -> SEARCH -> FARECONFIRM -> BOOK -> RETRIEVE for one test case."""

    def __init__(
        self,
        test_case_id: str,
        config: Optional[ValidationConfig] = None,
        store: Optional[SnapshotStore] = None,
    ) -> None:
        self.test_case_id = test_case_id
        self.config = config or ValidationConfig()
        self.store = store if store is not None else SnapshotStore()
        self.state = FlowState.NEW
        self.reports: dict[Stage, StageReport] = {}
        self.booking_context: Optional[SavedBookingContext] = None

    def _gate(self, stage: Stage, step: StepResponse, expected_status: int) -> Optional[StageReport]:
        """A failed report when the step cannot be validated, else None."""
        out = FailureCollector(stage)
        recorder = out.bind("http_response", "HTTP Response")
        if step.status_code != expected_status:
            recorder.fail(
                f"{stage.value}: expected HTTP {expected_status} but got {step.status_code}",
                expected=expected_status,
                actual=step.status_code,
            )
        elif step.body is None or step.body == {} or step.body == "":
            recorder.missing(f"{stage.value}: response body is empty")
        else:
            return None
        return out.report()

    def _finish(self, stage: Stage, report: StageReport) -> StageReport:
        self.reports[stage] = report
        if report.passed:
            self.state = _NEXT_STATE[stage]
        logger.info("%s %s: %s", self.test_case_id, stage.value, "passed" if report.passed else "failed")
        return report

    def search(self, step: StepResponse, payload: Any, expected_status: int = 200) -> StageReport:
        report = self._gate(Stage.SEARCH, step, expected_status)
        if report is None:
            report = validate_search(step.body, payload, self.config)
        return self._finish(Stage.SEARCH, report)

    def fare_confirm(
        self,
        step: StepResponse,
        selected_offer: Any,
        payload: Any = None,
        expected_status: int = 200,
    ) -> StageReport:
        """Validate FareConfirm and store it under the selected offer's id."""
        report = self._gate(Stage.FARE_CONFIRM, step, expected_status)
        if report is None:
            report = validate_fare_confirm(step.body, selected_offer, self.config, payload)
            offer_id = _offer_key(selected_offer)
            if offer_id:
                self.store.put(offer_id, step.body)
        return self._finish(Stage.FARE_CONFIRM, report)

    def book(
        self,
        step: StepResponse,
        selected_offer: Any,
        payload: Any = None,
        add_pax_payload: Any = None,
        expected_status: int = 200,
    ) -> StageReport:
        """Validate Book against the stored FareConfirm snapshot.

        Raises:
            StageSkipped: If the offer's booking flow is not allowed.
        """
        require_booking_flow(selected_offer, self.config.allowed_booking_flows, "Book")
        report = self._gate(Stage.BOOK, step, expected_status)
        if report is None:
            offer_id = _offer_key(selected_offer)
            snapshot = self.store.get(offer_id) if offer_id else None
            report = validate_booking(
                step.body,
                snapshot,
                payload,
                self.config,
                selected_offer=selected_offer,
                add_pax_payload=add_pax_payload,
            )
            self.store.put(self.test_case_id, step.body)
            if isinstance(step.body, dict):
                self.booking_context = SavedBookingContext.from_booking(step.body)
        return self._finish(Stage.BOOK, report)

    def retrieve(self, step: StepResponse, expected_status: int = 200) -> StageReport:
        """Validate Retrieve against the stored booking snapshot."""
        report = self._gate(Stage.RETRIEVE, step, expected_status)
        if report is None:
            report = validate_retrieve(self.store.get(self.test_case_id), step.body, self.config)
        return self._finish(Stage.RETRIEVE, report)
