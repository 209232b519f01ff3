"""
Tenderflow - main façade

The single entry point for every workflow operation. It hides the event
store, the projections and the handlers, and it is the only place that
commits writes.

Every operation runs the same way:
1. catch the projections up with the shared log (other processes may have
   written since the last call)
2. build a whitelisted command from the caller's fields
3. let the owning handler validate and plan events against what it read
4. commit all planned events in one conditional batch; a stream that moved
   in between turns into StateConflictError for the caller

Example:
    >>> from tenderflow import Tenderflow, Actor, Role
    >>> flow = Tenderflow("tenderflow.db")
    >>> buyer = Actor(actor_id="u1", company_id="acme", role=Role.COMPANY_ADMIN)
    >>> tender = flow.create_tender(buyer, title="Road resurfacing", ...)
    >>> flow.publish_tender(tender.tender_id, buyer)
    >>> report = flow.analyze_bids(tender.tender_id, buyer)
"""

import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from tenderflow.bid import commands as bid_commands
from tenderflow.bid import invariants as bid_invariants
from tenderflow.bid.handlers import BidCommandHandlers
from tenderflow.bid.models import Bid, BidStatus
from tenderflow.bid.projections import BidRegistry
from tenderflow.bid.review import PreSubmitReviewer
from tenderflow.evaluation.engine import EvaluationEngine
from tenderflow.evaluation.models import EvaluationReport, ReadinessReview
from tenderflow.evaluation.narrative import MISSING_API_KEY, NullSummarizer, Summarizer
from tenderflow.kernel.actors import Actor
from tenderflow.kernel.errors import (
    NotFoundError,
    StateConflictError,
    StreamVersionConflict,
    ValidationError,
)
from tenderflow.kernel.event_store import SQLiteEventStore, StreamWrite
from tenderflow.kernel.events import Event
from tenderflow.kernel.ids import bidder_stream_id, generate_id
from tenderflow.kernel.logging import LogOperation, get_logger
from tenderflow.kernel.metrics import (
    bid_transitions_total,
    state_conflicts_total,
    sweep_duration_seconds,
    tender_transitions_total,
    tenders_by_status,
    tenders_expired_total,
    track_operation,
)
from tenderflow.kernel.policy import ProcurementPolicy
from tenderflow.kernel.projection_store import SQLiteProjectionStore
from tenderflow.kernel.time import RealTimeProvider, TimeProvider
from tenderflow.tender import commands as tender_commands
from tenderflow.tender import invariants as tender_invariants
from tenderflow.tender.award import AwardCoordinator
from tenderflow.tender.expiry import ExpirySweep, SweepResult
from tenderflow.tender.handlers import TenderCommandHandlers
from tenderflow.tender.models import Tender, TenderStatus
from tenderflow.tender.projections import TenderRegistry

logger = get_logger(__name__)

TENDER_STATUS_BY_EVENT = {
    "TenderCreated": TenderStatus.DRAFT,
    "TenderPublished": TenderStatus.PUBLISHED,
    "TenderClosed": TenderStatus.CLOSED,
    "TenderAwarded": TenderStatus.AWARDED,
    "TenderExpired": TenderStatus.EXPIRED,
}

BID_STATUS_BY_EVENT = {
    "BidDraftCreated": BidStatus.DRAFT,
    "BidSubmitted": BidStatus.SUBMITTED,
    "BidPlacedUnderReview": BidStatus.UNDER_REVIEW,
    "BidAccepted": BidStatus.ACCEPTED,
    "BidRejected": BidStatus.REJECTED,
    "BidWithdrawn": BidStatus.WITHDRAWN,
}


def evaluation_key(tender_id: str) -> str:
    return f"evaluation:{tender_id}"


class Tenderflow:
    """
    Tender/bid workflow façade

    Provides:
    - Tender lifecycle (create, update, publish, close, award)
    - Bid lifecycle (draft, update, review, submit, withdraw, delete,
      reject, accept, hold for review)
    - Bid evaluation with cached reports
    - The expiry sweep (run by kernel.scheduler.PeriodicRunner)
    """

    def __init__(
        self,
        sqlite_path: str | Path,
        policy: ProcurementPolicy | None = None,
        time_provider: TimeProvider | None = None,
        summarizer: Summarizer | None = None,
    ) -> None:
        """
        Args:
            sqlite_path: Path to SQLite database (shared by every process)
            policy: Procurement policy (defaults if None)
            time_provider: Clock (real time if None)
            summarizer: Narrative provider (none configured if None; reports
                carry a missing-key fallback_reason)
        """
        self.sqlite_path = Path(sqlite_path)
        self.policy = policy or ProcurementPolicy()
        self.time_provider = time_provider or RealTimeProvider()
        self.summarizer = summarizer or NullSummarizer(reason=MISSING_API_KEY)

        self.event_store = SQLiteEventStore(self.sqlite_path)
        self.projection_store = SQLiteProjectionStore(self.sqlite_path)

        self.tender_handlers = TenderCommandHandlers(self.time_provider, self.policy)
        self.bid_handlers = BidCommandHandlers(self.time_provider, self.policy)
        self.award_coordinator = AwardCoordinator(self.time_provider)
        self.expiry_sweep = ExpirySweep(self.time_provider)
        self.reviewer = PreSubmitReviewer(self.time_provider, self.policy, self.summarizer)
        self.evaluation_engine = EvaluationEngine(self.summarizer, self.policy, self.time_provider)

        self.tender_registry = TenderRegistry()
        self.bid_registry = BidRegistry()
        self._position = 0
        self._lock = threading.RLock()
        self.last_sweep: SweepResult | None = None

        self._catch_up()

    # ========================================================================
    # Plumbing
    # ========================================================================

    def _catch_up(self) -> None:
        """Apply every event appended since the last call"""
        with self._lock:
            for event in self.event_store.load_since(self._position):
                if event.stream_type == "Tender":
                    self.tender_registry.apply_event(event)
                elif event.stream_type == "Bidder":
                    self.bid_registry.apply_event(event)
                self._position = event.position

    def _command(self, command_type: type[BaseModel], **fields: Any) -> Any:
        """
        Raises:
            ValidationError: Unknown fields or invalid values
        """
        try:
            return command_type(**fields)
        except PydanticValidationError as e:
            problems = [
                f"{'.'.join(str(part) for part in error['loc']) or 'input'}: {error['msg']}"
                for error in e.errors()
            ]
            raise ValidationError(f"Invalid {command_type.__name__}", problems) from e

    def _execute(self, operation: str, plan: Callable[[str], list[Event]]) -> list[Event]:
        """Plan against fresh projections and commit the batch"""
        with self._lock:
            self._catch_up()
            try:
                return self._commit(plan(generate_id()))
            except StateConflictError:
                state_conflicts_total.labels(operation=operation).inc()
                raise

    def _commit(self, events: list[Event]) -> list[Event]:
        """
        Append a planned batch, conditional on every touched stream

        Raises:
            StateConflictError: A touched stream moved since it was read
        """
        grouped: dict[str, list[Event]] = {}
        for event in events:
            grouped.setdefault(event.stream_id, []).append(event)
        writes = [
            StreamWrite(stream_id, stream_events[0].version - 1, stream_events)
            for stream_id, stream_events in grouped.items()
        ]

        try:
            persisted = self.event_store.append_batch(writes)
        except StreamVersionConflict as e:
            self._catch_up()
            raise self._stale_state(e) from e

        self._catch_up()
        self._record_transitions(persisted)
        return persisted

    def _stale_state(self, conflict: StreamVersionConflict) -> StateConflictError:
        tender = self.tender_registry.get(conflict.stream_id)
        if tender is not None:
            return StateConflictError(
                "Tender",
                conflict.stream_id,
                tender["status"],
                message=(
                    f"Tender {conflict.stream_id} changed concurrently "
                    f"(now {tender['status']}); re-read and retry"
                ),
            )
        slot = self.bid_registry.slot(conflict.stream_id) or {}
        bid_id = slot.get("live_bid_id") or conflict.stream_id
        bid = self.bid_registry.get(bid_id) or {}
        return StateConflictError(
            "Bid",
            bid_id,
            bid.get("status"),
            message=f"Bid {bid_id} changed concurrently; re-read and retry",
        )

    def _record_transitions(self, events: list[Event]) -> None:
        for event in events:
            if event.event_type in TENDER_STATUS_BY_EVENT:
                status = TENDER_STATUS_BY_EVENT[event.event_type]
                tender_transitions_total.labels(to_status=status.value).inc()
                logger.info(
                    "Tender transitioned",
                    tender_id=event.stream_id,
                    to_status=status.value,
                    actor_id=event.actor_id,
                )
            elif event.event_type in BID_STATUS_BY_EVENT:
                status = BID_STATUS_BY_EVENT[event.event_type]
                bid_transitions_total.labels(to_status=status.value).inc()
                logger.info(
                    "Bid transitioned",
                    bid_id=event.payload["bid_id"],
                    tender_id=event.payload["tender_id"],
                    to_status=status.value,
                    actor_id=event.actor_id,
                )
        for status, count in self.tender_registry.count_by_status().items():
            tenders_by_status.labels(status=status).set(count)

    # ========================================================================
    # Tender operations
    # ========================================================================

    @track_operation("create_tender")
    def create_tender(self, actor: Actor, **fields: Any) -> Tender:
        """
        Create a DRAFT tender owned by the actor's company

        Args:
            actor: Caller (role must allow posting)
            **fields: title, description, category (required); tags,
                estimated_value, emd_amount, abnormally_low_bid_threshold,
                start_date, end_date (optional)

        Returns:
            The new tender
        """
        command = self._command(tender_commands.CreateTender, **fields)
        events = self._execute(
            "create_tender",
            lambda command_id: self.tender_handlers.handle_create_tender(command, command_id, actor),
        )
        return self.tender_registry.require(events[0].stream_id)

    @track_operation("update_tender")
    def update_tender(self, tender_id: str, actor: Actor, **patch: Any) -> Tender:
        """Patch whitelisted fields of a DRAFT tender"""
        command = self._command(tender_commands.UpdateTender, tender_id=tender_id, **patch)
        self._execute(
            "update_tender",
            lambda command_id: self.tender_handlers.handle_update_tender(
                command, command_id, actor, self.tender_registry
            ),
        )
        return self.tender_registry.require(tender_id)

    @track_operation("publish_tender")
    def publish_tender(self, tender_id: str, actor: Actor) -> Tender:
        command = self._command(tender_commands.PublishTender, tender_id=tender_id)
        self._execute(
            "publish_tender",
            lambda command_id: self.tender_handlers.handle_publish_tender(
                command, command_id, actor, self.tender_registry
            ),
        )
        return self.tender_registry.require(tender_id)

    @track_operation("close_tender")
    def close_tender(self, tender_id: str, actor: Actor) -> Tender:
        """Stop bidding; submitted bids stay pending until award"""
        command = self._command(tender_commands.CloseTender, tender_id=tender_id)
        self._execute(
            "close_tender",
            lambda command_id: self.tender_handlers.handle_close_tender(
                command, command_id, actor, self.tender_registry
            ),
        )
        return self.tender_registry.require(tender_id)

    @track_operation("award_tender")
    def award_tender(self, tender_id: str, winning_bid_id: str, actor: Actor) -> Tender:
        """
        Award a CLOSED tender: winner ACCEPTED, other pending bids REJECTED,
        tender AWARDED, all in one commit

        Raises:
            StateConflictError: Tender not CLOSED (including a lost race
                against a concurrent award)
        """
        command = self._command(
            tender_commands.AwardTender, tender_id=tender_id, winning_bid_id=winning_bid_id
        )
        with LogOperation(logger, "award_tender", tender_id=tender_id, winning_bid_id=winning_bid_id):
            self._execute(
                "award_tender",
                lambda command_id: self.award_coordinator.handle_award_tender(
                    command, command_id, actor, self.tender_registry, self.bid_registry
                ),
            )
        return self.tender_registry.require(tender_id)

    # ========================================================================
    # Bid operations
    # ========================================================================

    @track_operation("create_bid_draft")
    def create_bid_draft(self, tender_id: str, actor: Actor, **fields: Any) -> Bid:
        """
        Open the actor's company bid on a PUBLISHED tender

        Raises:
            EligibilityError: The company withdrew a bid on this tender
            ConflictError: The company already has a bid on this tender
        """
        command = self._command(bid_commands.CreateBidDraft, tender_id=tender_id, **fields)
        try:
            events = self._execute(
                "create_bid_draft",
                lambda command_id: self.bid_handlers.handle_create_bid_draft(
                    command, command_id, actor, self.tender_registry, self.bid_registry
                ),
            )
        except StateConflictError:
            # a concurrent writer took the slot; report why it is taken
            if actor.company_id:
                bid_invariants.validate_slot_available(
                    self.bid_registry.slot(bidder_stream_id(tender_id, actor.company_id)),
                    tender_id,
                    actor.company_id,
                )
            raise
        return self.bid_registry.require(events[0].payload["bid_id"])

    @track_operation("update_bid_draft")
    def update_bid_draft(self, bid_id: str, actor: Actor, **patch: Any) -> Bid:
        """
        Patch a DRAFT bid

        Args:
            bid_id: Bid to update
            actor: Bidding company member
            **patch: amount, delivery_days, valid_till, notes,
                emd_transaction_id, emd_payment_mode, emd_receipt,
                kept_technical_doc_ids, kept_financial_doc_ids,
                new_technical_docs, new_financial_docs
        """
        command = self._command(bid_commands.UpdateBidDraft, bid_id=bid_id, **patch)
        self._execute(
            "update_bid_draft",
            lambda command_id: self.bid_handlers.handle_update_bid_draft(
                command, command_id, actor, self.tender_registry, self.bid_registry
            ),
        )
        return self.bid_registry.require(bid_id)

    @track_operation("pre_submit_review")
    def pre_submit_review(self, bid_id: str, actor: Actor) -> ReadinessReview:
        """Readiness checklist and advisory text for a DRAFT bid (no mutation)"""
        command = self._command(bid_commands.ReviewBid, bid_id=bid_id)
        with self._lock:
            self._catch_up()
            return self.reviewer.handle_review_bid(
                command, actor, self.tender_registry, self.bid_registry
            )

    @track_operation("submit_bid")
    def submit_bid(self, bid_id: str, actor: Actor) -> Bid:
        command = self._command(bid_commands.SubmitBid, bid_id=bid_id)
        self._execute(
            "submit_bid",
            lambda command_id: self.bid_handlers.handle_submit_bid(
                command, command_id, actor, self.tender_registry, self.bid_registry
            ),
        )
        return self.bid_registry.require(bid_id)

    @track_operation("withdraw_bid")
    def withdraw_bid(self, bid_id: str, actor: Actor, reason: str | None = None) -> Bid:
        """Withdraw permanently; the company can never bid on this tender again"""
        command = self._command(bid_commands.WithdrawBid, bid_id=bid_id, reason=reason)
        self._execute(
            "withdraw_bid",
            lambda command_id: self.bid_handlers.handle_withdraw_bid(
                command, command_id, actor, self.tender_registry, self.bid_registry
            ),
        )
        return self.bid_registry.require(bid_id)

    @track_operation("delete_bid_draft")
    def delete_bid_draft(self, bid_id: str, actor: Actor) -> None:
        """Discard a DRAFT (the company may start a new one)"""
        command = self._command(bid_commands.DeleteBidDraft, bid_id=bid_id)
        self._execute(
            "delete_bid_draft",
            lambda command_id: self.bid_handlers.handle_delete_bid_draft(
                command, command_id, actor, self.tender_registry, self.bid_registry
            ),
        )

    @track_operation("reject_bid")
    def reject_bid(self, bid_id: str, actor: Actor, reason: str | None = None) -> Bid:
        command = self._command(bid_commands.RejectBid, bid_id=bid_id, reason=reason)
        self._execute(
            "reject_bid",
            lambda command_id: self.bid_handlers.handle_reject_bid(
                command, command_id, actor, self.tender_registry, self.bid_registry
            ),
        )
        return self.bid_registry.require(bid_id)

    def accept_bid(self, bid_id: str, actor: Actor) -> Bid:
        """Accept a bid by awarding its tender to it (see award_tender)"""
        bid = self.get_bid(bid_id)
        self.award_tender(bid.tender_id, bid_id, actor)
        return self.bid_registry.require(bid_id)

    @track_operation("mark_bid_under_review")
    def mark_bid_under_review(self, bid_id: str, actor: Actor) -> Bid:
        command = self._command(bid_commands.MarkBidUnderReview, bid_id=bid_id)
        self._execute(
            "mark_bid_under_review",
            lambda command_id: self.bid_handlers.handle_mark_bid_under_review(
                command, command_id, actor, self.tender_registry, self.bid_registry
            ),
        )
        return self.bid_registry.require(bid_id)

    # ========================================================================
    # Evaluation
    # ========================================================================

    @track_operation("analyze_bids")
    def analyze_bids(self, tender_id: str, actor: Actor) -> EvaluationReport:
        """
        Evaluate the tender's bids and cache the report

        Read-only with respect to the lifecycle: no tender or bid changes.
        The cached report is replaced by the next analysis.
        """
        with self._lock:
            self._catch_up()
            tender = self.tender_registry.require(tender_id)
            tender_invariants.validate_tender_owner(actor, tender, "analyze bids on")
            bids = self.bid_registry.for_tender(tender_id)
            position = self._position

        with LogOperation(logger, "analyze_bids", tender_id=tender_id, bid_count=len(bids)):
            report = self.evaluation_engine.analyze(tender, bids)

        self.projection_store.save(
            evaluation_key(tender_id), report.model_dump(mode="json"), position=position
        )
        return report

    def get_cached_evaluation(self, tender_id: str) -> EvaluationReport | None:
        state = self.projection_store.load_state(evaluation_key(tender_id))
        return EvaluationReport.model_validate(state) if state else None

    # ========================================================================
    # Expiry sweep
    # ========================================================================

    def run_expiry_sweep(self) -> SweepResult:
        """
        Expire every PUBLISHED tender past its end_date and reject its
        pending bids

        Tenders that changed concurrently are skipped and left for the next
        run. Non-overlap of runs is the scheduler's job (PeriodicRunner).
        """
        result = SweepResult(swept_at=self.time_provider.now())
        with LogOperation(logger, "expiry_sweep"), sweep_duration_seconds.time():
            with self._lock:
                self._catch_up()
                batches = self.expiry_sweep.plan(self.tender_registry, self.bid_registry)
                for batch in batches:
                    expired = batch[-1]
                    try:
                        self._commit(batch)
                    except StateConflictError as e:
                        state_conflicts_total.labels(operation="expiry_sweep").inc()
                        logger.warning(
                            "Tender changed during sweep, skipping",
                            tender_id=expired.stream_id,
                            error=str(e),
                        )
                        result.skipped_tender_ids.append(expired.stream_id)
                        continue
                    result.expired_tender_ids.append(expired.stream_id)
                    result.rejected_bid_ids.extend(expired.payload["rejected_bid_ids"])

        tenders_expired_total.inc(len(result.expired_tender_ids))
        logger.info(
            "Expiry sweep finished",
            expired=len(result.expired_tender_ids),
            rejected_bids=len(result.rejected_bid_ids),
            skipped=len(result.skipped_tender_ids),
        )
        self.last_sweep = result
        return result

    # ========================================================================
    # Queries
    # ========================================================================

    def get_tender(self, tender_id: str) -> Tender:
        with self._lock:
            self._catch_up()
            return self.tender_registry.require(tender_id)

    def get_bid(self, bid_id: str, actor: Actor | None = None) -> Bid:
        """
        Look up a bid; with an actor, only the bidding company, the tender
        owner and elevated roles can see it

        Raises:
            NotFoundError: Unknown bid, or not visible to the actor
        """
        with self._lock:
            self._catch_up()
            bid = self.bid_registry.require(bid_id)
            if actor is None or actor.is_elevated or actor.acts_for(bid.bidder_company):
                return bid
            tender = self.tender_registry.require(bid.tender_id)
            if actor.acts_for(tender.owner_company):
                return bid
            raise NotFoundError("Bid", bid_id)

    def list_tenders(
        self,
        status: TenderStatus | str | None = None,
        owner_company: str | None = None,
    ) -> list[Tender]:
        with self._lock:
            self._catch_up()
            return self.tender_registry.list_tenders(
                status=TenderStatus(status) if status else None,
                owner_company=owner_company,
            )

    def list_bids(
        self,
        tender_id: str | None = None,
        company_id: str | None = None,
    ) -> list[Bid]:
        """Bids of a tender and/or a company, in creation order"""
        with self._lock:
            self._catch_up()
            if tender_id:
                bids = self.bid_registry.for_tender(tender_id)
                if company_id:
                    bids = [bid for bid in bids if bid.bidder_company == company_id]
                return bids
            if company_id:
                return self.bid_registry.for_company(company_id)
            return [self.bid_registry.require(bid_id) for bid_id in self.bid_registry.bids]

    def stats(self) -> dict[str, Any]:
        """Store and lifecycle counts (used by the health server)"""
        with self._lock:
            self._catch_up()
            return {
                "event_count": self.event_store.count_events(),
                "stream_count": self.event_store.count_streams(),
                "tenders_by_status": self.tender_registry.count_by_status(),
                "bid_count": len(self.bid_registry.bids),
                "last_sweep": self.last_sweep.model_dump(mode="json") if self.last_sweep else None,
            }
