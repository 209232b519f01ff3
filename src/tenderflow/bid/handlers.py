"""
Bid Command Handlers

Transform bid commands into events on the bidder stream of the (tender,
company) pair. Check order in every handler: lookups, input validation,
authorization, then state checks last.

Because a company's drafts, submissions and withdrawals for one tender all
share one stream, two racing create_draft calls both compute version N+1 and
the store lets exactly one of them in.
"""

from datetime import datetime

from tenderflow.bid import commands, events, invariants
from tenderflow.bid.models import Bid, BidStatus
from tenderflow.bid.projections import BidRegistry
from tenderflow.kernel.actors import Actor
from tenderflow.kernel.errors import ValidationError
from tenderflow.kernel.events import Event, create_event
from tenderflow.kernel.ids import bidder_stream_id, generate_id
from tenderflow.kernel.policy import ProcurementPolicy
from tenderflow.kernel.time import TimeProvider
from tenderflow.tender import events as tender_events
from tenderflow.tender import invariants as tender_invariants
from tenderflow.tender.handlers import tender_event
from tenderflow.tender.models import TenderStatus
from tenderflow.tender.projections import TenderRegistry

BIDDER_STREAM = "Bidder"


def bid_event(
    stream_id: str,
    *,
    event_type: str,
    payload: dict,
    occurred_at: datetime,
    command_id: str,
    actor_id: str | None,
    version: int,
) -> Event:
    return create_event(
        event_id=generate_id(),
        event_type=event_type,
        stream_id=stream_id,
        stream_type=BIDDER_STREAM,
        occurred_at=occurred_at,
        actor_id=actor_id,
        command_id=command_id,
        payload=payload,
        version=version,
    )


class BidCommandHandlers:
    """
    Command handlers for the bid lifecycle

    Acceptance is not here: a bid only becomes ACCEPTED through the award
    coordinator, together with the tender and every losing bid.
    """

    def __init__(self, time_provider: TimeProvider, policy: ProcurementPolicy):
        self.time_provider = time_provider
        self.policy = policy

    def handle_create_bid_draft(
        self,
        command: commands.CreateBidDraft,
        command_id: str,
        actor: Actor,
        tender_registry: TenderRegistry,
        bid_registry: BidRegistry,
    ) -> list[Event]:
        """
        Open the actor's company bid on a tender

        Raises:
            NotFoundError: Unknown tender
            AuthorizationError: Role can't bid, or bidding on own tender
            EligibilityError: Company withdrew a bid on this tender before
            ConflictError: Company already has a bid on this tender
            StateConflictError: Tender not PUBLISHED
        """
        now = self.time_provider.now()
        tender = tender_registry.require(command.tender_id)
        invariants.validate_can_bid(actor, tender)

        stream_id = bidder_stream_id(tender.tender_id, actor.company_id)
        invariants.validate_slot_available(
            bid_registry.slot(stream_id), tender.tender_id, actor.company_id
        )
        tender_invariants.validate_open_for_bidding(tender)

        bid_id = generate_id()
        payload = events.BidDraftCreated(
            bid_id=bid_id,
            tender_id=tender.tender_id,
            bidder_company=actor.company_id,
            submitted_by=actor.actor_id,
            amount=command.amount,
            delivery_days=command.delivery_days,
            valid_till=command.valid_till,
            notes=command.notes,
            technical_docs=command.technical_docs,
            financial_docs=command.financial_docs,
            emd_payment_proof=command.emd_payment_proof,
            created_at=now,
        ).model_dump(mode="json")

        return [
            bid_event(
                stream_id,
                event_type="BidDraftCreated",
                payload=payload,
                occurred_at=now,
                command_id=command_id,
                actor_id=actor.actor_id,
                version=bid_registry.stream_version(stream_id) + 1,
            )
        ]

    def handle_update_bid_draft(
        self,
        command: commands.UpdateBidDraft,
        command_id: str,
        actor: Actor,
        tender_registry: TenderRegistry,
        bid_registry: BidRegistry,
    ) -> list[Event]:
        """
        Merge whitelisted fields into a DRAFT and reconcile its envelopes

        Raises:
            NotFoundError: Unknown bid
            ValidationError: Empty patch
            AuthorizationError: Not the bidding company
            StateConflictError: Bid not DRAFT or tender not PUBLISHED
        """
        now = self.time_provider.now()
        bid = bid_registry.require(command.bid_id)
        tender = tender_registry.require(bid.tender_id)

        changes = command.scalar_changes()

        emd_changes = command.emd_changes()
        if emd_changes:
            proof = bid.emd_payment_proof.model_copy(
                update={
                    field.removeprefix("emd_"): getattr(command, field)
                    for field in emd_changes
                }
            )
            changes["emd_payment_proof"] = proof.model_dump(mode="json")

        if command.touches_documents():
            technical = invariants.reconcile_documents(
                bid.technical_docs, command.kept_technical_doc_ids, command.new_technical_docs
            )
            financial = invariants.reconcile_documents(
                bid.financial_docs, command.kept_financial_doc_ids, command.new_financial_docs
            )
            changes["technical_docs"] = [doc.model_dump(mode="json") for doc in technical]
            changes["financial_docs"] = [doc.model_dump(mode="json") for doc in financial]

        if not changes:
            raise ValidationError("Nothing to update")
        invariants.validate_bid_owner(actor, bid, "update")

        invariants.validate_bid_status(bid, BidStatus.DRAFT)
        tender_invariants.validate_open_for_bidding(tender)

        payload = events.BidDraftUpdated(
            bid_id=bid.bid_id,
            tender_id=bid.tender_id,
            bidder_company=bid.bidder_company,
            changes=changes,
            updated_at=now,
            updated_by=actor.actor_id,
        ).model_dump(mode="json")

        return [self._next_event(bid, bid_registry, "BidDraftUpdated", payload, now, command_id, actor)]

    def handle_submit_bid(
        self,
        command: commands.SubmitBid,
        command_id: str,
        actor: Actor,
        tender_registry: TenderRegistry,
        bid_registry: BidRegistry,
    ) -> list[Event]:
        """
        Submit a complete DRAFT

        Emits BidSubmitted on the bidder stream and TenderBidReceived on the
        tender stream; both commit together, so a concurrent close or
        expiry of the tender makes the submit lose instead of landing late.

        Raises:
            NotFoundError: Unknown bid
            AuthorizationError: Not the bidding company
            ValidationError: Missing amount/delivery, empty envelope, or no EMD receipt
            StateConflictError: Bid not DRAFT or tender not PUBLISHED
        """
        now = self.time_provider.now()
        bid = bid_registry.require(command.bid_id)
        tender = tender_registry.require(bid.tender_id)

        invariants.validate_bid_owner(actor, bid, "submit")
        invariants.validate_submittable(bid)

        invariants.validate_bid_status(bid, BidStatus.DRAFT)
        tender_invariants.validate_open_for_bidding(tender)

        anomaly_score, ai_notes = invariants.compute_anomaly(
            bid.amount,
            tender.estimated_value,
            self.policy.anomaly_ratio,
            self.policy.anomaly_score,
        )

        payload = events.BidSubmitted(
            bid_id=bid.bid_id,
            tender_id=bid.tender_id,
            bidder_company=bid.bidder_company,
            anomaly_score=anomaly_score,
            ai_notes=ai_notes,
            submitted_at=now,
            submitted_by=actor.actor_id,
        ).model_dump(mode="json")

        received = tender_events.TenderBidReceived(
            tender_id=tender.tender_id,
            bid_id=bid.bid_id,
            company_id=bid.bidder_company,
            received_at=now,
        ).model_dump(mode="json")

        return [
            self._next_event(bid, bid_registry, "BidSubmitted", payload, now, command_id, actor),
            tender_event(
                tender,
                tender_id=tender.tender_id,
                event_type="TenderBidReceived",
                payload=received,
                occurred_at=now,
                command_id=command_id,
                actor_id=actor.actor_id,
            ),
        ]

    def handle_withdraw_bid(
        self,
        command: commands.WithdrawBid,
        command_id: str,
        actor: Actor,
        tender_registry: TenderRegistry,
        bid_registry: BidRegistry,
    ) -> list[Event]:
        """
        Withdraw a bid from any status except WITHDRAWN

        Permanent: the company's slot on the tender is disqualified.

        Raises:
            NotFoundError: Unknown bid
            AuthorizationError: Not the bidding company
            StateConflictError: Already withdrawn
        """
        now = self.time_provider.now()
        bid = bid_registry.require(command.bid_id)

        invariants.validate_bid_owner(actor, bid, "withdraw")
        invariants.validate_transition(bid, BidStatus.WITHDRAWN)

        payload = events.BidWithdrawn(
            bid_id=bid.bid_id,
            tender_id=bid.tender_id,
            bidder_company=bid.bidder_company,
            previous_status=bid.status.value,
            reason=command.reason,
            withdrawn_at=now,
            withdrawn_by=actor.actor_id,
        ).model_dump(mode="json")

        return [self._next_event(bid, bid_registry, "BidWithdrawn", payload, now, command_id, actor)]

    def handle_delete_bid_draft(
        self,
        command: commands.DeleteBidDraft,
        command_id: str,
        actor: Actor,
        tender_registry: TenderRegistry,
        bid_registry: BidRegistry,
    ) -> list[Event]:
        """
        Discard a DRAFT while the tender is open (does not disqualify)

        Raises:
            NotFoundError: Unknown bid
            AuthorizationError: Not the bidding company
            StateConflictError: Bid not DRAFT or tender not PUBLISHED
        """
        now = self.time_provider.now()
        bid = bid_registry.require(command.bid_id)
        tender = tender_registry.require(bid.tender_id)

        invariants.validate_bid_owner(actor, bid, "delete")
        invariants.validate_bid_status(bid, BidStatus.DRAFT)
        tender_invariants.validate_open_for_bidding(tender)

        payload = events.BidDraftDiscarded(
            bid_id=bid.bid_id,
            tender_id=bid.tender_id,
            bidder_company=bid.bidder_company,
            discarded_at=now,
            discarded_by=actor.actor_id,
        ).model_dump(mode="json")

        return [self._next_event(bid, bid_registry, "BidDraftDiscarded", payload, now, command_id, actor)]

    def handle_reject_bid(
        self,
        command: commands.RejectBid,
        command_id: str,
        actor: Actor,
        tender_registry: TenderRegistry,
        bid_registry: BidRegistry,
    ) -> list[Event]:
        """
        Tender owner rejects a single pending bid

        Raises:
            NotFoundError: Unknown bid
            AuthorizationError: Not the tender owner
            StateConflictError: Tender not PUBLISHED/CLOSED or bid not pending
        """
        now = self.time_provider.now()
        bid = bid_registry.require(command.bid_id)
        tender = tender_registry.require(bid.tender_id)

        tender_invariants.validate_tender_owner(actor, tender, "reject bids on")
        tender_invariants.validate_tender_status(tender, TenderStatus.PUBLISHED, TenderStatus.CLOSED)
        invariants.validate_bid_status(bid, BidStatus.SUBMITTED, BidStatus.UNDER_REVIEW)

        payload = events.BidRejected(
            bid_id=bid.bid_id,
            tender_id=bid.tender_id,
            bidder_company=bid.bidder_company,
            cause="manual",
            reason=command.reason,
            rejected_at=now,
            rejected_by=actor.actor_id,
        ).model_dump(mode="json")

        return [self._next_event(bid, bid_registry, "BidRejected", payload, now, command_id, actor)]

    def handle_mark_bid_under_review(
        self,
        command: commands.MarkBidUnderReview,
        command_id: str,
        actor: Actor,
        tender_registry: TenderRegistry,
        bid_registry: BidRegistry,
    ) -> list[Event]:
        """
        Tender owner puts a SUBMITTED bid on administrative hold

        Raises:
            NotFoundError: Unknown bid
            AuthorizationError: Not the tender owner
            StateConflictError: Tender not PUBLISHED/CLOSED or bid not SUBMITTED
        """
        now = self.time_provider.now()
        bid = bid_registry.require(command.bid_id)
        tender = tender_registry.require(bid.tender_id)

        tender_invariants.validate_tender_owner(actor, tender, "review bids on")
        tender_invariants.validate_tender_status(tender, TenderStatus.PUBLISHED, TenderStatus.CLOSED)
        invariants.validate_bid_status(bid, BidStatus.SUBMITTED)

        payload = events.BidPlacedUnderReview(
            bid_id=bid.bid_id,
            tender_id=bid.tender_id,
            bidder_company=bid.bidder_company,
            reviewed_at=now,
            reviewed_by=actor.actor_id,
        ).model_dump(mode="json")

        return [self._next_event(bid, bid_registry, "BidPlacedUnderReview", payload, now, command_id, actor)]

    def _next_event(
        self,
        bid: Bid,
        bid_registry: BidRegistry,
        event_type: str,
        payload: dict,
        now: datetime,
        command_id: str,
        actor: Actor,
    ) -> Event:
        return bid_event(
            bid.stream_id,
            event_type=event_type,
            payload=payload,
            occurred_at=now,
            command_id=command_id,
            actor_id=actor.actor_id,
            version=bid_registry.stream_version(bid.stream_id) + 1,
        )
