"""
Award Coordinator

The one operation that moves a tender and several bids together: the winner
becomes ACCEPTED, every other pending bid REJECTED and the tender AWARDED.

All events are returned as one batch. The façade commits it with a version
check on every touched stream (the tender and each bidder stream), so:
- two concurrent awards both read the tender at version N; only one commit
  finds it still at N, the other gets a stale-state conflict
- a bid withdrawn or rejected between read and commit moves its stream and
  sinks the whole award rather than leaving it half applied
"""

from tenderflow.bid import events as bid_events
from tenderflow.bid import invariants as bid_invariants
from tenderflow.bid.handlers import bid_event
from tenderflow.bid.models import PENDING_BID_STATUSES
from tenderflow.bid.projections import BidRegistry
from tenderflow.kernel.actors import Actor
from tenderflow.kernel.events import Event
from tenderflow.kernel.logging import get_logger
from tenderflow.kernel.time import TimeProvider
from tenderflow.tender import commands, events, invariants
from tenderflow.tender.handlers import tender_event
from tenderflow.tender.models import TenderStatus
from tenderflow.tender.projections import TenderRegistry

logger = get_logger(__name__)


class AwardCoordinator:
    """Plans the atomic award batch"""

    def __init__(self, time_provider: TimeProvider):
        self.time_provider = time_provider

    def handle_award_tender(
        self,
        command: commands.AwardTender,
        command_id: str,
        actor: Actor,
        tender_registry: TenderRegistry,
        bid_registry: BidRegistry,
    ) -> list[Event]:
        """
        Build the award batch

        Args:
            command: AwardTender command
            command_id: Command ID shared by every event of the batch
            actor: Tender owner (or elevated role)
            tender_registry: Tender projection
            bid_registry: Bid projection

        Returns:
            BidAccepted, one BidRejected per losing pending bid, TenderAwarded

        Raises:
            NotFoundError: Unknown tender or bid
            AuthorizationError: Not the tender owner
            ValidationError: Bid belongs to another tender
            StateConflictError: Tender not CLOSED, or winning bid not pending
        """
        now = self.time_provider.now()
        tender = tender_registry.require(command.tender_id)
        winner = bid_registry.require(command.winning_bid_id)

        invariants.validate_tender_owner(actor, tender, "award")
        bid_invariants.validate_bid_of_tender(winner, tender.tender_id)

        invariants.validate_transition(tender, TenderStatus.AWARDED)
        bid_invariants.validate_bid_status(winner, *sorted(PENDING_BID_STATUSES))

        losers = [
            bid
            for bid in bid_registry.for_tender(tender.tender_id, PENDING_BID_STATUSES)
            if bid.bid_id != winner.bid_id
        ]

        batch: list[Event] = [
            bid_event(
                winner.stream_id,
                event_type="BidAccepted",
                payload=bid_events.BidAccepted(
                    bid_id=winner.bid_id,
                    tender_id=tender.tender_id,
                    bidder_company=winner.bidder_company,
                    accepted_at=now,
                    accepted_by=actor.actor_id,
                ).model_dump(mode="json"),
                occurred_at=now,
                command_id=command_id,
                actor_id=actor.actor_id,
                version=bid_registry.stream_version(winner.stream_id) + 1,
            )
        ]

        for loser in losers:
            batch.append(
                bid_event(
                    loser.stream_id,
                    event_type="BidRejected",
                    payload=bid_events.BidRejected(
                        bid_id=loser.bid_id,
                        tender_id=tender.tender_id,
                        bidder_company=loser.bidder_company,
                        cause="award",
                        reason=f"Tender awarded to bid {winner.bid_id}",
                        rejected_at=now,
                        rejected_by=actor.actor_id,
                    ).model_dump(mode="json"),
                    occurred_at=now,
                    command_id=command_id,
                    actor_id=actor.actor_id,
                    version=bid_registry.stream_version(loser.stream_id) + 1,
                )
            )

        batch.append(
            tender_event(
                tender,
                tender_id=tender.tender_id,
                event_type="TenderAwarded",
                payload=events.TenderAwarded(
                    tender_id=tender.tender_id,
                    winning_bid_id=winner.bid_id,
                    winning_company=winner.bidder_company,
                    rejected_bid_ids=[bid.bid_id for bid in losers],
                    awarded_at=now,
                    awarded_by=actor.actor_id,
                ).model_dump(mode="json"),
                occurred_at=now,
                command_id=command_id,
                actor_id=actor.actor_id,
            )
        )

        logger.debug(
            "Award planned",
            tender_id=tender.tender_id,
            winning_bid_id=winner.bid_id,
            rejected_count=len(losers),
        )
        return batch
