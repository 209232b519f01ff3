"""
Expiry Sweep

The only component that moves tenders without a human actor. Every PUBLISHED
tender whose end_date has passed becomes EXPIRED and its pending bids are
rejected. Each tender is planned as its own batch, so a tender that changed
under the sweep (e.g. closed by its owner a moment earlier) only skips that
tender; it is picked up again on the next run if still due.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from tenderflow.bid import events as bid_events
from tenderflow.bid.handlers import bid_event
from tenderflow.bid.models import PENDING_BID_STATUSES
from tenderflow.bid.projections import BidRegistry
from tenderflow.kernel.actors import SYSTEM_ACTOR
from tenderflow.kernel.events import Event
from tenderflow.kernel.ids import generate_id
from tenderflow.kernel.time import TimeProvider
from tenderflow.tender import events
from tenderflow.tender.handlers import tender_event
from tenderflow.tender.models import Tender
from tenderflow.tender.projections import TenderRegistry


class SweepResult(BaseModel):
    """Outcome of one sweep run"""

    swept_at: datetime
    expired_tender_ids: list[str] = Field(default_factory=list)
    rejected_bid_ids: list[str] = Field(default_factory=list)
    skipped_tender_ids: list[str] = Field(
        default_factory=list,
        description="Tenders that changed concurrently; retried next run",
    )


class ExpirySweep:
    """Plans expiry batches for overdue tenders"""

    def __init__(self, time_provider: TimeProvider):
        self.time_provider = time_provider

    def plan(
        self,
        tender_registry: TenderRegistry,
        bid_registry: BidRegistry,
    ) -> list[list[Event]]:
        """
        One batch per overdue tender

        Returns:
            Batches of [BidRejected..., TenderExpired]
        """
        now = self.time_provider.now()
        return [
            self._plan_tender(tender, bid_registry, now)
            for tender in tender_registry.list_past_deadline(now)
        ]

    def _plan_tender(self, tender: Tender, bid_registry: BidRegistry, now: datetime) -> list[Event]:
        command_id = generate_id()
        pending = bid_registry.for_tender(tender.tender_id, PENDING_BID_STATUSES)

        batch = [
            bid_event(
                bid.stream_id,
                event_type="BidRejected",
                payload=bid_events.BidRejected(
                    bid_id=bid.bid_id,
                    tender_id=tender.tender_id,
                    bidder_company=bid.bidder_company,
                    cause="expiry",
                    reason="Tender expired before award",
                    rejected_at=now,
                    rejected_by=SYSTEM_ACTOR.actor_id,
                ).model_dump(mode="json"),
                occurred_at=now,
                command_id=command_id,
                actor_id=SYSTEM_ACTOR.actor_id,
                version=bid_registry.stream_version(bid.stream_id) + 1,
            )
            for bid in pending
        ]
        batch.append(
            tender_event(
                tender,
                tender_id=tender.tender_id,
                event_type="TenderExpired",
                payload=events.TenderExpired(
                    tender_id=tender.tender_id,
                    end_date=tender.end_date,
                    rejected_bid_ids=[bid.bid_id for bid in pending],
                    expired_at=now,
                ).model_dump(mode="json"),
                occurred_at=now,
                command_id=command_id,
                actor_id=SYSTEM_ACTOR.actor_id,
            )
        )
        return batch
