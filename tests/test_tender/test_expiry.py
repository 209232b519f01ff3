"""
Tests for the expiry sweep

A PUBLISHED tender past its end_date becomes EXPIRED and its pending bids
are rejected together with it. The sweep has no human actor.
"""

import pytest

from tenderflow.bid.models import BidStatus
from tenderflow.flow import Tenderflow
from tenderflow.kernel.actors import SYSTEM_ACTOR, Actor
from tenderflow.kernel.errors import StateConflictError
from tenderflow.tender.models import TenderStatus
from tests.helpers import complete_bid_fields


def test_sweep_before_deadline_does_nothing(flow: Tenderflow, published_tender, test_time) -> None:
    test_time.advance(days=30)  # exactly at end_date: not yet past it

    result = flow.run_expiry_sweep()

    assert result.expired_tender_ids == []
    assert flow.get_tender(published_tender.tender_id).status == TenderStatus.PUBLISHED


def test_sweep_expires_tender_and_rejects_pending_bids(
    flow: Tenderflow, published_tender, submitted_bids, bidder_c: Actor, test_time
) -> None:
    tender_id = published_tender.tender_id
    draft = flow.create_bid_draft(tender_id, bidder_c, amount="70000")
    test_time.advance(days=31)

    result = flow.run_expiry_sweep()

    assert result.expired_tender_ids == [tender_id]
    assert sorted(result.rejected_bid_ids) == sorted(bid.bid_id for bid in submitted_bids)
    assert result.skipped_tender_ids == []
    assert result.swept_at == test_time.now()

    tender = flow.get_tender(tender_id)
    assert tender.status == TenderStatus.EXPIRED
    assert tender.expired_at == test_time.now()
    for bid in submitted_bids:
        rejected = flow.get_bid(bid.bid_id)
        assert rejected.status == BidStatus.REJECTED
        assert rejected.decided_by == SYSTEM_ACTOR.actor_id
    assert flow.get_bid(draft.bid_id).status == BidStatus.DRAFT


def test_sweep_is_one_commit_per_tender(flow: Tenderflow, published_tender, submitted_bids, test_time) -> None:
    before = flow.event_store.count_events()
    test_time.advance(days=31)

    flow.run_expiry_sweep()

    swept = flow.event_store.load_since(0)[before:]
    assert [event.event_type for event in swept] == ["BidRejected", "BidRejected", "TenderExpired"]
    assert len({event.command_id for event in swept}) == 1
    assert all(event.actor_id == SYSTEM_ACTOR.actor_id for event in swept)


def test_second_sweep_is_a_no_op(flow: Tenderflow, published_tender, test_time) -> None:
    test_time.advance(days=31)
    flow.run_expiry_sweep()
    events_after_first = flow.event_store.count_events()

    result = flow.run_expiry_sweep()

    assert result.expired_tender_ids == []
    assert flow.event_store.count_events() == events_after_first
    assert flow.last_sweep is result


def test_sweep_ignores_closed_and_draft_tenders(
    flow: Tenderflow, published_tender, draft_tender, buyer: Actor, test_time
) -> None:
    """Only PUBLISHED tenders expire; a DRAFT and a CLOSED tender past end_date stay put"""
    other = flow.create_tender(
        buyer,
        title="Bridge repair",
        description="D",
        category="works",
        estimated_value="5000",
        end_date=published_tender.end_date,
    )
    flow.close_tender(published_tender.tender_id, buyer)
    test_time.advance(days=31)

    result = flow.run_expiry_sweep()

    assert result.expired_tender_ids == []
    assert flow.get_tender(other.tender_id).status == TenderStatus.DRAFT
    assert flow.get_tender(published_tender.tender_id).status == TenderStatus.CLOSED


def test_expired_tender_takes_no_more_bids(
    flow: Tenderflow, published_tender, bidder_a: Actor, test_time
) -> None:
    test_time.advance(days=31)
    flow.run_expiry_sweep()

    with pytest.raises(StateConflictError):
        flow.create_bid_draft(published_tender.tender_id, bidder_a, **complete_bid_fields("90000", 30))


def test_tender_closed_after_planning_is_skipped(
    flow: Tenderflow, published_tender, submitted_bids, buyer: Actor, temp_db, test_time
) -> None:
    """The owner closes the tender between planning and commit: the sweep yields"""
    test_time.advance(days=31)
    batches = flow.expiry_sweep.plan(flow.tender_registry, flow.bid_registry)
    assert len(batches) == 1

    other = Tenderflow(temp_db, time_provider=test_time)
    other.close_tender(published_tender.tender_id, buyer)

    with pytest.raises(StateConflictError):
        flow._commit(batches[0])

    assert flow.get_tender(published_tender.tender_id).status == TenderStatus.CLOSED
    statuses = {bid.status for bid in flow.list_bids(published_tender.tender_id)}
    assert statuses == {BidStatus.SUBMITTED}

