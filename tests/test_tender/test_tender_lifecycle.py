"""
Tests for the tender lifecycle

DRAFT → PUBLISHED → CLOSED → AWARDED, or PUBLISHED → EXPIRED. Status only
ever moves forward, and only the owning company runs its tender.
"""

import builtins
from datetime import datetime, timezone

import pytest

from tenderflow.bid.projections import BidRegistry
from tenderflow.flow import Tenderflow
from tenderflow.kernel.actors import Actor, Role
from tenderflow.kernel.errors import (
    AuthorizationError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from tenderflow.tender.models import TenderStatus
from tenderflow.tender.projections import TenderRegistry


def test_create_tender_defaults(flow: Tenderflow, draft_tender, buyer: Actor) -> None:
    assert draft_tender.status == TenderStatus.DRAFT
    assert draft_tender.owner_company == buyer.company_id
    assert draft_tender.created_by == buyer.actor_id
    assert draft_tender.abnormally_low_bid_threshold == 20.0
    assert draft_tender.tags == ["roads", "asphalt"]
    assert draft_tender.version == 1


def test_create_tender_requires_posting_role(flow: Tenderflow) -> None:
    bidder = Actor(actor_id="bob", company_id="alpha-works", role=Role.BIDDER)

    with pytest.raises(AuthorizationError):
        flow.create_tender(bidder, title="T", description="D", category="works")


def test_create_tender_requires_company(flow: Tenderflow) -> None:
    poster = Actor(actor_id="eve", company_id=None, role=Role.TENDER_POSTER)

    with pytest.raises(AuthorizationError):
        flow.create_tender(poster, title="T", description="D", category="works")


def test_create_tender_rejects_unknown_fields(flow: Tenderflow, buyer: Actor) -> None:
    """Fields outside the whitelist (status, owner, ...) are refused"""
    with pytest.raises(ValidationError) as exc_info:
        flow.create_tender(
            buyer, title="T", description="D", category="works", status="AWARDED"
        )

    assert any("status" in problem for problem in exc_info.value.problems)


def test_create_tender_requires_title(flow: Tenderflow, buyer: Actor) -> None:
    with pytest.raises(ValidationError):
        flow.create_tender(buyer, title="   ", description="D", category="works")


def test_create_tender_rejects_inverted_dates(flow: Tenderflow, buyer: Actor) -> None:
    with pytest.raises(ValidationError):
        flow.create_tender(
            buyer,
            title="T",
            description="D",
            category="works",
            start_date=datetime(2025, 3, 1, tzinfo=timezone.utc),
            end_date=datetime(2025, 2, 1, tzinfo=timezone.utc),
        )


def test_update_draft(flow: Tenderflow, draft_tender, buyer: Actor) -> None:
    updated = flow.update_tender(draft_tender.tender_id, buyer, title="Ring road resurfacing")

    assert updated.title == "Ring road resurfacing"
    assert updated.description == draft_tender.description
    assert updated.version == 2


def test_update_by_other_company_is_refused(flow: Tenderflow, draft_tender, bidder_c: Actor) -> None:
    with pytest.raises(AuthorizationError):
        flow.update_tender(draft_tender.tender_id, bidder_c, title="Hijacked")


def test_update_after_publish_is_a_state_conflict(flow: Tenderflow, published_tender, buyer: Actor) -> None:
    with pytest.raises(StateConflictError):
        flow.update_tender(published_tender.tender_id, buyer, title="Too late")


def test_empty_update_is_invalid(flow: Tenderflow, draft_tender, buyer: Actor) -> None:
    with pytest.raises(ValidationError):
        flow.update_tender(draft_tender.tender_id, buyer)


@pytest.mark.parametrize(
    "field", ["title", "description", "category", "tags", "abnormally_low_bid_threshold"]
)
def test_update_cannot_clear_required_fields(
    flow: Tenderflow, draft_tender, buyer: Actor, field: str
) -> None:
    with pytest.raises(ValidationError) as exc_info:
        flow.update_tender(draft_tender.tender_id, buyer, **{field: None})

    assert field in str(exc_info.value.problems)
    # nothing was written, and the tender still loads
    assert flow.event_store.count_events() == 1
    assert flow.get_tender(draft_tender.tender_id).version == draft_tender.version
    assert len(flow.list_tenders()) == 1


def test_update_can_clear_optional_fields(flow: Tenderflow, draft_tender, buyer: Actor) -> None:
    updated = flow.update_tender(draft_tender.tender_id, buyer, estimated_value=None)

    assert updated.estimated_value is None
    assert updated.title == draft_tender.title


def test_publish_sets_start_date(flow: Tenderflow, published_tender, test_time) -> None:
    assert published_tender.status == TenderStatus.PUBLISHED
    assert published_tender.start_date == test_time.now()
    assert published_tender.published_at == test_time.now()


def test_publish_requires_deadline_and_estimate(flow: Tenderflow, buyer: Actor) -> None:
    tender = flow.create_tender(buyer, title="T", description="D", category="works")

    with pytest.raises(ValidationError) as exc_info:
        flow.publish_tender(tender.tender_id, buyer)

    assert "end_date is required" in exc_info.value.problems
    assert "estimated_value is required" in exc_info.value.problems
    assert flow.get_tender(tender.tender_id).status == TenderStatus.DRAFT


def test_publish_with_past_deadline_is_invalid(flow: Tenderflow, buyer: Actor) -> None:
    tender = flow.create_tender(
        buyer,
        title="T",
        description="D",
        category="works",
        estimated_value="1000",
        end_date=datetime(2025, 1, 1, tzinfo=timezone.utc),
    )

    with pytest.raises(ValidationError):
        flow.publish_tender(tender.tender_id, buyer)


def test_close_keeps_bids_pending(flow: Tenderflow, published_tender, submitted_bids, buyer: Actor) -> None:
    closed = flow.close_tender(published_tender.tender_id, buyer)

    assert closed.status == TenderStatus.CLOSED
    assert closed.closed_at is not None
    statuses = {bid.status.value for bid in flow.list_bids(published_tender.tender_id)}
    assert statuses == {"SUBMITTED"}


def test_status_never_moves_backwards(flow: Tenderflow, published_tender, buyer: Actor) -> None:
    flow.close_tender(published_tender.tender_id, buyer)

    with pytest.raises(StateConflictError):
        flow.publish_tender(published_tender.tender_id, buyer)
    with pytest.raises(StateConflictError):
        flow.close_tender(published_tender.tender_id, buyer)

    assert flow.get_tender(published_tender.tender_id).status == TenderStatus.CLOSED


def test_super_admin_may_run_any_tender(flow: Tenderflow, published_tender, super_admin: Actor) -> None:
    closed = flow.close_tender(published_tender.tender_id, super_admin)

    assert closed.status == TenderStatus.CLOSED


def test_unknown_tender(flow: Tenderflow, buyer: Actor) -> None:
    with pytest.raises(NotFoundError):
        flow.publish_tender("missing", buyer)
    with pytest.raises(NotFoundError):
        flow.get_tender("missing")


def test_list_tenders_filters(flow: Tenderflow, published_tender, buyer: Actor) -> None:
    flow.create_tender(buyer, title="Second", description="D", category="goods")

    assert len(flow.list_tenders()) == 2
    assert [t.tender_id for t in flow.list_tenders(status="PUBLISHED")] == [published_tender.tender_id]
    assert len(flow.list_tenders(owner_company=buyer.company_id)) == 2
    assert flow.list_tenders(owner_company="nobody") == []


def test_state_survives_restart(temp_db, test_time, published_tender) -> None:
    """A new process rebuilds the same state from the shared log"""
    restarted = Tenderflow(temp_db, time_provider=test_time)

    tender = restarted.get_tender(published_tender.tender_id)
    assert tender.status == TenderStatus.PUBLISHED
    assert tender.version == published_tender.version


@pytest.mark.parametrize("registry_type", [TenderRegistry, BidRegistry])
def test_registries_do_not_shadow_builtins(registry_type) -> None:
    """Class bodies evaluate annotations eagerly, so a method named like a builtin breaks them"""
    shadowed = [
        name for name in vars(registry_type) if not name.startswith("_") and hasattr(builtins, name)
    ]

    assert shadowed == []


def test_registry_lists_past_deadline(flow: Tenderflow, published_tender, test_time) -> None:
    registry = TenderRegistry()
    for event in flow.event_store.load_stream(published_tender.tender_id):
        registry.apply_event(event)

    assert registry.list_tenders(status=TenderStatus.PUBLISHED)[0].tender_id == published_tender.tender_id
    assert registry.list_past_deadline(test_time.now()) == []
    test_time.advance(days=31)
    assert [t.tender_id for t in registry.list_past_deadline(test_time.now())] == [published_tender.tender_id]
