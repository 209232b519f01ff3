"""
Pytest configuration and shared fixtures

Fun fact: The name "conftest" comes from pytest's configuration testing
framework. Files named conftest.py are automatically discovered and their
fixtures are available to all tests in the same directory and subdirectories!
"""

import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

import pytest

from tests.helpers import complete_bid_fields
from tenderflow.bid.models import Bid
from tenderflow.flow import Tenderflow
from tenderflow.kernel.actors import Actor, Role
from tenderflow.kernel.event_store import SQLiteEventStore
from tenderflow.kernel.policy import ProcurementPolicy
from tenderflow.kernel.projection_store import SQLiteProjectionStore
from tenderflow.kernel.time import FixedTimeProvider
from tenderflow.tender.models import Tender


@pytest.fixture
def temp_db() -> Iterator[Path]:
    """Provide a temporary database file that's cleaned up after test"""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir) / "tenderflow.db"


@pytest.fixture
def event_store(temp_db: Path) -> SQLiteEventStore:
    """Provide a fresh event store for each test"""
    return SQLiteEventStore(temp_db)


@pytest.fixture
def projection_store(temp_db: Path) -> SQLiteProjectionStore:
    """Provide a fresh projection store for each test"""
    return SQLiteProjectionStore(temp_db)


@pytest.fixture
def test_time() -> FixedTimeProvider:
    """
    Provide a controllable time provider for deterministic tests

    Default time: 2025-01-15 12:00:00 UTC. Tender deadlines in the tests are
    expressed relative to it, and expiry is driven by advancing it.
    """
    return FixedTimeProvider(datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def policy() -> ProcurementPolicy:
    """Default procurement policy (0.5/0.2/0.3 weights)"""
    return ProcurementPolicy()


@pytest.fixture
def flow(temp_db: Path, test_time: FixedTimeProvider, policy: ProcurementPolicy) -> Tenderflow:
    """Tenderflow façade on a fresh database with the fixed clock"""
    return Tenderflow(temp_db, policy=policy, time_provider=test_time)


# =============================================================================
# Actors
# =============================================================================


@pytest.fixture
def buyer() -> Actor:
    """Tender poster acting for the buying company"""
    return Actor(actor_id="alice", company_id="acme-buyer", role=Role.COMPANY_ADMIN)


@pytest.fixture
def bidder_a() -> Actor:
    return Actor(actor_id="bob", company_id="alpha-works", role=Role.BIDDER)


@pytest.fixture
def bidder_b() -> Actor:
    return Actor(actor_id="carol", company_id="beta-build", role=Role.BIDDER)


@pytest.fixture
def bidder_c() -> Actor:
    return Actor(actor_id="dave", company_id="gamma-infra", role=Role.COMPANY_ADMIN)


@pytest.fixture
def super_admin() -> Actor:
    return Actor(actor_id="root", company_id=None, role=Role.SUPER_ADMIN)


# =============================================================================
# Workflow Fixtures
# =============================================================================


@pytest.fixture
def draft_tender(flow: Tenderflow, buyer: Actor, test_time: FixedTimeProvider) -> Tender:
    """
    DRAFT tender with everything publishing needs

    Estimate 100000, deadline 30 days after the fixed test time.
    """
    return flow.create_tender(
        buyer,
        title="Road resurfacing",
        description="Resurface 12km of the ring road",
        category="works",
        tags=["roads", "asphalt"],
        estimated_value="100000",
        emd_amount="2000",
        end_date=datetime(2025, 2, 14, 12, 0, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def published_tender(flow: Tenderflow, buyer: Actor, draft_tender: Tender) -> Tender:
    """PUBLISHED tender open for bidding"""
    return flow.publish_tender(draft_tender.tender_id, buyer)


@pytest.fixture
def submitted_bids(
    flow: Tenderflow,
    published_tender: Tender,
    bidder_a: Actor,
    bidder_b: Actor,
) -> tuple[Bid, Bid]:
    """
    Two SUBMITTED bids: A = 90000 in 30 days, B = 65000 in 10 days

    B has a complete submission too (envelopes are checked at submit), so
    scores differ only by price and delivery.
    """
    tender_id = published_tender.tender_id
    draft_a = flow.create_bid_draft(tender_id, bidder_a, **complete_bid_fields("90000", 30, "a"))
    draft_b = flow.create_bid_draft(tender_id, bidder_b, **complete_bid_fields("65000", 10, "b"))
    return flow.submit_bid(draft_a.bid_id, bidder_a), flow.submit_bid(draft_b.bid_id, bidder_b)
