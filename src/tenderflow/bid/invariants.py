"""
Bid Invariants

Pure validation functions for the bid lifecycle: transition graph,
eligibility, envelope completeness and the submit-time anomaly rule.
"""

from decimal import Decimal
from typing import Any

from tenderflow.bid.models import Bid, BidStatus, Document
from tenderflow.kernel.actors import BIDDING_ROLES, Actor
from tenderflow.kernel.errors import (
    AuthorizationError,
    ConflictError,
    EligibilityError,
    StateConflictError,
    ValidationError,
)
from tenderflow.tender.models import Tender

BID_TRANSITIONS: dict[BidStatus, frozenset[BidStatus]] = {
    BidStatus.DRAFT: frozenset({BidStatus.SUBMITTED, BidStatus.WITHDRAWN}),
    BidStatus.SUBMITTED: frozenset(
        {BidStatus.UNDER_REVIEW, BidStatus.ACCEPTED, BidStatus.REJECTED, BidStatus.WITHDRAWN}
    ),
    BidStatus.UNDER_REVIEW: frozenset(
        {BidStatus.ACCEPTED, BidStatus.REJECTED, BidStatus.WITHDRAWN}
    ),
    BidStatus.ACCEPTED: frozenset({BidStatus.WITHDRAWN}),
    BidStatus.REJECTED: frozenset({BidStatus.WITHDRAWN}),
    BidStatus.WITHDRAWN: frozenset(),
}

ANOMALY_NOTE = "Quoted amount is significantly below tender estimate and may be flagged."


# ============================================================================
# Authorization
# ============================================================================


def validate_can_bid(actor: Actor, tender: Tender) -> None:
    """
    Raises:
        AuthorizationError: Role can't bid, no company, or bidding on own tender
    """
    if actor.role not in BIDDING_ROLES:
        raise AuthorizationError(actor.actor_id, "create bids", f"role {actor.role.value}")
    if not actor.company_id:
        raise AuthorizationError(actor.actor_id, "create bids", "no company affiliation")
    if actor.company_id == tender.owner_company:
        raise AuthorizationError(
            actor.actor_id,
            f"bid on tender {tender.tender_id}",
            "owner company cannot bid on its own tender",
        )


def validate_bid_owner(actor: Actor, bid: Bid, action: str) -> None:
    """
    Raises:
        AuthorizationError: Actor doesn't act for the bidding company
    """
    if actor.is_elevated or actor.acts_for(bid.bidder_company):
        return
    raise AuthorizationError(actor.actor_id, f"{action} bid {bid.bid_id}", "not the bidding company")


# ============================================================================
# Eligibility & State
# ============================================================================


def validate_slot_available(slot: dict[str, Any] | None, tender_id: str, company_id: str) -> None:
    """
    A company has one bid slot per tender

    Raises:
        EligibilityError: The company withdrew a bid on this tender (forever)
        ConflictError: A bid already occupies the slot - edit it instead
    """
    if slot is None:
        return
    if slot["disqualified"]:
        raise EligibilityError(tender_id, company_id)
    if slot["live_bid_id"] is not None:
        raise ConflictError(
            f"Company {company_id} already has bid {slot['live_bid_id']} on tender "
            f"{tender_id}; update it instead"
        )


def validate_bid_status(bid: Bid, *allowed: BidStatus) -> None:
    """
    Raises:
        StateConflictError: Bid isn't in one of the allowed statuses
    """
    if bid.status not in allowed:
        raise StateConflictError("Bid", bid.bid_id, bid.status.value, [s.value for s in allowed])


def validate_transition(bid: Bid, target: BidStatus) -> None:
    """
    Raises:
        StateConflictError: target isn't reachable from the bid's status
    """
    if target not in BID_TRANSITIONS[bid.status]:
        allowed = [s.value for s, nxt in BID_TRANSITIONS.items() if target in nxt]
        raise StateConflictError("Bid", bid.bid_id, bid.status.value, allowed)


def validate_bid_of_tender(bid: Bid, tender_id: str) -> None:
    """
    Raises:
        ValidationError: Bid belongs to a different tender
    """
    if bid.tender_id != tender_id:
        raise ValidationError(f"Bid {bid.bid_id} does not belong to tender {tender_id}")


# ============================================================================
# Submission
# ============================================================================


def validate_submittable(bid: Bid) -> None:
    """
    Full-field validation run at submit (drafts use the relaxed rules)

    Raises:
        ValidationError: Listing every problem found
    """
    problems: list[str] = []
    if bid.amount is None:
        problems.append("amount is required")
    if bid.delivery_days is None or bid.delivery_days < 1:
        problems.append("delivery_days must be at least 1")
    if not bid.technical_docs:
        problems.append("technical envelope is empty")
    if not bid.financial_docs:
        problems.append("financial envelope is empty")
    if not bid.has_emd_receipt:
        problems.append("EMD receipt is missing")
    if problems:
        raise ValidationError(f"Bid {bid.bid_id} is not ready for submission", problems)


def compute_anomaly(
    amount: Decimal | None,
    estimated_value: Decimal | None,
    ratio: float,
    score: int,
) -> tuple[int, str | None]:
    """
    Submit-time anomaly marking

    Returns:
        (anomaly_score, advisory note) - (0, None) when the amount isn't
        below ratio × estimate or either value is unknown
    """
    if amount is None or not estimated_value:
        return 0, None
    if amount < Decimal(str(ratio)) * estimated_value:
        return score, ANOMALY_NOTE
    return 0, None


def reconcile_documents(
    existing: list[Document],
    kept_ids: list[str] | None,
    new_docs: list[Document],
) -> list[Document]:
    """
    Kept references plus newly uploaded files

    Any stored document whose id isn't in kept_ids is dropped (kept_ids=None
    keeps everything). Duplicate ids keep their first occurrence.
    """
    if kept_ids is None:
        survivors = list(existing)
    else:
        keep = set(kept_ids)
        survivors = [doc for doc in existing if doc.id in keep]

    merged: list[Document] = []
    seen: set[str] = set()
    for doc in survivors + list(new_docs):
        if doc.id not in seen:
            seen.add(doc.id)
            merged.append(doc)
    return merged
