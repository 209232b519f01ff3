"""
Tender Invariants

Pure validation functions enforcing tender rules. Handlers call them in a
fixed order: input validation, then authorization, then the state check
last, right before the events are built.
"""

from datetime import datetime

from tenderflow.kernel.actors import TENDER_POSTING_ROLES, Actor
from tenderflow.kernel.errors import AuthorizationError, StateConflictError, ValidationError
from tenderflow.tender.models import Tender, TenderStatus

# Forward-only graph: each status lists the statuses it may move to
TENDER_TRANSITIONS: dict[TenderStatus, frozenset[TenderStatus]] = {
    TenderStatus.DRAFT: frozenset({TenderStatus.PUBLISHED}),
    TenderStatus.PUBLISHED: frozenset({TenderStatus.CLOSED, TenderStatus.EXPIRED}),
    TenderStatus.CLOSED: frozenset({TenderStatus.AWARDED}),
    TenderStatus.AWARDED: frozenset(),
    TenderStatus.EXPIRED: frozenset(),
}


# ============================================================================
# Authorization
# ============================================================================


def validate_can_post_tenders(actor: Actor) -> None:
    """
    Raises:
        AuthorizationError: Role can't post tenders, or actor has no company
    """
    if actor.role not in TENDER_POSTING_ROLES:
        raise AuthorizationError(actor.actor_id, "create tenders", f"role {actor.role.value}")
    if not actor.company_id:
        raise AuthorizationError(actor.actor_id, "create tenders", "no company affiliation")


def validate_tender_owner(actor: Actor, tender: Tender, action: str) -> None:
    """
    Only the owning company (or an elevated role) may run the tender

    Raises:
        AuthorizationError: Actor doesn't act for the owner company
    """
    if actor.is_elevated or actor.acts_for(tender.owner_company):
        return
    raise AuthorizationError(
        actor.actor_id, f"{action} tender {tender.tender_id}", "not the owning company"
    )


# ============================================================================
# State
# ============================================================================


def validate_transition(tender: Tender, target: TenderStatus) -> None:
    """
    Raises:
        StateConflictError: target isn't reachable from the current status
    """
    if target not in TENDER_TRANSITIONS[tender.status]:
        allowed = [s.value for s, nxt in TENDER_TRANSITIONS.items() if target in nxt]
        raise StateConflictError("Tender", tender.tender_id, tender.status.value, allowed)


def validate_tender_status(tender: Tender, *allowed: TenderStatus) -> None:
    """
    Raises:
        StateConflictError: Tender isn't in one of the allowed statuses
    """
    if tender.status not in allowed:
        raise StateConflictError(
            "Tender", tender.tender_id, tender.status.value, [s.value for s in allowed]
        )


def validate_open_for_bidding(tender: Tender) -> None:
    """Draft editing, review and submission all need a PUBLISHED tender"""
    validate_tender_status(tender, TenderStatus.PUBLISHED)


# ============================================================================
# Field validation
# ============================================================================


def validate_date_window(start_date: datetime | None, end_date: datetime | None) -> None:
    """
    Raises:
        ValidationError: end_date is not after start_date
    """
    if start_date and end_date and end_date <= start_date:
        raise ValidationError("Invalid tender dates", ["end_date must be after start_date"])


def validate_publishable(tender: Tender, now: datetime) -> None:
    """
    Full validation run when a tender leaves DRAFT

    Raises:
        ValidationError: end_date or estimated_value missing, or end_date not in the future
    """
    problems: list[str] = []
    if tender.end_date is None:
        problems.append("end_date is required")
    elif tender.end_date <= now:
        problems.append("end_date must be in the future")
    if tender.estimated_value is None:
        problems.append("estimated_value is required")
    if problems:
        raise ValidationError(f"Tender {tender.tender_id} cannot be published", problems)
