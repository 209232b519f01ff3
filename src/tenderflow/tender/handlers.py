"""
Tender Command Handlers

Transform tender commands into events. Handlers are stateless: they read the
registry passed in, validate, and return events with stream versions computed
from what they read. The façade commits them conditionally, so a handler
working from a stale read loses at the store instead of overwriting.

Fun fact: Publishing a call for tenders in a gazette dates back to the
Napoleonic administrative reforms; the deadline has been sacred ever since.
"""

from datetime import datetime

from tenderflow.kernel.actors import Actor
from tenderflow.kernel.errors import ValidationError
from tenderflow.kernel.events import Event, create_event
from tenderflow.kernel.ids import generate_id
from tenderflow.kernel.policy import ProcurementPolicy
from tenderflow.kernel.time import TimeProvider, parse_datetime
from tenderflow.tender import commands, events, invariants
from tenderflow.tender.models import Tender, TenderStatus
from tenderflow.tender.projections import TenderRegistry

TENDER_STREAM = "Tender"


def tender_event(
    tender: Tender | None,
    *,
    tender_id: str,
    event_type: str,
    payload: dict,
    occurred_at: datetime,
    command_id: str,
    actor_id: str | None,
    version_offset: int = 1,
) -> Event:
    """Build the next event on a tender stream (version follows the read version)"""
    return create_event(
        event_id=generate_id(),
        event_type=event_type,
        stream_id=tender_id,
        stream_type=TENDER_STREAM,
        occurred_at=occurred_at,
        actor_id=actor_id,
        command_id=command_id,
        payload=payload,
        version=(tender.version if tender else 0) + version_offset,
    )


class TenderCommandHandlers:
    """
    Command handlers for the tender lifecycle

    Award lives in tender.award (it writes bid streams too) and expiry in
    tender.expiry (it has no human actor).
    """

    def __init__(self, time_provider: TimeProvider, policy: ProcurementPolicy):
        self.time_provider = time_provider
        self.policy = policy

    def handle_create_tender(
        self,
        command: commands.CreateTender,
        command_id: str,
        actor: Actor,
    ) -> list[Event]:
        """
        Create a DRAFT tender owned by the actor's company

        Raises:
            AuthorizationError: Actor's role can't post tenders
            ValidationError: end_date not after start_date
        """
        now = self.time_provider.now()
        invariants.validate_can_post_tenders(actor)

        invariants.validate_date_window(command.start_date, command.end_date)

        threshold = command.abnormally_low_bid_threshold
        if threshold is None:
            threshold = self.policy.default_abnormally_low_threshold

        tender_id = generate_id()
        payload = events.TenderCreated(
            tender_id=tender_id,
            title=command.title,
            description=command.description,
            category=command.category,
            tags=command.tags,
            owner_company=actor.company_id,
            created_by=actor.actor_id,
            estimated_value=command.estimated_value,
            emd_amount=command.emd_amount,
            abnormally_low_bid_threshold=threshold,
            start_date=command.start_date,
            end_date=command.end_date,
            created_at=now,
        ).model_dump(mode="json")

        return [
            tender_event(
                None,
                tender_id=tender_id,
                event_type="TenderCreated",
                payload=payload,
                occurred_at=now,
                command_id=command_id,
                actor_id=actor.actor_id,
            )
        ]

    def handle_update_tender(
        self,
        command: commands.UpdateTender,
        command_id: str,
        actor: Actor,
        tender_registry: TenderRegistry,
    ) -> list[Event]:
        """
        Apply a whitelisted patch to a DRAFT tender

        Raises:
            NotFoundError: Unknown tender
            ValidationError: Empty patch or inconsistent dates
            AuthorizationError: Not the owner
            StateConflictError: Tender no longer DRAFT
        """
        now = self.time_provider.now()
        tender = tender_registry.require(command.tender_id)

        changes = command.changes()
        if not changes:
            raise ValidationError("Nothing to update")
        invariants.validate_tender_owner(actor, tender, "update")

        start_date = parse_datetime(changes["start_date"]) if "start_date" in changes else tender.start_date
        end_date = parse_datetime(changes["end_date"]) if "end_date" in changes else tender.end_date
        invariants.validate_date_window(start_date, end_date)

        invariants.validate_tender_status(tender, TenderStatus.DRAFT)

        payload = events.TenderUpdated(
            tender_id=tender.tender_id,
            changes=changes,
            updated_at=now,
            updated_by=actor.actor_id,
        ).model_dump(mode="json")

        return [
            tender_event(
                tender,
                tender_id=tender.tender_id,
                event_type="TenderUpdated",
                payload=payload,
                occurred_at=now,
                command_id=command_id,
                actor_id=actor.actor_id,
            )
        ]

    def handle_publish_tender(
        self,
        command: commands.PublishTender,
        command_id: str,
        actor: Actor,
        tender_registry: TenderRegistry,
    ) -> list[Event]:
        """
        Open a DRAFT tender for bidding (start_date defaults to now)

        Raises:
            NotFoundError: Unknown tender
            AuthorizationError: Not the owner
            ValidationError: end_date/estimated_value missing or inconsistent
            StateConflictError: Tender not DRAFT
        """
        now = self.time_provider.now()
        tender = tender_registry.require(command.tender_id)

        invariants.validate_tender_owner(actor, tender, "publish")
        invariants.validate_publishable(tender, now)
        start_date = tender.start_date or now
        invariants.validate_date_window(start_date, tender.end_date)

        invariants.validate_transition(tender, TenderStatus.PUBLISHED)

        payload = events.TenderPublished(
            tender_id=tender.tender_id,
            start_date=start_date,
            end_date=tender.end_date,
            published_at=now,
            published_by=actor.actor_id,
        ).model_dump(mode="json")

        return [
            tender_event(
                tender,
                tender_id=tender.tender_id,
                event_type="TenderPublished",
                payload=payload,
                occurred_at=now,
                command_id=command_id,
                actor_id=actor.actor_id,
            )
        ]

    def handle_close_tender(
        self,
        command: commands.CloseTender,
        command_id: str,
        actor: Actor,
        tender_registry: TenderRegistry,
    ) -> list[Event]:
        """
        Stop bidding on a PUBLISHED tender (end_date defaults to now)

        Submitted bids stay pending so one of them can be awarded; the
        bulk rejection happens at award time.

        Raises:
            NotFoundError: Unknown tender
            AuthorizationError: Not the owner
            StateConflictError: Tender not PUBLISHED
        """
        now = self.time_provider.now()
        tender = tender_registry.require(command.tender_id)

        invariants.validate_tender_owner(actor, tender, "close")
        invariants.validate_transition(tender, TenderStatus.CLOSED)

        payload = events.TenderClosed(
            tender_id=tender.tender_id,
            end_date=tender.end_date or now,
            closed_at=now,
            closed_by=actor.actor_id,
        ).model_dump(mode="json")

        return [
            tender_event(
                tender,
                tender_id=tender.tender_id,
                event_type="TenderClosed",
                payload=payload,
                occurred_at=now,
                command_id=command_id,
                actor_id=actor.actor_id,
            )
        ]
