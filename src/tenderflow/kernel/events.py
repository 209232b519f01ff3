"""
Base Event model

Every lifecycle change of a tender or bid is recorded as an immutable event.
Current state is whatever the projections compute from the log.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class Event(BaseModel):
    """
    Base event - all tender and bid events share this envelope

    stream_id + version gives optimistic locking; position is the global
    append order assigned by the store (None until persisted).
    """

    event_id: str = Field(..., description="Unique event identifier (time-ordered UUID)")
    stream_id: str = Field(..., description="Aggregate identifier (tender id or bidder stream)")
    stream_type: str = Field(..., description="Aggregate type: 'Tender' or 'Bidder'")
    event_type: str = Field(..., description="Specific event type: 'TenderPublished', 'BidSubmitted', ...")
    occurred_at: datetime = Field(..., description="UTC timestamp when event occurred")
    actor_id: str | None = Field(
        default=None,
        description="Actor who triggered the event (None or 'system' for the expiry sweep)",
    )
    command_id: str = Field(..., description="ID of the operation that caused this event")
    payload: dict = Field(default_factory=dict, description="Event-specific data (JSON-serializable)")
    version: int = Field(..., ge=1, description="Stream version after this event")
    position: int | None = Field(default=None, description="Global log position")

    model_config = {"frozen": True}


def create_event(
    *,
    stream_id: str,
    stream_type: str,
    event_type: str,
    occurred_at: datetime,
    command_id: str,
    version: int,
    event_id: str,
    actor_id: str | None = None,
    payload: dict | None = None,
) -> Event:
    """
    Factory function for creating events with all required fields
    """
    return Event(
        event_id=event_id,
        stream_id=stream_id,
        stream_type=stream_type,
        event_type=event_type,
        occurred_at=occurred_at,
        actor_id=actor_id,
        command_id=command_id,
        payload=payload or {},
        version=version,
    )
