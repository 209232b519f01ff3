"""
Tender Events

Immutable facts about what happened to a tender. Serialized with
model_dump(mode="json") into the event payload.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field


class TenderCreated(BaseModel):
    """Tender drafted by its owner company"""

    tender_id: str
    title: str
    description: str
    category: str
    tags: list[str] = Field(default_factory=list)
    owner_company: str
    created_by: str
    estimated_value: Decimal | None = None
    emd_amount: Decimal | None = None
    abnormally_low_bid_threshold: float
    start_date: datetime | None = None
    end_date: datetime | None = None
    created_at: datetime


class TenderUpdated(BaseModel):
    """Whitelisted fields of a DRAFT tender changed"""

    tender_id: str
    changes: dict[str, Any] = Field(..., description="Field name → new value (JSON form)")
    updated_at: datetime
    updated_by: str


class TenderPublished(BaseModel):
    """Tender opened for bidding"""

    tender_id: str
    start_date: datetime
    end_date: datetime
    published_at: datetime
    published_by: str


class TenderBidReceived(BaseModel):
    """
    A bid was submitted against this tender

    Recorded on the tender stream so a submit and a concurrent close/expiry
    cannot both win: they contend for the same tender version.
    """

    tender_id: str
    bid_id: str
    company_id: str
    received_at: datetime


class TenderClosed(BaseModel):
    """Bidding stopped by the owner"""

    tender_id: str
    end_date: datetime
    closed_at: datetime
    closed_by: str


class TenderAwarded(BaseModel):
    """Winner selected; every other pending bid rejected in the same batch"""

    tender_id: str
    winning_bid_id: str
    winning_company: str
    rejected_bid_ids: list[str] = Field(default_factory=list)
    awarded_at: datetime
    awarded_by: str


class TenderExpired(BaseModel):
    """Deadline passed while PUBLISHED; pending bids rejected in the same batch"""

    tender_id: str
    end_date: datetime
    rejected_bid_ids: list[str] = Field(default_factory=list)
    expired_at: datetime
