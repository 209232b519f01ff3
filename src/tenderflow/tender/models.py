"""
Tender Domain Models

Fun fact: "Tender" comes from the Old French "tendre", to stretch out or
offer - a tender is literally an offer held out for others to answer.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class TenderStatus(str, Enum):
    """
    Tender lifecycle states

    Finite state machine (forward only, no skipping):
    DRAFT → PUBLISHED → CLOSED → AWARDED
                ↓
             EXPIRED (terminal, entered only by the expiry sweep)
    """

    DRAFT = "DRAFT"  # Being prepared by the owner
    PUBLISHED = "PUBLISHED"  # Open for bidding
    CLOSED = "CLOSED"  # Bidding stopped, awaiting award
    AWARDED = "AWARDED"  # Winner selected
    EXPIRED = "EXPIRED"  # Deadline passed while still open


class Tender(BaseModel):
    """
    Tender read model

    Money stays Decimal end to end; evaluation converts to float only when
    computing scores.
    """

    tender_id: str
    title: str
    description: str
    category: str
    tags: list[str] = Field(default_factory=list)
    owner_company: str
    created_by: str
    status: TenderStatus = TenderStatus.DRAFT

    estimated_value: Decimal | None = Field(default=None, ge=0)
    emd_amount: Decimal | None = Field(default=None, ge=0)
    abnormally_low_bid_threshold: float = Field(
        default=20.0,
        ge=0.0,
        le=100.0,
        description="Percent below estimate that flags a bid as abnormally low",
    )

    start_date: datetime | None = None
    end_date: datetime | None = None
    bid_ids: list[str] = Field(default_factory=list)

    created_at: datetime
    published_at: datetime | None = None
    closed_at: datetime | None = None
    awarded_at: datetime | None = None
    awarded_bid_id: str | None = None
    expired_at: datetime | None = None
    version: int = 0

    @property
    def is_open(self) -> bool:
        return self.status == TenderStatus.PUBLISHED
