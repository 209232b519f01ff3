"""
Bid Events

Every bid event lives on the bidder stream of its (tender, company) pair.
The payload always names the bid, the tender and the company.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field

from tenderflow.bid.models import Document, EmdPaymentProof


class BidDraftCreated(BaseModel):
    bid_id: str
    tender_id: str
    bidder_company: str
    submitted_by: str
    amount: Decimal | None = None
    delivery_days: int | None = None
    valid_till: datetime | None = None
    notes: str | None = None
    technical_docs: list[Document] = Field(default_factory=list)
    financial_docs: list[Document] = Field(default_factory=list)
    emd_payment_proof: EmdPaymentProof = Field(default_factory=EmdPaymentProof)
    created_at: datetime


class BidDraftUpdated(BaseModel):
    """Draft fields changed; document lists and EMD proof carry their full new value"""

    bid_id: str
    tender_id: str
    bidder_company: str
    changes: dict[str, Any] = Field(..., description="Field name → new value (JSON form)")
    updated_at: datetime
    updated_by: str


class BidSubmitted(BaseModel):
    bid_id: str
    tender_id: str
    bidder_company: str
    anomaly_score: int = 0
    ai_notes: str | None = None
    submitted_at: datetime
    submitted_by: str


class BidPlacedUnderReview(BaseModel):
    bid_id: str
    tender_id: str
    bidder_company: str
    reviewed_at: datetime
    reviewed_by: str


class BidAccepted(BaseModel):
    """Winning bid; only ever emitted together with TenderAwarded"""

    bid_id: str
    tender_id: str
    bidder_company: str
    accepted_at: datetime
    accepted_by: str


class BidRejected(BaseModel):
    bid_id: str
    tender_id: str
    bidder_company: str
    cause: Literal["manual", "award", "expiry"] = "manual"
    reason: str | None = None
    rejected_at: datetime
    rejected_by: str


class BidWithdrawn(BaseModel):
    """Permanent: the company can never bid on this tender again"""

    bid_id: str
    tender_id: str
    bidder_company: str
    previous_status: str
    reason: str | None = None
    withdrawn_at: datetime
    withdrawn_by: str


class BidDraftDiscarded(BaseModel):
    """Draft deleted; the slot is free again"""

    bid_id: str
    tender_id: str
    bidder_company: str
    discarded_at: datetime
    discarded_by: str
