"""
Bid Domain Models

Two-envelope bids: the technical and financial document sets are kept apart,
and an earnest money deposit (EMD) proof is required before submission.

Fun fact: Two-envelope bidding exists so evaluators can judge technical
merit before they ever see a price - the financial envelope used to stay
literally sealed until the technical round was over.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class BidStatus(str, Enum):
    """
    Bid lifecycle states

    DRAFT → SUBMITTED → {ACCEPTED | REJECTED}
                ↓
          UNDER_REVIEW → {ACCEPTED | REJECTED}

    Any status except WITHDRAWN → WITHDRAWN (terminal, disqualifies the
    company for the tender). A DRAFT may also be discarded, which deletes it
    without disqualifying.
    """

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    WITHDRAWN = "WITHDRAWN"


# Still in contention: cascades (award, expiry) reject these
PENDING_BID_STATUSES = frozenset({BidStatus.SUBMITTED, BidStatus.UNDER_REVIEW})

# Included in evaluation reports (submitted or later pipeline stages)
EVALUATED_BID_STATUSES = frozenset(
    {BidStatus.SUBMITTED, BidStatus.UNDER_REVIEW, BidStatus.ACCEPTED, BidStatus.REJECTED}
)


class Document(BaseModel):
    """Stored file reference, as returned by the blob storage upload"""

    url: str = Field(..., min_length=1)
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)


class EmdPaymentProof(BaseModel):
    """Earnest money deposit proof"""

    transaction_id: str | None = None
    payment_mode: str | None = None
    receipt: Document | None = None


class Bid(BaseModel):
    """Bid read model"""

    bid_id: str
    tender_id: str
    bidder_company: str
    submitted_by: str
    status: BidStatus = BidStatus.DRAFT

    amount: Decimal | None = Field(default=None, ge=0)
    delivery_days: int | None = Field(default=None, ge=0)
    valid_till: datetime | None = None
    notes: str | None = None

    technical_docs: list[Document] = Field(default_factory=list)
    financial_docs: list[Document] = Field(default_factory=list)
    emd_payment_proof: EmdPaymentProof = Field(default_factory=EmdPaymentProof)

    anomaly_score: int = 0
    ai_notes: str | None = None

    created_at: datetime
    updated_at: datetime | None = None
    submitted_at: datetime | None = None
    reviewed_at: datetime | None = None
    decided_at: datetime | None = None
    decided_by: str | None = None
    rejection_reason: str | None = None
    withdrawn_at: datetime | None = None
    withdrawn_by: str | None = None

    stream_id: str
    version: int = 0

    @property
    def has_both_envelopes(self) -> bool:
        return bool(self.technical_docs) and bool(self.financial_docs)

    @property
    def has_emd_receipt(self) -> bool:
        return self.emd_payment_proof.receipt is not None
