"""
Bid Commands

Draft creation and editing use relaxed validation (fields may be missing or
zero); submit runs the full validation in bid.invariants.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from tenderflow.bid.models import Document, EmdPaymentProof
from tenderflow.kernel.time import ensure_utc


class CreateBidDraft(BaseModel):
    """Open the company's bid on a tender as a DRAFT"""

    tender_id: str
    amount: Decimal | None = Field(default=None, ge=0)
    delivery_days: int | None = Field(default=None, ge=0)
    valid_till: datetime | None = None
    notes: str | None = Field(default=None, max_length=2000)
    technical_docs: list[Document] = Field(default_factory=list)
    financial_docs: list[Document] = Field(default_factory=list)
    emd_payment_proof: EmdPaymentProof = Field(default_factory=EmdPaymentProof)

    model_config = {"extra": "forbid"}

    @field_validator("valid_till")
    @classmethod
    def as_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v) if v else None


class UpdateBidDraft(BaseModel):
    """
    Patch a DRAFT bid

    Document lists are reconciled rather than replaced: the stored documents
    whose ids appear in kept_*_doc_ids survive (None keeps them all), then
    the new_*_docs are appended.
    """

    bid_id: str
    amount: Decimal | None = Field(default=None, ge=0)
    delivery_days: int | None = Field(default=None, ge=0)
    valid_till: datetime | None = None
    notes: str | None = Field(default=None, max_length=2000)
    emd_transaction_id: str | None = None
    emd_payment_mode: str | None = None
    emd_receipt: Document | None = None

    kept_technical_doc_ids: list[str] | None = None
    kept_financial_doc_ids: list[str] | None = None
    new_technical_docs: list[Document] = Field(default_factory=list)
    new_financial_docs: list[Document] = Field(default_factory=list)

    model_config = {"extra": "forbid"}

    @field_validator("valid_till")
    @classmethod
    def as_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v) if v else None

    def scalar_changes(self) -> dict:
        """Explicitly supplied scalar fields, JSON-ready"""
        return self.model_dump(
            mode="json",
            exclude_unset=True,
            include={"amount", "delivery_days", "valid_till", "notes"},
        )

    def emd_changes(self) -> dict:
        return self.model_dump(
            mode="json",
            exclude_unset=True,
            include={"emd_transaction_id", "emd_payment_mode", "emd_receipt"},
        )

    def touches_documents(self) -> bool:
        return bool(
            self.kept_technical_doc_ids is not None
            or self.kept_financial_doc_ids is not None
            or self.new_technical_docs
            or self.new_financial_docs
        )


class SubmitBid(BaseModel):
    bid_id: str


class ReviewBid(BaseModel):
    """Pre-submit readiness review (read-only)"""

    bid_id: str


class WithdrawBid(BaseModel):
    bid_id: str
    reason: str | None = Field(default=None, max_length=2000)


class DeleteBidDraft(BaseModel):
    bid_id: str


class RejectBid(BaseModel):
    bid_id: str
    reason: str | None = Field(default=None, max_length=2000)


class MarkBidUnderReview(BaseModel):
    bid_id: str
