"""
Tender Commands

Commands express intentions to modify tender state. Each one is an explicit
whitelist: unknown fields are refused, so a patch can never touch status,
ownership or the bid set.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator, model_validator

from tenderflow.kernel.time import ensure_utc

# Present on every tender; an update may replace them but never null them
NON_CLEARABLE_FIELDS = ("title", "description", "category", "tags", "abnormally_low_bid_threshold")


class CreateTender(BaseModel):
    """
    Create a new tender in DRAFT

    Financial fields are optional at this stage; publishing requires them.
    """

    title: str = Field(..., max_length=200)
    description: str
    category: str = Field(..., max_length=100)
    tags: list[str] = Field(default_factory=list)
    estimated_value: Decimal | None = Field(default=None, ge=0)
    emd_amount: Decimal | None = Field(default=None, ge=0)
    abnormally_low_bid_threshold: float | None = Field(default=None, ge=0.0, le=100.0)
    start_date: datetime | None = None
    end_date: datetime | None = None

    model_config = {"extra": "forbid"}

    @field_validator("title", "description", "category")
    @classmethod
    def validate_required_text(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: list[str]) -> list[str]:
        return [tag.strip() for tag in v if tag and tag.strip()]

    @field_validator("start_date", "end_date")
    @classmethod
    def as_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v) if v else None


class UpdateTender(BaseModel):
    """
    Patch a DRAFT tender

    Only the fields listed here can change. Fields left unset are untouched.
    """

    tender_id: str
    title: str | None = Field(default=None, max_length=200)
    description: str | None = None
    category: str | None = Field(default=None, max_length=100)
    tags: list[str] | None = None
    estimated_value: Decimal | None = Field(default=None, ge=0)
    emd_amount: Decimal | None = Field(default=None, ge=0)
    abnormally_low_bid_threshold: float | None = Field(default=None, ge=0.0, le=100.0)
    start_date: datetime | None = None
    end_date: datetime | None = None

    model_config = {"extra": "forbid"}

    @field_validator("title", "description", "category")
    @classmethod
    def validate_text(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("must not be empty")
        return v.strip() if v is not None else None

    @field_validator("start_date", "end_date")
    @classmethod
    def as_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v) if v else None

    @model_validator(mode="after")
    def refuse_clearing_required(self) -> "UpdateTender":
        """Fields the tender can never be without may be changed, not cleared"""
        cleared = [
            name
            for name in NON_CLEARABLE_FIELDS
            if name in self.model_fields_set and getattr(self, name) is None
        ]
        if cleared:
            raise ValueError(f"cannot be cleared: {', '.join(cleared)}")
        return self

    def changes(self) -> dict:
        """Explicitly supplied fields, JSON-ready"""
        return self.model_dump(mode="json", exclude_unset=True, exclude={"tender_id"})


class PublishTender(BaseModel):
    """Open a DRAFT tender for bidding"""

    tender_id: str


class CloseTender(BaseModel):
    """Stop bidding on a PUBLISHED tender"""

    tender_id: str


class AwardTender(BaseModel):
    """Select the winning bid of a CLOSED tender"""

    tender_id: str
    winning_bid_id: str
