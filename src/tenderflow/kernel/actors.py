"""
Authentication context

The outer layer authenticates the caller and hands every operation an Actor:
who they are, which company they act for, and their role. Nothing here
checks credentials.
"""

from enum import Enum

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Portal roles"""

    SUPER_ADMIN = "SUPER_ADMIN"  # Platform operator, elevated on every tender
    COMPANY_ADMIN = "COMPANY_ADMIN"  # Manages a company, may post and bid
    TENDER_POSTER = "TENDER_POSTER"  # May create and run tenders
    BIDDER = "BIDDER"  # May prepare and submit bids


TENDER_POSTING_ROLES = frozenset({Role.SUPER_ADMIN, Role.COMPANY_ADMIN, Role.TENDER_POSTER})
BIDDING_ROLES = frozenset({Role.COMPANY_ADMIN, Role.BIDDER})


class Actor(BaseModel):
    """Authenticated caller"""

    actor_id: str = Field(..., min_length=1, description="User identifier")
    company_id: str | None = Field(default=None, description="Company the user acts for")
    role: Role = Field(default=Role.BIDDER)

    model_config = {"frozen": True}

    @property
    def is_elevated(self) -> bool:
        return self.role == Role.SUPER_ADMIN

    def acts_for(self, company_id: str | None) -> bool:
        return company_id is not None and self.company_id == company_id


SYSTEM_ACTOR = Actor(actor_id="system", company_id=None, role=Role.SUPER_ADMIN)
