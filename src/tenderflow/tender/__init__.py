"""
Tender lifecycle

DRAFT → PUBLISHED → CLOSED → AWARDED, with PUBLISHED → EXPIRED driven by the
expiry sweep. Award (tender.award) is the only operation that moves a tender
and its bids in one batch.
"""

from tenderflow.tender.models import Tender, TenderStatus

__all__ = ["Tender", "TenderStatus"]
