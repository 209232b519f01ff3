"""
Bid lifecycle

Drafting, two-envelope submission, withdrawal (permanent disqualification),
administrative review/rejection and the pre-submit readiness review.
"""

from tenderflow.bid.models import (
    EVALUATED_BID_STATUSES,
    PENDING_BID_STATUSES,
    Bid,
    BidStatus,
    Document,
    EmdPaymentProof,
)

__all__ = [
    "Bid",
    "BidStatus",
    "Document",
    "EmdPaymentProof",
    "PENDING_BID_STATUSES",
    "EVALUATED_BID_STATUSES",
]
