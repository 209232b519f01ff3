"""
Test Helper Functions - Builders

Reusable builders for bid fields, documents and in-memory Tender/Bid models,
so tests only spell out the values they care about.

Fun fact: The Builder pattern was formalized by the Gang of Four in 1994,
but test data builders were popularized by the growing programmer test
movement in the 2000s - we use them to keep tests readable and maintainable!
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from tenderflow.bid.models import Bid, BidStatus, Document, EmdPaymentProof
from tenderflow.tender.models import Tender, TenderStatus

FIXED_NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def document(doc_id: str, name: str | None = None) -> dict[str, str]:
    """Document reference as a caller would send it"""
    return {
        "id": doc_id,
        "name": name or f"{doc_id}.pdf",
        "url": f"https://files.example.org/{doc_id}.pdf",
    }


def complete_bid_fields(amount: str, delivery_days: int, suffix: str = "x") -> dict[str, Any]:
    """
    Draft fields that pass every submit check

    Args:
        amount: Quoted amount (string, kept exact as Decimal)
        delivery_days: Delivery timeline
        suffix: Makes document ids unique per bidder

    Returns:
        Keyword arguments for Tenderflow.create_bid_draft
    """
    return {
        "amount": amount,
        "delivery_days": delivery_days,
        "technical_docs": [document(f"tech-{suffix}")],
        "financial_docs": [document(f"fin-{suffix}")],
        "emd_payment_proof": {
            "transaction_id": f"TXN-{suffix}",
            "payment_mode": "NEFT",
            "receipt": document(f"emd-{suffix}"),
        },
    }


def make_tender(
    estimated_value: Decimal | None = Decimal("100000"),
    threshold: float = 20.0,
    status: TenderStatus = TenderStatus.PUBLISHED,
    tender_id: str = "t-1",
) -> Tender:
    """In-memory tender for pure scoring and review tests"""
    return Tender(
        tender_id=tender_id,
        title="Road resurfacing",
        description="Resurface the ring road",
        category="works",
        owner_company="acme-buyer",
        created_by="alice",
        status=status,
        estimated_value=estimated_value,
        abnormally_low_bid_threshold=threshold,
        end_date=datetime(2025, 2, 14, 12, 0, 0, tzinfo=timezone.utc),
        created_at=FIXED_NOW,
    )


def make_bid(
    bid_id: str,
    amount: Decimal | None,
    delivery_days: int | None,
    technical: int = 1,
    financial: int = 1,
    status: BidStatus = BidStatus.SUBMITTED,
    company: str | None = None,
    emd_receipt: bool = True,
    tender_id: str = "t-1",
) -> Bid:
    """
    In-memory bid for pure scoring and review tests

    Example:
        >>> make_bid("b", Decimal("65000"), 10, financial=0)
    """
    company = company or f"company-{bid_id}"
    return Bid(
        bid_id=bid_id,
        tender_id=tender_id,
        bidder_company=company,
        submitted_by=f"user-{bid_id}",
        status=status,
        amount=amount,
        delivery_days=delivery_days,
        technical_docs=[Document(**document(f"{bid_id}-tech-{i}")) for i in range(technical)],
        financial_docs=[Document(**document(f"{bid_id}-fin-{i}")) for i in range(financial)],
        emd_payment_proof=EmdPaymentProof(
            transaction_id=f"TXN-{bid_id}",
            payment_mode="NEFT",
            receipt=Document(**document(f"{bid_id}-emd")) if emd_receipt else None,
        ),
        created_at=FIXED_NOW,
        stream_id=f"bidder:{tender_id}:{company}",
    )
