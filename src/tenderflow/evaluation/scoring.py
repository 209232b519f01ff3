"""
Scoring Primitives

Pure functions: per-bid price, delivery and documentation sub-scores, the
weighted composite and the risk flags. No I/O, no clock.

Fun fact: Scoring price as min/amount (rather than a linear distance from
the estimate) is the "lowest price gets full marks" rule used by many public
buyers - every other bid is scored relative to the cheapest one.
"""

import math
from decimal import ROUND_HALF_UP, Decimal

from tenderflow.bid.models import Bid
from tenderflow.evaluation.models import BidScore
from tenderflow.kernel.policy import ProcurementPolicy
from tenderflow.tender.models import Tender

MISSING_TECHNICAL = "Missing technical documents"
MISSING_FINANCIAL = "Missing financial documents"


def round2(value: float) -> float:
    """Round half-up to 2 decimals; non-finite values become 0"""
    if value is None or not math.isfinite(value):
        return 0.0
    return float(Decimal(repr(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def price_score(min_amount: float, amount: float) -> float:
    """min/amount × 100, capped at 100; 0 unless both are positive"""
    if min_amount > 0 and amount > 0:
        return min(min_amount / amount * 100, 100.0)
    return 0.0


def delivery_score(delivery_days: int) -> float:
    """100 - days (days capped at 100); 0 for a missing timeline"""
    if delivery_days > 0:
        return max(100.0 - min(delivery_days, 100), 0.0)
    return 0.0


def docs_score(technical_count: int, financial_count: int, policy: ProcurementPolicy) -> float:
    if technical_count > 0 and financial_count > 0:
        return policy.docs_complete_score
    return policy.docs_incomplete_score


def weighted_score(price: float, delivery: float, docs: float, policy: ProcurementPolicy) -> float:
    return round2(
        price * policy.price_weight
        + delivery * policy.delivery_weight
        + docs * policy.docs_weight
    )


def below_estimate_pct(amount: float, estimated_value: float) -> float | None:
    """How far below the estimate the amount is, in percent (None without an estimate)"""
    if estimated_value <= 0:
        return None
    return (estimated_value - amount) / estimated_value * 100


def risk_flags(
    amount: float,
    estimated_value: float,
    threshold_pct: float,
    technical_count: int,
    financial_count: int,
) -> list[str]:
    """
    Risk flags for one bid

    Example:
        >>> risk_flags(65000, 100000, 20, 1, 0)
        ['Abnormally low bid (35.0% below estimate)', 'Missing financial documents']
    """
    flags: list[str] = []
    below_pct = below_estimate_pct(amount, estimated_value)
    if below_pct is not None and below_pct >= threshold_pct:
        flags.append(f"Abnormally low bid ({below_pct:.1f}% below estimate)")
    if technical_count == 0:
        flags.append(MISSING_TECHNICAL)
    if financial_count == 0:
        flags.append(MISSING_FINANCIAL)
    return flags


def score_bids(tender: Tender, bids: list[Bid], policy: ProcurementPolicy) -> list[BidScore]:
    """
    Score sheets for the given bids, best first

    The caller decides which bids are eligible. Ties keep the input order
    (sorted() is stable).
    """
    if not bids:
        return []

    amounts = [float(bid.amount or 0) for bid in bids]
    min_amount = min(amounts)
    estimated_value = float(tender.estimated_value or 0)

    scores = []
    for bid, amount in zip(bids, amounts):
        days = bid.delivery_days or 0
        technical_count = len(bid.technical_docs)
        financial_count = len(bid.financial_docs)

        price = price_score(min_amount, amount)
        delivery = delivery_score(days)
        docs = docs_score(technical_count, financial_count, policy)

        scores.append(
            BidScore(
                bid_id=bid.bid_id,
                bidder_company=bid.bidder_company,
                amount=amount,
                delivery_days=days,
                status=bid.status.value,
                technical_docs_count=technical_count,
                financial_docs_count=financial_count,
                price_score=round2(price),
                delivery_score=round2(delivery),
                docs_score=docs,
                weighted_score=weighted_score(price, delivery, docs, policy),
                risk_flags=risk_flags(
                    amount,
                    estimated_value,
                    tender.abnormally_low_bid_threshold,
                    technical_count,
                    financial_count,
                ),
            )
        )

    return sorted(scores, key=lambda score: score.weighted_score, reverse=True)
