"""
Statistics Calculator

Distribution metrics over the evaluated bids. Amount statistics use every
evaluated bid; delivery statistics ignore bids without a timeline (days <= 0).
"""

import math

from tenderflow.evaluation.models import BidStatistics
from tenderflow.evaluation.scoring import round2


def median(sorted_values: list[float]) -> float:
    """Median of an already sorted, non-empty list (even count: mean of the middle two)"""
    count = len(sorted_values)
    middle = count // 2
    if count % 2 == 0:
        return (sorted_values[middle - 1] + sorted_values[middle]) / 2
    return sorted_values[middle]


def compute_statistics(
    amounts: list[float],
    delivery_days: list[int],
    estimated_value: float,
) -> BidStatistics:
    """
    Compute bid statistics

    Args:
        amounts: Bid amounts
        delivery_days: Delivery timelines of the same bids
        estimated_value: Tender estimate (0 when unknown)

    Returns:
        BidStatistics with every value rounded to 2 decimals; an all-zero
        sheet (except the estimate) when there are no amounts

    Example:
        >>> stats = compute_statistics([65000, 90000], [10, 30], 100000)
        >>> stats.average_bid, stats.median_bid, stats.range_bid
        (77500.0, 77500.0, 25000.0)
    """
    if not amounts:
        return BidStatistics(estimated_value=round2(estimated_value))

    ordered = sorted(amounts)
    count = len(ordered)
    average = sum(ordered) / count
    variance = sum((value - average) ** 2 for value in ordered) / count
    std_deviation = math.sqrt(variance)

    days = [d for d in delivery_days if d > 0]

    return BidStatistics(
        bids_count=count,
        min_bid=round2(ordered[0]),
        max_bid=round2(ordered[-1]),
        average_bid=round2(average),
        median_bid=round2(median(ordered)),
        range_bid=round2(ordered[-1] - ordered[0]),
        std_deviation_bid=round2(std_deviation),
        coefficient_of_variation_pct=round2(std_deviation / average * 100) if average > 0 else 0.0,
        average_delivery_days=round2(sum(days) / len(days)) if days else 0.0,
        min_delivery_days=min(days) if days else 0,
        max_delivery_days=max(days) if days else 0,
        estimated_value=round2(estimated_value),
        average_vs_estimate_pct=(
            round2((average - estimated_value) / estimated_value * 100)
            if estimated_value > 0
            else 0.0
        ),
    )
