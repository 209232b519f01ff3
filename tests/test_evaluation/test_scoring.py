"""
Tests for the scoring primitives

Worked example used throughout: estimate 100000; A quotes 90000 in 30 days
with both envelopes, B quotes 65000 in 10 days without a financial envelope.
A edges out B (80.11 vs 80.00) because documentation outweighs B's price
and delivery advantage.
"""

from decimal import Decimal

import pytest

from tenderflow.evaluation.scoring import (
    MISSING_FINANCIAL,
    MISSING_TECHNICAL,
    delivery_score,
    docs_score,
    price_score,
    risk_flags,
    round2,
    score_bids,
)
from tenderflow.kernel.policy import ProcurementPolicy
from tests.helpers import make_bid, make_tender


@pytest.fixture
def worked_example() -> list:
    tender = make_tender(estimated_value=Decimal("100000"))
    bids = [
        make_bid("b", Decimal("65000"), 10, financial=0),
        make_bid("a", Decimal("90000"), 30),
    ]
    return score_bids(tender, bids, ProcurementPolicy())


def test_worked_example_sub_scores(worked_example) -> None:
    by_id = {score.bid_id: score for score in worked_example}

    assert by_id["a"].price_score == 72.22
    assert by_id["b"].price_score == 100.0
    assert by_id["a"].delivery_score == 70.0
    assert by_id["b"].delivery_score == 90.0
    assert by_id["a"].docs_score == 100.0
    assert by_id["b"].docs_score == 40.0


def test_worked_example_ranking(worked_example) -> None:
    """A ranks above B although B was listed first"""
    assert [score.bid_id for score in worked_example] == ["a", "b"]
    assert worked_example[0].weighted_score == 80.11
    assert worked_example[1].weighted_score == 80.0


def test_worked_example_risk_flags(worked_example) -> None:
    by_id = {score.bid_id: score for score in worked_example}

    assert by_id["a"].risk_flags == []
    assert by_id["b"].risk_flags == [
        "Abnormally low bid (35.0% below estimate)",
        MISSING_FINANCIAL,
    ]


def test_abnormally_low_threshold_boundary() -> None:
    assert risk_flags(90000, 100000, 20, 1, 1) == []
    # exactly at the threshold is flagged
    assert risk_flags(80000, 100000, 20, 1, 1) == ["Abnormally low bid (20.0% below estimate)"]
    # no estimate, no flag
    assert risk_flags(1, 0, 20, 1, 1) == []


def test_zero_amount_is_flagged_against_estimate() -> None:
    flags = risk_flags(0, 100000, 20, 1, 1)
    assert flags == ["Abnormally low bid (100.0% below estimate)"]


def test_missing_envelopes_flags() -> None:
    assert risk_flags(100000, 100000, 20, 0, 0) == [MISSING_TECHNICAL, MISSING_FINANCIAL]


def test_price_score_edge_cases() -> None:
    assert price_score(0, 1000) == 0.0
    assert price_score(1000, 0) == 0.0
    assert price_score(1000, 1000) == 100.0
    assert price_score(1000, 2000) == 50.0


def test_delivery_score_edge_cases() -> None:
    assert delivery_score(0) == 0.0
    assert delivery_score(1) == 99.0
    assert delivery_score(100) == 0.0
    assert delivery_score(365) == 0.0


def test_docs_score_needs_both_envelopes() -> None:
    policy = ProcurementPolicy()
    assert docs_score(1, 1, policy) == 100.0
    assert docs_score(1, 0, policy) == 40.0
    assert docs_score(0, 3, policy) == 40.0


def test_round2_is_half_up_and_finite() -> None:
    assert round2(0.125) == 0.13
    assert round2(80.111111) == 80.11
    assert round2(float("inf")) == 0.0
    assert round2(float("nan")) == 0.0


def test_ties_keep_input_order() -> None:
    tender = make_tender()
    bids = [make_bid("first", Decimal("1000"), 10), make_bid("second", Decimal("1000"), 10)]

    scores = score_bids(tender, bids, ProcurementPolicy())

    assert [score.bid_id for score in scores] == ["first", "second"]


def test_missing_amount_and_delivery_score_zero() -> None:
    tender = make_tender()
    bids = [make_bid("x", None, None), make_bid("y", Decimal("5000"), 20)]

    scores = {score.bid_id: score for score in score_bids(tender, bids, ProcurementPolicy())}

    # min amount is 0, so nobody gets price points
    assert scores["x"].price_score == 0.0
    assert scores["y"].price_score == 0.0
    assert scores["x"].delivery_score == 0.0
    assert scores["x"].amount == 0.0


def test_no_bids() -> None:
    assert score_bids(make_tender(), [], ProcurementPolicy()) == []


def test_weights_must_sum_to_one() -> None:
    with pytest.raises(ValueError):
        ProcurementPolicy(price_weight=0.6, delivery_weight=0.2, docs_weight=0.3)
