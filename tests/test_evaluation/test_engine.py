"""
Tests for the evaluation engine

The engine is read-only and total: whatever the bids look like and whatever
the narrative provider does, it returns a report.
"""

from decimal import Decimal

import pytest

from tenderflow.bid.models import BidStatus
from tenderflow.evaluation.engine import (
    EMPTY_SUMMARY,
    FALLBACK_SUMMARY,
    NO_RECOMMENDATION,
    EvaluationEngine,
)
from tenderflow.evaluation.models import (
    EvaluationNarrative,
    RankingEntry,
    RiskEntry,
    RiskSeverity,
)
from tenderflow.kernel.errors import ExternalServiceError
from tenderflow.kernel.time import FixedTimeProvider
from tests.helpers import FIXED_NOW, make_bid, make_tender


class ScriptedSummarizer:
    """Returns a canned narrative (or raises) for evaluation requests"""

    model = "scripted-model"

    def __init__(self, narrative=None, error: Exception | None = None) -> None:
        self.narrative = narrative
        self.error = error
        self.calls = 0

    def summarize_evaluation(self, report, tender):
        self.calls += 1
        if self.error:
            raise self.error
        return self.narrative

    def summarize_review(self, review, tender, bid):
        return None


@pytest.fixture
def bids() -> list:
    return [
        make_bid("b", Decimal("65000"), 10, financial=0),
        make_bid("a", Decimal("90000"), 30),
    ]


def engine_with(summarizer=None) -> EvaluationEngine:
    return EvaluationEngine(summarizer=summarizer, time_provider=FixedTimeProvider(FIXED_NOW))


def test_deterministic_report(bids) -> None:
    report = engine_with().analyze(make_tender(), bids)

    assert report.summary == FALLBACK_SUMMARY
    assert report.model is None
    assert report.fallback_reason is None
    assert report.generated_at == FIXED_NOW
    assert [entry.bid_id for entry in report.ranking] == ["a", "b"]
    assert [entry.position for entry in report.ranking] == [1, 2]
    assert report.recommendation == (
        "Top recommendation is company-a with weighted score 80.11."
    )
    assert report.statistics.bids_count == 2


def test_risk_severities(bids) -> None:
    report = engine_with().analyze(make_tender(), bids)

    assert [(r.bid_id, r.severity) for r in report.risks] == [
        ("b", RiskSeverity.HIGH),
        ("b", RiskSeverity.MEDIUM),
    ]


def test_no_submitted_bids_gives_empty_report() -> None:
    summarizer = ScriptedSummarizer()
    drafts = [make_bid("d", Decimal("1000"), 5, status=BidStatus.DRAFT)]

    report = engine_with(summarizer).analyze(make_tender(), drafts)

    assert report.summary == EMPTY_SUMMARY
    assert report.recommendation == NO_RECOMMENDATION
    assert report.ranking == []
    assert report.risks == []
    assert report.deterministic_scores == []
    assert report.statistics.bids_count == 0
    assert summarizer.calls == 0


def test_drafts_and_withdrawn_bids_are_excluded() -> None:
    bids = [
        make_bid("draft", Decimal("10"), 1, status=BidStatus.DRAFT),
        make_bid("gone", Decimal("20"), 1, status=BidStatus.WITHDRAWN),
        make_bid("live", Decimal("50000"), 20, status=BidStatus.SUBMITTED),
        make_bid("held", Decimal("60000"), 20, status=BidStatus.UNDER_REVIEW),
        make_bid("lost", Decimal("70000"), 20, status=BidStatus.REJECTED),
    ]

    report = engine_with().analyze(make_tender(), bids)

    assert {score.bid_id for score in report.deterministic_scores} == {"live", "held", "lost"}
    assert report.statistics.min_bid == 50000.0


def test_narrative_replaces_texts_but_not_scores(bids) -> None:
    narrative = EvaluationNarrative(
        summary="Two credible bids.",
        ranking=[
            RankingEntry(bid_id="a", bidder_company="company-a", position=1, reason="Complete"),
            RankingEntry(bid_id="b", bidder_company="company-b", position=2, reason="Cheap"),
        ],
        risks=[],
        recommendation="Award to A.",
    )

    report = engine_with(ScriptedSummarizer(narrative)).analyze(make_tender(), bids)

    assert report.model == "scripted-model"
    assert report.summary == "Two credible bids."
    assert report.recommendation == "Award to A."
    assert report.risks == []
    assert report.fallback_reason is None
    assert [score.weighted_score for score in report.deterministic_scores] == [80.11, 80.0]


def test_narrative_failure_falls_back(bids) -> None:
    summarizer = ScriptedSummarizer(error=ExternalServiceError("OPENAI_API_KEY is not configured"))

    report = engine_with(summarizer).analyze(make_tender(), bids)

    assert report.summary == FALLBACK_SUMMARY
    assert report.fallback_reason == "OPENAI_API_KEY is not configured"
    assert report.model is None
    assert [entry.bid_id for entry in report.ranking] == ["a", "b"]


def test_unexpected_narrative_error_also_falls_back(bids) -> None:
    report = engine_with(ScriptedSummarizer(error=KeyError("choices"))).analyze(make_tender(), bids)

    assert report.summary == FALLBACK_SUMMARY
    assert report.fallback_reason


def test_narrative_about_unknown_bids_is_discarded(bids) -> None:
    narrative = EvaluationNarrative(
        summary="Invented",
        ranking=[RankingEntry(bid_id="ghost", bidder_company="x", position=1, reason="?")],
        risks=[RiskEntry(bid_id="a", bidder_company="company-a", risk="none")],
    )

    report = engine_with(ScriptedSummarizer(narrative)).analyze(make_tender(), bids)

    assert report.summary == FALLBACK_SUMMARY
    assert "ghost" in report.fallback_reason
    assert [entry.bid_id for entry in report.ranking] == ["a", "b"]


def test_same_input_same_scores(bids) -> None:
    first = engine_with().analyze(make_tender(), bids)
    second = engine_with().analyze(make_tender(), bids)

    assert first.model_dump() == second.model_dump()
