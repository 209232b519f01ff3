"""
Deterministic Evaluation Engine

Turns a tender and its bids into a ranked, risk-annotated report. Read-only:
nothing here changes a tender or a bid.

Steps:
1. Keep bids that were submitted (SUBMITTED or later stages; never DRAFT or
   WITHDRAWN). None left → degenerate report, not an error.
2. Score each bid (scoring.score_bids) and rank best first.
3. Compute statistics over the same bids.
4. Build the deterministic summary/recommendation.
5. Ask the summarizer for a narrative; any failure keeps step 4 and records
   fallback_reason.
"""

from tenderflow.bid.models import EVALUATED_BID_STATUSES, Bid
from tenderflow.evaluation.models import (
    BidScore,
    EvaluationNarrative,
    EvaluationReport,
    RankingEntry,
    RiskEntry,
    RiskSeverity,
)
from tenderflow.evaluation.narrative import NullSummarizer, Summarizer
from tenderflow.evaluation.scoring import MISSING_FINANCIAL, MISSING_TECHNICAL, score_bids
from tenderflow.evaluation.statistics import compute_statistics
from tenderflow.kernel.errors import ExternalServiceError
from tenderflow.kernel.logging import get_logger
from tenderflow.kernel.metrics import evaluations_total, narrative_fallbacks_total
from tenderflow.kernel.policy import ProcurementPolicy
from tenderflow.kernel.time import RealTimeProvider, TimeProvider
from tenderflow.tender.models import Tender

logger = get_logger(__name__)

FALLBACK_SUMMARY = "Deterministic evaluation generated without AI narrative."
EMPTY_SUMMARY = "No submitted bids available for analysis."
NO_RECOMMENDATION = "No recommendation available."


def risk_severity(flag: str) -> RiskSeverity:
    if flag in (MISSING_TECHNICAL, MISSING_FINANCIAL):
        return RiskSeverity.MEDIUM
    return RiskSeverity.HIGH


def fallback_ranking(scores: list[BidScore]) -> list[RankingEntry]:
    return [
        RankingEntry(
            bid_id=score.bid_id,
            bidder_company=score.bidder_company,
            position=position,
            weighted_score=score.weighted_score,
            reason=(
                f"Weighted score {score.weighted_score} (price {score.price_score}, "
                f"delivery {score.delivery_score}, documents {score.docs_score})"
            ),
        )
        for position, score in enumerate(scores, start=1)
    ]


def fallback_risks(scores: list[BidScore]) -> list[RiskEntry]:
    return [
        RiskEntry(
            bid_id=score.bid_id,
            bidder_company=score.bidder_company,
            risk=flag,
            severity=risk_severity(flag),
        )
        for score in scores
        for flag in score.risk_flags
    ]


def fallback_recommendation(scores: list[BidScore]) -> str:
    if not scores:
        return NO_RECOMMENDATION
    top = scores[0]
    return f"Top recommendation is {top.bidder_company} with weighted score {top.weighted_score}."


class EvaluationEngine:
    """Deterministic bid evaluation with optional narrative"""

    def __init__(
        self,
        summarizer: Summarizer | None = None,
        policy: ProcurementPolicy | None = None,
        time_provider: TimeProvider | None = None,
    ) -> None:
        self.summarizer = summarizer or NullSummarizer()
        self.policy = policy or ProcurementPolicy()
        self.time_provider = time_provider or RealTimeProvider()

    def analyze(self, tender: Tender, bids: list[Bid]) -> EvaluationReport:
        """
        Evaluate a tender's bids

        Args:
            tender: The tender (estimate and abnormally-low threshold are read)
            bids: Every bid of the tender, in creation order

        Returns:
            EvaluationReport; never raises for missing data or narrative failures
        """
        now = self.time_provider.now()
        evaluated = [bid for bid in bids if bid.status in EVALUATED_BID_STATUSES]
        scores = score_bids(tender, evaluated, self.policy)
        statistics = compute_statistics(
            [score.amount for score in scores],
            [score.delivery_days for score in scores],
            float(tender.estimated_value or 0),
        )

        if not scores:
            evaluations_total.labels(narrative="none").inc()
            return EvaluationReport(
                tender_id=tender.tender_id,
                generated_at=now,
                summary=EMPTY_SUMMARY,
                recommendation=NO_RECOMMENDATION,
                statistics=statistics,
            )

        report = EvaluationReport(
            tender_id=tender.tender_id,
            generated_at=now,
            summary=FALLBACK_SUMMARY,
            ranking=fallback_ranking(scores),
            risks=fallback_risks(scores),
            recommendation=fallback_recommendation(scores),
            deterministic_scores=scores,
            statistics=statistics,
        )
        return self._augment(report, tender)

    def _augment(self, report: EvaluationReport, tender: Tender) -> EvaluationReport:
        try:
            narrative = self.summarizer.summarize_evaluation(report, tender)
            if narrative is not None:
                self._check_narrative(narrative, report)
        except Exception as e:
            # any narrative failure degrades to the deterministic report
            reason = str(e) or type(e).__name__
            logger.warning(
                "Narrative unavailable, using deterministic fallback",
                tender_id=tender.tender_id,
                error_type=type(e).__name__,
                fallback_reason=reason,
            )
            evaluations_total.labels(narrative="fallback").inc()
            narrative_fallbacks_total.labels(kind="evaluation").inc()
            return report.model_copy(update={"fallback_reason": reason})

        if narrative is None:
            evaluations_total.labels(narrative="none").inc()
            return report

        evaluations_total.labels(narrative="augmented").inc()
        return report.model_copy(
            update={
                "model": self.summarizer.model,
                "summary": narrative.summary or report.summary,
                "ranking": narrative.ranking or report.ranking,
                "risks": narrative.risks if narrative.risks is not None else report.risks,
                "recommendation": narrative.recommendation or report.recommendation,
            }
        )

    def _check_narrative(self, narrative: EvaluationNarrative, report: EvaluationReport) -> None:
        """
        Raises:
            ExternalServiceError: Narrative talks about bids that weren't evaluated
        """
        known = {score.bid_id for score in report.deterministic_scores}
        mentioned = {entry.bid_id for entry in narrative.ranking}
        mentioned.update(risk.bid_id for risk in narrative.risks or [])
        unknown = mentioned - known
        if unknown:
            raise ExternalServiceError(
                f"Narrative referenced unknown bids: {', '.join(sorted(unknown))}"
            )
