"""
Pre-submit Readiness Review

Advisory check of a DRAFT bid before the bidder submits it: a five-item
checklist worth 20 points each, warnings about things evaluators will flag,
and the actions left to take. Read-only.
"""

from decimal import Decimal

from tenderflow.bid import commands, invariants
from tenderflow.bid.models import Bid, BidStatus
from tenderflow.bid.projections import BidRegistry
from tenderflow.evaluation.models import ChecklistItem, ReadinessReview
from tenderflow.evaluation.narrative import NullSummarizer, Summarizer
from tenderflow.kernel.actors import Actor
from tenderflow.kernel.logging import get_logger
from tenderflow.kernel.metrics import narrative_fallbacks_total
from tenderflow.kernel.policy import ProcurementPolicy
from tenderflow.kernel.time import TimeProvider
from tenderflow.tender import invariants as tender_invariants
from tenderflow.tender.models import Tender
from tenderflow.tender.projections import TenderRegistry

logger = get_logger(__name__)

CHECK_WEIGHT = 20
READY_SUMMARY = "Bid is ready for submission based on required checks."
NOT_READY_SUMMARY = "Bid needs fixes before successful submission."


def build_checklist(bid: Bid) -> list[ChecklistItem]:
    return [
        ChecklistItem(key="amount", label="Quoted amount", completed=bool(bid.amount and bid.amount > 0)),
        ChecklistItem(
            key="delivery_days",
            label="Delivery timeline",
            completed=bool(bid.delivery_days and bid.delivery_days > 0),
        ),
        ChecklistItem(key="technical_docs", label="Technical envelope", completed=bool(bid.technical_docs)),
        ChecklistItem(key="financial_docs", label="Financial envelope", completed=bool(bid.financial_docs)),
        ChecklistItem(key="emd_receipt", label="EMD receipt", completed=bid.has_emd_receipt),
    ]


def build_warnings(bid: Bid, tender: Tender, policy: ProcurementPolicy) -> list[str]:
    warnings: list[str] = []
    if not bid.technical_docs:
        warnings.append("Technical envelope is missing.")
    if not bid.financial_docs:
        warnings.append("Financial envelope is missing.")
    if not bid.has_emd_receipt:
        warnings.append("EMD receipt is missing.")

    estimate = tender.estimated_value or Decimal(0)
    amount = bid.amount or Decimal(0)
    if estimate > 0 and amount > 0:
        if amount < estimate * Decimal(str(policy.anomaly_ratio)):
            warnings.append(invariants.ANOMALY_NOTE)
        elif amount > estimate * Decimal(str(policy.review_high_ratio)):
            warnings.append("Quoted amount is much higher than tender estimate.")

    if (bid.delivery_days or 0) > policy.review_max_delivery_days:
        warnings.append("Delivery timeline is very long; this may reduce competitiveness.")
    if not bid.emd_payment_proof.transaction_id:
        warnings.append("EMD transaction ID is not provided.")
    if not bid.emd_payment_proof.payment_mode:
        warnings.append("EMD payment mode is not specified.")
    return warnings


class PreSubmitReviewer:
    """Builds readiness reviews, optionally narrated by a summarizer"""

    def __init__(
        self,
        time_provider: TimeProvider,
        policy: ProcurementPolicy,
        summarizer: Summarizer | None = None,
    ):
        self.time_provider = time_provider
        self.policy = policy
        self.summarizer = summarizer or NullSummarizer()

    def handle_review_bid(
        self,
        command: commands.ReviewBid,
        actor: Actor,
        tender_registry: TenderRegistry,
        bid_registry: BidRegistry,
    ) -> ReadinessReview:
        """
        Review a DRAFT bid

        Raises:
            NotFoundError: Unknown bid
            AuthorizationError: Not the bidding company
            StateConflictError: Bid not DRAFT or tender not PUBLISHED
        """
        bid = bid_registry.require(command.bid_id)
        tender = tender_registry.require(bid.tender_id)

        invariants.validate_bid_owner(actor, bid, "review")
        invariants.validate_bid_status(bid, BidStatus.DRAFT)
        tender_invariants.validate_open_for_bidding(tender)

        return self.review(bid, tender)

    def review(self, bid: Bid, tender: Tender) -> ReadinessReview:
        checklist = build_checklist(bid)
        score = sum(CHECK_WEIGHT for item in checklist if item.completed)

        review = ReadinessReview(
            bid_id=bid.bid_id,
            tender_id=tender.tender_id,
            generated_at=self.time_provider.now(),
            readiness_score=score,
            checklist=checklist,
            warnings=build_warnings(bid, tender, self.policy),
            next_actions=[f"Complete {item.label.lower()}." for item in checklist if not item.completed],
            summary=READY_SUMMARY if score == 100 else NOT_READY_SUMMARY,
        )

        try:
            narrative = self.summarizer.summarize_review(review, tender, bid)
        except Exception as e:
            # narrative failures only cost the narrative
            reason = str(e) or type(e).__name__
            logger.warning(
                "Review narrative unavailable, using deterministic review",
                bid_id=bid.bid_id,
                error_type=type(e).__name__,
                fallback_reason=reason,
            )
            narrative_fallbacks_total.labels(kind="review").inc()
            return review.model_copy(update={"fallback_reason": reason})

        if narrative is None:
            return review

        actions = [action.strip() for action in narrative.next_actions if action and action.strip()][:3]
        return review.model_copy(
            update={
                "model": self.summarizer.model,
                "summary": (narrative.summary or "").strip() or review.summary,
                "next_actions": actions or review.next_actions,
            }
        )
