"""
Evaluation Models

Report shapes for post-hoc bid analysis and the pre-submit readiness review.
Scores are plain floats rounded to 2 decimals; money is converted from
Decimal at the edge of the engine.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class RiskSeverity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class BidScore(BaseModel):
    """Deterministic per-bid score sheet"""

    bid_id: str
    bidder_company: str
    amount: float
    delivery_days: int
    status: str
    technical_docs_count: int
    financial_docs_count: int
    price_score: float
    delivery_score: float
    docs_score: float
    weighted_score: float
    risk_flags: list[str] = Field(default_factory=list)


class RankingEntry(BaseModel):
    bid_id: str
    bidder_company: str
    position: int = Field(..., ge=1)
    reason: str
    weighted_score: float | None = None


class RiskEntry(BaseModel):
    bid_id: str
    bidder_company: str
    risk: str
    severity: RiskSeverity = RiskSeverity.MEDIUM


class BidStatistics(BaseModel):
    """Distribution of the evaluated bids (all values rounded to 2 decimals)"""

    bids_count: int = 0
    min_bid: float = 0.0
    max_bid: float = 0.0
    average_bid: float = 0.0
    median_bid: float = 0.0
    range_bid: float = 0.0
    std_deviation_bid: float = 0.0
    coefficient_of_variation_pct: float = 0.0
    average_delivery_days: float = 0.0
    min_delivery_days: int = 0
    max_delivery_days: int = 0
    estimated_value: float = 0.0
    average_vs_estimate_pct: float = 0.0


class EvaluationReport(BaseModel):
    """
    Ranked, risk-annotated analysis of a tender's bids

    Always usable: when no narrative is available the summary and
    recommendation are the deterministic fallback texts.
    """

    tender_id: str
    model: str | None = Field(default=None, description="Narrative model used, if any")
    generated_at: datetime
    summary: str
    ranking: list[RankingEntry] = Field(default_factory=list)
    risks: list[RiskEntry] = Field(default_factory=list)
    recommendation: str
    deterministic_scores: list[BidScore] = Field(default_factory=list)
    statistics: BidStatistics = Field(default_factory=BidStatistics)
    fallback_reason: str | None = None


class EvaluationNarrative(BaseModel):
    """What a summarizer may contribute to an evaluation report"""

    summary: str | None = None
    ranking: list[RankingEntry] = Field(default_factory=list)
    risks: list[RiskEntry] | None = None
    recommendation: str | None = None


# ============================================================================
# Pre-submit readiness review
# ============================================================================


class ChecklistItem(BaseModel):
    key: str
    label: str
    completed: bool


class ReadinessReview(BaseModel):
    """Advisory report for a DRAFT bid; never mutates anything"""

    bid_id: str
    tender_id: str
    model: str | None = None
    generated_at: datetime
    readiness_score: int = Field(..., ge=0, le=100)
    checklist: list[ChecklistItem] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    next_actions: list[str] = Field(default_factory=list)
    summary: str
    fallback_reason: str | None = None

    @property
    def ready(self) -> bool:
        return all(item.completed for item in self.checklist)


class ReviewNarrative(BaseModel):
    """What a summarizer may contribute to a readiness review"""

    summary: str | None = None
    next_actions: list[str] = Field(default_factory=list)
