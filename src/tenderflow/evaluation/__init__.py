"""
Bid evaluation

Deterministic scoring, statistics and risk flags, with an optional narrative
layer that can only ever add text, never change a score.
"""

from tenderflow.evaluation.engine import EvaluationEngine
from tenderflow.evaluation.models import BidStatistics, EvaluationReport, ReadinessReview
from tenderflow.evaluation.narrative import NullSummarizer, OpenAISummarizer, Summarizer

__all__ = [
    "EvaluationEngine",
    "EvaluationReport",
    "BidStatistics",
    "ReadinessReview",
    "Summarizer",
    "NullSummarizer",
    "OpenAISummarizer",
]
