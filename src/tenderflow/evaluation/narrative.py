"""
Narrative Augmenter

Optional natural-language layer over the deterministic reports. The engine
talks to a Summarizer; NullSummarizer contributes nothing (or fails with a
fixed reason when no provider is configured), and OpenAISummarizer asks a
chat model for JSON. Every failure is raised as ExternalServiceError, which
callers turn into the deterministic fallback plus a fallback_reason.
"""

import json
from typing import Any, Protocol

import openai
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from tenderflow.bid.models import Bid
from tenderflow.evaluation.models import (
    EvaluationNarrative,
    EvaluationReport,
    ReadinessReview,
    ReviewNarrative,
)
from tenderflow.kernel.errors import ExternalServiceError
from tenderflow.kernel.logging import get_logger
from tenderflow.kernel.retry import retry_on_transient_error
from tenderflow.tender.models import Tender

logger = get_logger(__name__)


class Summarizer(Protocol):
    """Capability interface for narrative generation"""

    model: str | None

    def summarize_evaluation(
        self, report: EvaluationReport, tender: Tender
    ) -> EvaluationNarrative | None:
        """Narrative for a bid evaluation (None = nothing to add)"""
        ...

    def summarize_review(
        self, review: ReadinessReview, tender: Tender, bid: Bid
    ) -> ReviewNarrative | None:
        """Narrative for a pre-submit readiness review (None = nothing to add)"""
        ...


MISSING_API_KEY = "OPENAI_API_KEY is not configured"


class NullSummarizer:
    """
    No narrative provider

    Given a reason (e.g. missing credentials), every call fails with it and
    reports carry it as their fallback_reason. Without one, reports keep
    their deterministic texts and no fallback_reason.
    """

    model: str | None = None

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason

    def _check_available(self) -> None:
        """
        Raises:
            ExternalServiceError: This summarizer stands in for a missing provider
        """
        if self.reason:
            raise ExternalServiceError(self.reason)

    def summarize_evaluation(
        self, report: EvaluationReport, tender: Tender
    ) -> EvaluationNarrative | None:
        self._check_available()
        return None

    def summarize_review(
        self, review: ReadinessReview, tender: Tender, bid: Bid
    ) -> ReviewNarrative | None:
        self._check_available()
        return None


EVALUATION_PROMPT = """You are assisting a tender poster with bid comparison.
Use only the provided data and do not invent facts.

Return ONLY JSON with this schema:
{{
  "summary": "string",
  "ranking": [
    {{"bid_id": "string", "bidder_company": "string", "position": 1, "reason": "string"}}
  ],
  "risks": [
    {{"bid_id": "string", "bidder_company": "string", "risk": "string", "severity": "LOW|MEDIUM|HIGH"}}
  ],
  "recommendation": "string"
}}

Tender:
{tender_json}

Deterministic scores (already computed):
{scores_json}
"""

REVIEW_PROMPT = """You are helping a bidder check a draft bid before submission.
Use only the provided data and do not invent facts.

Return ONLY JSON with this schema:
{{
  "summary": "string",
  "next_actions": ["string"]
}}

Tender:
{tender_json}

Draft bid:
{bid_json}

Deterministic checklist and warnings:
{review_json}
"""


def _tender_context(tender: Tender) -> str:
    return json.dumps(
        {
            "id": tender.tender_id,
            "title": tender.title,
            "category": tender.category,
            "estimated_value": str(tender.estimated_value) if tender.estimated_value is not None else None,
            "abnormally_low_bid_threshold": tender.abnormally_low_bid_threshold,
        },
        indent=2,
    )


def extract_json_object(text: str) -> dict[str, Any]:
    """
    Parse the outermost {...} of a model reply

    Raises:
        ExternalServiceError: No JSON object in the reply
    """
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        raise ExternalServiceError("Narrative response contained no JSON object")
    try:
        return json.loads(text[start : end + 1])
    except json.JSONDecodeError as e:
        raise ExternalServiceError(f"Narrative response was not valid JSON: {e}") from e


class OpenAISummarizer:
    """
    Chat-completion backed summarizer

    Example:
        summarizer = OpenAISummarizer(api_key=settings.openai_api_key)
        flow = Tenderflow("tenderflow.db", summarizer=summarizer)
    """

    def __init__(
        self,
        api_key: str | None,
        model: str = "gpt-4o-mini",
        timeout: float = 20.0,
        client: Any = None,
    ) -> None:
        """
        Args:
            api_key: OpenAI API key (None makes every call fail into the fallback)
            model: Chat model name
            timeout: Per-request timeout in seconds
            client: Pre-built client (tests inject a fake)
        """
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            if not self.api_key:
                raise ExternalServiceError(MISSING_API_KEY)
            self._client = openai.OpenAI(
                api_key=self.api_key, timeout=self.timeout, max_retries=0
            )
        return self._client

    @retry_on_transient_error(
        exceptions=(openai.APIConnectionError, openai.APITimeoutError, openai.RateLimitError)
    )
    def _create_completion(self, client: Any, prompt: str) -> Any:
        return client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=0,
            response_format={"type": "json_object"},
        )

    def _complete(self, prompt: str, result_type: type[BaseModel]) -> Any:
        client = self._get_client()
        try:
            response = self._create_completion(client, prompt)
            raw = (response.choices[0].message.content or "").strip()
        except openai.OpenAIError as e:
            raise ExternalServiceError(f"Narrative provider error: {e}") from e
        except (AttributeError, IndexError) as e:
            raise ExternalServiceError(f"Malformed narrative response: {e}") from e

        data = extract_json_object(raw)
        try:
            return result_type.model_validate(data)
        except PydanticValidationError as e:
            raise ExternalServiceError(f"Narrative response failed validation: {e}") from e

    def summarize_evaluation(
        self, report: EvaluationReport, tender: Tender
    ) -> EvaluationNarrative | None:
        prompt = EVALUATION_PROMPT.format(
            tender_json=_tender_context(tender),
            scores_json=json.dumps(
                [score.model_dump(mode="json") for score in report.deterministic_scores],
                indent=2,
            ),
        )
        return self._complete(prompt, EvaluationNarrative)

    def summarize_review(
        self, review: ReadinessReview, tender: Tender, bid: Bid
    ) -> ReviewNarrative | None:
        prompt = REVIEW_PROMPT.format(
            tender_json=_tender_context(tender),
            bid_json=json.dumps(
                {
                    "amount": str(bid.amount) if bid.amount is not None else None,
                    "delivery_days": bid.delivery_days,
                    "technical_docs": len(bid.technical_docs),
                    "financial_docs": len(bid.financial_docs),
                    "has_emd_receipt": bid.has_emd_receipt,
                },
                indent=2,
            ),
            review_json=json.dumps(
                review.model_dump(
                    mode="json", include={"readiness_score", "checklist", "warnings"}
                ),
                indent=2,
            ),
        )
        return self._complete(prompt, ReviewNarrative)


def build_summarizer(api_key: str | None, model: str, timeout: float) -> Summarizer:
    """OpenAISummarizer when a key is configured, otherwise a NullSummarizer that reports the missing key"""
    if api_key:
        logger.info("Narrative augmentation enabled", model=model)
        return OpenAISummarizer(api_key=api_key, model=model, timeout=timeout)
    return NullSummarizer(reason=MISSING_API_KEY)
