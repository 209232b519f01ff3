"""
Procurement policy and runtime settings

ProcurementPolicy holds the numeric parameters of the workflow: scoring
weights, anomaly thresholds and readiness-review bounds. TenderflowSettings
holds the deployment knobs read from the environment.

Fun fact: The 0.5/0.2/0.3 split mirrors the classic "most economically
advantageous tender" practice of weighting price at roughly half.
"""

import os
from pathlib import Path

from pydantic import BaseModel, Field, model_validator


class ProcurementPolicy(BaseModel):
    """
    Workflow parameters

    Defaults reproduce the reference evaluation exactly; changing them
    changes every score, so tests pin the defaults.
    """

    policy_version: str = Field(
        default="1.0",
        description="Policy version for tracking changes over time",
    )

    # Weighted score composition
    price_weight: float = Field(default=0.5, ge=0.0, le=1.0)
    delivery_weight: float = Field(default=0.2, ge=0.0, le=1.0)
    docs_weight: float = Field(default=0.3, ge=0.0, le=1.0)

    docs_complete_score: float = Field(
        default=100.0,
        ge=0.0,
        le=100.0,
        description="Documentation score when both envelopes are present",
    )
    docs_incomplete_score: float = Field(
        default=40.0,
        ge=0.0,
        le=100.0,
        description="Documentation score when either envelope is missing",
    )

    # Risk flags
    default_abnormally_low_threshold: float = Field(
        default=20.0,
        ge=0.0,
        le=100.0,
        description="Percent below estimate that flags a bid as abnormally low",
    )

    # Submit-time anomaly marking
    anomaly_ratio: float = Field(
        default=0.7,
        gt=0.0,
        le=1.0,
        description="Amounts below this fraction of the estimate are marked anomalous at submit",
    )
    anomaly_score: int = Field(
        default=85,
        ge=0,
        le=100,
        description="Anomaly score attached to such bids",
    )

    # Pre-submit review warnings
    review_high_ratio: float = Field(
        default=1.25,
        ge=1.0,
        description="Amounts above this fraction of the estimate trigger a review warning",
    )
    review_max_delivery_days: int = Field(
        default=180,
        ge=1,
        description="Delivery timelines beyond this trigger a review warning",
    )

    @model_validator(mode="after")
    def _weights_sum_to_one(self) -> "ProcurementPolicy":
        total = self.price_weight + self.delivery_weight + self.docs_weight
        if abs(total - 1.0) > 1e-9:
            raise ValueError(f"Score weights must sum to 1.0, got {total}")
        return self


class TenderflowSettings(BaseModel):
    """Deployment settings (see from_env for the variable names)"""

    db_path: Path = Field(default=Path("tenderflow.db"))
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")
    openai_api_key: str | None = Field(default=None, repr=False)
    narrative_model: str = Field(default="gpt-4o-mini")
    narrative_timeout: float = Field(default=20.0, gt=0)
    sweep_interval_seconds: int = Field(
        default=3600,
        ge=1,
        description="Expiry sweep period (hourly by default)",
    )
    metrics_port: int | None = Field(default=None, ge=1, le=65535)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @classmethod
    def from_env(cls) -> "TenderflowSettings":
        """
        Build settings from environment variables

        TENDERFLOW_DB, ENVIRONMENT, TENDERFLOW_LOG_LEVEL, OPENAI_API_KEY,
        TENDERFLOW_NARRATIVE_MODEL, TENDERFLOW_NARRATIVE_TIMEOUT,
        TENDERFLOW_SWEEP_INTERVAL, TENDERFLOW_METRICS_PORT
        """
        values: dict[str, object] = {}
        env_map = {
            "TENDERFLOW_DB": "db_path",
            "ENVIRONMENT": "environment",
            "TENDERFLOW_LOG_LEVEL": "log_level",
            "OPENAI_API_KEY": "openai_api_key",
            "TENDERFLOW_NARRATIVE_MODEL": "narrative_model",
            "TENDERFLOW_NARRATIVE_TIMEOUT": "narrative_timeout",
            "TENDERFLOW_SWEEP_INTERVAL": "sweep_interval_seconds",
            "TENDERFLOW_METRICS_PORT": "metrics_port",
        }
        for env_name, field_name in env_map.items():
            raw = os.getenv(env_name)
            if raw:
                values[field_name] = raw
        return cls.model_validate(values)
