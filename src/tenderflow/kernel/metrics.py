"""
Prometheus metrics collection for tenderflow

Counters and histograms for the store, lifecycle transitions, evaluation
runs and the expiry sweep.
"""

import time
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from prometheus_client import Counter, Gauge, Histogram, start_http_server

# ============================================================================
# Event Store Metrics
# ============================================================================

events_appended_total = Counter(
    "tenderflow_events_appended_total",
    "Total number of events appended to the event store",
    ["stream_type", "event_type"],
)

stream_version_conflicts_total = Counter(
    "tenderflow_stream_version_conflicts_total",
    "Total number of optimistic locking version conflicts",
    ["stream_type"],
)

# ============================================================================
# Operation Metrics
# ============================================================================

operation_duration_seconds = Histogram(
    "tenderflow_operation_duration_seconds",
    "Duration of workflow operations in seconds",
    ["operation"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

operations_processed_total = Counter(
    "tenderflow_operations_processed_total",
    "Total number of workflow operations processed",
    ["operation", "status"],  # status: success, failure
)

state_conflicts_total = Counter(
    "tenderflow_state_conflicts_total",
    "Operations rejected because of the entity's lifecycle state (including lost races)",
    ["operation"],
)

# ============================================================================
# Lifecycle Metrics
# ============================================================================

tender_transitions_total = Counter(
    "tenderflow_tender_transitions_total",
    "Tender status transitions",
    ["to_status"],
)

bid_transitions_total = Counter(
    "tenderflow_bid_transitions_total",
    "Bid status transitions",
    ["to_status"],
)

tenders_by_status = Gauge(
    "tenderflow_tenders_by_status",
    "Number of tenders by status",
    ["status"],
)

# ============================================================================
# Evaluation Metrics
# ============================================================================

evaluations_total = Counter(
    "tenderflow_evaluations_total",
    "Bid evaluation reports generated",
    ["narrative"],  # narrative: none, augmented, fallback
)

narrative_fallbacks_total = Counter(
    "tenderflow_narrative_fallbacks_total",
    "Narrative provider failures recovered by the deterministic fallback",
    ["kind"],  # kind: evaluation, review
)

# ============================================================================
# Expiry Sweep Metrics
# ============================================================================

sweep_duration_seconds = Histogram(
    "tenderflow_sweep_duration_seconds",
    "Duration of an expiry sweep run in seconds",
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0),
)

tenders_expired_total = Counter(
    "tenderflow_tenders_expired_total",
    "Tenders moved to EXPIRED by the sweep",
)

sweep_runs_skipped_total = Counter(
    "tenderflow_sweep_runs_skipped_total",
    "Scheduled sweep runs skipped because the previous run was still active",
)

# ============================================================================
# Helper Functions
# ============================================================================

P = ParamSpec("P")
R = TypeVar("R")


def track_operation(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator to track operation duration and outcome

    Args:
        operation: Logical operation name (e.g. "submit_bid")
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start = time.perf_counter()
            status = "success"
            try:
                return func(*args, **kwargs)
            except Exception:
                status = "failure"
                raise
            finally:
                operation_duration_seconds.labels(operation=operation).observe(
                    time.perf_counter() - start
                )
                operations_processed_total.labels(operation=operation, status=status).inc()

        return wrapper

    return decorator


def start_metrics_server(port: int = 9090) -> None:
    """Start Prometheus metrics HTTP server on the given port"""
    start_http_server(port)
