"""
Kernel - event sourcing infrastructure shared by the tender and bid modules

Append-only log, conditional multi-stream writes, injectable clock, error
taxonomy, logging, retry, metrics and the periodic runner.

Fun fact: Event sourcing was inspired by accountants - they never erase ledger
entries, they add correcting entries. A withdrawn bid works the same way.
"""

from tenderflow.kernel.errors import (
    AuthorizationError,
    ConflictError,
    EligibilityError,
    ExternalServiceError,
    NotFoundError,
    StateConflictError,
    StoreError,
    StreamVersionConflict,
    TenderflowError,
    ValidationError,
)
from tenderflow.kernel.events import Event, create_event
from tenderflow.kernel.ids import bidder_stream_id, generate_id
from tenderflow.kernel.time import FixedTimeProvider, RealTimeProvider, TimeProvider

__all__ = [
    # IDs
    "generate_id",
    "bidder_stream_id",
    # Time
    "TimeProvider",
    "RealTimeProvider",
    "FixedTimeProvider",
    # Events
    "Event",
    "create_event",
    # Errors
    "TenderflowError",
    "ValidationError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "StateConflictError",
    "EligibilityError",
    "ExternalServiceError",
    "StoreError",
    "StreamVersionConflict",
]
