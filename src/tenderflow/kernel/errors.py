"""
Error taxonomy for tenderflow

Every failure a caller can observe maps to exactly one class below, so the
outer layer can translate it to a response without string matching.

Fun fact: Sealed-bid tendering was already codified in the English Navy Board
rules of the 1660s, including the rule that a withdrawn offer stays withdrawn.
"""


class TenderflowError(Exception):
    """Base exception for all tenderflow errors"""

    pass


# ============================================================================
# Domain errors (4xx equivalents)
# ============================================================================


class ValidationError(TenderflowError):
    """
    Malformed or incomplete input

    Never retried automatically - the caller has to fix the input.
    """

    def __init__(self, message: str, problems: list[str] | None = None) -> None:
        self.problems = problems or []
        if self.problems:
            message = f"{message}: {'; '.join(self.problems)}"
        super().__init__(message)


class AuthorizationError(TenderflowError):
    """Actor's company or role does not allow the operation"""

    def __init__(self, actor_id: str, action: str, reason: str = "") -> None:
        self.actor_id = actor_id
        self.action = action
        super().__init__(
            f"Actor {actor_id} is not allowed to {action}" + (f" - {reason}" if reason else "")
        )


class NotFoundError(TenderflowError):
    """Unknown id, or an id not visible to the actor"""

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class ConflictError(TenderflowError):
    """Operation collides with existing state (e.g. a live bid already exists)"""

    pass


class StateConflictError(ConflictError):
    """
    Operation is not valid for the entity's current lifecycle state

    Also raised for lost races: the write was conditional on a state that
    changed in between. Safe to retry after re-reading state.
    """

    def __init__(
        self,
        entity: str,
        entity_id: str,
        current: str | None,
        expected: str | list[str] | None = None,
        message: str = "",
    ) -> None:
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.expected = expected
        if not message:
            message = f"{entity} {entity_id} is {current}"
            if expected:
                wanted = expected if isinstance(expected, str) else " or ".join(expected)
                message += f", must be {wanted}"
        super().__init__(message)


class EligibilityError(TenderflowError):
    """Bidder is permanently disqualified for this tender - never retryable"""

    def __init__(self, tender_id: str, company_id: str) -> None:
        self.tender_id = tender_id
        self.company_id = company_id
        super().__init__(
            f"Company {company_id} withdrew a bid on tender {tender_id} "
            "and can no longer bid on it"
        )


# ============================================================================
# Infrastructure errors
# ============================================================================


class ExternalServiceError(TenderflowError):
    """
    Narrative or embedding provider failure

    Recovered locally through the deterministic fallback; never surfaced as
    a request failure.
    """

    pass


class StoreError(TenderflowError):
    """Base class for persistence failures (surfaced as a generic server error)"""

    pass


class StreamVersionConflict(StoreError):
    """
    Raised when stream version doesn't match expected (optimistic locking)

    Indicates concurrent modification - the façade turns this into a
    StateConflictError for the caller.
    """

    def __init__(
        self, stream_id: str, expected_version: int, actual_version: int
    ) -> None:
        self.stream_id = stream_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Stream {stream_id} version mismatch: "
            f"expected {expected_version}, got {actual_version}"
        )
