"""Exception hierarchy for identity reconciliation.

Tier-local failures (UpstreamUnavailableError, UnknownDivisionError) are
recovered by the resolver falling through to the next tier. StoreError is
fatal to the current operation and propagates unchanged.
"""


class ReconciliationError(Exception):
    """Base class for all reconciliation errors."""


class MissingNameError(ReconciliationError, ValueError):
    """Raised when a resolution is requested with an empty display name."""


class ConflictError(ReconciliationError):
    """A write would violate a uniqueness constraint.

    Never resolved by overwriting: the losing write is dropped and logged.
    """

    def __init__(
        self,
        message: str,
        *,
        external_id: int | None = None,
        athlete_id: int | None = None,
        conflicting_athlete_id: int | None = None,
    ):
        super().__init__(message)
        self.external_id = external_id
        self.athlete_id = athlete_id
        self.conflicting_athlete_id = conflicting_athlete_id


class AmbiguousIdentityError(ReconciliationError):
    """Every tier was exhausted without verifying a candidate."""

    def __init__(self, display_name: str, candidate_ids: list[int]):
        super().__init__(
            f"Could not verify '{display_name}' among {len(candidate_ids)} candidate(s)"
        )
        self.display_name = display_name
        self.candidate_ids = candidate_ids


class UpstreamUnavailableError(ReconciliationError):
    """A lookup or history service timed out or failed."""

    def __init__(self, operation: str, reason: str):
        super().__init__(f"{operation} unavailable: {reason}")
        self.operation = operation
        self.reason = reason


class UnknownDivisionError(ReconciliationError, LookupError):
    """The rankings service has no division for the requested key."""

    def __init__(self, age_category: str, weight_class: str):
        super().__init__(f"Unknown division: {age_category} {weight_class}")
        self.age_category = age_category
        self.weight_class = weight_class


class OrphanResultError(ReconciliationError):
    """A result could not be matched to exactly one identity during a split."""

    def __init__(self, result_id: int, reason: str, candidate_external_ids: list[int]):
        super().__init__(f"Result {result_id} orphaned: {reason}")
        self.result_id = result_id
        self.reason = reason
        self.candidate_external_ids = candidate_external_ids


class StoreError(ReconciliationError):
    """The athlete record store failed."""
