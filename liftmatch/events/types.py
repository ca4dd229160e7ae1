"""Typed event definitions for reconciliation events.

These events represent decisions made while reconciling the roster:
- StrategyAttempted: One resolution strategy ran (hit, miss or error)
- IdentityConflictDetected: A write or match disagreed on an external id
- AthleteCreated: The resolver or splitter created an athlete
- AthleteEnriched: Null identity fields were filled on an athlete
- ResolutionCompleted: A resolve call returned an athlete
- ResultReassigned: The splitter moved a result to another athlete
- ResultOrphaned: The splitter could not place a result
- ResultDropped: A reassignment collided and the losing row was deleted
- PhantomAthleteDeleted: An athlete left without results was removed
"""

from pydantic import Field

from liftmatch.events.base import Event


class StrategyAttempted(Event):
    """Emitted after each strategy in the resolution chain runs."""

    strategy: str = Field(description="Strategy name")
    outcome: str = Field(description="resolved, skipped, miss or error")
    detail: str | None = Field(default=None, description="Why it missed or failed")


class IdentityConflictDetected(Event):
    """Emitted when an external id cannot be attached where it was found."""

    external_id: int | None = Field(default=None, description="The contested id")
    conflicting_athlete_id: int | None = Field(
        default=None, description="Athlete that already owns the id"
    )
    reason: str = Field(description="What kind of disagreement")


class AthleteCreated(Event):
    """Emitted when a new athlete record is created."""

    external_id: int | None = None
    source: str = Field(description="Which component created the athlete")


class AthleteEnriched(Event):
    """Emitted when null identity fields are filled on an athlete."""

    external_id: int | None = None
    membership_number: str | None = None


class ResolutionCompleted(Event):
    """Emitted when a resolve call settles on an athlete."""

    source: str = Field(description="Strategy or fallback that resolved it")
    created: bool = Field(default=False, description="Whether a new athlete was created")


class ResultReassigned(Event):
    """Emitted when a result moves from a contaminated athlete."""

    result_id: int
    from_athlete_id: int
    external_id: int = Field(description="Identity the result was matched to")


class ResultOrphaned(Event):
    """Emitted when a result cannot be assigned to exactly one identity."""

    result_id: int
    reason: str
    candidate_external_ids: list[int] = Field(default_factory=list)


class ResultDropped(Event):
    """Emitted when a colliding reassignment deletes the losing result."""

    result_id: int
    meet_id: int
    weight_class: str | None = None


class PhantomAthleteDeleted(Event):
    """Emitted when an athlete left with no results is deleted."""
