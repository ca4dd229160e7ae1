"""Contamination split schemas."""

from pydantic import BaseModel, Field

from liftmatch.models import OrphanResult


class Reassignment(BaseModel):
    """A result moved off a contaminated athlete."""

    result_id: int
    from_athlete_id: int
    to_athlete_id: int
    external_id: int = Field(description="Identity whose history matched the result")


class SplitReport(BaseModel):
    """What one split run did to a contaminated athlete."""

    source_athlete_id: int
    external_ids: list[int] = Field(
        default_factory=list, description="Identities found on the record, primary first"
    )
    kept_result_ids: list[int] = Field(
        default_factory=list, description="Results matched to the identity staying on the source"
    )
    reassignments: list[Reassignment] = Field(default_factory=list)
    orphans: list[OrphanResult] = Field(default_factory=list)
    created_athlete_ids: list[int] = Field(default_factory=list)
    reused_athlete_ids: list[int] = Field(default_factory=list)
    dropped_result_ids: list[int] = Field(
        default_factory=list, description="Reassignments that collided and were deleted"
    )
    deleted_athlete_ids: list[int] = Field(default_factory=list)
    released_external_ids: list[int] = Field(
        default_factory=list, description="Extra slots cleared after their identity moved out"
    )
    skipped_reason: str | None = None

    @property
    def changed(self) -> bool:
        """True if the run wrote anything."""
        return bool(
            self.reassignments
            or self.created_athlete_ids
            or self.dropped_result_ids
            or self.deleted_athlete_ids
            or self.released_external_ids
        )
