"""Orphaned result model."""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field


class OrphanReason(str, Enum):
    """Why a result could not be assigned during a split."""

    NO_MATCH = "no_match"
    MULTIPLE_MATCHES = "multiple_matches"


class OrphanResult(BaseModel):
    """A result left on the source athlete because no single identity owns it."""

    result_id: int
    source_athlete_id: int
    reason: OrphanReason
    candidate_external_ids: list[int] = Field(
        default_factory=list,
        description="Identities whose history matched (empty for NO_MATCH)",
    )
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
