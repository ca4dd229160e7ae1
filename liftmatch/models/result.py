"""Competition result models."""

from datetime import date

from pydantic import BaseModel, Field

from liftmatch.models.base import StoredModel


class NewResult(StoredModel):
    """A result row before the store assigns it an id."""

    athlete_id: int
    meet_id: int
    meet_name: str | None = None
    event_date: date | None = None
    age_category: str | None = None
    weight_class: str | None = None
    bodyweight_kg: float | None = None
    snatch_1: float | None = None
    snatch_2: float | None = None
    snatch_3: float | None = None
    cj_1: float | None = None
    cj_2: float | None = None
    cj_3: float | None = None
    best_snatch: float | None = None
    best_cj: float | None = None
    total: float | None = None
    club: str | None = None
    region: str | None = None
    gender: str | None = None
    competition_age: int | None = None
    national_rank: int | None = None


class ResultRecord(NewResult):
    """A stored result. (meet_id, athlete_id, weight_class) is unique."""

    result_id: int = Field(description="Store-assigned identifier")

    @property
    def attempt_signature(self) -> tuple[float | None, ...]:
        """The six attempts in lifting order."""
        return (
            self.snatch_1,
            self.snatch_2,
            self.snatch_3,
            self.cj_1,
            self.cj_2,
            self.cj_3,
        )


class ResultEnrichment(BaseModel):
    """Ranking metadata written onto the resolved athlete's result row."""

    club: str | None = None
    region: str | None = None
    gender: str | None = None
    competition_age: int | None = Field(default=None, ge=0)
    national_rank: int | None = Field(default=None, ge=0)

    def is_empty(self) -> bool:
        """Check whether there is anything to write."""
        return not any(v is not None for v in self.model_dump().values())
