"""Identity resolution schemas.

Defines the evidence attached to an incoming result and the outcome of
resolving it to an athlete.
"""

from datetime import date
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from liftmatch.models import Athlete


class MatchSignals(BaseModel):
    """Evidence accompanying a display name for one incoming result.

    All fields are optional; each strategy uses what is present and skips
    what is not.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    external_id: int | None = Field(default=None, description="Member id, when scraped")
    membership_number: str | None = None
    meet_id: int | None = None
    meet_name: str | None = None
    event_date: date | None = None
    age_category: str | None = Field(default=None, description="e.g. \"Open Women's\"")
    weight_class: str | None = Field(default=None, description="e.g. \"64kg\"")
    bodyweight_kg: float | None = None
    expected_total: float | None = None
    expected_snatch: float | None = None
    expected_cj: float | None = None

    @field_validator("membership_number", mode="before")
    @classmethod
    def stringify_membership(cls, v: object) -> str | None:
        """Membership numbers are scraped as ints or strings."""
        if v is None or v == "":
            return None
        return str(v).strip()


class ResolutionSource(str, Enum):
    """How an athlete was determined."""

    EXTERNAL_ID = "external_id"
    CREATED = "created"
    EXTERNAL_ID_CANDIDATE = "external_id_candidate"
    UNLINKED_CANDIDATE = "unlinked_candidate"
    DIVISION = "division"
    DIVISION_REPAIR = "division_repair"
    HISTORY = "history"
    FALLBACK_REUSED = "fallback_reused"
    FALLBACK_CREATED = "fallback_created"


class StrategyOutcome(str, Enum):
    """What happened when a strategy ran."""

    RESOLVED = "resolved"
    MISS = "miss"
    SKIPPED = "skipped"
    ERROR = "error"


class StrategyAttempt(BaseModel):
    """One entry in a resolution trace."""

    strategy: str
    outcome: StrategyOutcome
    detail: str | None = None


class IdentityConflict(BaseModel):
    """An external id that could not be attached where it was found."""

    external_id: int | None = None
    athlete_id: int | None = Field(default=None, description="Athlete we tried to write")
    conflicting_athlete_id: int | None = Field(
        default=None, description="Athlete that already owns the id"
    )
    reason: str


class ResolutionResult(BaseModel):
    """Result of resolving one display name.

    Tracks the resolved athlete, which strategy settled it, whether it was
    newly created, and every conflict and strategy attempt on the way.
    """

    athlete: Athlete
    source: ResolutionSource = Field(description="How the athlete was determined")
    created: bool = Field(default=False, description="True if a new athlete was created")
    conflicts: list[IdentityConflict] = Field(default_factory=list)
    trace: list[StrategyAttempt] = Field(default_factory=list)

    @property
    def is_verified(self) -> bool:
        """Check if the athlete was confirmed by evidence.

        Soft fallbacks and creations for unseen names are not verified.
        """
        return self.source not in {
            ResolutionSource.FALLBACK_REUSED,
            ResolutionSource.FALLBACK_CREATED,
            ResolutionSource.CREATED,
        }


class BatchItemFailure(BaseModel):
    """A batch item whose resolution raised."""

    index: int
    display_name: str
    error: str
    error_type: str


class BatchResolution(BaseModel):
    """Outcome of resolving a batch: results by input index, plus failures."""

    results: dict[int, ResolutionResult] = Field(default_factory=dict)
    failures: list[BatchItemFailure] = Field(default_factory=list)
