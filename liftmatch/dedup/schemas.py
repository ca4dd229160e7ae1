"""Duplicate detection schemas."""

from datetime import date
from enum import Enum

from pydantic import BaseModel, Field


class CaseType(str, Enum):
    """What a same-name group most likely is."""

    MERGE = "merge"
    SPLIT = "split"
    AMBIGUOUS = "ambiguous"


class RecommendedAction(str, Enum):
    """Suggested follow-up for a duplicate case."""

    AUTO_MERGE = "auto_merge"
    MANUAL_REVIEW = "manual_review"
    SPLIT = "split"


class DuplicateScanScope(BaseModel):
    """Which part of the roster a scan covers."""

    names: list[str] | None = Field(
        default=None, description="Only these display names (default: all)"
    )
    max_groups: int | None = Field(
        default=None, ge=1, description="Cap on same-name groups analysed"
    )


class HistorySummary(BaseModel):
    """Result history of one member of a same-name group."""

    athlete_id: int
    external_id: int | None = None
    membership_number: str | None = None
    result_count: int = 0
    first_competition: date | None = None
    last_competition: date | None = None
    weight_class_range: str | None = Field(
        default=None, description="First and last distinct class, e.g. \"55kg - 81kg\""
    )
    best_total: float | None = None
    avg_total: float | None = None
    competition_count: int = Field(default=0, description="Distinct meets")


class PatternFlags(BaseModel):
    """Performance patterns found across a same-name group."""

    identical_performances: bool = False
    temporal_conflicts: bool = False
    weight_class_anomalies: bool = False
    performance_anomalies: bool = False


class DuplicateEvidence(BaseModel):
    """Signals behind a case's score. None means no data to compare."""

    name_match: bool = True
    external_id_match: bool | None = None
    membership_match: bool | None = None
    performance_overlap: bool = False
    timeline_conflict: bool = False
    weight_class_conflict: bool = False
    performance_anomaly: bool = False
    overlapping_careers: bool = False


class DuplicateCase(BaseModel):
    """A same-name group worth a reviewer's attention."""

    case_id: str = Field(description="DUP_ followed by the sorted athlete ids")
    display_name: str
    athlete_ids: list[int]
    confidence_score: int = Field(ge=0, le=100)
    case_type: CaseType
    recommended_action: RecommendedAction
    evidence: DuplicateEvidence
    members: list[HistorySummary] = Field(default_factory=list)
    notes: str = ""


class SimilarNamePair(BaseModel):
    """Two distinct display names that differ only trivially."""

    name_a: str
    name_b: str
    similarity: float = Field(ge=0.0, le=1.0)
