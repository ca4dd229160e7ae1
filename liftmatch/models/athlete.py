"""Athlete model: one real person's reconciled record in the roster."""

from datetime import UTC, datetime

from pydantic import BaseModel, Field, field_validator

from liftmatch.models.base import StoredModel


class Athlete(StoredModel):
    """Canonical athlete identity.

    The store assigns ``athlete_id``. ``external_id`` is the source site's
    member id and is unique across athletes when present. Records produced
    by earlier scraping defects may carry extra ids in
    ``additional_external_ids``; such a record is contaminated.
    """

    athlete_id: int = Field(description="Store-assigned identifier")
    display_name: str = Field(min_length=1, description="Name as shown on the source site")
    external_id: int | None = Field(default=None, description="Source site member id")
    additional_external_ids: list[int] = Field(
        default_factory=list,
        description="Extra member ids attached to a contaminated record",
    )
    membership_number: str | None = Field(default=None, description="Federation membership #")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the record was created",
    )

    @property
    def all_external_ids(self) -> list[int]:
        """Primary id followed by additional slots, without duplicates."""
        ids: list[int] = []
        for value in [self.external_id, *self.additional_external_ids]:
            if value is not None and value not in ids:
                ids.append(value)
        return ids

    @property
    def is_contaminated(self) -> bool:
        """True when the record conflates more than one member id."""
        return len(self.all_external_ids) > 1


class AthleteEnrichment(BaseModel):
    """Fields the resolver may fill in on an existing athlete."""

    external_id: int | None = None
    membership_number: str | None = None

    @field_validator("membership_number", mode="before")
    @classmethod
    def stringify_membership(cls, v: object) -> str | None:
        """Membership numbers are scraped as ints or strings."""
        if v is None or v == "":
            return None
        return str(v).strip()

    def is_empty(self) -> bool:
        """Check whether there is anything to write."""
        return self.external_id is None and self.membership_number is None
