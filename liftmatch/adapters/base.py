"""Base types for lookup adapters.

This module defines the protocols for the two read-only services the
resolver and splitter consult on the source results site, and the records
they return. The scraping / browser-automation layer implements them.
"""

from datetime import date
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RankedAthlete(BaseModel):
    """One row of a division ranking listing."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(description="Display name as listed")
    external_id: int | None = Field(default=None, description="Member id, when exposed")
    club: str | None = None
    region: str | None = None
    rank: int | None = Field(default=None, description="National rank in division")
    age: int | None = Field(default=None, description="Competition age")
    gender: str | None = None
    total: float | None = None
    membership_number: str | None = None

    @field_validator("membership_number", mode="before")
    @classmethod
    def stringify_membership(cls, v: object) -> str | None:
        """Membership numbers are scraped as ints or strings."""
        if v is None or v == "":
            return None
        return str(v).strip()


class HistoryEntry(BaseModel):
    """One competition on a member's authoritative history page."""

    model_config = ConfigDict(str_strip_whitespace=True)

    meet_name: str
    date: date
    category: str | None = Field(
        default=None, description="Division text, e.g. \"Open Men's 67kg\""
    )
    bodyweight: float | None = None
    snatch: float | None = Field(default=None, description="Best snatch")
    cj: float | None = Field(default=None, description="Best clean & jerk")
    total: float | None = None


@runtime_checkable
class RankingsLookupService(Protocol):
    """Division ranking lookups (Tier 1)."""

    async def query(
        self,
        age_category: str,
        weight_class: str,
        date_start: date,
        date_end: date,
    ) -> list[RankedAthlete]:
        """List athletes ranked in a division over a date window.

        Raises:
            UnknownDivisionError: If the division key is not known
        """
        ...


@runtime_checkable
class MemberHistoryService(Protocol):
    """Member profile lookups (Tier 2 and the contamination splitter)."""

    async def history(self, external_id: int) -> list[HistoryEntry]:
        """Full competition history for a member id."""
        ...

    async def verify_on_meet_page(self, meet_id: int, display_name: str) -> bool:
        """Check whether a name is listed on a meet's official results."""
        ...

    async def membership_number(self, external_id: int) -> str | None:
        """Membership number shown on the member profile, if any."""
        ...

    async def find_member(self, display_name: str) -> int | None:
        """Search the site for a member id by name."""
        ...
