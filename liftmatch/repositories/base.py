"""Store protocol consumed by the resolver, detector and splitter."""

from typing import Protocol, runtime_checkable

from liftmatch.models import (
    Athlete,
    AthleteEnrichment,
    NewResult,
    ResultEnrichment,
    ResultRecord,
)


@runtime_checkable
class AthleteRecordStore(Protocol):
    """Persistent roster of athletes and their results.

    Uniqueness violations surface as ConflictError, every other failure as
    StoreError.
    """

    async def find_by_external_id(self, external_id: int) -> list[Athlete]:
        """Athletes carrying the id in the primary column or an extra slot."""
        ...

    async def find_owner(self, external_id: int) -> Athlete | None:
        """The athlete whose primary external id is ``external_id``."""
        ...

    async def find_by_name(self, display_name: str) -> list[Athlete]:
        """Athletes with exactly this display name, oldest first."""
        ...

    async def get(self, athlete_id: int) -> Athlete | None: ...

    async def create(
        self,
        display_name: str,
        external_id: int | None = None,
        membership_number: str | None = None,
        additional_external_ids: list[int] | None = None,
    ) -> Athlete: ...

    async def update(self, athlete_id: int, enrichment: AthleteEnrichment) -> Athlete:
        """Fill null fields only; never overwrites a present value."""
        ...

    async def remove_external_id_slot(self, athlete_id: int, external_id: int) -> bool: ...

    async def enrich_result(
        self, athlete_id: int, meet_id: int, enrichment: ResultEnrichment
    ) -> int:
        """Fill null enrichment fields on the athlete's rows for a meet."""
        ...

    async def add_result(self, result: NewResult) -> ResultRecord: ...

    async def list_results(self, athlete_id: int) -> list[ResultRecord]: ...

    async def athletes_with_result_at_meet(
        self, meet_id: int, athlete_ids: list[int]
    ) -> set[int]: ...

    async def reassign_result(self, result_id: int, athlete_id: int) -> None: ...

    async def delete_result(self, result_id: int) -> bool: ...

    async def delete_athlete_if_empty(self, athlete_id: int) -> bool: ...

    async def duplicate_names(
        self, names: list[str] | None = None, limit: int | None = None
    ) -> list[str]:
        """Display names shared by two or more athletes."""
        ...

    async def distinct_names(self) -> list[str]: ...

    async def contaminated_athletes(self) -> list[int]:
        """Ids of athletes with at least one extra external id slot."""
        ...
