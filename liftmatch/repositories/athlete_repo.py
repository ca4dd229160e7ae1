"""Repository for athletes and their competition results.

Implements AthleteRecordStore on libSQL / SQLite via TursoClient. The
primary external id is unique across athletes; extra ids that a
contaminated record carries live in a JSON array column.
"""

import json
from datetime import UTC, datetime
from typing import Any

import structlog

from liftmatch.db.turso import TursoClient
from liftmatch.errors import ConflictError
from liftmatch.models import (
    Athlete,
    AthleteEnrichment,
    NewResult,
    ResultEnrichment,
    ResultRecord,
)

logger = structlog.get_logger()

ATHLETE_COLUMNS = (
    "athlete_id",
    "display_name",
    "external_id",
    "additional_external_ids",
    "membership_number",
    "created_at",
)

RESULT_COLUMNS = (
    "result_id",
    "athlete_id",
    "meet_id",
    "meet_name",
    "event_date",
    "age_category",
    "weight_class",
    "bodyweight_kg",
    "snatch_1",
    "snatch_2",
    "snatch_3",
    "cj_1",
    "cj_2",
    "cj_3",
    "best_snatch",
    "best_cj",
    "total",
    "club",
    "region",
    "gender",
    "competition_age",
    "national_rank",
)

_ATHLETE_SELECT = f"SELECT {', '.join(ATHLETE_COLUMNS)} FROM athletes"
_RESULT_SELECT = f"SELECT {', '.join(RESULT_COLUMNS)} FROM results"


def _row_to_dict(columns: tuple[str, ...], row: Any) -> dict[str, Any]:
    return {name: row[i] for i, name in enumerate(columns)}


def _to_athlete(row: Any) -> Athlete:
    data = _row_to_dict(ATHLETE_COLUMNS, row)
    data["additional_external_ids"] = json.loads(data["additional_external_ids"] or "[]")
    return Athlete(**data)


def _to_result(row: Any) -> ResultRecord:
    return ResultRecord(**_row_to_dict(RESULT_COLUMNS, row))


class AthleteRepository:
    """Athlete record store backed by libSQL.

    Enrichment writes use COALESCE so they only ever fill nulls. Writes that
    would break external-id or per-meet result uniqueness raise ConflictError
    and change nothing.
    """

    def __init__(self, db_client: TursoClient):
        """Initialize repository with database client.

        Args:
            db_client: TursoClient instance for database operations
        """
        self._db = db_client

    async def initialize(self) -> None:
        """Create athlete and result tables if not exists."""
        await self._db.execute_batch(
            [
                """
            CREATE TABLE IF NOT EXISTS athletes (
                athlete_id INTEGER PRIMARY KEY AUTOINCREMENT,
                display_name TEXT NOT NULL,
                external_id INTEGER UNIQUE,
                additional_external_ids TEXT NOT NULL DEFAULT '[]',
                membership_number TEXT,
                created_at TEXT NOT NULL
            )
            """,
                """
            CREATE INDEX IF NOT EXISTS idx_athletes_name
            ON athletes(display_name)
            """,
                """
            CREATE TABLE IF NOT EXISTS results (
                result_id INTEGER PRIMARY KEY AUTOINCREMENT,
                athlete_id INTEGER NOT NULL REFERENCES athletes(athlete_id),
                meet_id INTEGER NOT NULL,
                meet_name TEXT,
                event_date TEXT,
                age_category TEXT,
                weight_class TEXT,
                bodyweight_kg REAL,
                snatch_1 REAL,
                snatch_2 REAL,
                snatch_3 REAL,
                cj_1 REAL,
                cj_2 REAL,
                cj_3 REAL,
                best_snatch REAL,
                best_cj REAL,
                total REAL,
                club TEXT,
                region TEXT,
                gender TEXT,
                competition_age INTEGER,
                national_rank INTEGER
            )
            """,
                """
            CREATE UNIQUE INDEX IF NOT EXISTS idx_results_meet_athlete_class
            ON results(meet_id, athlete_id, COALESCE(weight_class, ''))
            """,
                """
            CREATE INDEX IF NOT EXISTS idx_results_athlete
            ON results(athlete_id)
            """,
            ]
        )

    # Athletes

    async def get(self, athlete_id: int) -> Athlete | None:
        """Get an athlete by store id."""
        result = await self._db.execute(
            f"{_ATHLETE_SELECT} WHERE athlete_id = ?",
            [athlete_id],
        )
        return _to_athlete(result.rows[0]) if result.rows else None

    async def find_by_external_id(self, external_id: int) -> list[Athlete]:
        """Find athletes carrying an external id in any slot.

        More than one hit means an integrity problem: the id is someone's
        primary and also sits in a contaminated record's extra slots.
        """
        result = await self._db.execute(
            f"""
            {_ATHLETE_SELECT}
            WHERE external_id = ?
               OR EXISTS (
                   SELECT 1 FROM json_each(athletes.additional_external_ids)
                   WHERE json_each.value = ?
               )
            ORDER BY athlete_id
            """,
            [external_id, external_id],
        )
        return [_to_athlete(row) for row in result.rows]

    async def find_owner(self, external_id: int) -> Athlete | None:
        """Find the athlete whose primary external id matches."""
        result = await self._db.execute(
            f"{_ATHLETE_SELECT} WHERE external_id = ?",
            [external_id],
        )
        return _to_athlete(result.rows[0]) if result.rows else None

    async def find_by_name(self, display_name: str) -> list[Athlete]:
        """Find athletes with an exactly equal display name, oldest first."""
        result = await self._db.execute(
            f"{_ATHLETE_SELECT} WHERE display_name = ? ORDER BY athlete_id",
            [display_name],
        )
        return [_to_athlete(row) for row in result.rows]

    async def create(
        self,
        display_name: str,
        external_id: int | None = None,
        membership_number: str | None = None,
        additional_external_ids: list[int] | None = None,
    ) -> Athlete:
        """Insert a new athlete.

        Raises:
            ConflictError: If ``external_id`` already belongs to an athlete
        """
        created_at = datetime.now(UTC).isoformat()
        try:
            result = await self._db.execute(
                """
                INSERT INTO athletes
                    (display_name, external_id, additional_external_ids,
                     membership_number, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                [
                    display_name,
                    external_id,
                    json.dumps(additional_external_ids or []),
                    membership_number,
                    created_at,
                ],
            )
        except ConflictError as e:
            owner = await self.find_owner(external_id) if external_id is not None else None
            raise ConflictError(
                f"external id {external_id} already belongs to another athlete",
                external_id=external_id,
                conflicting_athlete_id=owner.athlete_id if owner else None,
            ) from e

        athlete = await self.get(result.last_insert_rowid)
        logger.info(
            "athlete created",
            athlete_id=athlete.athlete_id,
            display_name=display_name,
            external_id=external_id,
        )
        return athlete

    async def update(self, athlete_id: int, enrichment: AthleteEnrichment) -> Athlete:
        """Fill null identity fields on an athlete.

        Raises:
            ConflictError: If the external id belongs to a different athlete
        """
        if not enrichment.is_empty():
            try:
                await self._db.execute(
                    """
                    UPDATE athletes
                    SET external_id = COALESCE(external_id, ?),
                        membership_number = COALESCE(membership_number, ?)
                    WHERE athlete_id = ?
                    """,
                    [enrichment.external_id, enrichment.membership_number, athlete_id],
                )
            except ConflictError as e:
                owner = await self.find_owner(enrichment.external_id)
                raise ConflictError(
                    f"external id {enrichment.external_id} already belongs to another athlete",
                    external_id=enrichment.external_id,
                    athlete_id=athlete_id,
                    conflicting_athlete_id=owner.athlete_id if owner else None,
                ) from e
        return await self.get(athlete_id)

    async def remove_external_id_slot(self, athlete_id: int, external_id: int) -> bool:
        """Drop an id from an athlete's extra slots.

        Returns:
            True if the slot was present and removed
        """
        athlete = await self.get(athlete_id)
        if athlete is None or external_id not in athlete.additional_external_ids:
            return False
        remaining = [i for i in athlete.additional_external_ids if i != external_id]
        await self._db.execute(
            "UPDATE athletes SET additional_external_ids = ? WHERE athlete_id = ?",
            [json.dumps(remaining), athlete_id],
        )
        return True

    async def delete_athlete_if_empty(self, athlete_id: int) -> bool:
        """Delete an athlete only if no result references it.

        Returns:
            True if the athlete was deleted
        """
        result = await self._db.execute(
            """
            DELETE FROM athletes
            WHERE athlete_id = ?
              AND NOT EXISTS (SELECT 1 FROM results WHERE results.athlete_id = ?)
            """,
            [athlete_id, athlete_id],
        )
        return result.rows_affected > 0

    async def duplicate_names(
        self, names: list[str] | None = None, limit: int | None = None
    ) -> list[str]:
        """List display names shared by two or more athletes.

        Args:
            names: Restrict to these names
            limit: Maximum number of names returned

        Returns:
            Names ordered by group size (largest first), then name
        """
        sql = "SELECT display_name, COUNT(*) AS n FROM athletes"
        params: list[Any] = []
        if names:
            sql += f" WHERE display_name IN ({', '.join('?' for _ in names)})"
            params.extend(names)
        sql += " GROUP BY display_name HAVING COUNT(*) >= 2 ORDER BY n DESC, display_name"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        result = await self._db.execute(sql, params)
        return [row[0] for row in result.rows]

    async def distinct_names(self) -> list[str]:
        """List every display name in the roster."""
        result = await self._db.execute(
            "SELECT DISTINCT display_name FROM athletes ORDER BY display_name"
        )
        return [row[0] for row in result.rows]

    async def contaminated_athletes(self) -> list[int]:
        """List ids of athletes with at least one extra external id."""
        result = await self._db.execute(
            """
            SELECT athlete_id FROM athletes
            WHERE json_array_length(additional_external_ids) > 0
            ORDER BY athlete_id
            """
        )
        return [row[0] for row in result.rows]

    # Results

    async def add_result(self, result: NewResult) -> ResultRecord:
        """Insert a result row.

        Raises:
            ConflictError: If the athlete already has a result for the meet
                and weight class
        """
        data = result.model_dump()
        if data["event_date"] is not None:
            data["event_date"] = data["event_date"].isoformat()
        columns = RESULT_COLUMNS[1:]
        inserted = await self._db.execute(
            f"""
            INSERT INTO results ({', '.join(columns)})
            VALUES ({', '.join('?' for _ in columns)})
            """,
            [data[name] for name in columns],
        )
        return await self._get_result(inserted.last_insert_rowid)

    async def list_results(self, athlete_id: int) -> list[ResultRecord]:
        """List an athlete's results in date order."""
        result = await self._db.execute(
            f"{_RESULT_SELECT} WHERE athlete_id = ? ORDER BY event_date, result_id",
            [athlete_id],
        )
        return [_to_result(row) for row in result.rows]

    async def athletes_with_result_at_meet(
        self, meet_id: int, athlete_ids: list[int]
    ) -> set[int]:
        """Which of the given athletes already have a result at a meet."""
        if not athlete_ids:
            return set()
        result = await self._db.execute(
            f"""
            SELECT DISTINCT athlete_id FROM results
            WHERE meet_id = ? AND athlete_id IN ({', '.join('?' for _ in athlete_ids)})
            """,
            [meet_id, *athlete_ids],
        )
        return {row[0] for row in result.rows}

    async def enrich_result(
        self, athlete_id: int, meet_id: int, enrichment: ResultEnrichment
    ) -> int:
        """Fill null ranking metadata on an athlete's rows for a meet.

        Returns:
            Number of rows touched
        """
        if enrichment.is_empty():
            return 0
        result = await self._db.execute(
            """
            UPDATE results
            SET club = COALESCE(club, ?),
                region = COALESCE(region, ?),
                gender = COALESCE(gender, ?),
                competition_age = COALESCE(competition_age, ?),
                national_rank = COALESCE(national_rank, ?)
            WHERE athlete_id = ? AND meet_id = ?
            """,
            [
                enrichment.club,
                enrichment.region,
                enrichment.gender,
                enrichment.competition_age,
                enrichment.national_rank,
                athlete_id,
                meet_id,
            ],
        )
        return result.rows_affected

    async def reassign_result(self, result_id: int, athlete_id: int) -> None:
        """Move a result to another athlete.

        Raises:
            ConflictError: If the target already has a result for the same
                meet and weight class
        """
        try:
            await self._db.execute(
                "UPDATE results SET athlete_id = ? WHERE result_id = ?",
                [athlete_id, result_id],
            )
        except ConflictError as e:
            raise ConflictError(
                f"athlete {athlete_id} already has result for the meet of {result_id}",
                athlete_id=athlete_id,
            ) from e

    async def delete_result(self, result_id: int) -> bool:
        """Delete a result row.

        Returns:
            True if a row was deleted
        """
        result = await self._db.execute(
            "DELETE FROM results WHERE result_id = ?",
            [result_id],
        )
        return result.rows_affected > 0

    async def _get_result(self, result_id: int) -> ResultRecord:
        result = await self._db.execute(
            f"{_RESULT_SELECT} WHERE result_id = ?",
            [result_id],
        )
        return _to_result(result.rows[0])
