"""Repository for results a split could not assign.

Orphans stay attached to their source athlete; this table records why so
that a reviewer can settle them by hand.
"""

import json

from liftmatch.db.turso import TursoClient
from liftmatch.models import OrphanReason, OrphanResult


class OrphanRepository:
    """Persist orphaned results, one row per result id."""

    def __init__(self, db_client: TursoClient):
        self._db = db_client

    async def initialize(self) -> None:
        """Create orphan table if not exists."""
        await self._db.execute_batch(
            [
                """
            CREATE TABLE IF NOT EXISTS orphan_results (
                result_id INTEGER PRIMARY KEY,
                source_athlete_id INTEGER NOT NULL,
                reason TEXT NOT NULL,
                candidate_external_ids TEXT NOT NULL DEFAULT '[]',
                recorded_at TEXT NOT NULL
            )
            """,
                """
            CREATE INDEX IF NOT EXISTS idx_orphans_source
            ON orphan_results(source_athlete_id)
            """,
            ]
        )

    async def record(self, orphan: OrphanResult) -> None:
        """Save an orphan (upsert, so a re-run refreshes the reason)."""
        await self._db.execute(
            """
            INSERT INTO orphan_results
                (result_id, source_athlete_id, reason, candidate_external_ids, recorded_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(result_id)
            DO UPDATE SET
                source_athlete_id = excluded.source_athlete_id,
                reason = excluded.reason,
                candidate_external_ids = excluded.candidate_external_ids,
                recorded_at = excluded.recorded_at
            """,
            [
                orphan.result_id,
                orphan.source_athlete_id,
                orphan.reason.value,
                json.dumps(orphan.candidate_external_ids),
                orphan.recorded_at.isoformat(),
            ],
        )

    async def list_for_athlete(self, athlete_id: int) -> list[OrphanResult]:
        """Get all orphans recorded against a source athlete."""
        result = await self._db.execute(
            """
            SELECT result_id, source_athlete_id, reason,
                   candidate_external_ids, recorded_at
            FROM orphan_results
            WHERE source_athlete_id = ?
            ORDER BY result_id
            """,
            [athlete_id],
        )
        return [
            OrphanResult(
                result_id=row[0],
                source_athlete_id=row[1],
                reason=OrphanReason(row[2]),
                candidate_external_ids=json.loads(row[3]),
                recorded_at=row[4],
            )
            for row in result.rows
        ]
