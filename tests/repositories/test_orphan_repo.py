"""Tests for OrphanRepository."""

import pytest

from liftmatch.db.turso import TursoClient
from liftmatch.models import OrphanReason, OrphanResult
from liftmatch.repositories.orphan_repo import OrphanRepository


@pytest.mark.asyncio
async def test_initialize_creates_table(db_client: TursoClient):
    """Initialize should create orphan_results table."""
    repo = OrphanRepository(db_client)
    await repo.initialize()

    result = await db_client.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name='orphan_results'"
    )
    assert len(result.rows) == 1


@pytest.mark.asyncio
async def test_record_and_list(orphan_repo: OrphanRepository):
    """Should save orphans and list them per source athlete."""
    await orphan_repo.record(
        OrphanResult(
            result_id=2,
            source_athlete_id=1,
            reason=OrphanReason.MULTIPLE_MATCHES,
            candidate_external_ids=[11, 22],
        )
    )
    await orphan_repo.record(
        OrphanResult(result_id=1, source_athlete_id=1, reason=OrphanReason.NO_MATCH)
    )
    await orphan_repo.record(
        OrphanResult(result_id=3, source_athlete_id=9, reason=OrphanReason.NO_MATCH)
    )

    orphans = await orphan_repo.list_for_athlete(1)

    assert [o.result_id for o in orphans] == [1, 2]
    assert orphans[0].reason is OrphanReason.NO_MATCH
    assert orphans[0].candidate_external_ids == []
    assert orphans[1].candidate_external_ids == [11, 22]


@pytest.mark.asyncio
async def test_record_overwrites_existing(orphan_repo: OrphanRepository):
    """Record should upsert, so a re-run refreshes the reason."""
    await orphan_repo.record(
        OrphanResult(result_id=1, source_athlete_id=1, reason=OrphanReason.NO_MATCH)
    )
    await orphan_repo.record(
        OrphanResult(
            result_id=1,
            source_athlete_id=1,
            reason=OrphanReason.MULTIPLE_MATCHES,
            candidate_external_ids=[11, 22],
        )
    )

    orphans = await orphan_repo.list_for_athlete(1)

    assert len(orphans) == 1
    assert orphans[0].reason is OrphanReason.MULTIPLE_MATCHES


@pytest.mark.asyncio
async def test_list_for_unknown_athlete_is_empty(orphan_repo: OrphanRepository):
    assert await orphan_repo.list_for_athlete(42) == []
