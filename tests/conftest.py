"""Pytest configuration and fixtures."""

from collections.abc import AsyncIterator
from datetime import date
from pathlib import Path

import pytest

from liftmatch.adapters.base import HistoryEntry, RankedAthlete
from liftmatch.config import Settings
from liftmatch.db.turso import TursoClient
from liftmatch.errors import UnknownDivisionError
from liftmatch.models import NewResult
from liftmatch.repositories.athlete_repo import AthleteRepository
from liftmatch.repositories.orphan_repo import OrphanRepository


class FakeRankings:
    """In-memory RankingsLookupService keyed by (age_category, weight_class)."""

    def __init__(self, divisions: dict[tuple[str, str], list[RankedAthlete]] | None = None):
        self.divisions = divisions or {}
        self.calls: list[tuple[str, str, date, date]] = []

    async def query(self, age_category, weight_class, date_start, date_end):
        self.calls.append((age_category, weight_class, date_start, date_end))
        key = (age_category, weight_class)
        if key not in self.divisions:
            raise UnknownDivisionError(age_category, weight_class)
        return list(self.divisions[key])


class FakeHistory:
    """In-memory MemberHistoryService."""

    def __init__(
        self,
        histories: dict[int, list[HistoryEntry]] | None = None,
        meet_pages: dict[int, set[str]] | None = None,
        memberships: dict[int, str] | None = None,
        members: dict[str, int] | None = None,
    ):
        self.histories = histories or {}
        self.meet_pages = meet_pages or {}
        self.memberships = memberships or {}
        self.members = members or {}
        self.history_calls: list[int] = []
        self.page_checks: list[tuple[int, str]] = []

    async def history(self, external_id):
        self.history_calls.append(external_id)
        return list(self.histories.get(external_id, []))

    async def verify_on_meet_page(self, meet_id, display_name):
        self.page_checks.append((meet_id, display_name))
        return display_name in self.meet_pages.get(meet_id, set())

    async def membership_number(self, external_id):
        return self.memberships.get(external_id)

    async def find_member(self, display_name):
        return self.members.get(display_name)


@pytest.fixture
def test_settings() -> Settings:
    """Settings with fast upstream timeouts."""
    return Settings(
        _env_file=None,
        upstream_timeout_seconds=1.0,
        upstream_max_attempts=1,
        max_concurrency=4,
    )


@pytest.fixture
async def db_client(tmp_path: Path) -> AsyncIterator[TursoClient]:
    """Create a temp file database client for testing."""
    db_path = tmp_path / "test_liftmatch.db"
    client = TursoClient(url=f"file:{db_path}")
    await client.connect()
    yield client
    await client.close()


@pytest.fixture
async def store(db_client: TursoClient) -> AthleteRepository:
    """Create AthleteRepository with initialized tables."""
    repo = AthleteRepository(db_client)
    await repo.initialize()
    return repo


@pytest.fixture
async def orphan_repo(db_client: TursoClient) -> OrphanRepository:
    """Create OrphanRepository with initialized table."""
    repo = OrphanRepository(db_client)
    await repo.initialize()
    return repo


@pytest.fixture
def rankings() -> FakeRankings:
    return FakeRankings()


@pytest.fixture
def history() -> FakeHistory:
    return FakeHistory()


@pytest.fixture
def make_result():
    """Factory for NewResult rows with sensible defaults."""

    def _make(athlete_id: int, meet_id: int, **fields) -> NewResult:
        defaults = {
            "meet_name": f"Meet {meet_id}",
            "event_date": date(2024, 3, 1),
            "age_category": "Open Women's",
            "weight_class": "64kg",
            "bodyweight_kg": 63.5,
        }
        defaults.update(fields)
        return NewResult(athlete_id=athlete_id, meet_id=meet_id, **defaults)

    return _make
