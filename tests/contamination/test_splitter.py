"""Tests for ContaminationSplitter."""

import asyncio
from datetime import date

import pytest

from liftmatch.adapters.base import HistoryEntry
from liftmatch.config import Settings
from liftmatch.contamination import ContaminationSplitter
from liftmatch.dedup.schemas import (
    CaseType,
    DuplicateCase,
    DuplicateEvidence,
    RecommendedAction,
)
from liftmatch.errors import UpstreamUnavailableError
from liftmatch.events import EventBus, ResultOrphaned, ResultReassigned
from liftmatch.models import OrphanReason


SPRING = {"meet_name": "Spring Open", "event_date": date(2024, 3, 1), "bodyweight_kg": 80.0,
          "best_snatch": 100, "best_cj": 120, "total": 220}
SUMMER = {"meet_name": "Summer Classic", "event_date": date(2024, 6, 1), "bodyweight_kg": 95.0,
          "best_snatch": 110, "best_cj": 140, "total": 250}
AUTUMN = {"meet_name": "Autumn Cup", "event_date": date(2024, 9, 1), "bodyweight_kg": 88.0,
          "best_snatch": 90, "best_cj": 110, "total": 200}


def history_of(fields: dict) -> HistoryEntry:
    return HistoryEntry(
        meet_name=fields["meet_name"],
        date=fields["event_date"],
        bodyweight=fields["bodyweight_kg"] + 0.5,
        snatch=fields["best_snatch"],
        cj=fields["best_cj"],
        total=fields["total"],
    )


class FailingHistory:
    """History service whose lookups fail for chosen ids."""

    def __init__(self, failing: set[int], histories: dict[int, list[HistoryEntry]]):
        self.failing = failing
        self.histories = histories

    async def history(self, external_id):
        if external_id in self.failing:
            raise RuntimeError("history page unavailable")
        return list(self.histories.get(external_id, []))

    async def verify_on_meet_page(self, meet_id, display_name):
        return False

    async def membership_number(self, external_id):
        return None

    async def find_member(self, display_name):
        return None


@pytest.fixture
def sam_history(history):
    """Member 11 lifted at Spring Open, member 22 at Summer Classic."""
    history.histories.update({11: [history_of(SPRING)], 22: [history_of(SUMMER)]})
    history.memberships[22] = "M22"
    return history


@pytest.fixture
async def sam_ortiz(store, make_result):
    """A record conflating members 11 and 22, plus one unexplained result."""
    athlete = await store.create("Sam Ortiz", external_id=11, additional_external_ids=[22])
    spring = await store.add_result(make_result(athlete.athlete_id, 1, **SPRING))
    summer = await store.add_result(make_result(athlete.athlete_id, 2, **SUMMER))
    autumn = await store.add_result(make_result(athlete.athlete_id, 3, **AUTUMN))
    return athlete, spring, summer, autumn


def make_splitter(store, history, orphan_repo=None, settings=None, **kwargs):
    return ContaminationSplitter(
        store, history, orphans=orphan_repo, settings=settings, **kwargs
    )


class TestSplit:
    @pytest.mark.asyncio
    async def test_splits_conflated_identities(
        self, store, orphan_repo, test_settings, sam_history, sam_ortiz
    ):
        athlete, spring, summer, autumn = sam_ortiz
        splitter = make_splitter(store, sam_history, orphan_repo, test_settings)

        report = await splitter.split(athlete.athlete_id)

        assert report.external_ids == [11, 22]
        assert report.kept_result_ids == [spring.result_id]
        assert len(report.created_athlete_ids) == 1
        new_id = report.created_athlete_ids[0]
        assert [(r.result_id, r.to_athlete_id, r.external_id) for r in report.reassignments] == [
            (summer.result_id, new_id, 22)
        ]
        assert [(o.result_id, o.reason) for o in report.orphans] == [
            (autumn.result_id, OrphanReason.NO_MATCH)
        ]
        assert report.released_external_ids == [22]
        assert report.changed is True

    @pytest.mark.asyncio
    async def test_store_reflects_split(
        self, store, orphan_repo, test_settings, sam_history, sam_ortiz
    ):
        athlete, spring, summer, autumn = sam_ortiz
        splitter = make_splitter(store, sam_history, orphan_repo, test_settings)

        await splitter.split(athlete.athlete_id)

        source = await store.get(athlete.athlete_id)
        assert source.all_external_ids == [11]
        assert [r.result_id for r in await store.list_results(athlete.athlete_id)] == [
            spring.result_id,
            autumn.result_id,
        ]

        owner = await store.find_owner(22)
        assert owner.display_name == "Sam Ortiz"
        assert owner.membership_number == "M22"
        assert [r.result_id for r in await store.list_results(owner.athlete_id)] == [
            summer.result_id
        ]

        orphans = await orphan_repo.list_for_athlete(athlete.athlete_id)
        assert [o.result_id for o in orphans] == [autumn.result_id]

    @pytest.mark.asyncio
    async def test_rerun_changes_nothing(self, store, test_settings, sam_history, sam_ortiz):
        athlete, *_ = sam_ortiz
        splitter = make_splitter(store, sam_history, settings=test_settings)
        await splitter.split(athlete.athlete_id)

        again = await splitter.split(athlete.athlete_id)

        assert again.skipped_reason == "single identity"
        assert again.changed is False
        assert len(await store.find_by_name("Sam Ortiz")) == 2

    @pytest.mark.asyncio
    async def test_result_in_two_histories_is_orphaned(
        self, store, history, test_settings, sam_ortiz
    ):
        athlete, spring, *_ = sam_ortiz
        history.histories.update({11: [history_of(SPRING)], 22: [history_of(SPRING)]})
        splitter = make_splitter(store, history, settings=test_settings)

        report = await splitter.split(athlete.athlete_id)

        orphan = next(o for o in report.orphans if o.result_id == spring.result_id)
        assert orphan.reason is OrphanReason.MULTIPLE_MATCHES
        assert orphan.candidate_external_ids == [11, 22]
        assert spring.result_id not in report.kept_result_ids

    @pytest.mark.asyncio
    async def test_history_failure_aborts_before_writing(
        self, store, orphan_repo, test_settings, sam_ortiz
    ):
        athlete, *_ = sam_ortiz
        history = FailingHistory(failing={22}, histories={11: [history_of(SPRING)]})
        splitter = make_splitter(store, history, orphan_repo, test_settings)
        before = await store.list_results(athlete.athlete_id)

        with pytest.raises(UpstreamUnavailableError):
            await splitter.split(athlete.athlete_id)

        assert await store.list_results(athlete.athlete_id) == before
        assert (await store.get(athlete.athlete_id)).all_external_ids == [11, 22]
        assert await store.find_owner(22) is None
        assert await orphan_repo.list_for_athlete(athlete.athlete_id) == []

    @pytest.mark.asyncio
    async def test_slow_history_times_out_under_injected_settings(
        self, store, sam_history, sam_ortiz
    ):
        athlete, *_ = sam_ortiz
        settings = Settings(_env_file=None, upstream_timeout_seconds=0.05, upstream_max_attempts=1)
        fetch = sam_history.history

        async def slow_history(external_id):
            await asyncio.sleep(0.5)
            return await fetch(external_id)

        sam_history.history = slow_history
        splitter = make_splitter(store, sam_history, settings=settings)

        with pytest.raises(UpstreamUnavailableError, match="timed out"):
            await splitter.split(athlete.athlete_id)

        assert (await store.get(athlete.athlete_id)).all_external_ids == [11, 22]

    @pytest.mark.asyncio
    async def test_reuses_existing_owner(self, store, test_settings, sam_history, sam_ortiz):
        athlete, _, summer, _ = sam_ortiz
        owner = await store.create("Sam Ortiz", external_id=22)
        splitter = make_splitter(store, sam_history, settings=test_settings)

        report = await splitter.split(athlete.athlete_id)

        assert report.created_athlete_ids == []
        assert report.reused_athlete_ids == [owner.athlete_id]
        assert report.reassignments[0].to_athlete_id == owner.athlete_id
        assert [r.result_id for r in await store.list_results(owner.athlete_id)] == [
            summer.result_id
        ]

    @pytest.mark.asyncio
    async def test_colliding_reassignment_is_dropped(
        self, store, make_result, test_settings, sam_history, sam_ortiz
    ):
        athlete, _, summer, _ = sam_ortiz
        owner = await store.create("Sam Ortiz", external_id=22)
        kept = await store.add_result(make_result(owner.athlete_id, 2, **SUMMER))
        splitter = make_splitter(store, sam_history, settings=test_settings)

        report = await splitter.split(athlete.athlete_id)

        assert report.dropped_result_ids == [summer.result_id]
        assert report.reassignments == []
        assert report.released_external_ids == [22]
        assert [r.result_id for r in await store.list_results(owner.athlete_id)] == [
            kept.result_id
        ]
        remaining = [r.result_id for r in await store.list_results(athlete.athlete_id)]
        assert summer.result_id not in remaining

    @pytest.mark.asyncio
    async def test_emptied_source_is_deleted(self, store, history, make_result, test_settings):
        athlete = await store.create("Ana Lee", external_id=11, additional_external_ids=[22])
        await store.add_result(make_result(athlete.athlete_id, 2, **SUMMER))
        history.histories.update({11: [], 22: [history_of(SUMMER)]})
        splitter = make_splitter(store, history, settings=test_settings)

        report = await splitter.split(athlete.athlete_id)

        assert report.deleted_athlete_ids == [athlete.athlete_id]
        assert await store.get(athlete.athlete_id) is None

    @pytest.mark.asyncio
    async def test_slot_only_record_gets_primary(
        self, store, history, make_result, test_settings
    ):
        athlete = await store.create("Ana Lee", additional_external_ids=[11, 22])
        await store.add_result(make_result(athlete.athlete_id, 1, **SPRING))
        history.histories.update({11: [history_of(SPRING)], 22: []})
        splitter = make_splitter(store, history, settings=test_settings)

        report = await splitter.split(athlete.athlete_id)

        source = await store.get(athlete.athlete_id)
        assert report.external_ids == [11, 22]
        assert source.external_id == 11
        assert 11 not in source.additional_external_ids

    @pytest.mark.asyncio
    async def test_missing_athlete_is_skipped(self, store, test_settings, sam_history):
        splitter = make_splitter(store, sam_history, settings=test_settings)

        report = await splitter.split(999)

        assert report.skipped_reason == "athlete not found"
        assert sam_history.history_calls == []

    @pytest.mark.asyncio
    async def test_events_published(self, store, test_settings, sam_history, sam_ortiz):
        athlete, _, summer, autumn = sam_ortiz
        bus = EventBus()
        reassigned: list[ResultReassigned] = []
        orphaned: list[ResultOrphaned] = []
        bus.subscribe(ResultReassigned, reassigned.append)
        bus.subscribe(ResultOrphaned, orphaned.append)
        splitter = make_splitter(store, sam_history, settings=test_settings, event_bus=bus)

        await splitter.split(athlete.athlete_id)

        assert [e.result_id for e in reassigned] == [summer.result_id]
        assert [e.result_id for e in orphaned] == [autumn.result_id]
        assert orphaned[0].reason == "no_match"


class TestSplitCase:
    def case(self, athlete_ids: list[int], case_type: CaseType) -> DuplicateCase:
        return DuplicateCase(
            case_id="DUP_" + "-".join(str(i) for i in sorted(athlete_ids)),
            display_name="Sam Ortiz",
            athlete_ids=athlete_ids,
            confidence_score=35,
            case_type=case_type,
            recommended_action=RecommendedAction.SPLIT,
            evidence=DuplicateEvidence(),
        )

    @pytest.mark.asyncio
    async def test_split_case_runs_every_member(
        self, store, test_settings, sam_history, sam_ortiz
    ):
        athlete, *_ = sam_ortiz
        other = await store.create("Sam Ortiz")
        splitter = make_splitter(store, sam_history, settings=test_settings)

        reports = await splitter.split_case(
            self.case([athlete.athlete_id, other.athlete_id], CaseType.SPLIT)
        )

        assert [r.source_athlete_id for r in reports] == [athlete.athlete_id, other.athlete_id]
        assert reports[0].changed is True
        assert reports[1].skipped_reason == "single identity"

    @pytest.mark.asyncio
    async def test_merge_case_is_ignored(self, store, test_settings, sam_history, sam_ortiz):
        athlete, *_ = sam_ortiz
        splitter = make_splitter(store, sam_history, settings=test_settings)

        reports = await splitter.split_case(self.case([athlete.athlete_id], CaseType.MERGE))

        assert reports == []
        assert sam_history.history_calls == []
