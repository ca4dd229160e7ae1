"""ContaminationSplitter partitions a conflated athlete's results.

A contaminated athlete record carries more than one member id: earlier
scraping merged several real people sharing a name. The split runs in
five steps under a per-athlete lock:

1. Identify - the ids on the record, primary first
2. Collect - every id's authoritative history (abort on any failure)
3. Match - each result against the histories; unique match or orphan
4. Reconstruct - move matched results to the athlete owning each id
5. Repair - drop colliding reassignments, delete emptied athletes

Re-running on the same athlete changes nothing further.
"""

import asyncio

import structlog

from liftmatch.adapters.base import HistoryEntry, MemberHistoryService
from liftmatch.config import MatchTolerances, Settings, get_settings
from liftmatch.contamination.matching import identities_matching
from liftmatch.contamination.schemas import Reassignment, SplitReport
from liftmatch.dedup.schemas import CaseType, DuplicateCase
from liftmatch.errors import ConflictError, OrphanResultError, UpstreamUnavailableError
from liftmatch.events import (
    AthleteCreated,
    Event,
    EventBus,
    PhantomAthleteDeleted,
    ResultDropped,
    ResultOrphaned,
    ResultReassigned,
)
from liftmatch.identity.locks import KeyedLocks
from liftmatch.models import (
    Athlete,
    AthleteEnrichment,
    OrphanReason,
    OrphanResult,
    ResultRecord,
)
from liftmatch.repositories.base import AthleteRecordStore
from liftmatch.repositories.orphan_repo import OrphanRepository
from liftmatch.services.upstream import UpstreamGuard

logger = structlog.get_logger()


class ContaminationSplitter:
    """Splits athletes that conflate several member ids."""

    def __init__(
        self,
        store: AthleteRecordStore,
        history: MemberHistoryService,
        *,
        orphans: OrphanRepository | None = None,
        settings: Settings | None = None,
        tolerances: MatchTolerances | None = None,
        event_bus: EventBus | None = None,
        locks: KeyedLocks | None = None,
    ):
        """Initialize splitter.

        Args:
            store: Athlete record store
            history: Member history lookups
            orphans: Where unassignable results are recorded
            settings: Source of defaults
            tolerances: Matching windows; defaults to settings
            event_bus: Optional bus receiving split events
            locks: Lock registry, shared with other splitters and resolvers
                on the same store
        """
        self._store = store
        self._history = history
        self._orphans = orphans
        config = settings or get_settings()
        self._tolerances = tolerances or config.tolerances()
        self.guard = UpstreamGuard.from_settings(config)
        self._bus = event_bus
        self._locks = locks or KeyedLocks()

    async def split(self, athlete_id: int) -> SplitReport:
        """Split one athlete's results across the identities it conflates.

        Args:
            athlete_id: Store id of the contaminated athlete

        Returns:
            SplitReport of every change made (empty with ``skipped_reason``
            when there is nothing to split)

        Raises:
            UpstreamUnavailableError: If any history could not be fetched;
                nothing has been written in that case
            StoreError: If the store fails
        """
        async with self._locks.lock(("athlete", athlete_id)):
            return await self._split(athlete_id)

    async def split_case(self, case: DuplicateCase) -> list[SplitReport]:
        """Split every contaminated member of a ``split`` duplicate case."""
        if case.case_type is not CaseType.SPLIT:
            logger.info("case is not a split", case_id=case.case_id, case_type=case.case_type.value)
            return []
        return [await self.split(athlete_id) for athlete_id in case.athlete_ids]

    async def _split(self, athlete_id: int) -> SplitReport:
        report = SplitReport(source_athlete_id=athlete_id)
        source = await self._store.get(athlete_id)
        if source is None:
            report.skipped_reason = "athlete not found"
            return report

        # 1. Identify
        external_ids = source.all_external_ids
        report.external_ids = external_ids
        if len(external_ids) < 2:
            report.skipped_reason = "single identity"
            return report

        # 2. Collect
        histories = await self._collect_histories(external_ids)
        results = await self._store.list_results(athlete_id)

        # 3. Match
        assignments: dict[int, list[ResultRecord]] = {external_id: [] for external_id in external_ids}
        for result in results:
            matched = identities_matching(result, histories, self._tolerances.split_bodyweight_kg)
            if len(matched) == 1:
                assignments[matched[0]].append(result)
            else:
                await self._orphan(report, source, result, matched)

        primary = external_ids[0]
        report.kept_result_ids = [r.result_id for r in assignments[primary]]
        if source.external_id is None:
            await self._promote_primary(source, primary)

        # 4. Reconstruct
        empty_before: dict[int, bool] = {source.athlete_id: not results}
        for external_id in external_ids[1:]:
            moved = assignments[external_id]
            if not moved:
                continue
            target = await self._target_for(report, source, external_id)
            if target.athlete_id not in empty_before:
                if target.athlete_id in report.created_athlete_ids:
                    empty_before[target.athlete_id] = False
                else:
                    existing = await self._store.list_results(target.athlete_id)
                    empty_before[target.athlete_id] = not existing
            for result in moved:
                await self._reassign(report, source, result, target, external_id)
            if await self._store.remove_external_id_slot(source.athlete_id, external_id):
                report.released_external_ids.append(external_id)

        # 5. Repair: delete athletes this run left without results
        for involved, was_empty in empty_before.items():
            if was_empty:
                continue
            if await self._store.delete_athlete_if_empty(involved):
                report.deleted_athlete_ids.append(involved)
                await self._publish(PhantomAthleteDeleted(athlete_id=involved))

        logger.info(
            "athlete split",
            athlete_id=athlete_id,
            identities=len(external_ids),
            kept=len(report.kept_result_ids),
            reassigned=len(report.reassignments),
            orphaned=len(report.orphans),
            dropped=len(report.dropped_result_ids),
            created=len(report.created_athlete_ids),
            deleted=len(report.deleted_athlete_ids),
        )
        return report

    async def _collect_histories(self, external_ids: list[int]) -> dict[int, list[HistoryEntry]]:
        """Fetch every identity's history, or fail without side effects."""

        async def fetch(external_id: int) -> list[HistoryEntry]:
            return await self.guard.call(
                "history.history",
                lambda: self._history.history(external_id),
            )

        fetched = await asyncio.gather(
            *(fetch(external_id) for external_id in external_ids),
            return_exceptions=True,
        )
        histories: dict[int, list[HistoryEntry]] = {}
        for external_id, outcome in zip(external_ids, fetched, strict=True):
            if isinstance(outcome, BaseException):
                logger.warning(
                    "split aborted, history unavailable",
                    external_id=external_id,
                    error=str(outcome),
                )
                raise outcome
            histories[external_id] = outcome
        return histories

    async def _promote_primary(self, source: Athlete, external_id: int) -> None:
        """Give a slot-only record its first id as the primary."""
        try:
            await self._store.update(source.athlete_id, AthleteEnrichment(external_id=external_id))
        except ConflictError:
            logger.warning(
                "primary id already owned elsewhere",
                athlete_id=source.athlete_id,
                external_id=external_id,
            )
            return
        await self._store.remove_external_id_slot(source.athlete_id, external_id)

    async def _target_for(self, report: SplitReport, source: Athlete, external_id: int) -> Athlete:
        """The athlete owning an id, created on first need."""
        owner = await self._store.find_owner(external_id)
        if owner is not None:
            if owner.athlete_id not in report.reused_athlete_ids:
                report.reused_athlete_ids.append(owner.athlete_id)
            return owner

        membership_number = None
        try:
            membership_number = await self.guard.call(
                "history.membership_number",
                lambda: self._history.membership_number(external_id),
            )
        except UpstreamUnavailableError as e:
            logger.info("membership number lookup skipped", external_id=external_id, reason=e.reason)

        athlete = await self._store.create(
            source.display_name,
            external_id=external_id,
            membership_number=membership_number,
        )
        report.created_athlete_ids.append(athlete.athlete_id)
        await self._publish(
            AthleteCreated(
                athlete_id=athlete.athlete_id,
                display_name=athlete.display_name,
                external_id=external_id,
                source="splitter",
            )
        )
        return athlete

    async def _reassign(
        self,
        report: SplitReport,
        source: Athlete,
        result: ResultRecord,
        target: Athlete,
        external_id: int,
    ) -> None:
        try:
            await self._store.reassign_result(result.result_id, target.athlete_id)
        except ConflictError:
            # Target already holds this meet and class; the moved copy loses
            await self._store.delete_result(result.result_id)
            report.dropped_result_ids.append(result.result_id)
            logger.warning(
                "duplicate result dropped",
                result_id=result.result_id,
                meet_id=result.meet_id,
                target_athlete_id=target.athlete_id,
            )
            await self._publish(
                ResultDropped(
                    athlete_id=target.athlete_id,
                    result_id=result.result_id,
                    meet_id=result.meet_id,
                    weight_class=result.weight_class,
                )
            )
            return

        report.reassignments.append(
            Reassignment(
                result_id=result.result_id,
                from_athlete_id=source.athlete_id,
                to_athlete_id=target.athlete_id,
                external_id=external_id,
            )
        )
        await self._publish(
            ResultReassigned(
                athlete_id=target.athlete_id,
                display_name=source.display_name,
                result_id=result.result_id,
                from_athlete_id=source.athlete_id,
                external_id=external_id,
            )
        )

    async def _orphan(
        self,
        report: SplitReport,
        source: Athlete,
        result: ResultRecord,
        matched: list[int],
    ) -> None:
        error = OrphanResultError(
            result.result_id,
            OrphanReason.MULTIPLE_MATCHES.value if matched else OrphanReason.NO_MATCH.value,
            matched,
        )
        orphan = OrphanResult(
            result_id=error.result_id,
            source_athlete_id=source.athlete_id,
            reason=OrphanReason(error.reason),
            candidate_external_ids=error.candidate_external_ids,
        )
        report.orphans.append(orphan)
        logger.info("result orphaned", athlete_id=source.athlete_id, detail=str(error))
        if self._orphans is not None:
            await self._orphans.record(orphan)
        await self._publish(
            ResultOrphaned(
                athlete_id=source.athlete_id,
                display_name=source.display_name,
                result_id=result.result_id,
                reason=orphan.reason.value,
                candidate_external_ids=matched,
            )
        )

    async def _publish(self, event: Event) -> None:
        if self._bus is not None:
            await self._bus.publish(event)
