"""Resolution strategies.

Each strategy inspects a shared ResolutionContext and either settles the
athlete or hands over to the next one. The resolver runs them in order:

1. ExternalIdFastPath - member id already known to the store
2. NameCandidates - load same-name athletes; create when there are none
3. CheapDisambiguation - pick among several candidates by stored ids
4. DivisionCrossCheck - Tier 1, division ranking listing
5. DivisionRepair - Tier 1 retried with recomputed / adjacent divisions
6. HistoryCrossCheck - Tier 2, member competition histories
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Protocol

import structlog

from liftmatch.adapters.base import (
    HistoryEntry,
    MemberHistoryService,
    RankedAthlete,
    RankingsLookupService,
)
from liftmatch.config import MatchTolerances
from liftmatch.errors import ConflictError, UnknownDivisionError, UpstreamUnavailableError
from liftmatch.events import AthleteCreated, AthleteEnriched, Event, IdentityConflictDetected
from liftmatch.identity.locks import KeyedLocks
from liftmatch.identity.schemas import (
    IdentityConflict,
    MatchSignals,
    ResolutionSource,
    StrategyOutcome,
)
from liftmatch.identity.verification import (
    HistoryVerdict,
    history_gender,
    ids_conflict,
    map_ranked_to_candidate,
    match_history,
    ranked_name_matches,
    select_ranked_entry,
)
from liftmatch.identity.weight_class import (
    alternate_spacing,
    alternative_divisions,
    classify_weight_class,
)
from liftmatch.models import Athlete, AthleteEnrichment, ResultEnrichment
from liftmatch.repositories.base import AthleteRecordStore
from liftmatch.services.upstream import UpstreamGuard

logger = structlog.get_logger()


@dataclass
class ResolutionContext:
    """Working state shared by the strategies of one resolve call."""

    display_name: str
    signals: MatchSignals
    tolerances: MatchTolerances
    candidates: list[Athlete] = field(default_factory=list)
    conflicts: list[IdentityConflict] = field(default_factory=list)
    pending_events: list[Event] = field(default_factory=list)
    created: bool = False
    # Set once the name was seen in a division listing (found, not
    # necessarily mapped); division repair only runs when it stays False.
    division_listed: bool = False
    tried_divisions: set[tuple[str, str]] = field(default_factory=set)
    # Shared with the splitter; athlete writes take ("athlete", id)
    locks: KeyedLocks = field(default_factory=KeyedLocks)

    def record_conflict(self, conflict: IdentityConflict) -> None:
        self.conflicts.append(conflict)
        self.pending_events.append(
            IdentityConflictDetected(
                athlete_id=conflict.athlete_id,
                display_name=self.display_name,
                external_id=conflict.external_id,
                conflicting_athlete_id=conflict.conflicting_athlete_id,
                reason=conflict.reason,
            )
        )
        logger.warning(
            "identity conflict",
            display_name=self.display_name,
            **conflict.model_dump(),
        )

    def replace_candidate(self, athlete: Athlete) -> None:
        self.candidates = [
            athlete if c.athlete_id == athlete.athlete_id else c for c in self.candidates
        ]


@dataclass
class StrategyStep:
    """What one strategy concluded."""

    outcome: StrategyOutcome
    athlete: Athlete | None = None
    source: ResolutionSource | None = None
    detail: str | None = None

    @classmethod
    def resolved(cls, athlete: Athlete, source: ResolutionSource, detail: str | None = None):
        return cls(StrategyOutcome.RESOLVED, athlete=athlete, source=source, detail=detail)

    @classmethod
    def miss(cls, detail: str | None = None):
        return cls(StrategyOutcome.MISS, detail=detail)


class Strategy(Protocol):
    """One link of the resolution chain."""

    name: str

    def applies(self, ctx: ResolutionContext) -> bool:
        """Whether the context carries what this strategy needs."""
        ...

    async def run(self, ctx: ResolutionContext) -> StrategyStep: ...


# Store helpers shared by the strategies and the resolver's soft fallback


async def enrich_athlete(
    store: AthleteRecordStore,
    ctx: ResolutionContext,
    athlete: Athlete,
    enrichment: AthleteEnrichment,
) -> Athlete:
    """Fill null identity fields; a uniqueness clash is recorded, not applied.

    The write happens under the athlete's ``("athlete", id)`` lock, so a
    split running on the same record finishes first. The record is read
    again once the lock is held and only fields still null are filled.

    Returns:
        The athlete as stored after the write (unchanged on conflict)
    """
    async with ctx.locks.lock(("athlete", athlete.athlete_id)):
        current = await store.get(athlete.athlete_id)
        if current is None:
            logger.info("athlete gone before enrichment", athlete_id=athlete.athlete_id)
            return athlete
        return await _fill_identity(store, ctx, current, enrichment)


async def _fill_identity(
    store: AthleteRecordStore,
    ctx: ResolutionContext,
    athlete: Athlete,
    enrichment: AthleteEnrichment,
) -> Athlete:
    incoming = enrichment.external_id
    if athlete.external_id is not None:
        if incoming is not None and incoming != athlete.external_id:
            ctx.record_conflict(
                IdentityConflict(
                    external_id=incoming,
                    athlete_id=athlete.athlete_id,
                    reason="external_id_mismatch",
                )
            )
        enrichment = enrichment.model_copy(update={"external_id": None})
    if athlete.membership_number is not None:
        enrichment = enrichment.model_copy(update={"membership_number": None})
    if enrichment.is_empty():
        return athlete

    try:
        updated = await store.update(athlete.athlete_id, enrichment)
    except ConflictError as e:
        ctx.record_conflict(
            IdentityConflict(
                external_id=enrichment.external_id,
                athlete_id=athlete.athlete_id,
                conflicting_athlete_id=e.conflicting_athlete_id,
                reason="external_id_owned_by_other_athlete",
            )
        )
        # The membership number alone can still be filled
        if enrichment.membership_number is None:
            return athlete
        updated = await store.update(
            athlete.athlete_id,
            AthleteEnrichment(membership_number=enrichment.membership_number),
        )

    ctx.pending_events.append(
        AthleteEnriched(
            athlete_id=updated.athlete_id,
            display_name=updated.display_name,
            external_id=updated.external_id,
            membership_number=updated.membership_number,
        )
    )
    ctx.replace_candidate(updated)
    return updated


async def create_athlete(store: AthleteRecordStore, ctx: ResolutionContext) -> Athlete:
    """Create an athlete from the signals.

    If the member id already belongs to someone else the athlete is created
    without it and the conflict recorded.
    """
    signals = ctx.signals
    try:
        athlete = await store.create(
            ctx.display_name,
            external_id=signals.external_id,
            membership_number=signals.membership_number,
        )
    except ConflictError as e:
        ctx.record_conflict(
            IdentityConflict(
                external_id=signals.external_id,
                conflicting_athlete_id=e.conflicting_athlete_id,
                reason="external_id_owned_by_other_athlete",
            )
        )
        athlete = await store.create(
            ctx.display_name,
            membership_number=signals.membership_number,
        )

    ctx.created = True
    ctx.pending_events.append(
        AthleteCreated(
            athlete_id=athlete.athlete_id,
            display_name=athlete.display_name,
            external_id=athlete.external_id,
            source="resolver",
        )
    )
    return athlete


class ExternalIdFastPath:
    """Return the athlete already holding the incoming member id."""

    name = "external_id"

    def __init__(self, store: AthleteRecordStore):
        self._store = store

    def applies(self, ctx: ResolutionContext) -> bool:
        return ctx.signals.external_id is not None

    async def run(self, ctx: ResolutionContext) -> StrategyStep:
        external_id = ctx.signals.external_id
        hits = await self._store.find_by_external_id(external_id)
        if not hits:
            return StrategyStep.miss("no athlete holds this id")

        same_name = [a for a in hits if a.display_name == ctx.display_name]
        if len(hits) == 1:
            if same_name:
                return StrategyStep.resolved(hits[0], ResolutionSource.EXTERNAL_ID)
            ctx.record_conflict(
                IdentityConflict(
                    external_id=external_id,
                    conflicting_athlete_id=hits[0].athlete_id,
                    reason="external_id_name_mismatch",
                )
            )
            return StrategyStep.miss(f"id held by '{hits[0].display_name}'")

        # Integrity violation: the id sits on more than one record
        ctx.record_conflict(
            IdentityConflict(
                external_id=external_id,
                conflicting_athlete_id=hits[0].athlete_id,
                reason="external_id_on_multiple_athletes",
            )
        )
        if same_name:
            return StrategyStep.resolved(same_name[0], ResolutionSource.EXTERNAL_ID)
        return StrategyStep.miss(f"id held by {len(hits)} athletes, none named alike")


class NameCandidates:
    """Load same-name athletes; create one when the name is new."""

    name = "name_candidates"

    def __init__(self, store: AthleteRecordStore):
        self._store = store

    def applies(self, ctx: ResolutionContext) -> bool:
        return True

    async def run(self, ctx: ResolutionContext) -> StrategyStep:
        ctx.candidates = await self._store.find_by_name(ctx.display_name)

        if not ctx.candidates:
            athlete = await create_athlete(self._store, ctx)
            return StrategyStep.resolved(athlete, ResolutionSource.CREATED, "new name")

        if len(ctx.candidates) == 1:
            candidate = ctx.candidates[0]
            incoming = ctx.signals.external_id
            if incoming is not None and candidate.external_id is None:
                await enrich_athlete(
                    self._store,
                    ctx,
                    candidate,
                    AthleteEnrichment(
                        external_id=incoming,
                        membership_number=ctx.signals.membership_number,
                    ),
                )
            elif incoming is not None and candidate.external_id != incoming:
                ctx.record_conflict(
                    IdentityConflict(
                        external_id=incoming,
                        athlete_id=candidate.athlete_id,
                        reason="external_id_mismatch",
                    )
                )
            return StrategyStep.miss("single candidate awaits verification")

        return StrategyStep.miss(f"{len(ctx.candidates)} candidates")


class CheapDisambiguation:
    """Choose among several candidates without any lookup."""

    name = "cheap_disambiguation"

    def __init__(self, store: AthleteRecordStore):
        self._store = store

    def applies(self, ctx: ResolutionContext) -> bool:
        return len(ctx.candidates) > 1

    async def run(self, ctx: ResolutionContext) -> StrategyStep:
        incoming = ctx.signals.external_id
        if incoming is None:
            return StrategyStep.miss("no member id to disambiguate by")

        for candidate in ctx.candidates:
            if candidate.external_id == incoming:
                return StrategyStep.resolved(candidate, ResolutionSource.EXTERNAL_ID_CANDIDATE)

        # A lone candidate without a member id takes the incoming one
        unlinked = [c for c in ctx.candidates if c.external_id is None]
        if len(unlinked) == 1:
            athlete = await enrich_athlete(
                self._store,
                ctx,
                unlinked[0],
                AthleteEnrichment(
                    external_id=incoming,
                    membership_number=ctx.signals.membership_number,
                ),
            )
            if athlete.external_id == incoming:
                return StrategyStep.resolved(athlete, ResolutionSource.UNLINKED_CANDIDATE)
            return StrategyStep.miss("member id owned by another athlete")

        return StrategyStep.miss(f"{len(unlinked)} candidates without a member id")


class DivisionLookup:
    """Shared Tier 1 machinery: query a division and settle on a candidate."""

    def __init__(
        self,
        store: AthleteRecordStore,
        rankings: RankingsLookupService,
        guard: UpstreamGuard,
    ):
        self._store = store
        self._rankings = rankings
        self._guard = guard

    async def fetch_listing(
        self,
        ctx: ResolutionContext,
        age_category: str,
        weight_class: str,
    ) -> list[RankedAthlete] | None:
        """Query a division, trying the alternate kg spelling on an unknown key.

        Returns:
            The listing, or None if neither spelling names a known division
        """
        event_date = ctx.signals.event_date
        start = event_date - timedelta(days=ctx.tolerances.ranking_window_before_days)
        end = event_date + timedelta(days=ctx.tolerances.ranking_window_after_days)

        spellings = [weight_class]
        alternate = alternate_spacing(weight_class)
        if alternate and alternate != weight_class:
            spellings.append(alternate)

        for spelling in spellings:
            ctx.tried_divisions.add((age_category, spelling))
            try:
                return await self._guard.call(
                    "rankings.query",
                    lambda s=spelling: self._rankings.query(age_category, s, start, end),
                )
            except UnknownDivisionError:
                continue
        return None

    async def settle(
        self,
        ctx: ResolutionContext,
        listing: list[RankedAthlete],
    ) -> tuple[Athlete | None, str]:
        """Find the lifter in a listing and map the entry onto a candidate."""
        matches = ranked_name_matches(listing, ctx.display_name)
        if not matches:
            return None, "not listed"
        ctx.division_listed = True

        entry = select_ranked_entry(matches, ctx.signals.expected_total, ctx.tolerances.lift_kg)
        if entry is None:
            return None, f"listed {len(matches)} times"

        at_meet: set[int] = set()
        if ctx.signals.meet_id is not None and len(ctx.candidates) > 1:
            at_meet = await self._store.athletes_with_result_at_meet(
                ctx.signals.meet_id, [c.athlete_id for c in ctx.candidates]
            )
        athlete = map_ranked_to_candidate(entry, ctx.candidates, at_meet)
        if athlete is None:
            if len(ctx.candidates) == 1 and ids_conflict(entry, ctx.candidates[0]):
                ctx.record_conflict(
                    IdentityConflict(
                        external_id=entry.external_id,
                        athlete_id=ctx.candidates[0].athlete_id,
                        reason="listed_external_id_mismatch",
                    )
                )
                return None, "listed member id differs from candidate"
            return None, "listed entry matches no candidate"

        athlete = await enrich_athlete(
            self._store,
            ctx,
            athlete,
            AthleteEnrichment(
                external_id=entry.external_id,
                membership_number=entry.membership_number,
            ),
        )
        await self.enrich_result_row(ctx, athlete, entry)
        return athlete, "listed"

    async def enrich_result_row(
        self,
        ctx: ResolutionContext,
        athlete: Athlete,
        entry: RankedAthlete,
    ) -> None:
        if ctx.signals.meet_id is None:
            return
        enrichment = ResultEnrichment(
            club=entry.club,
            region=entry.region,
            gender=entry.gender,
            competition_age=entry.age,
            national_rank=entry.rank,
        )
        async with ctx.locks.lock(("athlete", athlete.athlete_id)):
            await self._store.enrich_result(athlete.athlete_id, ctx.signals.meet_id, enrichment)


class DivisionCrossCheck(DivisionLookup):
    """Tier 1: find the lifter in the result's own division listing."""

    name = "division"

    def applies(self, ctx: ResolutionContext) -> bool:
        s = ctx.signals
        return bool(ctx.candidates and s.event_date and s.age_category and s.weight_class)

    async def run(self, ctx: ResolutionContext) -> StrategyStep:
        s = ctx.signals
        listing = await self.fetch_listing(ctx, s.age_category, s.weight_class)
        if listing is None:
            return StrategyStep.miss("unknown division")
        athlete, detail = await self.settle(ctx, listing)
        if athlete is None:
            return StrategyStep.miss(detail)
        return StrategyStep.resolved(athlete, ResolutionSource.DIVISION, detail)


class DivisionRepair(DivisionLookup):
    """Tier 1 retried with a bodyweight-derived class and nearby age divisions.

    Runs only when the lifter was never seen in a listing; once a name is
    listed but cannot be mapped the question is one of identity, not
    division, and Tier 2 takes over.
    """

    name = "division_repair"

    def applies(self, ctx: ResolutionContext) -> bool:
        s = ctx.signals
        return bool(
            ctx.candidates
            and not ctx.division_listed
            and s.event_date
            and s.age_category
            and s.bodyweight_kg is not None
        )

    async def run(self, ctx: ResolutionContext) -> StrategyStep:
        s = ctx.signals
        divisions = alternative_divisions(s.age_category, s.bodyweight_kg, s.event_date)
        recomputed = classify_weight_class(s.age_category, s.bodyweight_kg, s.event_date)
        if recomputed:
            divisions.insert(0, (s.age_category, recomputed))

        tried = 0
        for age_category, weight_class in divisions:
            if (age_category, weight_class) in ctx.tried_divisions:
                continue
            tried += 1
            listing = await self.fetch_listing(ctx, age_category, weight_class)
            if listing is None:
                continue
            athlete, detail = await self.settle(ctx, listing)
            if athlete is not None:
                return StrategyStep.resolved(
                    athlete,
                    ResolutionSource.DIVISION_REPAIR,
                    f"{age_category} {weight_class}",
                )
            if ctx.division_listed:
                return StrategyStep.miss(f"{detail} in {age_category} {weight_class}")
        return StrategyStep.miss(f"not listed in {tried} alternative division(s)")


class HistoryCrossCheck(DivisionLookup):
    """Tier 2: find the meet in a candidate's competition history."""

    name = "history"

    def __init__(
        self,
        store: AthleteRecordStore,
        rankings: RankingsLookupService,
        history: MemberHistoryService,
        guard: UpstreamGuard,
        search_unlinked: bool = True,
    ):
        super().__init__(store, rankings, guard)
        self._history = history
        self._search_unlinked = search_unlinked

    def applies(self, ctx: ResolutionContext) -> bool:
        return bool(ctx.candidates and ctx.signals.meet_name)

    async def run(self, ctx: ResolutionContext) -> StrategyStep:
        failures: list[str] = []
        for candidate in list(ctx.candidates):
            try:
                athlete = await self._verify_candidate(ctx, candidate)
            except UpstreamUnavailableError as e:
                logger.warning(
                    "history check unavailable",
                    athlete_id=candidate.athlete_id,
                    reason=e.reason,
                )
                failures.append(str(e))
                continue
            if athlete is not None:
                return StrategyStep.resolved(athlete, ResolutionSource.HISTORY)

        detail = f"no history of {len(ctx.candidates)} candidate(s) lists the meet"
        if failures:
            detail += f"; {len(failures)} unavailable"
        return StrategyStep.miss(detail)

    async def _verify_candidate(
        self,
        ctx: ResolutionContext,
        candidate: Athlete,
    ) -> Athlete | None:
        external_id = candidate.external_id
        if external_id is None:
            if not self._search_unlinked:
                return None
            external_id = await self._guard.call(
                "history.find_member",
                lambda: self._history.find_member(ctx.display_name),
            )
            if external_id is None:
                return None

        entries = await self._guard.call(
            "history.history",
            lambda: self._history.history(external_id),
        )
        verdict, _ = match_history(entries, ctx.signals, ctx.tolerances)
        if verdict is HistoryVerdict.NO_MATCH:
            return None
        if verdict.needs_meet_page:
            if ctx.signals.meet_id is None:
                return None
            listed = await self._guard.call(
                "history.verify_on_meet_page",
                lambda: self._history.verify_on_meet_page(
                    ctx.signals.meet_id, ctx.display_name
                ),
            )
            if not listed:
                return None

        membership_number = None
        if candidate.membership_number is None:
            try:
                membership_number = await self._guard.call(
                    "history.membership_number",
                    lambda: self._history.membership_number(external_id),
                )
            except UpstreamUnavailableError as e:
                logger.info("membership number lookup skipped", reason=e.reason)

        athlete = await enrich_athlete(
            self._store,
            ctx,
            candidate,
            AthleteEnrichment(external_id=external_id, membership_number=membership_number),
        )
        await self._enrich_from_open_division(ctx, athlete, entries)
        return athlete

    async def _enrich_from_open_division(
        self,
        ctx: ResolutionContext,
        athlete: Athlete,
        entries: list[HistoryEntry],
    ) -> None:
        """Fill ranking metadata when the result arrived without a division.

        The history reveals gender, which is enough to query the open
        division. This only enriches; the athlete is already verified.
        """
        s = ctx.signals
        if s.age_category or s.event_date is None or s.meet_id is None:
            return
        gender = history_gender(entries)
        if gender is None:
            return
        age_category = "Open Women's" if gender == "F" else "Open Men's"
        weight_class = s.weight_class or classify_weight_class(
            age_category, s.bodyweight_kg, s.event_date
        )
        if not weight_class:
            return

        try:
            listing = await self.fetch_listing(ctx, age_category, weight_class)
        except UpstreamUnavailableError as e:
            logger.info("open division enrichment skipped", reason=e.reason)
            return
        if not listing:
            return
        matches = ranked_name_matches(listing, ctx.display_name)
        entry = select_ranked_entry(matches, s.expected_total, ctx.tolerances.lift_kg)
        if entry is not None:
            await self.enrich_result_row(ctx, athlete, entry)


def default_strategies(
    store: AthleteRecordStore,
    rankings: RankingsLookupService,
    history: MemberHistoryService,
    guard: UpstreamGuard,
    search_unlinked: bool = True,
) -> list[Strategy]:
    """The standard resolution chain, in priority order."""
    return [
        ExternalIdFastPath(store),
        NameCandidates(store),
        CheapDisambiguation(store),
        DivisionCrossCheck(store, rankings, guard),
        DivisionRepair(store, rankings, guard),
        HistoryCrossCheck(store, rankings, history, guard, search_unlinked=search_unlinked),
    ]
