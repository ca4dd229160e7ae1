"""IdentityResolver decides which athlete an incoming result belongs to.

Resolution pipeline (in order, first success wins):
1. External id fast path
2. Name-based candidate set (creates the athlete for a new name)
3. Cheap disambiguation among several candidates
4. Tier 1: division ranking cross-check
5. Tier 1-fallback: division repair
6. Tier 2: member history cross-check
7. Soft fallback per SoftFallbackPolicy
"""

import asyncio
from collections.abc import Sequence

import structlog

from liftmatch.adapters.base import MemberHistoryService, RankingsLookupService
from liftmatch.config import MatchTolerances, Settings, SoftFallbackPolicy, get_settings
from liftmatch.errors import (
    AmbiguousIdentityError,
    MissingNameError,
    UnknownDivisionError,
    UpstreamUnavailableError,
)
from liftmatch.events import EventBus, ResolutionCompleted, StrategyAttempted
from liftmatch.identity.locks import KeyedLocks
from liftmatch.identity.schemas import (
    BatchItemFailure,
    BatchResolution,
    MatchSignals,
    ResolutionResult,
    ResolutionSource,
    StrategyAttempt,
    StrategyOutcome,
)
from liftmatch.identity.strategies import (
    ResolutionContext,
    Strategy,
    StrategyStep,
    create_athlete,
    default_strategies,
)
from liftmatch.models import Athlete
from liftmatch.repositories.base import AthleteRecordStore
from liftmatch.services.upstream import UpstreamGuard

logger = structlog.get_logger()


class IdentityResolver:
    """Orchestrates tiered identity resolution.

    Strategies run strictly one after another. Calls for the same display
    name are serialized so two results for one new lifter cannot both
    create an athlete. Writes to an existing athlete take its
    ``("athlete", id)`` lock; pass the splitter's KeyedLocks to keep them
    out of a split in progress.
    """

    def __init__(
        self,
        store: AthleteRecordStore,
        rankings: RankingsLookupService,
        history: MemberHistoryService,
        *,
        settings: Settings | None = None,
        tolerances: MatchTolerances | None = None,
        policy: SoftFallbackPolicy | None = None,
        event_bus: EventBus | None = None,
        strategies: list[Strategy] | None = None,
        locks: KeyedLocks | None = None,
    ):
        """Initialize resolver with its collaborators.

        Args:
            store: Athlete record store
            rankings: Division ranking lookups (Tier 1)
            history: Member history lookups (Tier 2)
            settings: Settings to read defaults from
            tolerances: Matching windows; defaults to settings
            policy: Default soft-fallback policy; defaults to settings
            event_bus: Optional bus receiving resolution events
            strategies: Replacement strategy chain
            locks: Lock registry, shared with other resolvers and splitters
                on the same store
        """
        self._settings = settings or get_settings()
        self._store = store
        self._tolerances = tolerances or self._settings.tolerances()
        self._policy = policy or self._settings.soft_fallback_policy
        self._bus = event_bus
        self._locks = locks or KeyedLocks()
        self.guard = UpstreamGuard.from_settings(self._settings)
        self.strategies = strategies or default_strategies(
            store,
            rankings,
            history,
            self.guard,
            search_unlinked=self._settings.search_unlinked_candidates,
        )

    async def resolve(
        self,
        display_name: str,
        signals: MatchSignals | None = None,
        *,
        policy: SoftFallbackPolicy | None = None,
        timeout: float | None = None,
    ) -> ResolutionResult:
        """Resolve a display name to an athlete.

        Args:
            display_name: Name exactly as listed on the result
            signals: Evidence accompanying the result
            policy: Overrides the default soft-fallback policy for this call
            timeout: Deadline in seconds; enrichment already written stays

        Returns:
            ResolutionResult whose ``athlete`` is the resolved record

        Raises:
            MissingNameError: If the display name is empty
            AmbiguousIdentityError: If every tier fails under the raise policy
            StoreError: If the store fails
            TimeoutError: If the deadline passes
        """
        name = (display_name or "").strip()
        if not name:
            raise MissingNameError("display name is required")

        async with asyncio.timeout(timeout):
            async with self._locks.lock(name):
                return await self._resolve(name, signals or MatchSignals(), policy or self._policy)

    async def _resolve(
        self,
        display_name: str,
        signals: MatchSignals,
        policy: SoftFallbackPolicy,
    ) -> ResolutionResult:
        ctx = ResolutionContext(
            display_name=display_name,
            signals=signals,
            tolerances=self._tolerances,
            locks=self._locks,
        )
        trace: list[StrategyAttempt] = []

        for strategy in self.strategies:
            if not strategy.applies(ctx):
                step = StrategyStep(StrategyOutcome.SKIPPED, detail="not applicable")
            else:
                try:
                    step = await strategy.run(ctx)
                except (UpstreamUnavailableError, UnknownDivisionError) as e:
                    logger.warning(
                        "strategy unavailable",
                        strategy=strategy.name,
                        display_name=display_name,
                        error=str(e),
                    )
                    step = StrategyStep(StrategyOutcome.ERROR, detail=str(e))

            trace.append(
                StrategyAttempt(strategy=strategy.name, outcome=step.outcome, detail=step.detail)
            )
            await self._publish_step(ctx, strategy.name, step)

            if step.outcome is StrategyOutcome.RESOLVED:
                return await self._finish(ctx, step.athlete, step.source, trace)

        athlete, source = await self._soft_fallback(ctx, policy)
        trace.append(
            StrategyAttempt(
                strategy="soft_fallback",
                outcome=StrategyOutcome.RESOLVED,
                detail=policy.value,
            )
        )
        return await self._finish(ctx, athlete, source, trace)

    async def _soft_fallback(
        self,
        ctx: ResolutionContext,
        policy: SoftFallbackPolicy,
    ) -> tuple[Athlete, ResolutionSource]:
        """Settle an unverified name according to the policy."""
        if not ctx.candidates:
            return await create_athlete(self._store, ctx), ResolutionSource.CREATED

        if policy is SoftFallbackPolicy.RAISE:
            await self._flush(ctx)
            raise AmbiguousIdentityError(
                ctx.display_name, [c.athlete_id for c in ctx.candidates]
            )

        if policy is SoftFallbackPolicy.CREATE_NEW:
            athlete = await create_athlete(self._store, ctx)
            return athlete, ResolutionSource.FALLBACK_CREATED

        first = ctx.candidates[0]
        async with self._locks.lock(("athlete", first.athlete_id)):
            current = await self._store.get(first.athlete_id)
        if current is None:
            athlete = await create_athlete(self._store, ctx)
            return athlete, ResolutionSource.FALLBACK_CREATED
        logger.info(
            "reusing first candidate unverified",
            display_name=ctx.display_name,
            athlete_id=current.athlete_id,
            candidates=len(ctx.candidates),
        )
        return current, ResolutionSource.FALLBACK_REUSED

    async def _finish(
        self,
        ctx: ResolutionContext,
        athlete: Athlete,
        source: ResolutionSource,
        trace: list[StrategyAttempt],
    ) -> ResolutionResult:
        ctx.pending_events.append(
            ResolutionCompleted(
                athlete_id=athlete.athlete_id,
                display_name=ctx.display_name,
                source=source.value,
                created=ctx.created,
            )
        )
        await self._flush(ctx)
        logger.info(
            "identity resolved",
            display_name=ctx.display_name,
            athlete_id=athlete.athlete_id,
            source=source.value,
            created=ctx.created,
            conflicts=len(ctx.conflicts),
        )
        return ResolutionResult(
            athlete=athlete,
            source=source,
            created=ctx.created,
            conflicts=ctx.conflicts,
            trace=trace,
        )

    async def _publish_step(
        self,
        ctx: ResolutionContext,
        strategy: str,
        step: StrategyStep,
    ) -> None:
        ctx.pending_events.append(
            StrategyAttempted(
                athlete_id=step.athlete.athlete_id if step.athlete else None,
                display_name=ctx.display_name,
                strategy=strategy,
                outcome=step.outcome.value,
                detail=step.detail,
            )
        )
        await self._flush(ctx)

    async def _flush(self, ctx: ResolutionContext) -> None:
        events, ctx.pending_events = ctx.pending_events, []
        if self._bus is None:
            return
        for event in events:
            await self._bus.publish(event)

    async def resolve_all(
        self,
        items: Sequence[tuple[str, MatchSignals]],
        *,
        policy: SoftFallbackPolicy | None = None,
        max_concurrency: int | None = None,
    ) -> BatchResolution:
        """Resolve many results through a bounded worker pool.

        Args:
            items: (display_name, signals) pairs
            policy: Soft-fallback policy for every item
            max_concurrency: Worker count; defaults to settings

        Returns:
            BatchResolution with results keyed by input index and one
            failure entry per item that raised
        """
        semaphore = asyncio.Semaphore(max_concurrency or self._settings.max_concurrency)

        async def run_one(name: str, signals: MatchSignals) -> ResolutionResult:
            async with semaphore:
                return await self.resolve(name, signals, policy=policy)

        outcomes = await asyncio.gather(
            *(run_one(name, signals) for name, signals in items),
            return_exceptions=True,
        )

        batch = BatchResolution()
        for index, ((name, _), outcome) in enumerate(zip(items, outcomes, strict=True)):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, Exception):
                logger.warning(
                    "batch item failed",
                    index=index,
                    display_name=name,
                    error=str(outcome),
                )
                batch.failures.append(
                    BatchItemFailure(
                        index=index,
                        display_name=name or "",
                        error=str(outcome),
                        error_type=type(outcome).__name__,
                    )
                )
            else:
                batch.results[index] = outcome
        return batch
