"""Batch entry points.

Each job runs one component over many records and returns a summary of
counts per outcome. A failure on one record is reported and the batch
carries on. Contamination jobs stop on StoreError, since every later
athlete would fail the same way.
"""

from collections import Counter
from collections.abc import Sequence

import structlog
from pydantic import BaseModel, Field

from liftmatch.config import SoftFallbackPolicy
from liftmatch.contamination import ContaminationSplitter, SplitReport
from liftmatch.dedup import DuplicateCase, DuplicateDetector, DuplicateScanScope
from liftmatch.errors import ReconciliationError, StoreError
from liftmatch.identity import IdentityConflict, IdentityResolver, MatchSignals
from liftmatch.identity.schemas import BatchItemFailure, ResolutionResult
from liftmatch.repositories.base import AthleteRecordStore

logger = structlog.get_logger()


class JobFailure(BaseModel):
    """One record a job could not process."""

    key: str = Field(description="Athlete id or display name")
    error: str
    error_type: str


class ResolveBatchSummary(BaseModel):
    """Outcome counts for a batch of resolutions."""

    total: int
    resolved: int
    created: int
    verified: int
    by_source: dict[str, int] = Field(default_factory=dict)
    conflicts: list[IdentityConflict] = Field(default_factory=list)
    failures: list[BatchItemFailure] = Field(default_factory=list)
    results: dict[int, ResolutionResult] = Field(default_factory=dict)


class DuplicateScanSummary(BaseModel):
    """Outcome counts for a duplicate scan."""

    cases: list[DuplicateCase] = Field(default_factory=list)
    by_case_type: dict[str, int] = Field(default_factory=dict)
    by_action: dict[str, int] = Field(default_factory=dict)


class ContaminationSummary(BaseModel):
    """Outcome counts for one or more contamination splits."""

    athletes: int = 0
    split: int = 0
    skipped: int = 0
    reassigned: int = 0
    orphaned: int = 0
    dropped: int = 0
    created: int = 0
    deleted: int = 0
    reports: list[SplitReport] = Field(default_factory=list)
    failures: list[JobFailure] = Field(default_factory=list)

    def add(self, report: SplitReport) -> None:
        self.reports.append(report)
        if report.skipped_reason:
            self.skipped += 1
        else:
            self.split += 1
        self.reassigned += len(report.reassignments)
        self.orphaned += len(report.orphans)
        self.dropped += len(report.dropped_result_ids)
        self.created += len(report.created_athlete_ids)
        self.deleted += len(report.deleted_athlete_ids)


async def resolve_batch(
    resolver: IdentityResolver,
    items: Sequence[tuple[str, MatchSignals]],
    policy: SoftFallbackPolicy | None = None,
) -> ResolveBatchSummary:
    """Resolve many incoming results concurrently.

    Args:
        resolver: Configured identity resolver
        items: (display_name, signals) pairs
        policy: Soft-fallback policy applied to every item

    Returns:
        ResolveBatchSummary with counts by resolution source
    """
    batch = await resolver.resolve_all(items, policy=policy)
    results = batch.results.values()

    summary = ResolveBatchSummary(
        total=len(items),
        resolved=len(batch.results),
        created=sum(1 for r in results if r.created),
        verified=sum(1 for r in results if r.is_verified),
        by_source=dict(Counter(r.source.value for r in results)),
        conflicts=[c for r in results for c in r.conflicts],
        failures=batch.failures,
        results=batch.results,
    )
    logger.info(
        "resolve batch complete",
        total=summary.total,
        resolved=summary.resolved,
        created=summary.created,
        failed=len(summary.failures),
        conflicts=len(summary.conflicts),
    )
    return summary


async def run_duplicate_scan(
    detector: DuplicateDetector,
    scope: DuplicateScanScope | None = None,
    min_confidence: int | None = None,
) -> DuplicateScanSummary:
    """Scan the roster for duplicate cases."""
    cases = await detector.detect(scope, min_confidence=min_confidence)
    return DuplicateScanSummary(
        cases=cases,
        by_case_type=dict(Counter(c.case_type.value for c in cases)),
        by_action=dict(Counter(c.recommended_action.value for c in cases)),
    )


async def run_contamination_repair(
    splitter: ContaminationSplitter,
    athlete_id: int,
) -> ContaminationSummary:
    """Split a single contaminated athlete."""
    summary = ContaminationSummary(athletes=1)
    await _split_into(summary, splitter, athlete_id)
    return summary


async def run_contamination_sweep(
    splitter: ContaminationSplitter,
    store: AthleteRecordStore,
    limit: int | None = None,
) -> ContaminationSummary:
    """Split every athlete that carries extra member ids.

    Args:
        splitter: Configured contamination splitter
        store: Store to list contaminated athletes from
        limit: Maximum number of athletes processed

    Returns:
        ContaminationSummary over all processed athletes
    """
    athlete_ids = await store.contaminated_athletes()
    if limit is not None:
        athlete_ids = athlete_ids[:limit]

    summary = ContaminationSummary(athletes=len(athlete_ids))
    for athlete_id in athlete_ids:
        await _split_into(summary, splitter, athlete_id)

    logger.info(
        "contamination sweep complete",
        athletes=summary.athletes,
        split=summary.split,
        reassigned=summary.reassigned,
        orphaned=summary.orphaned,
        failed=len(summary.failures),
    )
    return summary


async def _split_into(
    summary: ContaminationSummary,
    splitter: ContaminationSplitter,
    athlete_id: int,
) -> None:
    try:
        report = await splitter.split(athlete_id)
    except StoreError:
        raise
    except ReconciliationError as e:
        logger.warning("contamination repair failed", athlete_id=athlete_id, error=str(e))
        summary.failures.append(
            JobFailure(key=str(athlete_id), error=str(e), error_type=type(e).__name__)
        )
        return
    summary.add(report)
