"""Duplicate detection over the athlete roster.

Groups athletes by exact display name, summarizes each member's results,
looks for performance patterns across the group and scores how likely the
group is one over-merged identity or several people sharing a name.
Read-only: nothing here writes to the store.
"""

import structlog
from rapidfuzz import fuzz, process, utils

from liftmatch.config import Settings, get_settings
from liftmatch.dedup.patterns import analyze, summarize
from liftmatch.dedup.schemas import DuplicateCase, DuplicateScanScope, SimilarNamePair
from liftmatch.dedup.scoring import (
    build_evidence,
    case_notes,
    case_type,
    confidence_score,
    recommended_action,
)
from liftmatch.models import Athlete
from liftmatch.repositories.base import AthleteRecordStore

logger = structlog.get_logger()


def case_id_for(athletes: list[Athlete]) -> str:
    """Stable case id: the same group always gets the same id."""
    return "DUP_" + "-".join(str(i) for i in sorted(a.athlete_id for a in athletes))


class DuplicateDetector:
    """Scores same-name athlete groups.

    Uses exact display-name grouping for cases and RapidFuzz
    token_sort_ratio only for the separate near-identical name report.
    """

    def __init__(self, store: AthleteRecordStore, settings: Settings | None = None):
        """Initialize duplicate detector.

        Args:
            store: Athlete record store to scan
            settings: Source of thresholds; defaults to application settings
        """
        self._store = store
        self._settings = settings or get_settings()

    async def detect(
        self,
        scope: DuplicateScanScope | None = None,
        min_confidence: int | None = None,
    ) -> list[DuplicateCase]:
        """Find same-name groups scoring at least ``min_confidence``.

        Args:
            scope: Restrict to names and/or cap the number of groups
            min_confidence: Threshold 0-100; defaults to settings (50)

        Returns:
            Cases in the store's group order (largest groups first)
        """
        scope = scope or DuplicateScanScope()
        threshold = (
            min_confidence if min_confidence is not None else self._settings.duplicate_min_confidence
        )

        names = await self._store.duplicate_names(names=scope.names, limit=scope.max_groups)
        cases: list[DuplicateCase] = []
        for name in names:
            case = await self.analyze_group(name)
            if case is None:
                continue
            if case.confidence_score >= threshold:
                cases.append(case)
            else:
                logger.debug(
                    "duplicate group below threshold",
                    display_name=name,
                    score=case.confidence_score,
                )

        logger.info(
            "duplicate scan complete",
            groups=len(names),
            cases=len(cases),
            min_confidence=threshold,
        )
        return cases

    async def analyze_group(self, display_name: str) -> DuplicateCase | None:
        """Score one same-name group; None if fewer than two athletes share it."""
        athletes = await self._store.find_by_name(display_name)
        if len(athletes) < 2:
            return None

        results = {a.athlete_id: await self._store.list_results(a.athlete_id) for a in athletes}
        members = [
            summarize(
                a.athlete_id,
                results[a.athlete_id],
                external_id=a.external_id,
                membership_number=a.membership_number,
            )
            for a in athletes
        ]
        flags = analyze(
            results,
            spread_kg=self._settings.weight_class_spread_kg,
            jump_kg=self._settings.total_jump_kg,
        )
        score = confidence_score(members, flags)

        return DuplicateCase(
            case_id=case_id_for(athletes),
            display_name=display_name,
            athlete_ids=[a.athlete_id for a in athletes],
            confidence_score=score,
            case_type=case_type(members, flags),
            recommended_action=recommended_action(score),
            evidence=build_evidence(members, flags),
            members=members,
            notes=case_notes(members, flags),
        )

    async def similar_names(self, threshold: float | None = None) -> list[SimilarNamePair]:
        """Report distinct display names that are nearly identical.

        Catches spelling and casing variants ("Jon Smith" / "John Smith")
        that exact grouping misses. Report only; it never affects scores.

        Args:
            threshold: Minimum similarity (0.0-1.0); defaults to settings

        Returns:
            Pairs sorted by similarity, highest first
        """
        cutoff = threshold if threshold is not None else self._settings.similar_name_threshold
        names = await self._store.distinct_names()

        pairs: list[SimilarNamePair] = []
        for i, name in enumerate(names[:-1]):
            matches = process.extract(
                name,
                names[i + 1 :],
                scorer=fuzz.token_sort_ratio,
                processor=utils.default_process,
                score_cutoff=cutoff * 100,  # fuzz uses 0-100 scale
                limit=None,
            )
            for other, score, _index in matches:
                pairs.append(SimilarNamePair(name_a=name, name_b=other, similarity=score / 100))

        pairs.sort(key=lambda p: (-p.similarity, p.name_a, p.name_b))
        return pairs
