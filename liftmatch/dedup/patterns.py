"""Performance pattern checks over a same-name group.

Each check receives the members' results keyed by athlete id and returns
a single flag. Pure functions.
"""

import re
from collections import defaultdict

from liftmatch.dedup.schemas import HistorySummary, PatternFlags
from liftmatch.models import ResultRecord

MemberResults = dict[int, list[ResultRecord]]

_NUMBER = re.compile(r"[^\d.]")


def summarize(athlete_id: int, results: list[ResultRecord], **identity) -> HistorySummary:
    """Build a member's history summary from their results."""
    dated = sorted((r for r in results if r.event_date), key=lambda r: r.event_date)
    classes: list[str] = []
    for r in dated or results:
        if r.weight_class and r.weight_class not in classes:
            classes.append(r.weight_class)
    totals = [r.total for r in results if r.total is not None]

    if len(classes) > 1:
        class_range = f"{classes[0]} - {classes[-1]}"
    else:
        class_range = classes[0] if classes else None

    return HistorySummary(
        athlete_id=athlete_id,
        result_count=len(results),
        first_competition=dated[0].event_date if dated else None,
        last_competition=dated[-1].event_date if dated else None,
        weight_class_range=class_range,
        best_total=max(totals) if totals else None,
        avg_total=round(sum(totals) / len(totals)) if totals else None,
        competition_count=len({r.meet_id for r in results}),
        **identity,
    )


def has_identical_performances(members: MemberResults) -> bool:
    """Two members lifted the exact same six attempts at different meets."""
    seen: dict[tuple, tuple[int, int]] = {}
    for athlete_id, results in members.items():
        for r in results:
            signature = r.attempt_signature
            if all(v is None for v in signature):
                continue
            if signature in seen:
                other_athlete, other_meet = seen[signature]
                if other_athlete != athlete_id and other_meet != r.meet_id:
                    return True
            else:
                seen[signature] = (athlete_id, r.meet_id)
    return False


def has_temporal_conflicts(members: MemberResults) -> bool:
    """One member competed at two different meets on the same day."""
    for results in members.values():
        meets_by_date: dict = defaultdict(set)
        for r in results:
            if r.event_date is not None:
                meets_by_date[r.event_date].add(r.meet_id)
        if any(len(meets) > 1 for meets in meets_by_date.values()):
            return True
    return False


def weight_class_value(label: str | None) -> float | None:
    """Numeric part of a class label: "+109 Kg" -> 109.0."""
    if not label:
        return None
    digits = _NUMBER.sub("", label)
    try:
        return float(digits)
    except ValueError:
        return None


def has_weight_class_anomalies(members: MemberResults, spread_kg: float = 20.0) -> bool:
    """A member's weight classes span more than ``spread_kg``."""
    for results in members.values():
        values = [v for v in (weight_class_value(r.weight_class) for r in results) if v is not None]
        if len(values) > 1 and max(values) - min(values) > spread_kg:
            return True
    return False


def has_performance_anomalies(members: MemberResults, jump_kg: float = 50.0) -> bool:
    """A member's consecutive totals jump by more than ``jump_kg``.

    Needs more than two totals; a single jump between two meets is too
    little evidence.
    """
    for results in members.values():
        ordered = sorted(results, key=lambda r: (r.event_date is None, r.event_date, r.result_id))
        totals = [r.total for r in ordered if r.total is not None]
        if len(totals) <= 2:
            continue
        if any(abs(b - a) > jump_kg for a, b in zip(totals, totals[1:])):
            return True
    return False


def analyze(
    members: MemberResults,
    spread_kg: float = 20.0,
    jump_kg: float = 50.0,
) -> PatternFlags:
    """Run every pattern check over a group."""
    return PatternFlags(
        identical_performances=has_identical_performances(members),
        temporal_conflicts=has_temporal_conflicts(members),
        weight_class_anomalies=has_weight_class_anomalies(members, spread_kg),
        performance_anomalies=has_performance_anomalies(members, jump_kg),
    )
