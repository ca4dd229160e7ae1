"""Result-to-identity matching for contamination splits.

A stored result belongs to an identity when that identity's authoritative
history lists the same meet on the same day with the same best lifts and
a bodyweight within tolerance. No partial credit: anything short of that
is not a match.
"""

from liftmatch.adapters.base import HistoryEntry
from liftmatch.models import ResultRecord


def lift_value(value: float | None) -> float:
    """Missing lifts count as 0; a missed lift's sign is dropped."""
    return abs(value) if value is not None else 0.0


def same_meet_name(a: str | None, b: str | None) -> bool:
    return (a or "").strip().lower() == (b or "").strip().lower()


def bodyweights_close(a: float | None, b: float | None, tolerance: float) -> bool:
    """Both bodyweights must be present."""
    if a is None or b is None:
        return False
    return abs(a - b) <= tolerance + 1e-9


def entry_matches_result(entry: HistoryEntry, result: ResultRecord, bodyweight_kg: float) -> bool:
    """Check one history entry against one stored result."""
    return (
        result.event_date is not None
        and entry.date == result.event_date
        and same_meet_name(entry.meet_name, result.meet_name)
        and bodyweights_close(entry.bodyweight, result.bodyweight_kg, bodyweight_kg)
        and lift_value(entry.snatch) == lift_value(result.best_snatch)
        and lift_value(entry.cj) == lift_value(result.best_cj)
        and lift_value(entry.total) == lift_value(result.total)
    )


def identities_matching(
    result: ResultRecord,
    histories: dict[int, list[HistoryEntry]],
    bodyweight_kg: float,
) -> list[int]:
    """External ids whose history contains the result, in history order."""
    return [
        external_id
        for external_id, entries in histories.items()
        if any(entry_matches_result(e, result, bodyweight_kg) for e in entries)
    ]
