"""Matching predicates for the verification tiers.

Tier 1 picks the lifter out of a division ranking listing and maps the
listed entry onto a stored candidate. Tier 2 compares an incoming result
with the entries of a member's competition history. Everything here is
pure; the strategies do the I/O.
"""

from collections.abc import Iterable
from datetime import date
from enum import Enum

from liftmatch.adapters.base import HistoryEntry, RankedAthlete
from liftmatch.config import MatchTolerances
from liftmatch.identity.schemas import MatchSignals
from liftmatch.models import Athlete


class HistoryVerdict(str, Enum):
    """How well one history entry agrees with an incoming result."""

    MATCH = "match"
    DATE_MISMATCH = "date_mismatch"
    ATTRIBUTE_MISMATCH = "attribute_mismatch"
    NO_MATCH = "no_match"

    @property
    def needs_meet_page(self) -> bool:
        """A near miss that the official meet page can confirm."""
        return self in (HistoryVerdict.DATE_MISMATCH, HistoryVerdict.ATTRIBUTE_MISMATCH)


def names_equal(a: str | None, b: str | None) -> bool:
    """Case-insensitive, whitespace-trimmed equality."""
    if a is None or b is None:
        return False
    return a.strip().casefold() == b.strip().casefold()


def within(a: float | None, b: float | None, tolerance: float) -> bool:
    """Check closeness; only compared when both values are present."""
    if a is None or b is None:
        return True
    return abs(a - b) <= tolerance + 1e-9


# Tier 1


def ranked_name_matches(ranked: Iterable[RankedAthlete], display_name: str) -> list[RankedAthlete]:
    """Listed entries whose name equals the display name."""
    return [entry for entry in ranked if names_equal(entry.name, display_name)]


def select_ranked_entry(
    matches: list[RankedAthlete],
    expected_total: float | None,
    tolerance: float,
) -> RankedAthlete | None:
    """Pick the lifter from name-matching listing entries.

    A single entry is taken as is. Several entries are narrowed by total;
    anything still ambiguous is rejected.
    """
    if len(matches) == 1:
        return matches[0]
    if expected_total is None:
        return None
    narrowed = [
        entry
        for entry in matches
        if entry.total is not None and within(entry.total, expected_total, tolerance)
    ]
    return narrowed[0] if len(narrowed) == 1 else None


def ids_conflict(entry: RankedAthlete, athlete: Athlete) -> bool:
    """Whether a listing entry and an athlete carry different member ids."""
    return (
        entry.external_id is not None
        and athlete.external_id is not None
        and entry.external_id != athlete.external_id
    )


def map_ranked_to_candidate(
    entry: RankedAthlete,
    candidates: list[Athlete],
    athletes_at_meet: set[int],
) -> Athlete | None:
    """Decide which stored candidate a verified listing entry refers to.

    Args:
        entry: The listing entry identified as the lifter
        candidates: Athletes sharing the display name, oldest first
        athletes_at_meet: Candidate ids that already have a result at this meet

    Returns:
        The sole candidate unless it holds a different member id than the
        entry; the candidate owning the listed member id; else
        among candidates without a member id, the one with the listed
        membership number, then one already at this meet, then the first.
        None when nothing fits.
    """
    if len(candidates) == 1:
        only = candidates[0]
        if ids_conflict(entry, only):
            return None
        return only

    if entry.external_id is not None:
        for candidate in candidates:
            if candidate.external_id == entry.external_id:
                return candidate

    unlinked = [c for c in candidates if c.external_id is None]
    if not unlinked:
        return None

    if entry.membership_number:
        for candidate in unlinked:
            if candidate.membership_number == entry.membership_number:
                return candidate

    for candidate in unlinked:
        if candidate.athlete_id in athletes_at_meet:
            return candidate

    return unlinked[0]


# Tier 2


def infer_gender(category: str | None) -> str | None:
    """Read "M" / "F" off a division name."""
    text = (category or "").lower()
    if "women's" in text or "girls" in text:
        return "F"
    if "men's" in text or "boys" in text:
        return "M"
    return None


def history_gender(entries: Iterable[HistoryEntry]) -> str | None:
    """Gender from the first history entry whose category reveals it."""
    for entry in entries:
        gender = infer_gender(entry.category)
        if gender:
            return gender
    return None


def date_tolerance_days(meet_name: str | None, tolerances: MatchTolerances) -> int:
    """Rolling qualifiers run for weeks; everything else gets the short window."""
    name = (meet_name or "").lower()
    if any(keyword in name for keyword in tolerances.rolling_qualifier_keywords):
        return tolerances.rolling_qualifier_date_days
    return tolerances.history_date_days


def dates_close(a: date, b: date | None, days: int) -> bool:
    if b is None:
        return True
    return abs((a - b).days) <= days


def weight_class_matches(required: str | None, category: str | None) -> bool:
    """Check that the history category names the required class.

    "64kg" matches "Open Women's 64kg"; "+109kg" matches "+109 Kg" spellings
    once both are reduced to the bare number.
    """
    if not required or not category or required.strip().lower() == "unknown":
        return True
    cleaned = required.lower().replace("kg", "").strip()
    return cleaned in category.lower()


def attributes_agree(
    entry: HistoryEntry,
    signals: MatchSignals,
    tolerances: MatchTolerances,
) -> bool:
    """Weight class, lifts and bodyweight agree wherever both sides have them."""
    return (
        weight_class_matches(signals.weight_class, entry.category)
        and within(entry.total, signals.expected_total, tolerances.lift_kg)
        and within(entry.snatch, signals.expected_snatch, tolerances.lift_kg)
        and within(entry.cj, signals.expected_cj, tolerances.lift_kg)
        and within(entry.bodyweight, signals.bodyweight_kg, tolerances.bodyweight_kg)
    )


def evaluate_history_entry(
    entry: HistoryEntry,
    signals: MatchSignals,
    tolerances: MatchTolerances,
) -> HistoryVerdict:
    """Compare one history entry with the incoming result."""
    if not names_equal(entry.meet_name, signals.meet_name):
        return HistoryVerdict.NO_MATCH

    days = date_tolerance_days(signals.meet_name, tolerances)
    date_ok = dates_close(entry.date, signals.event_date, days)
    attributes_ok = attributes_agree(entry, signals, tolerances)

    if date_ok and attributes_ok:
        return HistoryVerdict.MATCH
    if attributes_ok:
        return HistoryVerdict.DATE_MISMATCH
    if date_ok:
        return HistoryVerdict.ATTRIBUTE_MISMATCH
    return HistoryVerdict.NO_MATCH


def match_history(
    entries: list[HistoryEntry],
    signals: MatchSignals,
    tolerances: MatchTolerances,
) -> tuple[HistoryVerdict, HistoryEntry | None]:
    """Best verdict over a history: a full match, else the first near miss."""
    near_miss: tuple[HistoryVerdict, HistoryEntry] | None = None
    for entry in entries:
        verdict = evaluate_history_entry(entry, signals, tolerances)
        if verdict is HistoryVerdict.MATCH:
            return verdict, entry
        if verdict.needs_meet_page and near_miss is None:
            near_miss = (verdict, entry)
    if near_miss:
        return near_miss
    return HistoryVerdict.NO_MATCH, None
