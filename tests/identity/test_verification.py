"""Tests for the Tier 1 / Tier 2 matching predicates."""

from datetime import date

import pytest

from liftmatch.adapters.base import HistoryEntry, RankedAthlete
from liftmatch.config import MatchTolerances
from liftmatch.identity.schemas import MatchSignals
from liftmatch.identity.verification import (
    HistoryVerdict,
    evaluate_history_entry,
    history_gender,
    infer_gender,
    map_ranked_to_candidate,
    match_history,
    names_equal,
    ranked_name_matches,
    select_ranked_entry,
    weight_class_matches,
    within,
)
from liftmatch.models import Athlete


@pytest.fixture
def tolerances() -> MatchTolerances:
    return MatchTolerances()


@pytest.fixture
def signals() -> MatchSignals:
    """An incoming result at the Spring Open."""
    return MatchSignals(
        meet_id=500,
        meet_name="Spring Open",
        event_date=date(2024, 3, 1),
        weight_class="64kg",
        bodyweight_kg=63.5,
        expected_total=180.0,
        expected_snatch=80.0,
        expected_cj=100.0,
    )


def make_entry(**overrides) -> HistoryEntry:
    fields = {
        "meet_name": "spring open",
        "date": date(2024, 3, 5),
        "category": "Open Women's 64kg",
        "bodyweight": 63.4,
        "snatch": 80.0,
        "cj": 100.0,
        "total": 180.0,
    }
    fields.update(overrides)
    return HistoryEntry(**fields)


def athlete(athlete_id: int, external_id: int | None = None, membership: str | None = None):
    return Athlete(
        athlete_id=athlete_id,
        display_name="Jane Doe",
        external_id=external_id,
        membership_number=membership,
    )


class TestComparisons:
    def test_names_equal_ignores_case_and_padding(self):
        assert names_equal(" Jane Doe ", "jane doe")
        assert not names_equal("Jane Doe", "Jane Does")
        assert not names_equal(None, "Jane Doe")

    def test_within_tolerance(self):
        assert within(100.0, 100.1, 0.1)
        assert not within(100.0, 100.2, 0.1)

    def test_within_skips_missing_values(self):
        assert within(None, 100.0, 0.1)
        assert within(100.0, None, 0.1)


class TestRankedSelection:
    """Tier 1: picking the lifter out of a listing."""

    def test_single_name_match_is_taken(self):
        listing = [RankedAthlete(name="Jane Doe", total=150), RankedAthlete(name="Ann Roe")]
        matches = ranked_name_matches(listing, "jane doe")

        assert select_ranked_entry(matches, None, 0.1) is listing[0]

    def test_several_matches_narrowed_by_total(self):
        matches = [
            RankedAthlete(name="Jane Doe", external_id=1, total=150),
            RankedAthlete(name="Jane Doe", external_id=2, total=160),
        ]

        selected = select_ranked_entry(matches, 160.05, 0.1)

        assert selected is not None
        assert selected.external_id == 2

    def test_several_matches_without_total_rejected(self):
        matches = [RankedAthlete(name="Jane Doe"), RankedAthlete(name="Jane Doe")]

        assert select_ranked_entry(matches, None, 0.1) is None

    def test_several_matches_with_same_total_rejected(self):
        matches = [
            RankedAthlete(name="Jane Doe", total=150),
            RankedAthlete(name="Jane Doe", total=150),
        ]

        assert select_ranked_entry(matches, 150, 0.1) is None


class TestMapRankedToCandidate:
    """Tier 1: mapping a listing entry onto stored candidates."""

    def test_sole_candidate_wins(self):
        only = athlete(1, external_id=7)

        assert map_ranked_to_candidate(RankedAthlete(name="Jane Doe"), [only], set()) is only

    def test_sole_candidate_with_other_listed_id_is_rejected(self):
        only = athlete(1, external_id=7)
        entry = RankedAthlete(name="Jane Doe", external_id=8)

        assert map_ranked_to_candidate(entry, [only], set()) is None

    def test_sole_unlinked_candidate_takes_any_entry(self):
        only = athlete(1)
        entry = RankedAthlete(name="Jane Doe", external_id=8)

        assert map_ranked_to_candidate(entry, [only], set()) is only

    def test_candidate_owning_listed_id(self):
        linked, unlinked = athlete(1, external_id=10), athlete(2)
        entry = RankedAthlete(name="Jane Doe", external_id=10)

        assert map_ranked_to_candidate(entry, [unlinked, linked], set()) is linked

    def test_unlinked_candidate_with_membership_number(self):
        first, second = athlete(2, membership="M1"), athlete(3, membership="M2")
        entry = RankedAthlete(name="Jane Doe", external_id=99, membership_number="M2")

        assert map_ranked_to_candidate(entry, [first, second], set()) is second

    def test_unlinked_candidate_already_at_meet(self):
        first, second = athlete(2), athlete(3)
        entry = RankedAthlete(name="Jane Doe", external_id=99)

        assert map_ranked_to_candidate(entry, [first, second], {3}) is second

    def test_first_unlinked_candidate_otherwise(self):
        first, second = athlete(2), athlete(3)
        entry = RankedAthlete(name="Jane Doe", external_id=99)

        assert map_ranked_to_candidate(entry, [first, second], set()) is first

    def test_all_candidates_linked_elsewhere(self):
        candidates = [athlete(1, external_id=10), athlete(2, external_id=20)]
        entry = RankedAthlete(name="Jane Doe", external_id=99)

        assert map_ranked_to_candidate(entry, candidates, set()) is None


class TestHistoryEvaluation:
    """Tier 2: comparing a history entry with the incoming result."""

    def test_full_match(self, signals, tolerances):
        assert evaluate_history_entry(make_entry(), signals, tolerances) is HistoryVerdict.MATCH

    def test_date_outside_window(self, signals, tolerances):
        verdict = evaluate_history_entry(make_entry(date=date(2024, 4, 1)), signals, tolerances)

        assert verdict is HistoryVerdict.DATE_MISMATCH
        assert verdict.needs_meet_page

    def test_attributes_disagree(self, signals, tolerances):
        verdict = evaluate_history_entry(make_entry(total=190.0), signals, tolerances)

        assert verdict is HistoryVerdict.ATTRIBUTE_MISMATCH
        assert verdict.needs_meet_page

    def test_date_and_attributes_disagree(self, signals, tolerances):
        entry = make_entry(date=date(2024, 4, 1), total=190.0)

        assert evaluate_history_entry(entry, signals, tolerances) is HistoryVerdict.NO_MATCH

    def test_other_meet(self, signals, tolerances):
        entry = make_entry(meet_name="Autumn Open")

        assert evaluate_history_entry(entry, signals, tolerances) is HistoryVerdict.NO_MATCH

    def test_bodyweight_tolerance(self, signals, tolerances):
        entry = make_entry(bodyweight=64.0)

        assert evaluate_history_entry(entry, signals, tolerances) is HistoryVerdict.ATTRIBUTE_MISMATCH

    def test_rolling_qualifier_gets_long_window(self, signals, tolerances):
        qualifier = signals.model_copy(update={"meet_name": "2024 Online Qualifier"})
        entry = make_entry(meet_name="2024 online qualifier", date=date(2024, 3, 26))

        assert evaluate_history_entry(entry, qualifier, tolerances) is HistoryVerdict.MATCH

    def test_missing_signals_are_not_compared(self, tolerances):
        sparse = MatchSignals(meet_name="Spring Open", event_date=date(2024, 3, 1))

        assert evaluate_history_entry(make_entry(), sparse, tolerances) is HistoryVerdict.MATCH

    def test_full_match_beats_earlier_near_miss(self, signals, tolerances):
        near = make_entry(total=190.0)
        full = make_entry()

        verdict, entry = match_history([near, full], signals, tolerances)

        assert verdict is HistoryVerdict.MATCH
        assert entry is full

    def test_empty_history(self, signals, tolerances):
        assert match_history([], signals, tolerances) == (HistoryVerdict.NO_MATCH, None)


class TestWeightClassMatches:
    def test_class_in_category(self):
        assert weight_class_matches("64kg", "Open Women's 64kg")

    def test_heavy_class_spellings(self):
        assert weight_class_matches("+109kg", "Open Men's +109 Kg")

    def test_other_class(self):
        assert not weight_class_matches("64kg", "Open Women's 71kg")

    def test_unknown_class_matches_anything(self):
        assert weight_class_matches("Unknown", "Open Women's 71kg")


class TestGender:
    @pytest.mark.parametrize(
        ("category", "expected"),
        [
            ("Open Women's 64kg", "F"),
            ("Girls 13 Under", "F"),
            ("Open Men's 81kg", "M"),
            ("Boys 11 Under", "M"),
            ("Open", None),
        ],
    )
    def test_infer_gender(self, category, expected):
        assert infer_gender(category) == expected

    def test_history_gender_uses_first_revealing_entry(self):
        entries = [make_entry(category="Open 64kg"), make_entry(category="Open Men's 81kg")]

        assert history_gender(entries) == "M"
