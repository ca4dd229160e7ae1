"""Tests for strict result-to-history matching."""

from datetime import date

import pytest

from liftmatch.adapters.base import HistoryEntry
from liftmatch.contamination.matching import (
    bodyweights_close,
    entry_matches_result,
    identities_matching,
    lift_value,
)
from liftmatch.models import ResultRecord


@pytest.fixture
def stored() -> ResultRecord:
    return ResultRecord(
        result_id=1,
        athlete_id=1,
        meet_id=10,
        meet_name="Spring Open",
        event_date=date(2024, 3, 1),
        bodyweight_kg=80.0,
        best_snatch=100,
        best_cj=120,
        total=220,
    )


def entry(**overrides) -> HistoryEntry:
    fields = {
        "meet_name": "spring open",
        "date": date(2024, 3, 1),
        "bodyweight": 81.5,
        "snatch": 100,
        "cj": 120,
        "total": 220,
    }
    fields.update(overrides)
    return HistoryEntry(**fields)


def test_exact_entry_matches(stored):
    assert entry_matches_result(entry(), stored, 2.0) is True


@pytest.mark.parametrize(
    "overrides",
    [
        {"date": date(2024, 3, 2)},
        {"meet_name": "Spring Open II"},
        {"bodyweight": 82.5},
        {"bodyweight": None},
        {"snatch": 101},
        {"total": 221},
    ],
)
def test_any_difference_is_a_miss(stored, overrides):
    assert entry_matches_result(entry(**overrides), stored, 2.0) is False


def test_missed_lift_sign_ignored(stored):
    assert entry_matches_result(entry(cj=-120), stored, 2.0) is True


def test_result_without_date_never_matches(stored):
    undated = stored.model_copy(update={"event_date": None})

    assert entry_matches_result(entry(), undated, 2.0) is False


def test_missing_lifts_count_as_zero():
    assert lift_value(None) == 0.0
    assert lift_value(-75) == 75


def test_bodyweight_tolerance_is_inclusive():
    assert bodyweights_close(80.0, 82.0, 2.0) is True
    assert bodyweights_close(80.0, 82.1, 2.0) is False


def test_identities_matching_lists_every_owner(stored):
    histories = {11: [entry()], 22: [entry(meet_name="Other Meet")], 33: [entry()]}

    assert identities_matching(stored, histories, 2.0) == [11, 33]
