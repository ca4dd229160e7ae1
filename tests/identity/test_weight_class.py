"""Tests for era-correct weight-class derivation."""

from datetime import date

import pytest

from liftmatch.identity.weight_class import (
    WeightClassEra,
    age_group,
    alternate_spacing,
    alternative_divisions,
    classify_weight_class,
    division_gender,
    era_for,
)


class TestEraFor:
    """Tests for era selection by cutover date."""

    def test_current_era_from_june_2025(self):
        assert era_for(date(2025, 6, 1)) is WeightClassEra.CURRENT

    def test_day_before_cutover_uses_previous_era(self):
        assert era_for(date(2018, 10, 31)) is WeightClassEra.HISTORICAL_1998
        assert era_for(date(2018, 11, 1)) is WeightClassEra.HISTORICAL_2018

    def test_before_1998_has_no_era(self):
        assert era_for(date(1997, 12, 31)) is None


class TestDivisionParsing:
    """Tests for gender and age-group extraction from division names."""

    @pytest.mark.parametrize(
        ("category", "expected"),
        [
            ("Open Women's", "F"),
            ("Women's 14-15 Age Group", "F"),
            ("Female Masters", "F"),
            ("Open Men's", "M"),
            (None, "M"),
        ],
    )
    def test_division_gender(self, category, expected):
        assert division_gender(category) == expected

    @pytest.mark.parametrize(
        ("category", "expected"),
        [
            ("Men's 11 Under Age Group", "11U"),
            ("Women's 13 Under Age Group", "13U"),
            ("Men's 14-15 Age Group", "14-15"),
            ("Women's 16-17 Age Group", "16-17"),
            ("Junior Men's", "junior"),
            ("Open Women's", "open"),
            ("Masters Men's", "senior"),
            ("Youth Women's", "16-17"),
        ],
    )
    def test_age_group(self, category, expected):
        assert age_group(category) == expected


class TestClassifyWeightClass:
    """Tests for classify_weight_class."""

    def test_smallest_limit_at_or_above_bodyweight(self):
        assert classify_weight_class("Open Women's", 63.5, date(2024, 3, 1)) == "64kg"

    def test_bodyweight_on_limit_stays_in_class(self):
        assert classify_weight_class("Open Women's", 64.0, date(2024, 3, 1)) == "64kg"

    def test_current_era_tables(self):
        assert classify_weight_class("Open Women's", 63.5, date(2025, 7, 1)) == "69kg"

    def test_13u_uses_11u_table(self):
        assert classify_weight_class("Women's 13 Under Age Group", 35.0, date(2024, 3, 1)) == "36kg"

    @pytest.mark.parametrize(
        ("event_date", "expected"),
        [
            (date(2025, 7, 1), "110+kg"),
            (date(2024, 3, 1), "+109kg"),
            (date(2010, 1, 1), "+105 Kg"),
        ],
    )
    def test_heavy_class_label_follows_era(self, event_date, expected):
        assert classify_weight_class("Open Men's", 130.0, event_date) == expected

    @pytest.mark.parametrize(
        ("age_category", "bodyweight", "expected"),
        [
            ("Open Men's", 60.0, "62 kg"),
            ("Open Women's", 58.0, "58 kg"),
            ("Men's 14-15 Age Group", 44.0, "44 kg"),
        ],
    )
    def test_1998_class_label_has_a_space(self, age_category, bodyweight, expected):
        assert classify_weight_class(age_category, bodyweight, date(2010, 1, 1)) == expected

    def test_missing_bodyweight_returns_none(self):
        assert classify_weight_class("Open Men's", None, date(2024, 3, 1)) is None

    def test_missing_date_returns_none(self):
        assert classify_weight_class("Open Men's", 80.0, None) is None

    def test_pre_1998_returns_none(self):
        assert classify_weight_class("Open Men's", 80.0, date(1996, 5, 1)) is None


class TestAlternativeDivisions:
    """Tests for the ordered division retry list."""

    def test_own_division_first_then_neighbours_and_open(self):
        divisions = alternative_divisions("Women's 14-15 Age Group", 50.0, date(2024, 3, 1))

        assert [name for name, _ in divisions] == [
            "Women's 14-15 Age Group",
            "Women's 11 Under Age Group",
            "Women's 13 Under Age Group",
            "Women's 16-17 Age Group",
            "Junior Women's",
            "Open Women's",
        ]
        assert all(weight_class == "55kg" for _, weight_class in divisions)

    def test_open_division_tries_two_younger(self):
        divisions = alternative_divisions("Open Men's", 80.0, date(2024, 3, 1))

        assert divisions == [
            ("Open Men's", "81kg"),
            ("Men's 16-17 Age Group", "81kg"),
            ("Junior Men's", "81kg"),
        ]

    def test_unknown_division_falls_back_to_open(self):
        divisions = alternative_divisions("Masters Men's", 80.0, date(2024, 3, 1))

        assert divisions == [("Open Men's", "81kg")]

    def test_missing_bodyweight_returns_empty(self):
        assert alternative_divisions("Open Men's", None, date(2024, 3, 1)) == []


class TestAlternateSpacing:
    """Tests for kg spelling variants."""

    def test_adds_space(self):
        assert alternate_spacing("56kg") == "56 kg"

    def test_removes_space(self):
        assert alternate_spacing("56 kg") == "56kg"

    def test_keeps_unit_case(self):
        assert alternate_spacing("+109 Kg") == "+109Kg"

    def test_non_weight_returns_none(self):
        assert alternate_spacing("Open") is None
