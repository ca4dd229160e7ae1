"""Era-correct weight-class derivation.

The federation redrew its weight classes in 1998, November 2018 and June
2025. A result's published weight class depends on when it was lifted, the
age group and the gender of the division. Pure functions only.
"""

from datetime import date
from enum import Enum


class WeightClassEra(str, Enum):
    """Weight-class eras, named by when they took effect."""

    CURRENT = "current"
    HISTORICAL_2018 = "historical_2018"
    HISTORICAL_1998 = "historical_1998"


ERA_CUTOVERS: list[tuple[date, WeightClassEra]] = [
    (date(2025, 6, 1), WeightClassEra.CURRENT),
    (date(2018, 11, 1), WeightClassEra.HISTORICAL_2018),
    (date(1998, 1, 1), WeightClassEra.HISTORICAL_1998),
]

_YOUTH_GROUPS = ("11U", "13U", "14-15", "16-17")

# Upper limits in kg, ascending. Junior, open and senior share a table.
_CURRENT = {
    "11U": {
        "M": [32, 36, 40, 44, 48, 52, 56, 60, 65],
        "F": [30, 33, 36, 40, 44, 48, 53, 58, 63],
    },
    "14-15": {"M": [48, 52, 56, 60, 65, 71, 79], "F": [40, 44, 48, 53, 58, 63, 69]},
    "16-17": {"M": [56, 60, 65, 71, 79, 88, 94], "F": [44, 48, 53, 58, 63, 69, 77]},
    "open": {"M": [60, 65, 71, 79, 88, 94, 110], "F": [48, 53, 58, 63, 69, 77, 86]},
}
_HISTORICAL_2018 = {
    "11U": {
        "M": [32, 36, 39, 44, 49, 55, 61, 67, 73],
        "F": [30, 33, 36, 40, 45, 55, 59, 64],
    },
    "14-15": {
        "M": [39, 44, 49, 55, 61, 67, 73, 81, 89],
        "F": [36, 40, 45, 49, 55, 59, 64, 71, 76],
    },
    "16-17": {
        "M": [49, 55, 61, 67, 73, 81, 89, 96, 102],
        "F": [40, 45, 49, 55, 59, 64, 71, 76, 81],
    },
    "open": {
        "M": [55, 61, 67, 73, 81, 89, 96, 102, 109],
        "F": [45, 49, 55, 59, 64, 71, 76, 81, 87],
    },
}
_HISTORICAL_1998 = {
    "11U": {"M": [31, 35, 39, 44, 50, 56, 62, 69], "F": [31, 35, 39, 44, 48, 53, 58]},
    "14-15": {"M": [44, 50, 56, 62, 69, 77, 85], "F": [44, 48, 53, 58, 63, 69]},
    "16-17": {"M": [50, 56, 62, 69, 77, 85, 94, 105], "F": [44, 48, 53, 58, 63, 69]},
    "open": {"M": [56, 62, 69, 77, 85, 94, 105], "F": [48, 53, 58, 63, 69, 75, 90]},
}


def _expand(table: dict[str, dict[str, list[int]]]) -> dict[str, dict[str, list[int]]]:
    # 13U shares the 11U table; junior and senior share open
    return {
        **table,
        "13U": table["11U"],
        "junior": table["open"],
        "senior": table["open"],
    }


WEIGHT_CLASS_LIMITS: dict[WeightClassEra, dict[str, dict[str, list[int]]]] = {
    WeightClassEra.CURRENT: _expand(_CURRENT),
    WeightClassEra.HISTORICAL_2018: _expand(_HISTORICAL_2018),
    WeightClassEra.HISTORICAL_1998: _expand(_HISTORICAL_1998),
}

# Division names in age order, youngest first. "{gender}" is "Men's" or "Women's".
DIVISION_HIERARCHY = [
    "{gender} 11 Under Age Group",
    "{gender} 13 Under Age Group",
    "{gender} 14-15 Age Group",
    "{gender} 16-17 Age Group",
    "Junior {gender}",
    "Open {gender}",
]


def era_for(event_date: date) -> WeightClassEra | None:
    """Return the era a date falls in, or None before 1998."""
    for cutover, era in ERA_CUTOVERS:
        if event_date >= cutover:
            return era
    return None


def division_gender(age_category: str | None) -> str:
    """Return "F" for women's divisions, "M" otherwise."""
    category = (age_category or "").lower()
    return "F" if "women" in category or "female" in category else "M"


def age_group(age_category: str | None) -> str:
    """Map a division name to its weight-class table key."""
    category = (age_category or "").lower()
    if "11 under" in category:
        group = "11U"
    elif "13 under" in category:
        group = "13U"
    elif "14-15" in category:
        group = "14-15"
    elif "16-17" in category:
        group = "16-17"
    elif "junior" in category:
        group = "junior"
    elif "open" in category or "senior" in category:
        group = "open"
    else:
        group = "senior"

    # Unspecified youth divisions cover the widest youth range
    if "youth" in category and group not in _YOUTH_GROUPS:
        group = "16-17"
    return group


def _class_label(era: WeightClassEra, limit: int) -> str:
    if era is WeightClassEra.HISTORICAL_1998:
        return f"{limit} kg"
    return f"{limit}kg"


def _heavy_label(era: WeightClassEra, limit: int) -> str:
    if era is WeightClassEra.HISTORICAL_2018:
        return f"+{limit}kg"
    if era is WeightClassEra.HISTORICAL_1998:
        return f"+{limit} Kg"
    return f"{limit}+kg"


def classify_weight_class(
    age_category: str | None,
    bodyweight_kg: float | None,
    event_date: date | None,
) -> str | None:
    """Derive the weight class a lifter competed in.

    Args:
        age_category: Division name, e.g. "Open Women's" or
            "Men's 14-15 Age Group"
        bodyweight_kg: Weigh-in bodyweight
        event_date: Date of the competition

    Returns:
        The smallest class limit at or above the bodyweight ("{limit}kg",
        or "{limit} kg" in the 1998 era), the era-formatted open-ended top
        class, or None when the bodyweight is missing or the date predates
        every era
    """
    if bodyweight_kg is None or event_date is None:
        return None
    era = era_for(event_date)
    if era is None:
        return None

    limits = WEIGHT_CLASS_LIMITS[era][age_group(age_category)][division_gender(age_category)]
    for limit in limits:
        if bodyweight_kg <= limit:
            return _class_label(era, limit)
    return _heavy_label(era, limits[-1])


def alternative_divisions(
    age_category: str | None,
    bodyweight_kg: float | None,
    event_date: date | None,
) -> list[tuple[str, str]]:
    """Ordered (age_category, weight_class) retries for a missed division.

    The first entry is the lifter's own division with a recomputed weight
    class. Then come up to two younger and two older divisions and the open
    division, youngest to oldest. Lifters are often entered in a different
    age division than the one a result lists.
    """
    if not age_category or bodyweight_kg is None:
        return []

    gender = "Women's" if division_gender(age_category) == "F" else "Men's"
    hierarchy = [name.format(gender=gender) for name in DIVISION_HIERARCHY]
    category = age_category.lower()

    current = -1
    for i, name in enumerate(hierarchy):
        core = name.replace(gender, "").replace("Age Group", "").strip().lower()
        if core in category:
            current = i
            break

    indices = {len(hierarchy) - 1}
    if current != -1:
        indices.update(
            i for i in range(current - 2, current + 3) if 0 <= i < len(hierarchy)
        )

    ordered = [current] if current != -1 else []
    ordered.extend(i for i in sorted(indices) if i != current)

    divisions: list[tuple[str, str]] = []
    for i in ordered:
        weight_class = classify_weight_class(hierarchy[i], bodyweight_kg, event_date)
        if weight_class and (hierarchy[i], weight_class) not in divisions:
            divisions.append((hierarchy[i], weight_class))
    return divisions


def alternate_spacing(weight_class: str) -> str | None:
    """Swap "56kg" and "56 kg" spellings; None if neither applies."""
    stripped = weight_class.strip()
    lowered = stripped.lower()
    if lowered.endswith(" kg"):
        return stripped[:-3].rstrip() + stripped[-2:]
    if lowered.endswith("kg"):
        return stripped[:-2] + " " + stripped[-2:]
    return None
