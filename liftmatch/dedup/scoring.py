"""Confidence scoring for same-name groups.

Score starts at 20 for the shared name and moves with identifier
agreement, performance patterns and career overlap. Clamped to 0-100.
"""

from liftmatch.dedup.schemas import (
    CaseType,
    DuplicateEvidence,
    HistorySummary,
    PatternFlags,
    RecommendedAction,
)

BASE_SCORE = 20
EXTERNAL_ID_AGREE = 30
EXTERNAL_ID_DISTINCT = -10
MEMBERSHIP_AGREE = 20
MEMBERSHIP_DISTINCT = -15
IDENTICAL_PERFORMANCE = 15
TEMPORAL_CONFLICT = 10
WEIGHT_CLASS_ANOMALY = 5
PERFORMANCE_ANOMALY = 5
CAREER_OVERLAP = 10

AUTO_MERGE_THRESHOLD = 90
MANUAL_REVIEW_THRESHOLD = 70


def agreement(values: list) -> bool | None:
    """True if all present values agree, False if all differ, else None.

    None also means nothing to compare.
    """
    present = [v for v in values if v is not None]
    if not present:
        return None
    distinct = len(set(present))
    if distinct == 1:
        return True
    if distinct == len(present):
        return False
    return None


def careers_overlap(members: list[HistorySummary]) -> bool:
    """Two members' first-to-last competition spans intersect."""
    spans = [
        (m.first_competition, m.last_competition)
        for m in members
        if m.first_competition and m.last_competition
    ]
    for i, (start_a, end_a) in enumerate(spans):
        for start_b, end_b in spans[i + 1 :]:
            if start_a <= end_b and start_b <= end_a:
                return True
    return False


def build_evidence(members: list[HistorySummary], flags: PatternFlags) -> DuplicateEvidence:
    ids = [m.external_id for m in members]
    memberships = [m.membership_number for m in members]
    present_ids = [i for i in ids if i is not None]
    present_memberships = [n for n in memberships if n is not None]
    return DuplicateEvidence(
        external_id_match=len(set(present_ids)) == 1 if present_ids else None,
        membership_match=len(set(present_memberships)) == 1 if present_memberships else None,
        performance_overlap=flags.identical_performances,
        timeline_conflict=flags.temporal_conflicts,
        weight_class_conflict=flags.weight_class_anomalies,
        performance_anomaly=flags.performance_anomalies,
        overlapping_careers=careers_overlap(members),
    )


def confidence_score(members: list[HistorySummary], flags: PatternFlags) -> int:
    """Score how likely a same-name group needs action (0-100)."""
    score = BASE_SCORE

    id_agreement = agreement([m.external_id for m in members])
    if id_agreement is True:
        score += EXTERNAL_ID_AGREE
    elif id_agreement is False:
        score += EXTERNAL_ID_DISTINCT

    membership_agreement = agreement([m.membership_number for m in members])
    if membership_agreement is True:
        score += MEMBERSHIP_AGREE
    elif membership_agreement is False:
        score += MEMBERSHIP_DISTINCT

    if flags.identical_performances:
        score += IDENTICAL_PERFORMANCE
    if flags.temporal_conflicts:
        score += TEMPORAL_CONFLICT
    if flags.weight_class_anomalies:
        score += WEIGHT_CLASS_ANOMALY
    if flags.performance_anomalies:
        score += PERFORMANCE_ANOMALY

    if careers_overlap(members):
        score += CAREER_OVERLAP

    return max(0, min(100, round(score)))


def case_type(members: list[HistorySummary], flags: PatternFlags) -> CaseType:
    if agreement([m.external_id for m in members]) is True:
        return CaseType.MERGE
    if flags.identical_performances or flags.temporal_conflicts:
        return CaseType.MERGE
    if flags.weight_class_anomalies or flags.performance_anomalies:
        return CaseType.SPLIT
    return CaseType.AMBIGUOUS


def recommended_action(score: int) -> RecommendedAction:
    if score >= AUTO_MERGE_THRESHOLD:
        return RecommendedAction.AUTO_MERGE
    if score >= MANUAL_REVIEW_THRESHOLD:
        return RecommendedAction.MANUAL_REVIEW
    return RecommendedAction.SPLIT


def case_notes(members: list[HistorySummary], flags: PatternFlags) -> str:
    """Human-readable summary of a case."""
    notes = [f"{len(members)} athlete records with identical name"]

    ids = sorted({m.external_id for m in members if m.external_id is not None})
    if len(ids) == 1:
        notes.append(f"All linked records share external id {ids[0]}")
    elif ids:
        notes.append(f"Multiple external ids: {', '.join(str(i) for i in ids)}")

    if flags.identical_performances:
        notes.append("Identical performance records detected")
    if flags.temporal_conflicts:
        notes.append("Temporal conflicts in competition schedule")
    if flags.weight_class_anomalies:
        notes.append("Suspicious weight class progression")
    if flags.performance_anomalies:
        notes.append("Performance trend anomalies detected")
    return "; ".join(notes)
