"""Roster data models.

This module exports the records owned by the athlete record store:
- StoredModel: Base class with shared serialization config
- Athlete / AthleteEnrichment: Canonical identities and fill-in fields
- NewResult / ResultRecord / ResultEnrichment: Competition results
- OrphanResult: Results a split could not assign
"""

from liftmatch.models.athlete import Athlete, AthleteEnrichment
from liftmatch.models.base import StoredModel
from liftmatch.models.orphan import OrphanReason, OrphanResult
from liftmatch.models.result import NewResult, ResultEnrichment, ResultRecord

__all__ = [
    # Base
    "StoredModel",
    # Athlete
    "Athlete",
    "AthleteEnrichment",
    # Results
    "NewResult",
    "ResultEnrichment",
    "ResultRecord",
    # Orphans
    "OrphanReason",
    "OrphanResult",
]
