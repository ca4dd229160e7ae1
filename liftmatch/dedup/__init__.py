"""Duplicate detection for the athlete roster.

This module provides:
- DuplicateDetector: Confidence-scored same-name group analysis
- Pattern checks and scoring rules
- Schemas for cases, evidence and member summaries
"""

from liftmatch.dedup.duplicate_detector import DuplicateDetector
from liftmatch.dedup.schemas import (
    CaseType,
    DuplicateCase,
    DuplicateEvidence,
    DuplicateScanScope,
    HistorySummary,
    PatternFlags,
    RecommendedAction,
    SimilarNamePair,
)

__all__ = [
    "CaseType",
    "DuplicateCase",
    "DuplicateDetector",
    "DuplicateEvidence",
    "DuplicateScanScope",
    "HistorySummary",
    "PatternFlags",
    "RecommendedAction",
    "SimilarNamePair",
]
