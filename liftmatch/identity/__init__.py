"""Identity resolution for incoming competition results.

This module provides:
- IdentityResolver: Tiered resolution pipeline (external id -> name ->
  division rankings -> division repair -> member history -> soft fallback)
- Era-aware weight-class classification and alternative divisions
- Matching predicates for ranking listings and member histories
- Schemas for match signals and resolution results
"""

from liftmatch.identity.locks import KeyedLocks
from liftmatch.identity.resolver import IdentityResolver
from liftmatch.identity.schemas import (
    BatchResolution,
    IdentityConflict,
    MatchSignals,
    ResolutionResult,
    ResolutionSource,
    StrategyAttempt,
    StrategyOutcome,
)
from liftmatch.identity.weight_class import alternative_divisions, classify_weight_class

__all__ = [
    "BatchResolution",
    "IdentityConflict",
    "IdentityResolver",
    "KeyedLocks",
    "MatchSignals",
    "ResolutionResult",
    "ResolutionSource",
    "StrategyAttempt",
    "StrategyOutcome",
    "alternative_divisions",
    "classify_weight_class",
]
