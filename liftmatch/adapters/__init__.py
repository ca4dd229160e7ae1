"""Interfaces to the source results site.

This module exports the read-only lookup protocols the resolver and the
contamination splitter depend on:
- RankingsLookupService / RankedAthlete: Division ranking listings
- MemberHistoryService / HistoryEntry: Member competition histories
"""

from liftmatch.adapters.base import (
    HistoryEntry,
    MemberHistoryService,
    RankedAthlete,
    RankingsLookupService,
)

__all__ = [
    "HistoryEntry",
    "MemberHistoryService",
    "RankedAthlete",
    "RankingsLookupService",
]
