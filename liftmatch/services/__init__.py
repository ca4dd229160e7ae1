"""Upstream call guard and lookup caching."""

from liftmatch.services.cache import LookupCache
from liftmatch.services.rankings import CachedRankingsLookup
from liftmatch.services.upstream import UpstreamGuard, call_upstream

__all__ = [
    "CachedRankingsLookup",
    "LookupCache",
    "UpstreamGuard",
    "call_upstream",
]
