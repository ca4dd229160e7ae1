"""Caching decorator around a RankingsLookupService."""

from datetime import date

import structlog

from liftmatch.adapters.base import RankedAthlete, RankingsLookupService
from liftmatch.config import settings
from liftmatch.services.cache import LookupCache

logger = structlog.get_logger()


class CachedRankingsLookup:
    """RankingsLookupService that memoizes successful division listings.

    Ranking pages for a division and window change rarely within a batch, and
    several results from the same meet query the same division. Errors
    (including UnknownDivisionError) are never cached.
    """

    def __init__(self, inner: RankingsLookupService, cache: LookupCache | None = None):
        self._inner = inner
        self.cache = cache or LookupCache(
            settings.rankings_cache_ttl_seconds,
            max_size=settings.rankings_cache_max_size,
        )

    async def query(
        self,
        age_category: str,
        weight_class: str,
        date_start: date,
        date_end: date,
    ) -> list[RankedAthlete]:
        key = ("rankings", age_category, weight_class, date_start, date_end)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("rankings cache hit", age_category=age_category, weight_class=weight_class)
            return list(cached)

        ranked = await self._inner.query(age_category, weight_class, date_start, date_end)
        self.cache.put(key, list(ranked))
        return ranked
