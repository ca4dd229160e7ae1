"""Repository layer for data persistence.

Provides the athlete record store protocol and its libSQL implementations.
Repositories encapsulate data access logic and translate driver failures
into ConflictError / StoreError.
"""

from liftmatch.repositories.athlete_repo import AthleteRepository
from liftmatch.repositories.base import AthleteRecordStore
from liftmatch.repositories.orphan_repo import OrphanRepository

__all__ = [
    "AthleteRecordStore",
    "AthleteRepository",
    "OrphanRepository",
]
