"""Event infrastructure for liftmatch.

Provides:
- Event: Base class for all reconciliation events
- EventBus: In-process pub/sub for event routing
"""

from liftmatch.events.base import Event
from liftmatch.events.bus import EventBus
from liftmatch.events.types import (
    AthleteCreated,
    AthleteEnriched,
    IdentityConflictDetected,
    PhantomAthleteDeleted,
    ResolutionCompleted,
    ResultDropped,
    ResultOrphaned,
    ResultReassigned,
    StrategyAttempted,
)

__all__ = [
    # Base
    "Event",
    # Infrastructure
    "EventBus",
    # Event types
    "StrategyAttempted",
    "IdentityConflictDetected",
    "AthleteCreated",
    "AthleteEnriched",
    "ResolutionCompleted",
    "ResultReassigned",
    "ResultOrphaned",
    "ResultDropped",
    "PhantomAthleteDeleted",
]
