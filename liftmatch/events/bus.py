"""In-process event bus for reconciliation events.

The resolver and the splitter publish one event per decision; anything that
wants an audit trail (the log, a test, a report collector) subscribes.
Handlers subscribed to a base class receive every subclass, so a
subscription on ``Event`` sees the whole stream.
"""

import asyncio
import inspect
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

from liftmatch.events.base import Event

logger = structlog.get_logger()

T = TypeVar("T", bound=Event)
EventHandler = Callable[[Event], None] | Callable[[Event], Awaitable[None]]


class EventBus:
    """Async pub/sub keyed by event class.

    Async handlers are awaited, sync handlers run in a worker thread. A
    failing handler is logged and counted; it never reaches the publisher,
    so a broken audit sink cannot abort a resolution or a split.
    """

    def __init__(self):
        self._subscribers: dict[type[Event], list[EventHandler]] = defaultdict(list)
        self.handler_failures = 0

    def subscribe(
        self,
        event_type: type[T],
        handler: Callable[[T], None] | Callable[[T], Awaitable[None]],
    ) -> None:
        """Register ``handler`` for ``event_type`` and its subclasses."""
        self._subscribers[event_type].append(handler)

    def unsubscribe(self, event_type: type[T], handler: EventHandler) -> None:
        """Remove a handler; unknown handlers are ignored."""
        handlers = self._subscribers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def handlers_for(self, event: Event) -> list[EventHandler]:
        """Handlers for the event's class first, then for each base class."""
        handlers: list[EventHandler] = []
        for cls in type(event).__mro__:
            if isinstance(cls, type) and issubclass(cls, Event):
                handlers.extend(self._subscribers.get(cls, []))
        return handlers

    async def publish(self, event: Event) -> None:
        """Deliver an event to every matching handler concurrently."""
        handlers = self.handlers_for(event)
        if not handlers:
            return

        outcomes = await asyncio.gather(
            *(self._deliver(handler, event) for handler in handlers),
            return_exceptions=True,
        )
        for handler, outcome in zip(handlers, outcomes, strict=True):
            if isinstance(outcome, Exception):
                self.handler_failures += 1
                logger.error(
                    "event handler failed",
                    event_type=event.event_type,
                    handler=getattr(handler, "__qualname__", repr(handler)),
                    error=str(outcome),
                )

    async def _deliver(self, handler: EventHandler, event: Event) -> None:
        if inspect.iscoroutinefunction(handler):
            await handler(event)
        else:
            await asyncio.to_thread(handler, event)

    def subscriber_count(self, event_type: type[Event]) -> int:
        """Handlers registered directly on ``event_type``."""
        return len(self._subscribers.get(event_type, []))
