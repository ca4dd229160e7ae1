"""Base Event class for all reconciliation events."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class Event(BaseModel):
    """An immutable record of one decision made against the roster.

    The resolver publishes one per strategy attempt and per outcome; the
    splitter one per reassignment, orphan, drop and deletion. Subscribers
    turn them into logs, reports or test assertions.

    Attributes:
        athlete_id: Store id of the athlete the decision touched, if any
        display_name: Name being resolved or split
        metadata: Caller-supplied context merged into log output
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    athlete_id: int | None = None
    display_name: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def event_type(self) -> str:
        return type(self).__name__

    def to_log_dict(self) -> dict[str, Any]:
        """Flatten into structlog key/value pairs, metadata inlined."""
        fields = self.model_dump(exclude={"event_id", "timestamp", "metadata"}, mode="json")
        return {"event_type": self.event_type, **fields, **self.metadata}
