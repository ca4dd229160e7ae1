"""Base model class for stored roster records."""

from pydantic import BaseModel, ConfigDict


class StoredModel(BaseModel):
    """Base class for records owned by the athlete record store.

    Provides:
    - Whitespace-stripped strings (names arrive from scraped HTML)
    - Construction from row-like objects
    - Validation of defaults
    """

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_default=True,
        from_attributes=True,
    )
