"""Base model and time helper shared by every Clarity schema."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ClarityBase(BaseModel):
    """Reads ORM-style attributes, accepts field names or aliases, strips strings."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
    )
