"""Check-in records (read-only input to the energy engine)."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field

from clarity.models.base import ClarityBase, utc_now


class CheckInType(str, Enum):
    MORNING = "morning"
    MIDDAY = "midday"
    EVENING = "evening"


class CheckInRecord(ClarityBase):
    """A user-submitted check-in for one time-of-day slot.

    ``data`` is an open key-value payload; readers must treat a missing key
    as unknown, never as zero or false.
    """

    id: str
    user_id: str
    type: CheckInType
    data: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)


class CheckInStatus(ClarityBase):
    morning: bool = False
    midday: bool = False
    evening: bool = False
