"""
Time Entry Request Models

Models for manually adding and editing completed time entries.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, model_validator

from timekeep.shared.clock import as_utc


class EntryCreate(BaseModel):
    """
    Model for adding a completed entry by hand.

    Notes:
        Duration is derived from the two timestamps and is not accepted
        from the caller.
    """
    activity_id: str
    start_time: datetime
    end_time: datetime
    description: Optional[str] = None

    @model_validator(mode="after")
    def _end_after_start(self):
        if as_utc(self.end_time) <= as_utc(self.start_time):
            raise ValueError("end_time must be after start_time")
        return self


class EntryUpdate(BaseModel):
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    description: Optional[str] = None
