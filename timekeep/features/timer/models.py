"""
Timer Data Models Module

Response models for the timer endpoints.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from timekeep.features.billing.formatting import format_clock, format_duration
from timekeep.shared.models import TimerState


class TimerStatus(BaseModel):
    """
    Snapshot of one activity's timer.

    Attributes:
        activity_id (str): Observed activity
        state (TimerState): stopped or running
        entry_id (Optional[str]): Running entry
        start_time (Optional[datetime]): Anchor timestamp
        display_seconds (int): Elapsed seconds at snapshot time
        clock (str): ``HH:MM:SS`` readout
        formatted (str): ``1h 2m 3s`` readout
        last_checkpoint_seconds (Optional[int]): Last duration written to the store
    """
    activity_id: str
    state: TimerState
    entry_id: Optional[str] = None
    start_time: Optional[datetime] = None
    display_seconds: int = 0
    clock: str = "00:00:00"
    formatted: str = "0s"
    last_checkpoint_seconds: Optional[int] = None

    @classmethod
    def from_engine(cls, activity_id: str, engine) -> "TimerStatus":
        seconds = engine.display_seconds
        return cls(
            activity_id=activity_id,
            state=engine.state,
            entry_id=engine.current_entry_id,
            start_time=engine.anchor_start_time,
            display_seconds=seconds,
            clock=format_clock(seconds),
            formatted=format_duration(seconds),
            last_checkpoint_seconds=engine.last_checkpoint_seconds if engine.is_running else None,
        )
