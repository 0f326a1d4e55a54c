"""
Shared Models Module

This module contains the record models and enums used across
the application.

Features:
- Status enums
- Client/Project/Activity/TimeEntry records
- Document conversion
- Validators

Data Model:
- Clients own projects
- Projects own activities
- Activities own time entries

Notes:
    Rate overrides on projects and activities are ``None`` when unset.
    Any number, including 0, is a set override.
"""

from enum import Enum
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from timekeep.shared.clock import as_utc


class TimerState(str, Enum):
    """
    Timer engine state.

    Attributes:
        STOPPED: No running entry is tracked
        RUNNING: A running entry is tracked and ticking
    """
    STOPPED = "stopped"
    RUNNING = "running"


class ViewMetric(str, Enum):
    """Metric used to order analytics stats."""
    TIME = "time"
    EARNINGS = "earnings"


class Record(BaseModel):
    """Base for documents stored with an ObjectId ``_id``."""
    id: str
    user_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at", mode="after")
    @classmethod
    def _utc(cls, value):
        return as_utc(value)

    @classmethod
    def from_document(cls, doc: Dict[str, Any]):
        """Build a model from a MongoDB document."""
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        return cls(**data)


class Client(Record):
    name: str
    description: Optional[str] = None
    hourly_rate: float = Field(0.0, ge=0)
    color: str = "#22c55e"


class Project(Record):
    name: str
    description: Optional[str] = None
    hourly_rate: Optional[float] = Field(None, ge=0)
    color: str = "#16a34a"
    client_id: str


class Activity(Record):
    name: str
    description: Optional[str] = None
    hourly_rate: Optional[float] = Field(None, ge=0)
    project_id: str


class TimeEntry(Record):
    """
    Time entry record.

    Attributes:
        activity_id (str): Owning activity
        start_time (datetime): Anchor timestamp of the session
        end_time (Optional[datetime]): Absent while running
        duration (int): Seconds; a checkpoint while running, final once stopped
        description (Optional[str]): Free-form notes
        is_running (bool): Whether this is the activity's live timer
        import_batch (Optional[str]): CSV import batch that created the entry
    """
    activity_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: int = 0
    description: Optional[str] = None
    is_running: bool = False
    import_batch: Optional[str] = None

    @field_validator("start_time", "end_time", mode="after")
    @classmethod
    def _entry_utc(cls, value):
        return as_utc(value)

    @property
    def is_completed(self) -> bool:
        return self.end_time is not None


class EntryContext(BaseModel):
    """A time entry joined with the records its hourly rate depends on."""
    entry: TimeEntry
    activity: Activity
    project: Optional[Project] = None
    client: Optional[Client] = None
