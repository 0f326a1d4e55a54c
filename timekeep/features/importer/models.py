"""
Import Data Models Module

Request and planning models for CSV imports.

Data Models:
- Column mapping
- Planned entries
- Import plan and result
- Import request
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class ColumnMapping(BaseModel):
    """
    Which CSV header holds each field. Unmapped fields are ``None``.

    Attributes:
        startTime (Optional[str]): Start timestamp column
        endTime (Optional[str]): End timestamp column
        duration (Optional[str]): Duration column, used without start/end
        description (Optional[str]): Description column
        activity (Optional[str]): Activity name column (project imports)
    """
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    duration: Optional[str] = None
    description: Optional[str] = None
    activity: Optional[str] = None

    @property
    def has_time_range(self) -> bool:
        return bool(self.startTime and self.endTime)


class PlannedEntry(BaseModel):
    activity_id: Optional[str] = None
    activity_name: Optional[str] = None
    start_time: datetime
    end_time: datetime
    duration: int
    description: Optional[str] = None


class ImportPlan(BaseModel):
    """Entries to insert plus the activity names that must be created first."""
    entries: List[PlannedEntry] = []
    new_activity_names: List[str] = []


class ImportResult(BaseModel):
    status: str = "success"
    batch_id: str
    entries_created: int
    activities_created: List[str] = []


class ImportRequest(BaseModel):
    csv: str = Field(..., description="Raw CSV text including the header row")
    mapping: ColumnMapping
    dry_run: bool = Field(False, description="Return the plan without writing")
