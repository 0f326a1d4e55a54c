"""
Time Entry Routes Module

This module handles listing, manual creation, editing and deletion of
time entries. Running entries are owned by the timer and can only be
deleted here, not edited.

Security:
- Authentication required
- Entries and their activities must belong to the caller

Dependencies:
- FastAPI for routing
- Entry store for persistence
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException

from timekeep.features.entries.models import EntryCreate, EntryUpdate
from timekeep.features.timer.registry import TimerRegistry
from timekeep.features.timer.routes_timer import get_timers
from timekeep.shared.auth import get_current_user
from timekeep.shared.clock import as_utc, elapsed_seconds, to_millis
from timekeep.shared.database import get_store
from timekeep.shared.errors import TimekeepError
from timekeep.shared.http import http_error
from timekeep.shared.models import TimeEntry
from timekeep.shared.store import EntryStore

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/entries",
    tags=["entries"]
)


def _span(start_time: datetime, end_time: datetime) -> Tuple[datetime, datetime, int]:
    """Millisecond timestamps whose difference is exactly the whole-second duration."""
    start_time = to_millis(start_time)
    duration = elapsed_seconds(start_time, to_millis(end_time))
    return start_time, start_time + timedelta(seconds=duration), duration


@router.get("", response_model=List[TimeEntry])
async def list_entries(
    activity_id: Optional[str] = None,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
):
    try:
        return await store.list_entries(auth_data["user_id"], activity_id)
    except TimekeepError as e:
        raise http_error(e)


@router.post("", response_model=TimeEntry)
async def create_entry(
    payload: EntryCreate,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
):
    """
    Add a completed entry by hand.

    Notes:
        - duration is the whole seconds between start_time and end_time
    """
    user_id = auth_data["user_id"]
    start_time, end_time, duration = _span(payload.start_time, payload.end_time)
    try:
        await store.get_activity(payload.activity_id, user_id)
        return await store.insert_entry(
            user_id,
            payload.activity_id,
            start_time,
            end_time=end_time,
            duration=duration,
            description=payload.description,
        )
    except TimekeepError as e:
        logger.error(f"Error creating entry for activity {payload.activity_id}: {str(e)}")
        raise http_error(e)


@router.put("/{entry_id}", response_model=TimeEntry)
async def update_entry(
    entry_id: str,
    payload: EntryUpdate,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
):
    """
    Edit a completed entry; duration is recomputed from the timestamps.

    Raises:
        HTTPException: 409 for running entries, 422 when end is not after start
    """
    user_id = auth_data["user_id"]
    try:
        entry = await store.get_entry(entry_id, user_id)
        if entry.is_running:
            raise HTTPException(status_code=409, detail="Stop the timer before editing this entry")

        changes = payload.model_dump(exclude_unset=True)
        start_time = as_utc(payload.start_time) if payload.start_time else entry.start_time
        end_time = as_utc(payload.end_time) if payload.end_time else entry.end_time
        if end_time is None or end_time <= start_time:
            raise HTTPException(status_code=422, detail="end_time must be after start_time")

        start_time, end_time, duration = _span(start_time, end_time)
        fields = {"start_time": start_time, "end_time": end_time, "duration": duration}
        if "description" in changes:
            fields["description"] = changes["description"]
        return await store.update_entry(entry_id, user_id, fields)
    except TimekeepError as e:
        logger.error(f"Error updating entry {entry_id}: {str(e)}")
        raise http_error(e)


@router.delete("/{entry_id}")
async def delete_entry(
    entry_id: str,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
    timers: TimerRegistry = Depends(get_timers),
):
    user_id = auth_data["user_id"]
    try:
        entry = await store.get_entry(entry_id, user_id)
        if entry.is_running:
            await timers.release_activity(entry.activity_id)
        await store.delete_entry(entry_id, user_id)
    except TimekeepError as e:
        logger.error(f"Error deleting entry {entry_id}: {str(e)}")
        raise http_error(e)
    return {"status": "success", "message": "Entry deleted"}
