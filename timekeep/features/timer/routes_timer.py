"""
Timer Routes Module

This module exposes the per-activity timer over HTTP.

Features:
- Status with reconciliation
- Start/stop
- Detach

Security:
- Authentication required
- Activities must belong to the caller

Dependencies:
- FastAPI for routing
- Timer registry for engines
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from timekeep.features.timer.models import TimerStatus
from timekeep.features.timer.registry import TimerRegistry
from timekeep.shared.auth import get_current_user
from timekeep.shared.database import get_store
from timekeep.shared.errors import InvalidStateError, StoreError, TimekeepError
from timekeep.shared.http import http_error
from timekeep.shared.models import TimeEntry
from timekeep.shared.store import EntryStore

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/timer",
    tags=["timer"]
)


def get_timers(request: Request) -> TimerRegistry:
    return request.app.state.timers


async def _engine(activity_id: str, user_id: str, store: EntryStore, timers: TimerRegistry):
    try:
        await store.get_activity(activity_id, user_id)
    except TimekeepError as e:
        raise http_error(e)
    return await timers.get(user_id, activity_id)


@router.get("/{activity_id}", response_model=TimerStatus)
async def get_timer(
    activity_id: str,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
    timers: TimerRegistry = Depends(get_timers),
):
    """
    Attach to an activity's timer and return its status.

    Notes:
        - Reconciles with a running entry in the store
        - Elapsed time counts from the entry's start_time
    """
    user_id = auth_data["user_id"]
    engine = await _engine(activity_id, user_id, store, timers)
    status = TimerStatus.from_engine(activity_id, engine)
    await timers.discard_idle(user_id, activity_id)
    return status


@router.post("/{activity_id}/start", response_model=TimeEntry)
async def start_timer(
    activity_id: str,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
    timers: TimerRegistry = Depends(get_timers),
):
    """
    Start the activity's timer.

    Raises:
        HTTPException: 409 when already running, 502 when the store write fails
    """
    user_id = auth_data["user_id"]
    engine = await _engine(activity_id, user_id, store, timers)
    try:
        return await engine.start()
    except InvalidStateError as e:
        raise http_error(e)
    except StoreError as e:
        logger.error(f"Error starting timer for activity {activity_id}: {str(e)}")
        raise http_error(e, "Failed to start timer. Please try again.")
    except TimekeepError as e:
        raise http_error(e)
    finally:
        await timers.discard_idle(user_id, activity_id)


@router.post("/{activity_id}/stop", response_model=TimeEntry)
async def stop_timer(
    activity_id: str,
    auth_data: dict = Depends(get_current_user),
    store: EntryStore = Depends(get_store),
    timers: TimerRegistry = Depends(get_timers),
):
    """
    Stop the activity's timer and return the finalized entry.

    Raises:
        HTTPException: 409 when not running, 502 when the store write fails
    """
    user_id = auth_data["user_id"]
    engine = await _engine(activity_id, user_id, store, timers)
    try:
        return await engine.stop()
    except InvalidStateError as e:
        raise http_error(e)
    except StoreError as e:
        logger.error(f"Error stopping timer for activity {activity_id}: {str(e)}")
        raise http_error(e, "Failed to stop timer. The timer is still running; please try again.")
    except TimekeepError as e:
        raise http_error(e)
    finally:
        await timers.discard_idle(user_id, activity_id)


@router.delete("/{activity_id}")
async def detach_timer(
    activity_id: str,
    auth_data: dict = Depends(get_current_user),
    timers: TimerRegistry = Depends(get_timers),
):
    """Detach from the activity's timer; a running entry keeps running in the store."""
    released = await timers.release(auth_data["user_id"], activity_id)
    if not released:
        raise HTTPException(status_code=404, detail="Timer not attached")
    return {"status": "success", "message": "Timer detached"}
