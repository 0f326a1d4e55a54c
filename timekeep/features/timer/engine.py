"""
Timer Engine Module

This module owns the running/stopped state machine for one activity's
timer. The store is the source of truth for "is a timer running"; the
engine only mirrors it.

Features:
- Reconcile with an already-running entry on attach
- Start with cleanup of stale running entries
- Live elapsed time from the anchor timestamp
- Periodic best-effort checkpoints
- Authoritative duration on stop
- Final checkpoint on detach

Data Model:
- Stopped: nothing tracked
- Running: entry id, anchor start time, tick task, checkpoint task

Notes:
    Elapsed time is always ``now - anchor_start_time``. The tick loop only
    publishes that value; it never increments a counter, so delayed or
    skipped ticks cannot drift the result.

    Everything runs on one event loop. A per-engine in-flight flag keeps a
    second start or stop from being issued while a store write is pending.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from timekeep.shared import config
from timekeep.shared.clock import elapsed_seconds, utcnow
from timekeep.shared.errors import (
    AuthenticationRequired,
    InvalidStateError,
    NotFound,
    OperationInProgress,
    StoreReadError,
    StoreWriteError,
)
from timekeep.shared.models import TimeEntry, TimerState

logger = logging.getLogger(__name__)


@dataclass
class Running:
    entry_id: str
    anchor_start_time: datetime
    tick_task: asyncio.Task
    checkpoint_task: asyncio.Task

    def cancel(self) -> None:
        self.tick_task.cancel()
        self.checkpoint_task.cancel()


class TimerEngine:
    """
    Start/stop timer for a single activity.

    Args:
        store: Entry store (see ``timekeep.shared.store.EntryStore``)
        user_id (Optional[str]): Signed-in user; ``None`` when signed out
        clock: Callable returning the current UTC ``datetime``
        tick_interval (float): Seconds between display updates
        checkpoint_interval (float): Seconds between duration checkpoints
    """

    def __init__(
        self,
        store,
        user_id: Optional[str],
        *,
        clock: Callable[[], datetime] = utcnow,
        tick_interval: float = config.TIMER_TICK_INTERVAL,
        checkpoint_interval: float = config.TIMER_CHECKPOINT_INTERVAL,
    ):
        self.store = store
        self.user_id = user_id
        self.clock = clock
        self.tick_interval = tick_interval
        self.checkpoint_interval = checkpoint_interval
        self.activity_id: Optional[str] = None
        self.last_checkpoint_seconds: Optional[int] = None
        self._running: Optional[Running] = None
        self._in_flight = False
        self._subscribers: List[Callable[[TimeEntry], None]] = []
        self._tick_subscribers: List[Callable[[int], None]] = []

    # --- state ---

    @property
    def state(self) -> TimerState:
        return TimerState.RUNNING if self._running else TimerState.STOPPED

    @property
    def is_running(self) -> bool:
        return self._running is not None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def current_entry_id(self) -> Optional[str]:
        return self._running.entry_id if self._running else None

    @property
    def anchor_start_time(self) -> Optional[datetime]:
        return self._running.anchor_start_time if self._running else None

    @property
    def display_seconds(self) -> int:
        """Whole seconds since the anchor, or 0 when stopped."""
        if self._running is None:
            return 0
        return elapsed_seconds(self._running.anchor_start_time, self.clock())

    # --- subscriptions ---

    def subscribe(self, callback: Callable[[TimeEntry], None]) -> Callable[[], None]:
        """Call ``callback(entry)`` after every successful start and stop."""
        self._subscribers.append(callback)
        return lambda: self._subscribers.remove(callback) if callback in self._subscribers else None

    def subscribe_ticks(self, callback: Callable[[int], None]) -> Callable[[], None]:
        """Call ``callback(display_seconds)`` on every tick while running."""
        self._tick_subscribers.append(callback)
        return lambda: self._tick_subscribers.remove(callback) if callback in self._tick_subscribers else None

    # --- operations ---

    async def attach(self, activity_id: str) -> TimerState:
        """
        Begin observing an activity and reconcile with the store.

        A running entry for this activity and user puts the engine in
        Running with elapsed time measured from the entry's own
        ``start_time``. With no user, or when the query fails, the engine
        stays Stopped.
        """
        if self._in_flight:
            raise OperationInProgress("A timer operation is in progress")

        self._in_flight = True
        try:
            if self.activity_id is not None:
                await self.detach()
            self.activity_id = activity_id

            if not self.user_id:
                logger.warning(f"Attach to activity {activity_id} without a user; timer stays stopped")
                return self.state

            try:
                entry = await self.store.find_running_entry(activity_id, self.user_id)
            except StoreReadError as e:
                logger.error(f"Error checking running timer for activity {activity_id}: {str(e)}")
                return self.state
        finally:
            self._in_flight = False

        if entry is not None and self.activity_id == activity_id and self._running is None:
            self._enter_running(entry)
            logger.info(
                f"Reconciled running entry {entry.id} for activity {activity_id} "
                f"({self.display_seconds}s elapsed)"
            )
        return self.state

    async def start(self) -> TimeEntry:
        """
        Start a new running entry for the attached activity.

        Raises:
            InvalidStateError: Not attached, or already running
            OperationInProgress: Another start/stop is pending
            AuthenticationRequired: No signed-in user
            StoreWriteError: Cleanup or insert failed; engine stays Stopped
        """
        activity_id = self._require_attached()
        if self._in_flight:
            raise OperationInProgress("A timer operation is in progress")
        if self._running is not None:
            raise InvalidStateError("Timer is already running")
        if not self.user_id:
            raise AuthenticationRequired("Not authenticated")

        self._in_flight = True
        try:
            now = self.clock()
            await self.store.close_running_entries(activity_id, self.user_id, now)
            entry = await self.store.insert_entry(
                self.user_id,
                activity_id,
                now,
                is_running=True,
                duration=0,
            )
        finally:
            self._in_flight = False

        if self.activity_id != activity_id:
            # Detached while the insert was pending; the next attach reconciles it.
            logger.info(f"Engine detached during start; entry {entry.id} left running in store")
            return entry

        self._enter_running(entry)
        logger.info(f"Started timer entry {entry.id} for activity {activity_id}")
        self._emit(entry)
        return entry

    async def stop(self) -> TimeEntry:
        """
        Finalize the running entry.

        The final duration is computed from the anchor, not taken from the
        last checkpoint, and ``end_time`` is ``anchor + duration``.

        Raises:
            InvalidStateError: Not running
            OperationInProgress: Another start/stop is pending
            StoreWriteError: Write failed; engine stays Running and keeps ticking
        """
        if self._in_flight:
            raise OperationInProgress("A timer operation is in progress")
        running = self._running
        if running is None:
            raise InvalidStateError("Timer is not running")

        self._in_flight = True
        try:
            duration = elapsed_seconds(running.anchor_start_time, self.clock())
            end_time = running.anchor_start_time + timedelta(seconds=duration)
            entry = await self.store.update_entry(
                running.entry_id,
                self.user_id,
                {"end_time": end_time, "duration": duration, "is_running": False},
            )
        except NotFound:
            logger.error(f"Running entry {running.entry_id} disappeared from the store")
            if self._running is running:
                self._leave_running()
            raise
        finally:
            self._in_flight = False

        if self._running is running:
            self._leave_running()
        logger.info(f"Stopped timer entry {entry.id} after {duration}s")
        self._emit(entry)
        return entry

    async def checkpoint(self) -> bool:
        """
        Persist the current elapsed seconds on the running entry.

        Best effort: failures are logged and never change state.

        Returns:
            bool: True when the checkpoint was written
        """
        running = self._running
        if running is None:
            return False
        seconds = elapsed_seconds(running.anchor_start_time, self.clock())
        try:
            written = await self.store.checkpoint_entry(running.entry_id, self.user_id, seconds)
        except StoreWriteError as e:
            logger.warning(f"Error saving progress for entry {running.entry_id}: {str(e)}")
            return False
        if written:
            self.last_checkpoint_seconds = seconds
        return written

    async def detach(self) -> None:
        """
        Stop observing the activity.

        When Running, one final checkpoint is attempted before the loops are
        cancelled. The entry stays running in the store so the next attach
        can reconcile it.
        """
        if self._running is not None:
            await self.checkpoint()
            self._leave_running()
        self.activity_id = None

    # --- internals ---

    def _require_attached(self) -> str:
        if self.activity_id is None:
            raise InvalidStateError("Timer is not attached to an activity")
        return self.activity_id

    def _enter_running(self, entry: TimeEntry) -> None:
        self._leave_running()
        self._running = Running(
            entry_id=entry.id,
            anchor_start_time=entry.start_time,
            tick_task=asyncio.create_task(self._tick_loop()),
            checkpoint_task=asyncio.create_task(self._checkpoint_loop()),
        )
        self.last_checkpoint_seconds = entry.duration

    def _leave_running(self) -> None:
        running, self._running = self._running, None
        if running is not None:
            running.cancel()

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self.tick_interval)
            seconds = self.display_seconds
            for callback in list(self._tick_subscribers):
                self._notify(callback, seconds)

    async def _checkpoint_loop(self) -> None:
        while True:
            await asyncio.sleep(self.checkpoint_interval)
            await self.checkpoint()

    def _emit(self, entry: TimeEntry) -> None:
        for callback in list(self._subscribers):
            self._notify(callback, entry)

    @staticmethod
    def _notify(callback, value) -> None:
        try:
            callback(value)
        except Exception:
            logger.exception("Timer subscriber failed")
