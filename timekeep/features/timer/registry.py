"""
Timer Registry Module

Keeps one ``TimerEngine`` per (user, activity) inside the process so two
local tickers never checkpoint the same entry. There is no coordination
across processes; concurrent checkpoints from elsewhere are last-write-wins.
"""

import asyncio
import logging
from typing import Dict, Tuple

from timekeep.shared import config
from timekeep.shared.clock import utcnow
from timekeep.features.timer.engine import TimerEngine

logger = logging.getLogger(__name__)


class TimerRegistry:
    def __init__(
        self,
        store,
        *,
        clock=utcnow,
        tick_interval: float = config.TIMER_TICK_INTERVAL,
        checkpoint_interval: float = config.TIMER_CHECKPOINT_INTERVAL,
    ):
        self.store = store
        self.clock = clock
        self.tick_interval = tick_interval
        self.checkpoint_interval = checkpoint_interval
        self._engines: Dict[Tuple[str, str], TimerEngine] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._engines)

    async def get(self, user_id: str, activity_id: str) -> TimerEngine:
        """
        Return the attached engine for a user's activity.

        A stopped engine is re-attached so a timer started by another
        process shows up.
        """
        key = (user_id, activity_id)
        async with self._lock:
            engine = self._engines.get(key)
            if engine is None:
                engine = TimerEngine(
                    self.store,
                    user_id,
                    clock=self.clock,
                    tick_interval=self.tick_interval,
                    checkpoint_interval=self.checkpoint_interval,
                )
                self._engines[key] = engine
                await engine.attach(activity_id)
            elif not engine.is_running and not engine.in_flight:
                await engine.attach(activity_id)
        return engine

    async def release(self, user_id: str, activity_id: str) -> bool:
        """Detach and forget an engine. Returns False when none was registered."""
        async with self._lock:
            engine = self._engines.pop((user_id, activity_id), None)
        if engine is None:
            return False
        await engine.detach()
        return True

    async def discard_idle(self, user_id: str, activity_id: str) -> bool:
        """Forget a stopped engine. A running or busy one stays registered."""
        key = (user_id, activity_id)
        async with self._lock:
            engine = self._engines.get(key)
            if engine is None or engine.is_running or engine.in_flight:
                return False
            del self._engines[key]
        await engine.detach()
        return True

    async def release_activity(self, activity_id: str) -> None:
        """Drop every engine observing an activity (used when it is deleted)."""
        async with self._lock:
            keys = [key for key in self._engines if key[1] == activity_id]
            engines = [self._engines.pop(key) for key in keys]
        for engine in engines:
            await engine.detach()

    async def shutdown(self) -> None:
        """Detach every engine; each running one gets a final checkpoint."""
        async with self._lock:
            engines, self._engines = list(self._engines.values()), {}
        for engine in engines:
            try:
                await engine.detach()
            except Exception as e:
                logger.error(f"Error detaching timer for activity {engine.activity_id}: {str(e)}")
        logger.info(f"Detached {len(engines)} timer engines")
