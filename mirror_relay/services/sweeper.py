# services/sweeper.py
"""
Background expiry sweeper.

Periodically evicts sessions older than the TTL. The task belongs to the
relay lifecycle: ``start`` schedules it on the running loop and ``stop``
cancels it and waits for it to finish.
"""
import asyncio
import logging
import time
from typing import Callable, List, Optional

from mirror_relay.services.session_store import Session, SessionStore

logger = logging.getLogger(__name__)


class ExpirySweeper:
    def __init__(self, store: SessionStore, ttl: float, interval: float,
                 clock: Callable[[], float] = time.time) -> None:
        """
        Args:
            store (SessionStore): Store to sweep.
            ttl (float): Maximum session age in seconds.
            interval (float): Seconds between two sweeps.
            clock (Callable[[], float]): Source of the current time in epoch seconds.
        """
        self.store = store
        self.ttl = ttl
        self.interval = interval
        self._clock = clock
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def tick(self, now: float = None) -> List[Session]:
        """
        Run one sweep.

        Args:
            now (float, optional): Time to sweep at. Defaults to the clock.

        Returns:
            List[Session]: Sessions evicted by this sweep.
        """
        now = self._clock() if now is None else now
        evicted = self.store.sweep_expired(now, self.ttl)
        if evicted:
            logger.info(f"Swept {len(evicted)} expired session(s), {len(self.store)} remaining")
        return evicted

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="expiry-sweeper")
        logger.info(f"Expiry sweeper started: ttl={self.ttl}s interval={self.interval}s")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Expiry sweeper stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.tick()
            except Exception as e:
                # A missed sweep only delays cleanup
                logger.error("Expiry sweep failed", exc_info=e)
